from structlog.testing import capture_logs

from runattest.dedup import (
    append_materials,
    append_subjects,
    materials_to_resolved_dependencies,
    remove_duplicate_materials,
    remove_duplicate_resolved_dependencies,
)


def test_disjoint_algorithms_merge_into_one_entry() -> None:
    merged = append_materials([], {"uri": "u", "digest": {"sha256": "a"}}, {"uri": "u", "digest": {"sha1": "b"}})
    assert merged == [{"uri": "u", "digest": {"sha256": "a", "sha1": "b"}}]


def test_conflicting_digests_are_kept_and_logged() -> None:
    with capture_logs() as logs:
        out = append_materials([{"uri": "u", "digest": {"sha256": "a"}}], {"uri": "u", "digest": {"sha256": "b"}})
    assert out == [{"uri": "u", "digest": {"sha256": "a"}}, {"uri": "u", "digest": {"sha256": "b"}}]
    assert logs[0]["event"] == "conflicting digests"
    assert logs[0]["kept"] == "a"
    assert logs[0]["incoming"] == "b"


def test_exact_duplicates_collapse() -> None:
    entry = {"uri": "u", "digest": {"sha256": "a"}}
    assert append_materials([entry], dict(entry), dict(entry)) == [entry]


def test_append_does_not_mutate_inputs() -> None:
    existing = [{"uri": "u", "digest": {"sha256": "a"}}]
    append_materials(existing, {"uri": "u", "digest": {"sha1": "b"}})
    assert existing == [{"uri": "u", "digest": {"sha256": "a"}}]


def test_entries_without_identity_or_digest_are_dropped() -> None:
    out = append_subjects([], {"name": "", "digest": {"sha256": "a"}}, {"name": "x", "digest": {}}, {"name": "y", "digest": {"sha256": "c"}})
    assert out == [{"name": "y", "digest": {"sha256": "c"}}]


def test_append_is_idempotent() -> None:
    new = [{"uri": "u", "digest": {"sha256": "a"}}, {"uri": "v", "digest": {"sha1": "b"}}]
    once = append_materials([], *new)
    assert append_materials(once, *new) == once


def test_remove_duplicate_materials_keeps_first_seen_order() -> None:
    mats = [
        {"uri": "b", "digest": {"sha1": "1"}},
        {"uri": "a", "digest": {"sha1": "2"}},
        {"uri": "b", "digest": {"sha1": "1"}},
    ]
    assert remove_duplicate_materials(mats) == mats[:2]


def test_resolved_dependency_dedup_ignores_name_but_protects_task_and_pipeline() -> None:
    deps = [
        {"name": "task", "uri": "git+https://x.git", "digest": {"sha1": "1"}},
        {"name": "pipeline", "uri": "git+https://x.git", "digest": {"sha1": "1"}},
        {"uri": "oci://img", "digest": {"sha256": "2"}},
        {"name": "pipelineTask", "uri": "oci://img", "digest": {"sha256": "2"}},
        {"name": "inputs/result", "uri": "git+https://x.git", "digest": {"sha1": "1"}},
    ]
    out = remove_duplicate_resolved_dependencies(deps)
    assert out == deps[:3]


def test_materials_to_resolved_dependencies_tags_entries() -> None:
    deps = materials_to_resolved_dependencies([{"uri": "u", "digest": {"sha1": "1"}}], "inputs/result")
    assert deps == [{"name": "inputs/result", "uri": "u", "digest": {"sha1": "1"}}]
    assert materials_to_resolved_dependencies([{"uri": "u", "digest": {"sha1": "1"}}]) == [
        {"uri": "u", "digest": {"sha1": "1"}}
    ]
