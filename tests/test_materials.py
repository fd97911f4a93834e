import pytest
from structlog.testing import capture_logs

from conftest import (
    BUILDER_DIGEST,
    CATALOG_COMMIT,
    CLEANER_DIGEST,
    PIPELINE_COMMIT,
    PROXY_DIGEST,
    SOURCE_DIGEST,
    TASK_COMMIT,
    TESTER_DIGEST,
)
from runattest.errors import MalformedImageIDError
from runattest.materials import (
    completed_task_runs,
    from_step_actions_results,
    pipeline_materials,
    task_materials,
)
from runattest.objects import PipelineRun, SidecarState, StepState, TaskRun

PIPELINES_COMMIT = TASK_COMMIT


def test_task_materials_follow_fixed_source_order(task_run: TaskRun) -> None:
    assert task_materials(task_run) == [
        {"uri": "git+https://github.com/example/catalog.git", "digest": {"sha1": CATALOG_COMMIT}},
        {"uri": "oci://gcr.io/tools/builder", "digest": {"sha256": BUILDER_DIGEST}},
        {"uri": "oci://gcr.io/tools/proxy", "digest": {"sha256": PROXY_DIGEST}},
        {"uri": "git+https://github.com/example/app.git", "digest": {"sha1": TASK_COMMIT}},
    ]


def test_task_materials_skip_ref_source_of_cluster_tasks(task_run: TaskRun) -> None:
    task_run.spec.task_ref.resolver = None
    uris = [m["uri"] for m in task_materials(task_run)]
    assert "git+https://github.com/example/catalog.git" not in uris


def test_malformed_step_image_id_aborts_extraction(task_run: TaskRun) -> None:
    task_run.status.steps[0] = StepState(name="build", imageID="gcr.io/a/b-sha256:deadbeef")
    with pytest.raises(MalformedImageIDError):
        task_materials(task_run)


def test_malformed_sidecar_image_id_aborts_extraction(task_run: TaskRun) -> None:
    task_run.status.sidecars = [SidecarState(name="proxy", imageID="gcr.io/tools/proxy")]
    with pytest.raises(MalformedImageIDError):
        task_materials(task_run)


def test_step_action_results_report_structured_inputs(task_run: TaskRun) -> None:
    assert from_step_actions_results(task_run) == [
        {"uri": "https://example.com/src.tar.gz", "digest": {"sha256": SOURCE_DIGEST}}
    ]


def test_completed_task_runs_logs_tasks_that_never_ran(pipeline_run: PipelineRun) -> None:
    with capture_logs() as logs:
        runs = completed_task_runs(pipeline_run)
    assert [tr.name for tr in runs] == ["release-build", "release-test", "release-cleanup"]
    assert {"event": "taskrun is not found or not completed", "task": "skipped", "log_level": "info"} in logs


def test_pipeline_materials_without_deep_inspection(pipeline_run: PipelineRun) -> None:
    assert pipeline_materials(pipeline_run) == [
        {"uri": "git+https://github.com/example/pipelines.git", "digest": {"sha1": PIPELINES_COMMIT}},
        {"uri": "oci://gcr.io/tools/builder", "digest": {"sha256": BUILDER_DIGEST}},
        {"uri": "oci://gcr.io/tools/tester", "digest": {"sha256": TESTER_DIGEST}},
        {"uri": "oci://gcr.io/tools/cleaner", "digest": {"sha256": CLEANER_DIGEST}},
        {"uri": "git+https://github.com/example/app.git", "digest": {"sha1": PIPELINE_COMMIT}},
    ]


def test_deep_inspection_surfaces_child_inputs(pipeline_run: PipelineRun) -> None:
    shallow = pipeline_materials(pipeline_run)
    deep = pipeline_materials(pipeline_run, deep_inspection=True)
    source = {"uri": "https://example.com/src.tar.gz", "digest": {"sha256": SOURCE_DIGEST}}
    assert source not in shallow
    assert deep[4] == source
    assert [m for m in deep if m != source] == shallow


def test_incomplete_child_is_skipped(pipeline_run: PipelineRun) -> None:
    pipeline_run.get_task_run_from_task("test").status.completion_time = None
    uris = [m["uri"] for m in pipeline_materials(pipeline_run)]
    assert "oci://gcr.io/tools/tester" not in uris


def test_material_extraction_is_idempotent(pipeline_run: PipelineRun) -> None:
    assert pipeline_materials(pipeline_run, True) == pipeline_materials(pipeline_run, True)
