import pytest
from structlog.testing import capture_logs

from runattest import errors
from runattest.errors import (
    MALFORMED_INPUT_POLICY,
    RAISE,
    SKIP,
    MalformedImageIDError,
    ProvenanceError,
    UnsupportedBuildTypeError,
    handle_malformed,
)
from runattest.materials import task_materials
from runattest.objects import StepState, TaskRun
from runattest.parameters import SLSA_BUILD_TYPE, resolve_build_type

BAD_IMAGE_ID = "gcr.io/a/b-sha256:deadbeef"


def test_policy_contents() -> None:
    assert MALFORMED_INPUT_POLICY == {
        "structured-result": SKIP,
        "type-hinted-pair": SKIP,
        "images-list": SKIP,
        "task-descriptor": SKIP,
        "image-id": RAISE,
        "build-type": RAISE,
    }


def test_every_error_is_a_value_error() -> None:
    for cls in (MalformedImageIDError, UnsupportedBuildTypeError, errors.UnsupportedObjectError):
        assert issubclass(cls, ProvenanceError)
    assert issubclass(ProvenanceError, ValueError)


def test_skip_sources_log_and_return() -> None:
    with capture_logs() as logs:
        handle_malformed("images-list", "invalid image reference", image="x")
    assert logs == [{"event": "invalid image reference", "source": "images-list", "image": "x", "log_level": "warning"}]


def test_raise_sources_raise_the_cause() -> None:
    cause = UnsupportedBuildTypeError("https://x/unknown")
    with pytest.raises(UnsupportedBuildTypeError) as info:
        handle_malformed("build-type", "unsupported", cause=cause)
    assert info.value is cause


def test_unknown_sources_raise() -> None:
    with pytest.raises(ProvenanceError, match="something odd"):
        handle_malformed("not-a-source", "something odd")


def test_image_id_policy_controls_material_extraction(task_run: TaskRun, monkeypatch) -> None:
    task_run.status.steps[0] = StepState(name="build", imageID=BAD_IMAGE_ID)
    with pytest.raises(MalformedImageIDError):
        task_materials(task_run)

    monkeypatch.setitem(MALFORMED_INPUT_POLICY, "image-id", SKIP)
    with capture_logs() as logs:
        uris = [m["uri"] for m in task_materials(task_run)]
    assert "oci://gcr.io/tools/proxy" in uris
    assert logs[0]["event"] == "invalid runtime image id"
    assert logs[0]["image_id"] == BAD_IMAGE_ID


def test_build_type_policy_controls_resolution(monkeypatch) -> None:
    with pytest.raises(UnsupportedBuildTypeError, match="unsupported buildType https://x/unknown"):
        resolve_build_type("https://x/unknown")

    monkeypatch.setitem(MALFORMED_INPUT_POLICY, "build-type", SKIP)
    with capture_logs() as logs:
        assert resolve_build_type("https://x/unknown") == SLSA_BUILD_TYPE
    assert logs[0]["build_type"] == "https://x/unknown"
    assert logs[0]["error"] == "unsupported buildType https://x/unknown"
