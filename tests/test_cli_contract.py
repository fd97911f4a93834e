import json
from pathlib import Path

from typer.testing import CliRunner

from conftest import APP_DIGEST, CHILD_FIXTURES, OTHER_DIGEST, REPORT_DIGEST, TESTDATA
from runattest.cli import app

runner = CliRunner()

TASK_RUN = str(TESTDATA / "taskrun.json")
PIPELINE_RUN = str(TESTDATA / "pipelinerun.json")


def _child_args() -> list:
    args = []
    for name in CHILD_FIXTURES:
        args.extend(["--child", str(TESTDATA / name)])
    return args


def test_version_json_contract() -> None:
    result = runner.invoke(app, ["version", "--json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert isinstance(payload["version"], str)


def test_formats_lists_payload_types() -> None:
    result = runner.invoke(app, ["formats", "--json"])
    assert result.exit_code == 0
    assert "slsa/v2alpha4" in json.loads(result.stdout)["formats"]


def test_generate_renders_every_enabled_artifact() -> None:
    result = runner.invoke(app, ["generate", TASK_RUN, "--json"])
    assert result.exit_code == 0
    out = json.loads(result.stdout)
    assert out["ok"] is True
    assert out["run"] == "image-build"
    assert out["kind"] == "TaskRun"
    artifacts = out["artifacts"]
    assert [(a["type"], a["key"], a["format"]) for a in artifacts] == [
        ("tekton", "taskrun-abc-123", "in-toto"),
        ("oci", APP_DIGEST[:12], "simplesigning"),
        ("oci", OTHER_DIGEST[:12], "simplesigning"),
    ]
    assert artifacts[0]["wrap"] is True
    assert artifacts[0]["payload"]["_type"] == "https://in-toto.io/Statement/v0.1"
    assert artifacts[1]["wrap"] is False
    assert artifacts[1]["payload"]["critical"]["identity"] == {"docker-reference": "gcr.io/example/app"}
    assert artifacts[2]["payload"]["critical"]["image"] == {"Docker-manifest-digest": f"sha256:{OTHER_DIGEST}"}


def test_generate_pipeline_run_with_children_and_config() -> None:
    with runner.isolated_filesystem():
        Path("config.json").write_text(
            json.dumps({"artifacts.pipelinerun.format": "slsa/v2alpha4", "artifacts.oci.storage": ""}),
            encoding="utf-8",
        )
        result = runner.invoke(
            app,
            ["generate", PIPELINE_RUN, *_child_args(), "--config", "config.json", "--deep-inspection", "--json"],
        )
    assert result.exit_code == 0
    artifacts = json.loads(result.stdout)["artifacts"]
    assert len(artifacts) == 1
    assert artifacts[0]["type"] == "tekton-pipeline-run"
    assert artifacts[0]["format"] == "slsa/v2alpha4"
    assert [s["name"] for s in artifacts[0]["payload"]["subject"]] == ["gcr.io/example/app", "pkg:generic/app-cli"]


def test_generate_format_renders_only_the_run() -> None:
    result = runner.invoke(app, ["generate", TASK_RUN, "--format", "slsa/v2alpha1", "--json"])
    assert result.exit_code == 0
    artifacts = json.loads(result.stdout)["artifacts"]
    assert [(a["type"], a["format"]) for a in artifacts] == [("tekton", "slsa/v2alpha1")]
    assert artifacts[0]["payload"]["predicate"]["buildType"].endswith("/slsa/v2alpha1/type/tekton.dev/v1/TaskRun")


def test_generate_writes_one_file_per_artifact() -> None:
    with runner.isolated_filesystem():
        result = runner.invoke(app, ["generate", TASK_RUN, "--output", "out", "--json"])
        assert result.exit_code == 0
        artifacts = json.loads(result.stdout)["artifacts"]
        assert all("payload" not in a for a in artifacts)
        assert [a["output_path"] for a in artifacts] == [
            str(Path("out") / "taskrun-abc-123.json"),
            str(Path("out") / f"{APP_DIGEST[:12]}.json"),
            str(Path("out") / f"{OTHER_DIGEST[:12]}.json"),
        ]
        statement = json.loads(Path(artifacts[0]["output_path"]).read_text(encoding="utf-8"))
        assert statement["_type"] == "https://in-toto.io/Statement/v0.1"
        image = json.loads(Path(artifacts[1]["output_path"]).read_text(encoding="utf-8"))
        assert image["critical"]["type"] == "Tekton container signature"


def test_generate_format_writes_statement_file() -> None:
    with runner.isolated_filesystem():
        result = runner.invoke(
            app, ["generate", TASK_RUN, "--format", "slsa/v2alpha3", "--output", "out", "--json"]
        )
        assert result.exit_code == 0
        (artifact,) = json.loads(result.stdout)["artifacts"]
        statement = json.loads(Path(artifact["output_path"]).read_text(encoding="utf-8"))
        assert statement["_type"] == "https://in-toto.io/Statement/v1"


def test_generate_rejects_unknown_format() -> None:
    result = runner.invoke(app, ["generate", TASK_RUN, "--format", "slsa/v9", "--json"])
    assert result.exit_code == 1
    out = json.loads(result.stdout)
    assert out["ok"] is False
    assert out["command"] == "generate"
    assert "slsa/v9" in out["error"]


def test_generate_rejects_children_for_task_runs() -> None:
    result = runner.invoke(app, ["generate", TASK_RUN, "--child", TASK_RUN, "--json"])
    assert result.exit_code == 1
    assert "PipelineRun" in json.loads(result.stdout)["error"]


def test_artifact_uris() -> None:
    result = runner.invoke(app, ["artifact-uris", TASK_RUN, "--json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["artifact_uris"] == [
        f"https://example.com/report.json@sha256:{REPORT_DIGEST}",
        f"gcr.io/example/app@sha256:{APP_DIGEST}",
        f"gcr.io/example/other@sha256:{OTHER_DIGEST}",
    ]


def test_sign_rejects_legacy_statements() -> None:
    with runner.isolated_filesystem():
        runner.invoke(app, ["generate", TASK_RUN, "--output", ".", "--json"])
        result = runner.invoke(app, ["sign", "taskrun-abc-123.json", "--offline", "--json"], env={"SIGSTORE_ID_TOKEN": ""})
        assert result.exit_code == 1
        out = json.loads(result.stdout)
        assert out["command"] == "sign"
        assert "Statement/v1" in out["error"]
        assert not Path("taskrun-abc-123.json.sigstore.json").exists()
