import json
from pathlib import Path

import pytest

from runattest.config import Config, load_config


def test_defaults() -> None:
    cfg = Config()
    assert cfg.artifacts.taskrun.format == "in-toto"
    assert cfg.artifacts.taskrun.storage == ["tekton"]
    assert cfg.artifacts.pipelinerun.deep_inspection is False
    assert cfg.artifacts.oci.format == "simplesigning"
    assert cfg.artifacts.oci.storage == ["oci"]
    assert cfg.builder.id == "https://tekton.dev/chains/v2"
    assert cfg.build_definition.build_type == "https://tekton.dev/chains/v2/slsa"
    assert load_config(None) == cfg


def test_from_flat_reads_controller_keys() -> None:
    cfg = Config.from_flat(
        {
            "artifacts.taskrun.format": "slsa/v2alpha4",
            "artifacts.taskrun.storage": "tekton, oci,tekton",
            "artifacts.pipelinerun.enable-deep-inspection": "true",
            "artifacts.oci.signer": "kms",
            "builder.id": "https://builder.example.com",
            "builddefinition.buildtype": "https://tekton.dev/chains/v2/slsa-tekton",
            "transparency.enabled": "true",
        }
    )
    assert cfg.artifacts.taskrun.format == "slsa/v2alpha4"
    assert cfg.artifacts.taskrun.storage == ["tekton", "oci"]
    assert cfg.artifacts.pipelinerun.deep_inspection is True
    assert cfg.artifacts.oci.signer == "kms"
    assert cfg.builder.id == "https://builder.example.com"
    assert cfg.build_definition.build_type == "https://tekton.dev/chains/v2/slsa-tekton"


def test_empty_storage_disables_artifact() -> None:
    cfg = Config.from_flat({"artifacts.oci.storage": ""})
    assert cfg.artifacts.oci.enabled is False
    assert cfg.artifacts.taskrun.enabled is True


def test_from_file_accepts_nested_and_flat_documents(tmp_path: Path) -> None:
    nested = tmp_path / "nested.json"
    nested.write_text(json.dumps({"artifacts": {"pipelinerun": {"format": "slsa/v1"}}}), encoding="utf-8")
    flat = tmp_path / "flat.json"
    flat.write_text(json.dumps({"artifacts.pipelinerun.format": "slsa/v1"}), encoding="utf-8")
    assert load_config(str(nested)).artifacts.pipelinerun.format == "slsa/v1"
    assert load_config(str(flat)).artifacts.pipelinerun.format == "slsa/v1"


def test_from_file_rejects_non_objects(tmp_path: Path) -> None:
    path = tmp_path / "list.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError, match="must contain a JSON object"):
        Config.from_file(str(path))


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        Config.from_flat({"artifacts.taskrun.format": "simplesigning"})
    with pytest.raises(ValueError):
        Config.from_flat({"artifacts.oci.format": "in-toto"})
    with pytest.raises(ValueError):
        Config.from_flat({"artifacts.taskrun.storage": "tekton,s3"})
    with pytest.raises(ValueError):
        Config.model_validate({"builder": {"id": "x", "extra": 1}})


def test_slsa_v2alpha1_is_a_task_run_format_only() -> None:
    cfg = Config.from_flat({"artifacts.taskrun.format": "slsa/v2alpha1"})
    assert cfg.artifacts.taskrun.format == "slsa/v2alpha1"
    with pytest.raises(ValueError, match="invalid format"):
        Config.from_flat({"artifacts.pipelinerun.format": "slsa/v2alpha1"})
