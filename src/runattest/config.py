from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from runattest.files import read_json

PAYLOAD_TYPE_TEKTON = "tekton"
PAYLOAD_TYPE_SIMPLESIGNING = "simplesigning"
PAYLOAD_TYPE_INTOTO = "in-toto"
PAYLOAD_TYPE_SLSA_V1 = "slsa/v1"
PAYLOAD_TYPE_SLSA_V2ALPHA1 = "slsa/v2alpha1"
PAYLOAD_TYPE_SLSA_V2ALPHA2 = "slsa/v2alpha2"
PAYLOAD_TYPE_SLSA_V2ALPHA3 = "slsa/v2alpha3"
PAYLOAD_TYPE_SLSA_V2ALPHA4 = "slsa/v2alpha4"

RUN_FORMATS = {
    PAYLOAD_TYPE_TEKTON,
    PAYLOAD_TYPE_INTOTO,
    PAYLOAD_TYPE_SLSA_V1,
    PAYLOAD_TYPE_SLSA_V2ALPHA2,
    PAYLOAD_TYPE_SLSA_V2ALPHA3,
    PAYLOAD_TYPE_SLSA_V2ALPHA4,
}
# slsa/v2alpha1 only describes task runs.
TASK_RUN_FORMATS = RUN_FORMATS | {PAYLOAD_TYPE_SLSA_V2ALPHA1}
OCI_FORMATS = {PAYLOAD_TYPE_SIMPLESIGNING}
ALLOWED_STORAGE = {"tekton", "oci", "gcs", "docdb", "grafeas", "pubsub", "archivista"}
ALLOWED_SIGNERS = {"x509", "kms"}

DEFAULT_BUILDER_ID = "https://tekton.dev/chains/v2"
DEFAULT_BUILD_TYPE = "https://tekton.dev/chains/v2/slsa"


def _split_set(raw: str) -> List[str]:
    out: List[str] = []
    for token in raw.split(","):
        value = token.strip()
        if value and value not in out:
            out.append(value)
    return out


class ArtifactConfig(BaseModel):
    format: str
    storage: List[str] = Field(default_factory=list)
    signer: str = "x509"
    model_config = ConfigDict(extra="forbid")

    def _validate_common(self, allowed_formats: set) -> None:
        if self.format not in allowed_formats:
            raise ValueError(f"invalid format {self.format!r}, expected one of {sorted(allowed_formats)}")
        unknown = sorted(set(self.storage) - ALLOWED_STORAGE)
        if unknown:
            raise ValueError(f"invalid storage backend(s): {', '.join(unknown)}")
        if self.signer not in ALLOWED_SIGNERS:
            raise ValueError(f"invalid signer {self.signer!r}")

    @property
    def enabled(self) -> bool:
        return bool(self.storage)


class TaskRunArtifactConfig(ArtifactConfig):
    format: str = PAYLOAD_TYPE_INTOTO
    storage: List[str] = Field(default_factory=lambda: ["tekton"])

    def model_post_init(self, __context: Any) -> None:
        self._validate_common(TASK_RUN_FORMATS)


class PipelineRunArtifactConfig(ArtifactConfig):
    format: str = PAYLOAD_TYPE_INTOTO
    storage: List[str] = Field(default_factory=lambda: ["tekton"])
    deep_inspection: bool = False

    def model_post_init(self, __context: Any) -> None:
        self._validate_common(RUN_FORMATS)


class OCIArtifactConfig(ArtifactConfig):
    format: str = PAYLOAD_TYPE_SIMPLESIGNING
    storage: List[str] = Field(default_factory=lambda: ["oci"])

    def model_post_init(self, __context: Any) -> None:
        self._validate_common(OCI_FORMATS)


class ArtifactsConfig(BaseModel):
    taskrun: TaskRunArtifactConfig = Field(default_factory=TaskRunArtifactConfig)
    pipelinerun: PipelineRunArtifactConfig = Field(default_factory=PipelineRunArtifactConfig)
    oci: OCIArtifactConfig = Field(default_factory=OCIArtifactConfig)
    model_config = ConfigDict(extra="forbid")


class BuilderConfig(BaseModel):
    id: str = DEFAULT_BUILDER_ID
    model_config = ConfigDict(extra="forbid")


class BuildDefinitionConfig(BaseModel):
    build_type: str = DEFAULT_BUILD_TYPE
    model_config = ConfigDict(extra="forbid")


class Config(BaseModel):
    artifacts: ArtifactsConfig = Field(default_factory=ArtifactsConfig)
    builder: BuilderConfig = Field(default_factory=BuilderConfig)
    build_definition: BuildDefinitionConfig = Field(default_factory=BuildDefinitionConfig)
    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_flat(cls, data: Mapping[str, Any]) -> "Config":
        """Build a Config from dotted controller keys such as ``artifacts.taskrun.format``.

        Keys this package does not interpret are ignored.
        """
        artifacts: Dict[str, Dict[str, Any]] = {"taskrun": {}, "pipelinerun": {}, "oci": {}}
        payload: Dict[str, Any] = {"artifacts": artifacts}
        for key, value in data.items():
            parts = key.split(".")
            if len(parts) == 3 and parts[0] == "artifacts" and parts[1] in artifacts:
                field = parts[2]
                section = artifacts[parts[1]]
                if field == "storage":
                    section["storage"] = _split_set(str(value))
                elif field in {"format", "signer"}:
                    section[field] = str(value).strip()
                elif field == "enable-deep-inspection" and parts[1] == "pipelinerun":
                    section["deep_inspection"] = _as_bool(value)
            elif key == "builder.id":
                payload["builder"] = {"id": str(value).strip()}
            elif key == "builddefinition.buildtype":
                payload["build_definition"] = {"build_type": str(value).strip()}
        return cls.model_validate(payload)

    @classmethod
    def from_file(cls, path: str) -> "Config":
        """Read nested JSON, or a flat mapping of dotted controller keys."""
        data = read_json(path)
        if not isinstance(data, dict):
            raise ValueError(f"config file {path} must contain a JSON object")
        if any("." in key for key in data):
            return cls.from_flat(data)
        return cls.model_validate(data)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def load_config(path: Optional[str]) -> Config:
    if path is None:
        return Config()
    return Config.from_file(path)
