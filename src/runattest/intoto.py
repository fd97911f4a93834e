from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from runattest.digest import DIGEST_HEX_LENGTHS

STATEMENT_TYPE_V01 = "https://in-toto.io/Statement/v0.1"
STATEMENT_TYPE_V1 = "https://in-toto.io/Statement/v1"
SLSA_PROVENANCE_V02 = "https://slsa.dev/provenance/v0.2"
SLSA_PROVENANCE_V1 = "https://slsa.dev/provenance/v1"


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Subject(_WireModel):
    name: str = Field(min_length=1)
    digest: Dict[str, str] = Field(min_length=1)

    def model_post_init(self, __context: Any) -> None:
        for algorithm, value in self.digest.items():
            if not value:
                raise ValueError(f"empty {algorithm} digest for subject {self.name}")
            if algorithm == "sha256" and len(value) != DIGEST_HEX_LENGTHS["sha256"]:
                raise ValueError(f"sha256 digest for subject {self.name} must be 64 hex characters")


class ResourceDescriptor(_WireModel):
    name: Optional[str] = None
    uri: Optional[str] = None
    digest: Optional[Dict[str, str]] = None
    content: Optional[str] = None
    download_location: Optional[str] = Field(default=None, alias="downloadLocation")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    annotations: Optional[Dict[str, Any]] = None

    def model_post_init(self, __context: Any) -> None:
        if not (self.uri or self.digest or self.content):
            raise ValueError("resource descriptor needs at least one of uri, digest or content")
        if self.digest == {}:
            self.digest = None


class Material(_WireModel):
    uri: str = Field(min_length=1)
    digest: Dict[str, str] = Field(min_length=1)


class Builder(_WireModel):
    id: str


class ConfigSource(_WireModel):
    uri: Optional[str] = None
    digest: Optional[Dict[str, str]] = None
    entry_point: Optional[str] = Field(default=None, alias="entryPoint")


class Invocation(_WireModel):
    config_source: ConfigSource = Field(default_factory=ConfigSource, alias="configSource")
    parameters: Optional[Dict[str, Any]] = None
    environment: Optional[Dict[str, Any]] = None


class Completeness(_WireModel):
    parameters: bool = False
    environment: bool = False
    materials: bool = False


class MetadataV02(_WireModel):
    build_invocation_id: Optional[str] = Field(default=None, alias="buildInvocationId")
    build_started_on: Optional[str] = Field(default=None, alias="buildStartedOn")
    build_finished_on: Optional[str] = Field(default=None, alias="buildFinishedOn")
    completeness: Completeness = Field(default_factory=Completeness)
    reproducible: bool = False


class ProvenancePredicateV02(_WireModel):
    builder: Builder
    build_type: str = Field(alias="buildType")
    invocation: Invocation
    build_config: Optional[Dict[str, Any]] = Field(default=None, alias="buildConfig")
    metadata: Optional[MetadataV02] = None
    materials: List[Material] = Field(default_factory=list)


class BuildDefinition(_WireModel):
    build_type: str = Field(alias="buildType")
    external_parameters: Dict[str, Any] = Field(alias="externalParameters")
    internal_parameters: Optional[Dict[str, Any]] = Field(default=None, alias="internalParameters")
    resolved_dependencies: Optional[List[ResourceDescriptor]] = Field(default=None, alias="resolvedDependencies")


class BuildMetadata(_WireModel):
    invocation_id: Optional[str] = Field(default=None, alias="invocationId")
    started_on: Optional[str] = Field(default=None, alias="startedOn")
    finished_on: Optional[str] = Field(default=None, alias="finishedOn")


class RunDetails(_WireModel):
    builder: Builder
    metadata: Optional[BuildMetadata] = None
    byproducts: Optional[List[ResourceDescriptor]] = None


class ProvenanceV1(_WireModel):
    build_definition: BuildDefinition = Field(alias="buildDefinition")
    run_details: RunDetails = Field(alias="runDetails")


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """RFC 3339 in UTC with a ``Z`` suffix."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def descriptors(entries: List[Dict[str, Any]]) -> Optional[List[ResourceDescriptor]]:
    if not entries:
        return None
    return [ResourceDescriptor.model_validate(entry) for entry in entries]


def make_statement(
    *,
    statement_type: str,
    predicate_type: str,
    subjects: List[Dict[str, Any]],
    predicate: Dict[str, Any],
) -> Dict[str, Any]:
    return {
        "_type": statement_type,
        "subject": [Subject.model_validate(s).to_dict() for s in subjects],
        "predicateType": predicate_type,
        "predicate": predicate,
    }
