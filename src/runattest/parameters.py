from __future__ import annotations

from typing import Any, Dict, Optional

from runattest.errors import UnsupportedBuildTypeError, handle_malformed
from runattest.objects import Provenance, RunRecord

SLSA_BUILD_TYPE = "https://tekton.dev/chains/v2/slsa"
TEKTON_BUILD_TYPE = "https://tekton.dev/chains/v2/slsa-tekton"
SUPPORTED_BUILD_TYPES = (SLSA_BUILD_TYPE, TEKTON_BUILD_TYPE)

FEATURE_FLAGS_KEY = "tekton-pipelines-feature-flags"
LAST_APPLIED_CONFIG_ANNOTATION = "kubectl.kubernetes.io/last-applied-configuration"
RESERVED_ANNOTATION_PREFIX = "chains.tekton.dev/"


def resolve_build_type(build_type: Optional[str]) -> str:
    """Default an empty build type to the SLSA one.

    An unknown build type goes through the ``build-type`` malformed-input
    policy: it raises, or falls back to the SLSA build type when skipped.
    """
    resolved = build_type or SLSA_BUILD_TYPE
    if resolved not in SUPPORTED_BUILD_TYPES:
        handle_malformed(
            "build-type",
            "unsupported buildType, using the default",
            cause=UnsupportedBuildTypeError(resolved),
            build_type=resolved,
        )
        return SLSA_BUILD_TYPE
    return resolved


def filter_annotations(annotations: Dict[str, str]) -> Dict[str, str]:
    return {
        name: value
        for name, value in annotations.items()
        if name != LAST_APPLIED_CONFIG_ANNOTATION and not name.startswith(RESERVED_ANNOTATION_PREFIX)
    }


def build_config_source(provenance: Provenance) -> Dict[str, str]:
    ref_source = provenance.ref_source
    if ref_source is None:
        return {"ref": "", "repository": "", "path": ""}
    ref = ""
    for algorithm in sorted(ref_source.digest):
        ref = f"{algorithm}:{ref_source.digest[algorithm]}"
        break
    return {"ref": ref, "repository": ref_source.uri, "path": ref_source.entry_point}


def external_parameters(run: RunRecord, include_config_source: bool = True) -> Dict[str, Any]:
    """The run spec exactly as submitted, plus the remote definition source when resolved remotely."""
    params: Dict[str, Any] = {}
    if include_config_source:
        provenance = run.get_remote_provenance()
        if provenance is not None:
            params["buildConfigSource"] = build_config_source(provenance)
    params["runSpec"] = run.spec.to_json()
    return params


def slsa_internal_parameters(run: RunRecord) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    provenance = run.get_provenance()
    if provenance is not None and provenance.feature_flags is not None:
        params[FEATURE_FLAGS_KEY] = provenance.feature_flags
    return params


def tekton_internal_parameters(run: RunRecord) -> Dict[str, Any]:
    params = slsa_internal_parameters(run)
    params["labels"] = dict(run.get_labels())
    params["annotations"] = filter_annotations(run.get_annotations())
    return params


def internal_parameters(run: RunRecord, build_type: str) -> Dict[str, Any]:
    if build_type == SLSA_BUILD_TYPE:
        return slsa_internal_parameters(run)
    if build_type == TEKTON_BUILD_TYPE:
        return tekton_internal_parameters(run)
    raise UnsupportedBuildTypeError(build_type)
