"""SLSA v0.2 provenance for task runs with the task spec and results embedded.

The build type names the payload format and the run's group/version/kind, and
the invocation parameters are the whole run spec except the task reference.
Pipeline runs are not supported by this format.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from runattest import attest
from runattest.config import PAYLOAD_TYPE_SLSA_V2ALPHA1, Config
from runattest.errors import UnsupportedObjectError
from runattest.intoto import (
    SLSA_PROVENANCE_V02,
    STATEMENT_TYPE_V01,
    Builder,
    Completeness,
    Invocation,
    Material,
    ProvenancePredicateV02,
    make_statement,
)
from runattest.materials import task_materials
from runattest.objects import TaskRun
from runattest.parameters import FEATURE_FLAGS_KEY
from runattest.subjects import subject_digests

BUILD_TYPE_FORMAT = "https://chains.tekton.dev/format/{payload_type}/type/{gvk}"
SKIPPED_SPEC_FIELDS = frozenset({"taskRef", "taskSpec"})


def build_type(task_run: TaskRun) -> str:
    return BUILD_TYPE_FORMAT.format(payload_type=PAYLOAD_TYPE_SLSA_V2ALPHA1, gvk=task_run.get_gvk())


def build_config(task_run: TaskRun) -> Dict[str, Any]:
    task_spec = task_run.status.task_spec
    return {
        "taskSpec": task_spec.to_json() if task_spec is not None else None,
        "taskRunResults": [res.to_json() for res in task_run.get_results()],
    }


def invocation(task_run: TaskRun) -> Invocation:
    parameters = {k: v for k, v in task_run.spec.to_json().items() if k not in SKIPPED_SPEC_FIELDS}
    environment: Dict[str, Any] = {}
    provenance = task_run.get_provenance()
    if provenance is not None and provenance.feature_flags is not None:
        environment[FEATURE_FLAGS_KEY] = provenance.feature_flags
    return Invocation(
        config_source=attest.config_source(task_run),
        parameters=parameters,
        environment=environment or None,
    )


def generate_task_run_attestation(task_run: TaskRun, *, builder_id: str) -> Dict[str, Any]:
    materials = task_materials(task_run)
    metadata = attest.metadata(task_run)
    metadata.completeness = Completeness(parameters=True)
    config = build_config(task_run)
    predicate = ProvenancePredicateV02(
        builder=Builder(id=builder_id),
        build_type=build_type(task_run),
        invocation=invocation(task_run),
        build_config=config,
        metadata=metadata,
        materials=[Material.model_validate(m) for m in materials],
    ).to_dict()
    predicate["buildConfig"] = config
    return make_statement(
        statement_type=STATEMENT_TYPE_V01,
        predicate_type=SLSA_PROVENANCE_V02,
        subjects=subject_digests(task_run),
        predicate=predicate,
    )


class Slsa:
    payload_type = PAYLOAD_TYPE_SLSA_V2ALPHA1
    wrap = True

    def __init__(self, cfg: Optional[Config] = None):
        cfg = cfg or Config()
        self.builder_id = cfg.builder.id

    def create_payload(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, TaskRun):
            return generate_task_run_attestation(obj, builder_id=self.builder_id)
        raise UnsupportedObjectError(f"intoto does not support type: {type(obj).__name__}")
