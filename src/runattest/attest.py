from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from runattest.digest import oci_image_uri
from runattest.intoto import ConfigSource, Invocation, MetadataV02, format_timestamp
from runattest.objects import Condition, Param, ParamSpec, RunRecord, Step, StepState
from runattest.parameters import filter_annotations

REPRODUCIBLE_LABEL = "chains.tekton.dev/reproducible"


def step_attestation(step: Optional[Step], step_state: StepState) -> Dict[str, Any]:
    """Describe one executed step: what it ran, with which arguments, in which image."""
    entry_point = ""
    arguments: List[str] = []
    if step is not None:
        entry_point = step.script or " ".join(step.command)
        arguments = list(step.args)
    attestation: Dict[str, Any] = {
        "entryPoint": entry_point,
        "environment": {
            "image": oci_image_uri(step_state.image_id),
            "container": step_state.name,
        },
        "annotations": None,
    }
    if arguments:
        attestation["arguments"] = arguments
    return attestation


def task_run_steps(steps: Sequence[Step], states: Sequence[StepState]) -> List[Dict[str, Any]]:
    """Pair each executed step with its declaration by name."""
    by_name = {step.name: step for step in steps if step.name}
    return [step_attestation(by_name.get(state.name), state) for state in states]


def config_source(run: RunRecord) -> ConfigSource:
    ref_source = run.get_ref_source()
    if ref_source is None:
        return ConfigSource()
    return ConfigSource(
        uri=ref_source.uri or None,
        digest=dict(ref_source.digest) or None,
        entry_point=ref_source.entry_point or None,
    )


def invocation(run: RunRecord, params: Sequence[Param], param_specs: Sequence[ParamSpec]) -> Invocation:
    parameters: Dict[str, Any] = {}
    for spec in param_specs:
        if spec.default is not None:
            parameters[spec.name] = spec.default
    for param in params:
        parameters[param.name] = param.value

    environment: Dict[str, Any] = {}
    annotations = filter_annotations(run.get_annotations())
    if annotations:
        environment["annotations"] = annotations
    labels = run.get_labels()
    if labels:
        environment["labels"] = dict(labels)

    return Invocation(
        config_source=config_source(run),
        parameters=parameters,
        environment=environment or None,
    )


def is_reproducible(run: RunRecord) -> bool:
    return run.get_labels().get(REPRODUCIBLE_LABEL) == "true"


def metadata(run: RunRecord) -> MetadataV02:
    return MetadataV02(
        build_started_on=format_timestamp(run.get_start_time()),
        build_finished_on=format_timestamp(run.get_completion_time()),
        reproducible=is_reproducible(run),
    )


def condition_status(conditions: Sequence[Condition]) -> str:
    if not conditions:
        return ""
    return {"True": "Succeeded", "False": "Failed", "Unknown": "Running"}.get(conditions[0].status, "")
