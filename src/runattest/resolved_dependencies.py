from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, List, Optional

import structlog

from runattest.dedup import (
    INPUT_RESULT_NAME,
    PIPELINE_CONFIG_NAME,
    PIPELINE_TASK_CONFIG_NAME,
    TASK_CONFIG_NAME,
    materials_to_resolved_dependencies,
    remove_duplicate_resolved_dependencies,
)
from runattest.errors import UnsupportedBuildTypeError, handle_malformed
from runattest.materials import (
    from_pipeline_params_and_results,
    from_sidecar_images,
    from_step_actions_results,
    from_step_images,
    from_task_params_and_results,
)
from runattest.objects import PipelineRun, RefSource, TaskRun
from runattest.parameters import SLSA_BUILD_TYPE, TEKTON_BUILD_TYPE

logger = structlog.get_logger(__name__)

ResolvedDependency = Dict[str, Any]
TaskDescriptor = Callable[[TaskRun], Optional[ResolvedDependency]]


def _named_ref_source(name: str, ref_source: Optional[RefSource]) -> Optional[ResolvedDependency]:
    if ref_source is None or not ref_source.uri:
        return None
    return {"name": name, "uri": ref_source.uri, "digest": dict(ref_source.digest)}


def add_slsa_task_descriptor(task_run: TaskRun) -> Optional[ResolvedDependency]:
    """Reference the task definition by source only; None when it has no ref source."""
    return _named_ref_source(PIPELINE_TASK_CONFIG_NAME, task_run.get_ref_source())


def add_tekton_task_descriptor(task_run: TaskRun) -> Optional[ResolvedDependency]:
    """Embed the whole task run, plus its definition source when known."""
    raw = json.dumps(task_run.to_json(), sort_keys=True, separators=(",", ":")).encode("utf-8")
    dep: ResolvedDependency = {"name": PIPELINE_TASK_CONFIG_NAME}
    ref_source = task_run.get_ref_source()
    if ref_source is not None and ref_source.uri:
        dep["uri"] = ref_source.uri
        dep["digest"] = dict(ref_source.digest)
    dep["content"] = base64.b64encode(raw).decode("ascii")
    return dep


def task_descriptor_for(build_type: str) -> TaskDescriptor:
    if build_type == SLSA_BUILD_TYPE:
        return add_slsa_task_descriptor
    if build_type == TEKTON_BUILD_TYPE:
        return add_tekton_task_descriptor
    raise UnsupportedBuildTypeError(build_type)


def _image_dependencies(task_run: TaskRun) -> List[ResolvedDependency]:
    mats = [*from_step_images(task_run), *from_sidecar_images(task_run)]
    return materials_to_resolved_dependencies(mats)


def task_run_dependencies(task_run: TaskRun, with_step_actions_results: bool = False) -> List[ResolvedDependency]:
    deps: List[ResolvedDependency] = []
    own = _named_ref_source(TASK_CONFIG_NAME, task_run.get_ref_source())
    if own is not None:
        deps.append(own)
    deps.extend(_image_dependencies(task_run))
    if with_step_actions_results:
        deps.extend(materials_to_resolved_dependencies(from_step_actions_results(task_run), INPUT_RESULT_NAME))
    deps.extend(materials_to_resolved_dependencies(from_task_params_and_results(task_run), INPUT_RESULT_NAME))
    return remove_duplicate_resolved_dependencies(deps)


def _from_pipeline_tasks(pipeline_run: PipelineRun, add_task: TaskDescriptor) -> List[ResolvedDependency]:
    spec = pipeline_run.status.pipeline_spec
    if spec is None:
        return []
    deps: List[ResolvedDependency] = []
    for task in spec.all_tasks():
        task_runs = pipeline_run.get_task_runs_from_task(task.name)
        if not task_runs:
            logger.info("no taskruns found for task", task=task.name)
            continue
        for task_run in task_runs:
            if not task_run.is_completed():
                logger.info("taskrun status not found for task", task=task.name)
                continue
            try:
                descriptor = add_task(task_run)
            except (TypeError, ValueError) as exc:
                handle_malformed("task-descriptor", "error storing taskrun", task=task.name, error=str(exc))
                descriptor = None
            if descriptor is not None:
                deps.append(descriptor)
            deps.extend(_image_dependencies(task_run))
    return deps


def pipeline_run_dependencies(
    pipeline_run: PipelineRun,
    *,
    deep_inspection: bool,
    add_task: TaskDescriptor,
    with_step_actions_results: bool = False,
) -> List[ResolvedDependency]:
    deps: List[ResolvedDependency] = []
    own = _named_ref_source(PIPELINE_CONFIG_NAME, pipeline_run.get_ref_source())
    if own is not None:
        deps.append(own)
    deps.extend(_from_pipeline_tasks(pipeline_run, add_task))
    if deep_inspection and with_step_actions_results:
        for task_run in pipeline_run.get_executed_tasks():
            deps.extend(materials_to_resolved_dependencies(from_step_actions_results(task_run), INPUT_RESULT_NAME))
    mats = from_pipeline_params_and_results(pipeline_run, deep_inspection)
    deps.extend(materials_to_resolved_dependencies(mats, INPUT_RESULT_NAME))
    return remove_duplicate_resolved_dependencies(deps)
