from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from runattest.dedup import append_materials
from runattest.digest import from_image_id, spdx_git
from runattest.errors import MalformedImageIDError, handle_malformed
from runattest.objects import PipelineRun, Provenance, RefSource, TaskRun
from runattest.results import (
    ARTIFACTS_INPUTS_RESULT,
    git_source,
    materials_from_structured_results,
)

logger = structlog.get_logger(__name__)

Material = Dict[str, Any]


def ref_source_material(ref_source: Optional[RefSource]) -> Optional[Material]:
    if ref_source is None or not ref_source.uri or not ref_source.digest:
        return None
    return {"uri": ref_source.uri, "digest": dict(ref_source.digest)}


def _provenance_material(provenance: Optional[Provenance]) -> Optional[Material]:
    if provenance is None:
        return None
    return ref_source_material(provenance.ref_source)


def _image_materials(task_run: TaskRun, image_ids: List[str]) -> List[Material]:
    mats: List[Material] = []
    for image_id in image_ids:
        try:
            material = from_image_id(image_id)
        except MalformedImageIDError as exc:
            handle_malformed("image-id", "invalid runtime image id", cause=exc, taskrun=task_run.name, image_id=image_id)
            continue
        mats = append_materials(mats, material)
    return mats


def from_step_images(task_run: TaskRun) -> List[Material]:
    return _image_materials(task_run, task_run.get_step_images())


def from_sidecar_images(task_run: TaskRun) -> List[Material]:
    return _image_materials(task_run, task_run.get_sidecar_images())


def _git_material(url: str, commit: str) -> Optional[Material]:
    if not url or not commit:
        return None
    return {"uri": spdx_git(url), "digest": {"sha1": commit}}


def from_task_params_and_results(task_run: TaskRun) -> List[Material]:
    """Git source hints plus ARTIFACT_INPUTS objects declared by a task run."""
    url, commit = git_source(
        ((p.name, p.default) for p in task_run.get_param_specs()),
        ((p.name, p.value) for p in task_run.get_params()),
        ((r.name, r.value) for r in task_run.get_results()),
    )
    mats: List[Material] = []
    git = _git_material(url, commit)
    if git is not None:
        mats = append_materials(mats, git)
    return append_materials(
        mats, *materials_from_structured_results(task_run.get_results(), ARTIFACTS_INPUTS_RESULT)
    )


def from_step_actions_results(task_run: TaskRun) -> List[Material]:
    """Inputs reported by individual steps through their own results."""
    mats: List[Material] = []
    for step in task_run.status.steps:
        url, commit = git_source((), (), ((r.name, r.value) for r in step.results))
        git = _git_material(url, commit)
        if git is not None:
            mats = append_materials(mats, git)
        mats = append_materials(mats, *materials_from_structured_results(step.results, ARTIFACTS_INPUTS_RESULT))
    return mats


def task_materials(task_run: TaskRun) -> List[Material]:
    mats: List[Material] = []
    remote = _provenance_material(task_run.get_remote_provenance())
    if remote is not None:
        mats = append_materials(mats, remote)
    mats = append_materials(mats, *from_step_images(task_run))
    mats = append_materials(mats, *from_sidecar_images(task_run))
    return append_materials(mats, *from_task_params_and_results(task_run))


def completed_task_runs(pipeline_run: PipelineRun) -> List[TaskRun]:
    """The first completed task run of each pipeline task, logging the ones that never ran."""
    spec = pipeline_run.status.pipeline_spec
    if spec is None:
        return []
    out: List[TaskRun] = []
    for task in spec.all_tasks():
        task_run = pipeline_run.get_task_run_from_task(task.name)
        if task_run is None or not task_run.is_completed():
            logger.info("taskrun is not found or not completed", task=task.name)
            continue
        out.append(task_run)
    return out


def from_pipeline_params_and_results(pipeline_run: PipelineRun, deep_inspection: bool = False) -> List[Material]:
    mats = materials_from_structured_results(pipeline_run.get_results(), ARTIFACTS_INPUTS_RESULT)
    mats = append_materials([], *mats)
    if deep_inspection:
        for task_run in completed_task_runs(pipeline_run):
            mats = append_materials(mats, *from_task_params_and_results(task_run))

    url, commit = git_source(
        ((p.name, p.default) for p in pipeline_run.get_param_specs()),
        ((p.name, p.value) for p in pipeline_run.get_params()),
        ((r.name, r.value) for r in pipeline_run.get_results()),
    )
    git = _git_material(url, commit)
    if git is not None:
        mats = append_materials(mats, git)
    return mats


def pipeline_materials(pipeline_run: PipelineRun, deep_inspection: bool = False) -> List[Material]:
    mats: List[Material] = []
    own = _provenance_material(pipeline_run.get_provenance())
    if own is not None:
        mats = append_materials(mats, own)

    for task_run in completed_task_runs(pipeline_run):
        mats = append_materials(mats, *from_step_images(task_run))
        mats = append_materials(mats, *from_sidecar_images(task_run))
        task_source = _provenance_material(task_run.get_provenance())
        if task_source is not None:
            mats = append_materials(mats, task_source)

    return append_materials(mats, *from_pipeline_params_and_results(pipeline_run, deep_inspection))
