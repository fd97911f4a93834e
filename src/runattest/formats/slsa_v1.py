"""SLSA v0.2 provenance wrapped in an in-toto v0.1 statement.

Registered under both ``in-toto`` and ``slsa/v1``. Task runs describe their
steps in ``buildConfig.steps``; pipeline runs describe each executed task in
``buildConfig.tasks`` together with the ordering edges between them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from runattest import attest
from runattest.config import PAYLOAD_TYPE_SLSA_V1, Config
from runattest.errors import UnsupportedObjectError
from runattest.intoto import (
    SLSA_PROVENANCE_V02,
    STATEMENT_TYPE_V01,
    Builder,
    Material,
    ProvenancePredicateV02,
    format_timestamp,
    make_statement,
)
from runattest.materials import pipeline_materials, task_materials
from runattest.objects import PipelineRun, PipelineTask, TaskRun
from runattest.subjects import subject_digests

logger = structlog.get_logger(__name__)

UNNAMED_STEP_PREFIX = "unnamed-"


def task_run_build_config(task_run: TaskRun) -> Dict[str, Any]:
    steps = task_run.status.task_spec.steps if task_run.status.task_spec is not None else []
    return {"steps": attest.task_run_steps(steps, task_run.status.steps)}


def _executed_steps(task_run: TaskRun) -> Optional[List[Dict[str, Any]]]:
    """Step attestations for a child task run, or None when its steps cannot be trusted."""
    task_spec = task_run.status.task_spec
    if task_spec is None:
        logger.error("taskSpec is missing, skipping task run", taskrun=task_run.name)
        return None
    if len(task_spec.steps) != len(task_run.status.steps):
        logger.error(
            "mismatch in number of steps, skipping task run",
            taskrun=task_run.name,
            spec_steps=len(task_spec.steps),
            status_steps=len(task_run.status.steps),
        )
        return None
    steps: List[Dict[str, Any]] = []
    for index, (step, state) in enumerate(zip(task_spec.steps, task_run.status.steps)):
        if state.name.startswith(UNNAMED_STEP_PREFIX) and step.name:
            logger.error(
                "mismatch in step names, skipping task run",
                taskrun=task_run.name,
                index=index,
                step=step.name,
                state=state.name,
            )
            return None
        steps.append(attest.step_attestation(step, state))
    return steps


def _after(task: PipelineTask) -> List[str]:
    after = list(task.run_after)
    for name in task.result_ref_tasks():
        if name not in after:
            after.append(name)
    return after


def pipeline_run_build_config(pipeline_run: PipelineRun) -> Dict[str, Any]:
    spec = pipeline_run.status.pipeline_spec
    if spec is None:
        return {}

    tasks: List[Dict[str, Any]] = []
    last = ""
    for index, task in enumerate(spec.all_tasks()):
        is_finally = index >= len(spec.tasks)
        task_runs = pipeline_run.get_task_runs_from_task(task.name)
        if not task_runs:
            logger.info("no taskruns found for task", task=task.name)
            continue
        for task_run in task_runs:
            if not task_run.is_completed():
                logger.warning("taskrun status not complete for task", taskrun=task_run.name, task=task.name)
                continue
            steps = _executed_steps(task_run)
            if steps is None:
                continue

            after = _after(task)
            # A finally task without explicit ordering ran after the last regular task.
            if not after and is_finally and last:
                after.append(last)

            entry: Dict[str, Any] = {"name": task.name}
            if after:
                entry["after"] = after
            entry["ref"] = task.task_ref.to_json() if task.task_ref is not None else {}
            entry["startedOn"] = format_timestamp(task_run.get_start_time())
            entry["finishedOn"] = format_timestamp(task_run.get_completion_time())
            service_account = pipeline_run.get_service_account_name()
            if service_account:
                entry["serviceAccountName"] = service_account
            status = attest.condition_status(task_run.get_status_conditions())
            if status:
                entry["status"] = status
            if steps:
                entry["steps"] = steps
            entry["invocation"] = attest.invocation(
                task_run, task_run.get_params(), task_run.get_param_specs()
            ).to_dict()
            if task_run.get_results():
                entry["results"] = [res.to_json() for res in task_run.get_results()]
            tasks.append(entry)

        if not is_finally:
            last = task.name
    return {"tasks": tasks}


def _predicate(
    builder_id: str,
    run: Any,
    build_config: Dict[str, Any],
    materials: List[Dict[str, Any]],
) -> Dict[str, Any]:
    predicate = ProvenancePredicateV02(
        builder=Builder(id=builder_id),
        build_type=run.get_gvk(),
        invocation=attest.invocation(run, run.get_params(), run.get_param_specs()),
        build_config=build_config,
        metadata=attest.metadata(run),
        materials=[Material.model_validate(m) for m in materials],
    ).to_dict()
    # Step entries keep their null annotations.
    predicate["buildConfig"] = build_config
    return predicate


def generate_task_run_attestation(task_run: TaskRun, *, builder_id: str) -> Dict[str, Any]:
    materials = task_materials(task_run)
    return make_statement(
        statement_type=STATEMENT_TYPE_V01,
        predicate_type=SLSA_PROVENANCE_V02,
        subjects=subject_digests(task_run),
        predicate=_predicate(builder_id, task_run, task_run_build_config(task_run), materials),
    )


def generate_pipeline_run_attestation(
    pipeline_run: PipelineRun, *, builder_id: str, deep_inspection: bool = False
) -> Dict[str, Any]:
    materials = pipeline_materials(pipeline_run, deep_inspection)
    return make_statement(
        statement_type=STATEMENT_TYPE_V01,
        predicate_type=SLSA_PROVENANCE_V02,
        subjects=subject_digests(pipeline_run, deep_inspection),
        predicate=_predicate(builder_id, pipeline_run, pipeline_run_build_config(pipeline_run), materials),
    )


class InTotoIte6:
    wrap = True

    def __init__(self, *, builder_id: str, deep_inspection: bool = False, payload_type: str = PAYLOAD_TYPE_SLSA_V1):
        self.builder_id = builder_id
        self.deep_inspection = deep_inspection
        self.payload_type = payload_type

    @classmethod
    def from_config(cls, cfg: Optional[Config], payload_type: str = PAYLOAD_TYPE_SLSA_V1) -> "InTotoIte6":
        cfg = cfg or Config()
        return cls(
            builder_id=cfg.builder.id,
            deep_inspection=cfg.artifacts.pipelinerun.deep_inspection,
            payload_type=payload_type,
        )

    def create_payload(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, TaskRun):
            return generate_task_run_attestation(obj, builder_id=self.builder_id)
        if isinstance(obj, PipelineRun):
            return generate_pipeline_run_attestation(
                obj, builder_id=self.builder_id, deep_inspection=self.deep_inspection
            )
        raise UnsupportedObjectError(f"intoto does not support type: {type(obj).__name__}")
