"""SLSA v1.0 provenance where subjects come only from declared build artifacts.

Results that already appear as subjects (build artifacts and image type
hints) are left out of the byproducts, and step-level results are reported
alongside task results.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from runattest.build_definition import pipeline_run_build_definition, task_run_build_definition
from runattest.config import PAYLOAD_TYPE_SLSA_V2ALPHA4, Config
from runattest.errors import UnsupportedObjectError
from runattest.formats.slsa_v2alpha2 import PIPELINE_RUN_RESULTS, TASK_RUN_RESULTS
from runattest.formats.statement import slsa1_statement
from runattest.intoto import STATEMENT_TYPE_V1
from runattest.objects import PipelineRun, TaskRun
from runattest.results import results_without_build_artifacts
from runattest.subjects import build_artifact_subjects

STEP_RESULTS = "stepResults"


def task_run_byproducts(task_run: TaskRun) -> List[Dict[str, Any]]:
    byproducts = results_without_build_artifacts(task_run.get_results(), f"{TASK_RUN_RESULTS}/{task_run.name}")
    byproducts.extend(results_without_build_artifacts(task_run.get_step_results(), f"{STEP_RESULTS}/{task_run.name}"))
    return byproducts


def pipeline_run_byproducts(pipeline_run: PipelineRun, deep_inspection: bool = False) -> List[Dict[str, Any]]:
    byproducts = results_without_build_artifacts(pipeline_run.get_results(), PIPELINE_RUN_RESULTS)
    if deep_inspection:
        for task_run in pipeline_run.get_executed_tasks():
            byproducts.extend(task_run_byproducts(task_run))
    return byproducts


def generate_task_run_attestation(
    task_run: TaskRun, *, builder_id: str, build_type: Optional[str] = None
) -> Dict[str, Any]:
    definition = task_run_build_definition(task_run, build_type, with_step_actions_results=True)
    return slsa1_statement(
        task_run,
        statement_type=STATEMENT_TYPE_V1,
        builder_id=builder_id,
        subjects=build_artifact_subjects(task_run),
        build_definition=definition,
        byproducts=task_run_byproducts(task_run),
    )


def generate_pipeline_run_attestation(
    pipeline_run: PipelineRun,
    *,
    builder_id: str,
    build_type: Optional[str] = None,
    deep_inspection: bool = False,
) -> Dict[str, Any]:
    definition = pipeline_run_build_definition(
        pipeline_run,
        build_type,
        deep_inspection=deep_inspection,
        with_step_actions_results=True,
    )
    return slsa1_statement(
        pipeline_run,
        statement_type=STATEMENT_TYPE_V1,
        builder_id=builder_id,
        subjects=build_artifact_subjects(pipeline_run, deep_inspection),
        build_definition=definition,
        byproducts=pipeline_run_byproducts(pipeline_run, deep_inspection),
    )


class Slsa:
    payload_type = PAYLOAD_TYPE_SLSA_V2ALPHA4
    wrap = True

    def __init__(self, cfg: Optional[Config] = None):
        cfg = cfg or Config()
        self.builder_id = cfg.builder.id
        self.build_type = cfg.build_definition.build_type
        self.deep_inspection = cfg.artifacts.pipelinerun.deep_inspection

    def create_payload(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, TaskRun):
            return generate_task_run_attestation(obj, builder_id=self.builder_id, build_type=self.build_type)
        if isinstance(obj, PipelineRun):
            return generate_pipeline_run_attestation(
                obj,
                builder_id=self.builder_id,
                build_type=self.build_type,
                deep_inspection=self.deep_inspection,
            )
        raise UnsupportedObjectError(f"intoto does not support type: {type(obj).__name__}")
