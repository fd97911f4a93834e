from __future__ import annotations

from typing import Any, Dict, Optional

from runattest.build_definition import pipeline_run_build_definition, task_run_build_definition
from runattest.config import PAYLOAD_TYPE_SLSA_V2ALPHA3, Config
from runattest.errors import UnsupportedObjectError
from runattest.formats.slsa_v2alpha2 import PIPELINE_RUN_RESULTS, TASK_RUN_RESULTS
from runattest.formats.statement import slsa1_statement
from runattest.intoto import STATEMENT_TYPE_V1
from runattest.objects import PipelineRun, TaskRun
from runattest.results import result_byproducts
from runattest.subjects import subject_digests


def generate_task_run_attestation(
    task_run: TaskRun, *, builder_id: str, build_type: Optional[str] = None
) -> Dict[str, Any]:
    return slsa1_statement(
        task_run,
        statement_type=STATEMENT_TYPE_V1,
        builder_id=builder_id,
        subjects=subject_digests(task_run),
        build_definition=task_run_build_definition(task_run, build_type),
        byproducts=result_byproducts(task_run.get_results(), TASK_RUN_RESULTS),
    )


def generate_pipeline_run_attestation(
    pipeline_run: PipelineRun,
    *,
    builder_id: str,
    build_type: Optional[str] = None,
    deep_inspection: bool = False,
) -> Dict[str, Any]:
    return slsa1_statement(
        pipeline_run,
        statement_type=STATEMENT_TYPE_V1,
        builder_id=builder_id,
        subjects=subject_digests(pipeline_run, deep_inspection),
        build_definition=pipeline_run_build_definition(pipeline_run, build_type, deep_inspection=deep_inspection),
        byproducts=result_byproducts(pipeline_run.get_results(), PIPELINE_RUN_RESULTS),
    )


class Slsa:
    payload_type = PAYLOAD_TYPE_SLSA_V2ALPHA3
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
