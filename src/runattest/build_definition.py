from __future__ import annotations

from typing import Any, Dict, Optional

from runattest.objects import PipelineRun, TaskRun
from runattest.parameters import external_parameters, internal_parameters, resolve_build_type
from runattest.resolved_dependencies import (
    pipeline_run_dependencies,
    task_descriptor_for,
    task_run_dependencies,
)


def task_run_build_definition(
    task_run: TaskRun,
    build_type: Optional[str] = None,
    *,
    with_step_actions_results: bool = False,
    include_config_source: bool = True,
) -> Dict[str, Any]:
    resolved = resolve_build_type(build_type)
    return {
        "buildType": resolved,
        "externalParameters": external_parameters(task_run, include_config_source),
        "internalParameters": internal_parameters(task_run, resolved),
        "resolvedDependencies": task_run_dependencies(task_run, with_step_actions_results),
    }


def pipeline_run_build_definition(
    pipeline_run: PipelineRun,
    build_type: Optional[str] = None,
    *,
    deep_inspection: bool = False,
    with_step_actions_results: bool = False,
) -> Dict[str, Any]:
    resolved = resolve_build_type(build_type)
    deps = pipeline_run_dependencies(
        pipeline_run,
        deep_inspection=deep_inspection,
        add_task=task_descriptor_for(resolved),
        with_step_actions_results=with_step_actions_results,
    )
    return {
        "buildType": resolved,
        "externalParameters": external_parameters(pipeline_run),
        "internalParameters": internal_parameters(pipeline_run, resolved),
        "resolvedDependencies": deps,
    }
