from __future__ import annotations

from typing import Any, Dict, List, Sequence

from runattest.dedup import append_subjects
from runattest.digest import format_uri_digest
from runattest.objects import PipelineRun, Result, RunRecord, TaskRun
from runattest.results import (
    ARTIFACTS_OUTPUTS_RESULT,
    KIND_ARTIFACT,
    KIND_IMAGE,
    KIND_STRUCTURED_OUTPUT,
    extract_oci_images_from_results,
    extract_structured_targets_from_results,
    scan_results,
)

_LEGACY_SUBJECT_KINDS = {KIND_STRUCTURED_OUTPUT, KIND_IMAGE, KIND_ARTIFACT}


def subjects_from_results(results: Sequence[Result]) -> List[Dict[str, Any]]:
    """Every well-formed output candidate, whether or not it is flagged as a build artifact."""
    candidates = [c for c in scan_results(results) if c.kind in _LEGACY_SUBJECT_KINDS]
    return append_subjects([], *(c.as_subject() for c in candidates))


def subject_digests(run: RunRecord, deep_inspection: bool = False) -> List[Dict[str, Any]]:
    subjects = subjects_from_results(run.get_results())
    if isinstance(run, PipelineRun) and deep_inspection:
        for task_run in run.get_executed_tasks():
            subjects = append_subjects(subjects, *subjects_from_results(task_run.get_results()))
    return subjects


def subjects_from_build_artifact(results: Sequence[Result]) -> List[Dict[str, Any]]:
    """Structured outputs flagged ``isBuildArtifact``, then image type hints."""
    subjects: List[Dict[str, Any]] = []
    for candidate in extract_structured_targets_from_results(results, ARTIFACTS_OUTPUTS_RESULT):
        if candidate.is_build_artifact:
            subjects = append_subjects(subjects, candidate.as_subject())
    for image in extract_oci_images_from_results(results):
        subjects = append_subjects(subjects, {"name": image.name, "digest": image.digest_set()})
    return subjects


def task_run_build_artifact_subjects(task_run: TaskRun) -> List[Dict[str, Any]]:
    subjects: List[Dict[str, Any]] = []
    for step in task_run.status.steps:
        subjects = append_subjects(subjects, *subjects_from_build_artifact(step.results))
    return append_subjects(subjects, *subjects_from_build_artifact(task_run.get_results()))


def build_artifact_subjects(run: RunRecord, deep_inspection: bool = False) -> List[Dict[str, Any]]:
    if isinstance(run, TaskRun):
        return task_run_build_artifact_subjects(run)
    subjects = subjects_from_build_artifact(run.get_results())
    if not deep_inspection:
        return subjects
    for task_run in run.get_executed_tasks():
        subjects = append_subjects(subjects, *task_run_build_artifact_subjects(task_run))
    return subjects


def retrieve_all_artifact_uris(run: RunRecord, deep_inspection: bool = False) -> List[str]:
    """``name@algorithm:hex`` for every subject digest."""
    uris: List[str] = []
    for subject in subject_digests(run, deep_inspection):
        for algorithm, hex_value in subject["digest"].items():
            uris.append(format_uri_digest(subject["name"], algorithm, hex_value))
    return uris
