from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

from runattest.errors import UnsupportedObjectError
from runattest.objects import PipelineRun, RunRecord, TaskRun, load_run_record


def read_json(path: str) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
        f.write("\n")


def load_run(path: str, children: Sequence[str] = ()) -> RunRecord:
    """Load a run record from disk and attach child task runs to a pipeline run."""
    run = load_run_record(read_json(path))
    if not children:
        return run
    if not isinstance(run, PipelineRun):
        raise UnsupportedObjectError(f"child task runs can only be attached to a PipelineRun, got {run.kind}")
    loaded: List[TaskRun] = []
    for child_path in children:
        child = load_run_record(read_json(child_path))
        if not isinstance(child, TaskRun):
            raise UnsupportedObjectError(f"child {child_path} is a {child.kind}, expected TaskRun")
        loaded.append(child)
    for child in loaded:
        run.append_task_run(child)
    return run
