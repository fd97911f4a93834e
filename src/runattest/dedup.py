from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

import structlog

logger = structlog.get_logger(__name__)

PIPELINE_CONFIG_NAME = "pipeline"
TASK_CONFIG_NAME = "task"
PIPELINE_TASK_CONFIG_NAME = "pipelineTask"
INPUT_RESULT_NAME = "inputs/result"

# Resolved dependencies carrying one of these names survive deduplication.
PROTECTED_DEPENDENCY_NAMES = frozenset({TASK_CONFIG_NAME, PIPELINE_CONFIG_NAME})


def _conflicts(left: Dict[str, str], right: Dict[str, str]) -> Optional[str]:
    for algorithm, value in right.items():
        if algorithm in left and left[algorithm] != value:
            return algorithm
    return None


def _append(existing: List[Dict[str, Any]], new: Sequence[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    out = [dict(entry, digest=dict(entry.get("digest") or {})) for entry in existing]
    for entry in new:
        ident = entry.get(key)
        digest = dict(entry.get("digest") or {})
        if not ident or not digest:
            continue
        merged = False
        for current in out:
            if current.get(key) != ident:
                continue
            algorithm = _conflicts(current["digest"], digest)
            if algorithm is not None:
                logger.warning(
                    "conflicting digests",
                    **{key: ident},
                    algorithm=algorithm,
                    kept=current["digest"][algorithm],
                    incoming=digest[algorithm],
                )
                continue
            current["digest"].update(digest)
            merged = True
            break
        if not merged:
            out.append(dict(entry, digest=digest))
    return out


def append_materials(existing: List[Dict[str, Any]], *new: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Append materials, merging digest sets of entries with the same uri.

    Entries with the same uri merge when none of their algorithms disagree.
    A disagreement keeps both claims as separate entries. Entries without a
    uri or digest are dropped.
    """
    return _append(existing, new, "uri")


def append_subjects(existing: List[Dict[str, Any]], *new: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Same merge rule as append_materials, keyed by subject name."""
    return _append(existing, new, "name")


def remove_duplicate_materials(materials: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop exact duplicates, keeping first-seen order."""
    out: List[Dict[str, Any]] = []
    seen = set()
    for mat in materials:
        key = json.dumps(mat, sort_keys=True)
        if key in seen:
            continue
        seen.add(key)
        out.append(mat)
    return out


def remove_duplicate_resolved_dependencies(deps: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop dependencies whose uri, digest and content were already seen.

    The name tag does not take part in the comparison, except that
    ``task`` and ``pipeline`` entries are always kept.
    """
    out: List[Dict[str, Any]] = []
    seen = set()
    for dep in deps:
        key = json.dumps(
            {"uri": dep.get("uri"), "digest": dep.get("digest") or {}, "content": dep.get("content")},
            sort_keys=True,
        )
        if key in seen and dep.get("name") not in PROTECTED_DEPENDENCY_NAMES:
            continue
        seen.add(key)
        out.append(dep)
    return out


def materials_to_resolved_dependencies(
    materials: Sequence[Dict[str, Any]], name: Optional[str] = None
) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for mat in materials:
        dep: Dict[str, Any] = {}
        if name:
            dep["name"] = name
        dep["uri"] = mat["uri"]
        dep["digest"] = dict(mat.get("digest") or {})
        out.append(dep)
    return out
