from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from runattest.config import PAYLOAD_TYPE_SLSA_V1, PAYLOAD_TYPE_SLSA_V2ALPHA4, Config
from runattest.dedup import append_materials
from runattest.digest import parse_digest
from runattest.errors import MalformedImageIDError, UnsupportedBuildTypeError
from runattest.formats import default_registry
from runattest.materials import task_materials
from runattest.objects import TaskRun
from runattest.subjects import subject_digests

REPORT_SCHEMA = "runattest.conformance-report/v1"

_HEX_A = "a" * 64
_HEX_B = "b" * 64
_GIT_URI = re.compile(r"^git\+.+\.git(@.+)?$")


class ConformanceCheck(BaseModel):
    check_id: str
    status: str
    evidence: Dict[str, Any]
    error: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def model_post_init(self, __context: Any) -> None:
        if self.status not in {"pass", "fail"}:
            raise ValueError("status must be pass|fail")


class ConformanceReport(BaseModel):
    schema_: str = Field(alias="schema")
    version: str
    generated_at: str
    overall_status: str
    checks: List[ConformanceCheck]

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def model_post_init(self, __context: Any) -> None:
        if self.overall_status not in {"pass", "fail"}:
            raise ValueError("overall_status must be pass|fail")


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def sample_task_run(step_image_id: Optional[str] = None) -> TaskRun:
    """A completed task run exercising every result convention."""
    image_id = step_image_id or f"docker-pullable://gcr.io/tools/builder@sha256:{_HEX_B}"
    return TaskRun.model_validate(
        {
            "apiVersion": "tekton.dev/v1",
            "kind": "TaskRun",
            "metadata": {"name": "build", "namespace": "default", "uid": "conformance-uid"},
            "spec": {"params": [{"name": "CHAINS-GIT_URL", "value": "https://github.com/example/app"}]},
            "status": {
                "startTime": "2024-01-01T00:00:00Z",
                "completionTime": "2024-01-01T00:05:00Z",
                "steps": [{"name": "build", "container": "step-build", "imageID": image_id}],
                "results": [
                    {"name": "CHAINS-GIT_COMMIT", "value": "c" * 40},
                    {"name": "app_IMAGE_URL", "value": "gcr.io/example/app"},
                    {"name": "app_IMAGE_DIGEST", "value": f"sha256:{_HEX_A}"},
                    {
                        "name": "bin_ARTIFACT_OUTPUTS",
                        "type": "object",
                        "value": {
                            "uri": "pkg:generic/app-cli",
                            "digest": f"sha256:{_HEX_B}",
                            "isBuildArtifact": "true",
                        },
                    },
                ],
                "taskSpec": {"steps": [{"name": "build", "image": "gcr.io/tools/builder", "script": "make"}]},
            },
        }
    )


def _run_check(check_id: str, evidence_for: Callable[[], Dict[str, Any]]) -> ConformanceCheck:
    try:
        evidence = evidence_for()
    except Exception as exc:
        return ConformanceCheck(check_id=check_id, status="fail", evidence={}, error=str(exc))
    return ConformanceCheck(check_id=check_id, status="pass", evidence=evidence)


def _check_digest_format() -> Dict[str, Any]:
    statement = default_registry().get(PAYLOAD_TYPE_SLSA_V2ALPHA4, Config()).create_payload(sample_task_run())
    digests: List[str] = []
    for subject in statement["subject"]:
        digests.extend(f"{alg}:{value}" for alg, value in subject["digest"].items())
    for dep in statement["predicate"]["buildDefinition"].get("resolvedDependencies", []):
        digests.extend(f"{alg}:{value}" for alg, value in dep.get("digest", {}).items())
    for digest in digests:
        algorithm, hex_value = parse_digest(digest)
        if hex_value != hex_value.lower():
            raise ValueError(f"digest {digest} is not lowercase hex")
    return {"digests_checked": len(digests), "subjects": len(statement["subject"])}


def _check_material_uris() -> Dict[str, Any]:
    materials = task_materials(sample_task_run())
    images = [m["uri"] for m in materials if not m["uri"].startswith("git+")]
    gits = [m["uri"] for m in materials if m["uri"].startswith("git+")]
    bad_images = [uri for uri in images if not uri.startswith("oci://")]
    bad_gits = [uri for uri in gits if not _GIT_URI.match(uri)]
    if bad_images or bad_gits or not gits:
        raise ValueError(f"unexpected material uris: images={bad_images} git={bad_gits or gits}")
    return {"oci_materials": len(images), "git_materials": len(gits)}


def _check_dedup_union() -> Dict[str, Any]:
    merged = append_materials([], {"uri": "u", "digest": {"sha256": _HEX_A}}, {"uri": "u", "digest": {"sha1": "b" * 40}})
    if len(merged) != 1 or set(merged[0]["digest"]) != {"sha256", "sha1"}:
        raise ValueError(f"digest sets were not merged: {merged}")
    conflicting = append_materials(merged, {"uri": "u", "digest": {"sha256": _HEX_B}})
    if len(conflicting) != 2:
        raise ValueError("conflicting digests for one uri were merged")
    return {"merged": merged[0]["digest"], "conflict_entries": len(conflicting)}


def _check_image_id_hard_fail() -> Dict[str, Any]:
    bad_id = "gcr.io/a/b-sha256:deadbeef"
    try:
        task_materials(sample_task_run(step_image_id=bad_id))
    except MalformedImageIDError as exc:
        return {"image_id": bad_id, "error": str(exc)}
    raise ValueError("malformed image id did not abort material extraction")


def _check_unsupported_build_type() -> Dict[str, Any]:
    cfg = Config.model_validate({"build_definition": {"build_type": "https://example.com/unknown"}})
    try:
        default_registry().get(PAYLOAD_TYPE_SLSA_V2ALPHA4, cfg).create_payload(sample_task_run())
    except UnsupportedBuildTypeError as exc:
        return {"error": str(exc)}
    raise ValueError("unknown build type was accepted")


def _check_legacy_subjects() -> Dict[str, Any]:
    names = [s["name"] for s in subject_digests(sample_task_run())]
    statement = default_registry().get(PAYLOAD_TYPE_SLSA_V1, Config()).create_payload(sample_task_run())
    if [s["name"] for s in statement["subject"]] != names:
        raise ValueError("statement subjects differ from extracted subjects")
    return {"subjects": names}


def run_conformance_checks() -> ConformanceReport:
    checks = [
        _run_check("statement.digest-format.v1", _check_digest_format),
        _run_check("materials.uri-schemes.v1", _check_material_uris),
        _run_check("dedup.digest-union.v1", _check_dedup_union),
        _run_check("materials.image-id-hard-fail.v1", _check_image_id_hard_fail),
        _run_check("build-type.unsupported.v1", _check_unsupported_build_type),
        _run_check("subjects.legacy-extraction.v1", _check_legacy_subjects),
    ]
    overall_status = "pass" if all(c.status == "pass" for c in checks) else "fail"
    return ConformanceReport(
        schema=REPORT_SCHEMA,
        version="0.1",
        generated_at=_now_iso(),
        overall_status=overall_status,
        checks=checks,
    )
