"""Type-hinted result scanning.

Runs announce the artifacts they touched through naming conventions on their
results (and, for git sources, their params):

* ``<prefix>IMAGE_URL`` / ``<prefix>IMAGE_DIGEST`` pairs and the ``IMAGES``
  list name container images;
* ``<prefix>ARTIFACT_URI`` / ``<prefix>ARTIFACT_DIGEST`` pairs name any other
  artifact;
* object results named ``<prefix>ARTIFACT_OUTPUTS`` / ``<prefix>ARTIFACT_INPUTS``
  carry ``{uri, digest, isBuildArtifact}`` directly;
* ``CHAINS-GIT_URL`` / ``CHAINS-GIT_COMMIT`` name the git source.

Malformed entries are dropped according to ``MALFORMED_INPUT_POLICY``.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from runattest.digest import ImageDigest, parse_digest, parse_image_digest
from runattest.errors import handle_malformed
from runattest.objects import Result

OCI_IMAGE_URL_RESULT = "IMAGE_URL"
OCI_IMAGE_DIGEST_RESULT = "IMAGE_DIGEST"
OCI_IMAGES_RESULT = "IMAGES"
ARTIFACT_URI_RESULT = "ARTIFACT_URI"
ARTIFACT_DIGEST_RESULT = "ARTIFACT_DIGEST"
ARTIFACTS_OUTPUTS_RESULT = "ARTIFACT_OUTPUTS"
ARTIFACTS_INPUTS_RESULT = "ARTIFACT_INPUTS"
GIT_COMMIT_PARAM = "CHAINS-GIT_COMMIT"
GIT_URL_PARAM = "CHAINS-GIT_URL"

JSON_MEDIA_TYPE = "application/json"

KIND_STRUCTURED_OUTPUT = "structured-output"
KIND_STRUCTURED_INPUT = "structured-input"
KIND_IMAGE = "image"
KIND_ARTIFACT = "artifact"


class ArtifactCandidate(BaseModel):
    uri: str = Field(min_length=1)
    digest: Dict[str, str] = Field(min_length=1)
    is_build_artifact: bool = False
    kind: str
    source: str
    model_config = ConfigDict(extra="forbid")

    def as_subject(self) -> Dict[str, Any]:
        return {"name": self.uri, "digest": dict(self.digest)}

    def as_material(self) -> Dict[str, Any]:
        return {"uri": self.uri, "digest": dict(self.digest)}


def _split_images(value: str) -> List[str]:
    tokens = value.replace("\n", ",").split(",")
    return [t.strip() for t in tokens if t.strip()]


def _pairs(
    results: Sequence[Result], url_suffix: str, digest_suffix: str
) -> List[Tuple[str, str, str]]:
    """Match ``<prefix><url_suffix>`` with ``<prefix><digest_suffix>`` results.

    Returns (prefix, url, digest) in first-seen prefix order; a prefix missing
    either half is reported and skipped.
    """
    urls: Dict[str, str] = {}
    digests: Dict[str, str] = {}
    order: List[str] = []
    for res in results:
        if res.name.endswith(url_suffix):
            prefix = res.name[: -len(url_suffix)]
            urls[prefix] = res.string_value.strip()
        elif res.name.endswith(digest_suffix):
            prefix = res.name[: -len(digest_suffix)]
            digests[prefix] = res.string_value.strip()
        else:
            continue
        if prefix not in order:
            order.append(prefix)

    out: List[Tuple[str, str, str]] = []
    for prefix in order:
        url = urls.get(prefix, "")
        digest = digests.get(prefix, "")
        if not url or not digest:
            handle_malformed(
                "type-hinted-pair",
                "incomplete type-hinted result pair",
                prefix=prefix,
                suffix=url_suffix,
            )
            continue
        out.append((prefix, url, digest))
    return out


def extract_oci_images_from_results(results: Sequence[Result]) -> List[ImageDigest]:
    """Container images named by IMAGE_URL/IMAGE_DIGEST pairs and IMAGES lists."""
    images: List[ImageDigest] = []
    for prefix, url, digest in _pairs(results, OCI_IMAGE_URL_RESULT, OCI_IMAGE_DIGEST_RESULT):
        try:
            images.append(parse_image_digest(f"{url}@{digest}"))
        except ValueError as exc:
            handle_malformed("type-hinted-pair", "invalid image result pair", prefix=prefix, error=str(exc))
    for res in results:
        if res.name != OCI_IMAGES_RESULT:
            continue
        for token in _split_images(res.string_value):
            try:
                images.append(parse_image_digest(token))
            except ValueError as exc:
                handle_malformed("images-list", "invalid image reference", image=token, error=str(exc))
    return images


def extract_signable_targets_from_results(results: Sequence[Result]) -> List[ArtifactCandidate]:
    out: List[ArtifactCandidate] = []
    for prefix, uri, digest in _pairs(results, ARTIFACT_URI_RESULT, ARTIFACT_DIGEST_RESULT):
        try:
            algorithm, hex_value = parse_digest(digest)
        except ValueError as exc:
            handle_malformed("type-hinted-pair", "invalid artifact result pair", prefix=prefix, error=str(exc))
            continue
        out.append(
            ArtifactCandidate(
                uri=uri,
                digest={algorithm: hex_value},
                kind=KIND_ARTIFACT,
                source=f"{prefix}{ARTIFACT_URI_RESULT}",
            )
        )
    return out


def is_build_artifact(result: Result) -> bool:
    obj = result.object_value
    if obj is None:
        return False
    return obj.get("isBuildArtifact") == "true"


def extract_structured_targets_from_results(
    results: Sequence[Result], category: str
) -> List[ArtifactCandidate]:
    """Object results whose name ends with ``category`` and carry a valid uri and digest."""
    kind = KIND_STRUCTURED_INPUT if category == ARTIFACTS_INPUTS_RESULT else KIND_STRUCTURED_OUTPUT
    out: List[ArtifactCandidate] = []
    for res in results:
        if not res.name.endswith(category):
            continue
        obj = res.object_value
        if obj is None:
            continue
        uri = (obj.get("uri") or "").strip()
        digest = (obj.get("digest") or "").strip()
        if not uri or not digest:
            handle_malformed("structured-result", "structured result is missing uri or digest", result=res.name)
            continue
        try:
            algorithm, hex_value = parse_digest(digest)
        except ValueError as exc:
            handle_malformed("structured-result", "invalid structured result digest", result=res.name, error=str(exc))
            continue
        out.append(
            ArtifactCandidate(
                uri=uri,
                digest={algorithm: hex_value},
                is_build_artifact=is_build_artifact(res),
                kind=kind,
                source=res.name,
            )
        )
    return out


def _image_candidates(results: Sequence[Result]) -> List[ArtifactCandidate]:
    return [
        ArtifactCandidate(
            uri=image.name,
            digest=image.digest_set(),
            is_build_artifact=True,
            kind=KIND_IMAGE,
            source=OCI_IMAGES_RESULT,
        )
        for image in extract_oci_images_from_results(results)
    ]


def scan_results(results: Sequence[Result]) -> List[ArtifactCandidate]:
    """Every type-hinted artifact in ``results``.

    Structured objects come first, then URL/digest pairs, then IMAGES lists.
    Exact duplicates (same uri, same digest set) collapse onto the first one.
    """
    found: List[ArtifactCandidate] = []
    found.extend(extract_structured_targets_from_results(results, ARTIFACTS_OUTPUTS_RESULT))
    found.extend(extract_structured_targets_from_results(results, ARTIFACTS_INPUTS_RESULT))
    found.extend(extract_signable_targets_from_results(results))
    found.extend(_image_candidates(results))

    out: List[ArtifactCandidate] = []
    seen: set = set()
    for candidate in found:
        key = (candidate.uri, tuple(sorted(candidate.digest.items())), candidate.kind == KIND_STRUCTURED_INPUT)
        if key in seen:
            continue
        seen.add(key)
        out.append(candidate)
    return out


def materials_from_structured_results(results: Sequence[Result], category: str) -> List[Dict[str, Any]]:
    return [c.as_material() for c in extract_structured_targets_from_results(results, category)]


def git_source(
    defaults: Iterable[Tuple[str, Any]],
    params: Iterable[Tuple[str, Any]],
    results: Iterable[Tuple[str, Any]],
) -> Tuple[str, str]:
    """Resolve (url, commit) from param defaults, then params, then results; later wins."""
    url = ""
    commit = ""
    for source in (defaults, params, results):
        for name, value in source:
            if not isinstance(value, str):
                continue
            if name == GIT_COMMIT_PARAM:
                commit = value
            elif name == GIT_URL_PARAM:
                url = value
    return url, commit


def _content(value: Any) -> str:
    raw = json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def is_oci_image_result(name: str) -> bool:
    if name.endswith(OCI_IMAGE_URL_RESULT) or name.endswith(OCI_IMAGE_DIGEST_RESULT):
        return True
    return name == OCI_IMAGES_RESULT


def result_byproducts(
    results: Sequence[Result],
    prefix: str,
    keep: Optional[Callable[[Result], bool]] = None,
) -> List[Dict[str, Any]]:
    """Render results as JSON resource descriptors named ``<prefix>/<result>``."""
    out: List[Dict[str, Any]] = []
    for res in results:
        if keep is not None and not keep(res):
            continue
        out.append(
            {
                "name": f"{prefix}/{res.name}",
                "content": _content(res.value),
                "mediaType": JSON_MEDIA_TYPE,
            }
        )
    return out


def results_without_build_artifacts(results: Sequence[Result], prefix: str) -> List[Dict[str, Any]]:
    """Byproducts minus build artifacts and image type hints."""
    return result_byproducts(
        results,
        prefix,
        keep=lambda res: not is_build_artifact(res) and not is_oci_image_result(res.name),
    )
