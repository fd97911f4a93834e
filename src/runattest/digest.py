from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from runattest.errors import MalformedImageIDError

OCI_SCHEME = "oci://"
GIT_SCHEME_PREFIX = "git+"
DOCKER_PULLABLE_PREFIX = "docker-pullable://"
DEFAULT_REGISTRY = "index.docker.io"
DOCKER_HUB_ALIASES = {"docker.io", "index.docker.io", "registry-1.docker.io"}

URI_SEPARATOR = "@"
DIGEST_SEPARATOR = ":"

DIGEST_HEX_LENGTHS: Dict[str, int] = {
    "sha256": 64,
    "sha384": 96,
    "sha512": 128,
    "sha1": 40,
}

_HEX = re.compile(r"^[0-9a-f]+$")
_REPOSITORY_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")


def parse_digest(value: str) -> Tuple[str, str]:
    """Split ``algorithm:hex`` and validate it against the known hash lengths."""
    parts = value.split(DIGEST_SEPARATOR)
    if len(parts) != 2:
        raise ValueError(f"expected digest {value!r} to be of the form algorithm:hex")
    algorithm = parts[0].strip().lower()
    hex_value = parts[1].strip()
    expected = DIGEST_HEX_LENGTHS.get(algorithm)
    if expected is None:
        raise ValueError(f"unsupported digest algorithm {algorithm!r}")
    if len(hex_value) != expected or not _HEX.match(hex_value):
        raise ValueError(f"invalid {algorithm} digest: {hex_value!r}")
    return algorithm, hex_value


def format_digest(algorithm: str, hex_value: str) -> str:
    return f"{algorithm}{DIGEST_SEPARATOR}{hex_value}"


def parse_uri_digest(value: str) -> Tuple[str, str, str]:
    """Split ``uri@algorithm:hex`` without rewriting the uri."""
    uri, sep, digest = value.rpartition(URI_SEPARATOR)
    if not sep or not uri:
        raise ValueError(f"expected {value!r} to be of the form uri@algorithm:hex")
    algorithm, hex_value = parse_digest(digest)
    return uri, algorithm, hex_value


def format_uri_digest(uri: str, algorithm: str, hex_value: str) -> str:
    return f"{uri}{URI_SEPARATOR}{format_digest(algorithm, hex_value)}"


class ImageDigest(BaseModel):
    """A container image pinned by a sha256 manifest digest."""

    registry: str
    repository: str
    digest: str
    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def name(self) -> str:
        return f"{self.registry}/{self.repository}"

    @property
    def algorithm(self) -> str:
        return self.digest.split(DIGEST_SEPARATOR, 1)[0]

    @property
    def hex(self) -> str:
        return self.digest.split(DIGEST_SEPARATOR, 1)[1]

    def digest_set(self) -> Dict[str, str]:
        return {self.algorithm: self.hex}

    def __str__(self) -> str:
        return f"{self.name}{URI_SEPARATOR}{self.digest}"


def _split_registry(base: str) -> Tuple[str, str]:
    first, sep, rest = base.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry = DEFAULT_REGISTRY if first in DOCKER_HUB_ALIASES else first
        return registry, rest
    return DEFAULT_REGISTRY, base


def parse_image_digest(reference: str) -> ImageDigest:
    """Parse ``[registry/]repository[:tag]@sha256:hex`` into an ImageDigest.

    Any tag is dropped. References without a registry resolve against
    Docker Hub, and single-component Docker Hub names gain ``library/``.
    """
    base, sep, digest = reference.strip().partition(URI_SEPARATOR)
    if not sep:
        raise ValueError(f"image reference {reference!r} has no digest")
    algorithm, hex_value = parse_digest(digest)
    if algorithm != "sha256":
        raise ValueError(f"image reference {reference!r} must use a sha256 digest")

    registry, path = _split_registry(base)
    last_slash = path.rfind("/")
    tag_colon = path.rfind(":")
    if tag_colon > last_slash:
        tag = path[tag_colon + 1 :]
        if not _TAG.match(tag):
            raise ValueError(f"invalid tag {tag!r} in image reference {reference!r}")
        path = path[:tag_colon]
    if not path:
        raise ValueError(f"image reference {reference!r} has no repository")
    for component in path.split("/"):
        if not _REPOSITORY_COMPONENT.match(component):
            raise ValueError(f"invalid repository {path!r} in image reference {reference!r}")
    if registry == DEFAULT_REGISTRY and "/" not in path:
        path = f"library/{path}"
    return ImageDigest(registry=registry, repository=path, digest=format_digest(algorithm, hex_value))


def from_image_id(image_id: str) -> Dict[str, object]:
    """Convert a runtime image ID (``[docker-pullable://]uri@alg:hex``) into a material.

    A malformed ID is a caller bug, so it raises instead of being skipped.
    """
    uri_digest = image_id.split(URI_SEPARATOR)
    if len(uri_digest) != 2:
        raise MalformedImageIDError(f"expected imageID {image_id} to be separable by @")
    digest = uri_digest[1].split(DIGEST_SEPARATOR)
    if len(digest) != 2:
        raise MalformedImageIDError(f"expected imageID {image_id} to be separable by @ and :")
    uri = uri_digest[0]
    if uri.startswith(DOCKER_PULLABLE_PREFIX):
        uri = uri[len(DOCKER_PULLABLE_PREFIX) :]
    return {"uri": OCI_SCHEME + uri, "digest": {digest[0]: digest[1]}}


def oci_image_uri(image_id: str) -> str:
    if image_id.startswith(DOCKER_PULLABLE_PREFIX):
        image_id = image_id[len(DOCKER_PULLABLE_PREFIX) :]
    return OCI_SCHEME + image_id


def spdx_git(url: str, revision: Optional[str] = None) -> str:
    """Render a git source in SPDX download-location form: ``git+<url>.git[@revision]``."""
    if not url.startswith(GIT_SCHEME_PREFIX):
        url = GIT_SCHEME_PREFIX + url
    if not url.endswith(".git"):
        url = url + ".git"
    if not revision:
        return url
    return f"{url}@{revision}"
