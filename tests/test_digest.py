import pytest

from conftest import APP_DIGEST
from runattest.digest import (
    format_uri_digest,
    from_image_id,
    oci_image_uri,
    parse_digest,
    parse_image_digest,
    parse_uri_digest,
    spdx_git,
)
from runattest.errors import MalformedImageIDError


def test_parse_digest_accepts_known_algorithms() -> None:
    assert parse_digest(f"sha256:{APP_DIGEST}") == ("sha256", APP_DIGEST)
    assert parse_digest("SHA1:" + "a" * 40) == ("sha1", "a" * 40)


@pytest.mark.parametrize(
    "value",
    [
        "sha256",
        "sha256:abc",
        f"md5:{APP_DIGEST}",
        f"sha256:{APP_DIGEST.upper()}",
        f"sha256:{APP_DIGEST}:extra",
    ],
)
def test_parse_digest_rejects_malformed(value: str) -> None:
    with pytest.raises(ValueError):
        parse_digest(value)


def test_uri_digest_round_trip_is_exact() -> None:
    value = f"gcr.io/example/app@sha256:{APP_DIGEST}"
    uri, algorithm, hex_value = parse_uri_digest(value)
    assert uri == "gcr.io/example/app"
    assert format_uri_digest(uri, algorithm, hex_value) == value


def test_parse_image_digest_drops_tag_and_keeps_registry() -> None:
    image = parse_image_digest(f"gcr.io/example/app:v1@sha256:{APP_DIGEST}")
    assert image.name == "gcr.io/example/app"
    assert image.digest_set() == {"sha256": APP_DIGEST}
    assert str(image) == f"gcr.io/example/app@sha256:{APP_DIGEST}"


def test_parse_image_digest_expands_docker_hub_names() -> None:
    assert parse_image_digest(f"ubuntu@sha256:{APP_DIGEST}").name == "index.docker.io/library/ubuntu"
    assert parse_image_digest(f"docker.io/acme/tool@sha256:{APP_DIGEST}").name == "index.docker.io/acme/tool"
    assert parse_image_digest(f"localhost:5000/tool@sha256:{APP_DIGEST}").name == "localhost:5000/tool"


def test_parse_image_digest_requires_sha256_digest() -> None:
    with pytest.raises(ValueError):
        parse_image_digest("gcr.io/example/app")
    with pytest.raises(ValueError):
        parse_image_digest("gcr.io/example/app@sha1:" + "a" * 40)


def test_from_image_id_strips_runtime_prefix() -> None:
    material = from_image_id(f"docker-pullable://gcr.io/tools/builder@sha256:{APP_DIGEST}")
    assert material == {"uri": "oci://gcr.io/tools/builder", "digest": {"sha256": APP_DIGEST}}


def test_from_image_id_without_at_sign_is_an_error() -> None:
    with pytest.raises(MalformedImageIDError, match="separable by @"):
        from_image_id("gcr.io/a/b-sha256:deadbeef")


def test_from_image_id_without_colon_is_an_error() -> None:
    with pytest.raises(MalformedImageIDError, match="separable by @ and :"):
        from_image_id("gcr.io/a/b@deadbeef")


def test_oci_image_uri_and_spdx_git() -> None:
    assert oci_image_uri("docker-pullable://gcr.io/x@sha256:abc") == "oci://gcr.io/x@sha256:abc"
    assert spdx_git("https://github.com/example/app") == "git+https://github.com/example/app.git"
    assert spdx_git("git+https://github.com/example/app.git", "main") == "git+https://github.com/example/app.git@main"
