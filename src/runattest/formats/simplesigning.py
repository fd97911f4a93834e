from __future__ import annotations

from typing import Any, Dict, Optional

from runattest.config import PAYLOAD_TYPE_SIMPLESIGNING, Config
from runattest.digest import ImageDigest, parse_image_digest
from runattest.errors import UnsupportedObjectError

SIGNATURE_TYPE = "Tekton container signature"


def simple_signing_payload(image: ImageDigest) -> Dict[str, Any]:
    return {
        "critical": {
            "identity": {"docker-reference": image.name},
            "image": {"Docker-manifest-digest": image.digest},
            "type": SIGNATURE_TYPE,
        },
        "optional": {},
    }


class SimpleSigning:
    payload_type = PAYLOAD_TYPE_SIMPLESIGNING
    wrap = False

    def __init__(self, cfg: Optional[Config] = None):
        pass

    def create_payload(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, str):
            obj = parse_image_digest(obj)
        if isinstance(obj, ImageDigest):
            return simple_signing_payload(obj)
        raise UnsupportedObjectError(f"unsupported type {type(obj).__name__}")
