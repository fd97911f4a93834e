from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class ProvenanceError(ValueError):
    """Base error for provenance extraction and statement assembly."""


class MalformedImageIDError(ProvenanceError):
    pass


class UnsupportedBuildTypeError(ProvenanceError):
    def __init__(self, build_type: str) -> None:
        super().__init__(f"unsupported buildType {build_type}")
        self.build_type = build_type


class UnsupportedPayloadTypeError(ProvenanceError):
    def __init__(self, payload_type: str) -> None:
        super().__init__(f"payload type {payload_type} not found")
        self.payload_type = payload_type


class UnsupportedObjectError(ProvenanceError):
    pass


SKIP = "skip"
RAISE = "raise"

# Per input source: drop the entry and keep scanning, or abort the statement.
MALFORMED_INPUT_POLICY: Dict[str, str] = {
    "structured-result": SKIP,
    "type-hinted-pair": SKIP,
    "images-list": SKIP,
    "task-descriptor": SKIP,
    "image-id": RAISE,
    "build-type": RAISE,
}


def handle_malformed(source: str, message: str, *, cause: Optional[ProvenanceError] = None, **fields: Any) -> None:
    """Apply MALFORMED_INPUT_POLICY to a malformed input from ``source``.

    Skippable sources are logged at warning level and the caller drops the
    entry. Everything else raises ``cause``, or a ``ProvenanceError`` carrying
    ``message`` when no cause is given. Unknown sources raise.
    """
    policy = MALFORMED_INPUT_POLICY.get(source, RAISE)
    if policy == SKIP:
        if cause is not None:
            fields.setdefault("error", str(cause))
        logger.warning(message, source=source, **fields)
        return
    if cause is not None:
        raise cause
    raise ProvenanceError(message)
