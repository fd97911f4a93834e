from __future__ import annotations

from typing import Any, Dict, Optional

from runattest.config import PAYLOAD_TYPE_TEKTON, Config
from runattest.errors import UnsupportedObjectError
from runattest.objects import PipelineRun, TaskRun


class Tekton:
    """Sign the run's status object exactly as the platform reported it."""

    payload_type = PAYLOAD_TYPE_TEKTON
    wrap = False

    def __init__(self, cfg: Optional[Config] = None):
        pass

    def create_payload(self, obj: Any) -> Dict[str, Any]:
        if isinstance(obj, (TaskRun, PipelineRun)):
            return obj.status.to_json()
        raise UnsupportedObjectError(f"unsupported type {type(obj).__name__}")
