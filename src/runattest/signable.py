"""Artifact classes that can be signed for a run.

Each class knows which objects it signs for a run, how those objects are
keyed in storage, and which format, storage backends and signer the
configuration assigns to it.
"""

from __future__ import annotations

import abc
from typing import Any, Dict, List, Optional

from runattest.config import ArtifactConfig, Config
from runattest.digest import ImageDigest
from runattest.formats import FormatterRegistry, default_registry
from runattest.objects import PipelineRun, RunRecord, TaskRun
from runattest.results import extract_oci_images_from_results

OCI_KEY_LENGTH = 12


class Signable(abc.ABC):
    type_name = ""

    @abc.abstractmethod
    def _config(self, cfg: Config) -> ArtifactConfig: ...

    @abc.abstractmethod
    def extract_objects(self, run: RunRecord) -> List[Any]: ...

    @abc.abstractmethod
    def key(self, obj: Any) -> str: ...

    def payload_format(self, cfg: Config) -> str:
        return self._config(cfg).format

    def storage_backends(self, cfg: Config) -> List[str]:
        return list(self._config(cfg).storage)

    def signer(self, cfg: Config) -> str:
        return self._config(cfg).signer

    def enabled(self, cfg: Config) -> bool:
        return self._config(cfg).enabled


class TaskRunArtifact(Signable):
    type_name = "tekton"

    def _config(self, cfg: Config) -> ArtifactConfig:
        return cfg.artifacts.taskrun

    def extract_objects(self, run: RunRecord) -> List[Any]:
        return [run] if isinstance(run, TaskRun) else []

    def key(self, obj: Any) -> str:
        return f"taskrun-{obj.get_uid()}"


class PipelineRunArtifact(Signable):
    type_name = "tekton-pipeline-run"

    def _config(self, cfg: Config) -> ArtifactConfig:
        return cfg.artifacts.pipelinerun

    def extract_objects(self, run: RunRecord) -> List[Any]:
        return [run] if isinstance(run, PipelineRun) else []

    def key(self, obj: Any) -> str:
        return f"pipelinerun-{obj.get_uid()}"


class OCIArtifact(Signable):
    """Container images a task run announced through its type-hinted results."""

    type_name = "oci"

    def _config(self, cfg: Config) -> ArtifactConfig:
        return cfg.artifacts.oci

    def extract_objects(self, run: RunRecord) -> List[Any]:
        images: List[ImageDigest] = []
        for image in extract_oci_images_from_results(run.get_results()):
            if image not in images:
                images.append(image)
        return images

    def key(self, obj: Any) -> str:
        return obj.hex[:OCI_KEY_LENGTH]


def signables_for(run: RunRecord, cfg: Config) -> List[Signable]:
    """The enabled artifact classes that apply to ``run``."""
    candidates: List[Signable] = [TaskRunArtifact(), PipelineRunArtifact(), OCIArtifact()]
    return [s for s in candidates if s.enabled(cfg) and s.extract_objects(run)]


def run_signable(run: RunRecord) -> Signable:
    if isinstance(run, PipelineRun):
        return PipelineRunArtifact()
    return TaskRunArtifact()


def payloads_for(
    run: RunRecord,
    cfg: Config,
    *,
    registry: Optional[FormatterRegistry] = None,
    payload_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Build the payload of every object the configuration signs for ``run``.

    With ``payload_type`` only the run itself is rendered, in that format,
    whether or not its storage is enabled.
    """
    registry = registry or default_registry()
    if payload_type is None:
        targets = [(s, s.payload_format(cfg)) for s in signables_for(run, cfg)]
    else:
        targets = [(run_signable(run), payload_type)]

    entries: List[Dict[str, Any]] = []
    for signable, fmt in targets:
        payloader = registry.get(fmt, cfg)
        for obj in signable.extract_objects(run):
            entries.append(
                {
                    "type": signable.type_name,
                    "key": signable.key(obj),
                    "format": fmt,
                    "signer": signable.signer(cfg),
                    "storage": signable.storage_backends(cfg),
                    "wrap": payloader.wrap,
                    "payload": payloader.create_payload(obj),
                }
            )
    return entries
