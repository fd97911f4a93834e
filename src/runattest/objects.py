from __future__ import annotations

import abc
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr

from runattest.errors import UnsupportedObjectError

PIPELINE_TASK_LABEL = "tekton.dev/pipelineTask"
CLUSTER_RESOLVER = "Cluster"
DEFAULT_API_VERSION = "tekton.dev/v1"

ParamValue = Union[str, List[str], Dict[str, str]]

_RESULT_REF = re.compile(r"\$\(\s*tasks\.([^.\s)]+)\.results\.")


class _TektonModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class ObjectMeta(_TektonModel):
    name: str = ""
    namespace: str = ""
    uid: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class Param(_TektonModel):
    name: str
    value: ParamValue = ""


class ParamSpec(_TektonModel):
    name: str
    type: Optional[str] = None
    default: Optional[ParamValue] = None


class Result(_TektonModel):
    name: str
    type: Optional[str] = None
    value: ParamValue = ""

    @property
    def string_value(self) -> str:
        return self.value if isinstance(self.value, str) else ""

    @property
    def object_value(self) -> Optional[Dict[str, str]]:
        return self.value if isinstance(self.value, dict) else None


class RefSource(_TektonModel):
    uri: str = ""
    digest: Dict[str, str] = Field(default_factory=dict)
    entry_point: str = Field(default="", alias="entryPoint")


class Provenance(_TektonModel):
    ref_source: Optional[RefSource] = Field(
        default=None, validation_alias=AliasChoices("refSource", "configSource"), serialization_alias="refSource"
    )
    feature_flags: Optional[Dict[str, Any]] = Field(default=None, alias="featureFlags")


class Condition(_TektonModel):
    type: str = ""
    status: str = ""
    reason: Optional[str] = None
    message: Optional[str] = None


class Step(_TektonModel):
    name: str = ""
    image: str = ""
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    script: str = ""


class StepState(_TektonModel):
    name: str = ""
    container: str = ""
    image_id: str = Field(default="", alias="imageID")
    results: List[Result] = Field(default_factory=list)


class SidecarState(_TektonModel):
    name: str = ""
    container: str = ""
    image_id: str = Field(default="", alias="imageID")


class TaskSpec(_TektonModel):
    params: List[ParamSpec] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    results: List[Dict[str, Any]] = Field(default_factory=list)


class Ref(_TektonModel):
    name: str = ""
    kind: Optional[str] = None
    resolver: Optional[str] = None
    params: List[Param] = Field(default_factory=list)


class WhenExpression(_TektonModel):
    input: str = ""
    operator: str = ""
    values: List[str] = Field(default_factory=list)
    cel: str = ""


class PipelineTask(_TektonModel):
    name: str
    task_ref: Optional[Ref] = Field(default=None, alias="taskRef")
    run_after: List[str] = Field(default_factory=list, alias="runAfter")
    params: List[Param] = Field(default_factory=list)
    when: List[WhenExpression] = Field(default_factory=list)

    def result_ref_tasks(self) -> List[str]:
        """Names of pipeline tasks whose results feed this task's params or when expressions."""
        texts: List[str] = []
        for param in self.params:
            texts.extend(_param_value_strings(param.value))
        for expression in self.when:
            texts.append(expression.input)
            texts.extend(expression.values)
            texts.append(expression.cel)
        out: List[str] = []
        for text in texts:
            for name in _RESULT_REF.findall(text):
                if name not in out:
                    out.append(name)
        return out


class PipelineSpec(_TektonModel):
    tasks: List[PipelineTask] = Field(default_factory=list)
    finally_: List[PipelineTask] = Field(default_factory=list, alias="finally")
    params: List[ParamSpec] = Field(default_factory=list)
    results: List[Dict[str, Any]] = Field(default_factory=list)

    def all_tasks(self) -> List[PipelineTask]:
        return [*self.tasks, *self.finally_]


class TaskRunSpec(_TektonModel):
    params: List[Param] = Field(default_factory=list)
    task_ref: Optional[Ref] = Field(default=None, alias="taskRef")
    service_account_name: str = Field(default="", alias="serviceAccountName")


class TaskRunStatus(_TektonModel):
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    completion_time: Optional[datetime] = Field(default=None, alias="completionTime")
    conditions: List[Condition] = Field(default_factory=list)
    steps: List[StepState] = Field(default_factory=list)
    sidecars: List[SidecarState] = Field(default_factory=list)
    results: List[Result] = Field(
        default_factory=list,
        validation_alias=AliasChoices("results", "taskResults"),
        serialization_alias="results",
    )
    task_spec: Optional[TaskSpec] = Field(default=None, alias="taskSpec")
    provenance: Optional[Provenance] = None


class TaskRunTemplate(_TektonModel):
    service_account_name: str = Field(default="", alias="serviceAccountName")


class PipelineRunSpec(_TektonModel):
    params: List[Param] = Field(default_factory=list)
    pipeline_ref: Optional[Ref] = Field(default=None, alias="pipelineRef")
    task_run_template: Optional[TaskRunTemplate] = Field(default=None, alias="taskRunTemplate")
    service_account_name: str = Field(default="", alias="serviceAccountName")


class PipelineRunStatus(_TektonModel):
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    completion_time: Optional[datetime] = Field(default=None, alias="completionTime")
    conditions: List[Condition] = Field(default_factory=list)
    results: List[Result] = Field(
        default_factory=list,
        validation_alias=AliasChoices("results", "pipelineResults"),
        serialization_alias="results",
    )
    pipeline_spec: Optional[PipelineSpec] = Field(default=None, alias="pipelineSpec")
    provenance: Optional[Provenance] = None


class _RunBase(_TektonModel):
    api_version: str = Field(default=DEFAULT_API_VERSION, alias="apiVersion")
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)

    @property
    def name(self) -> str:
        return self.metadata.name

    def get_gvk(self) -> str:
        return f"{self.api_version}/{self.kind}"

    def get_labels(self) -> Dict[str, str]:
        return self.metadata.labels

    def get_annotations(self) -> Dict[str, str]:
        return self.metadata.annotations

    def get_uid(self) -> str:
        return self.metadata.uid

    def get_start_time(self) -> Optional[datetime]:
        return self.status.start_time

    def get_completion_time(self) -> Optional[datetime]:
        return self.status.completion_time

    def get_status_conditions(self) -> List[Condition]:
        return self.status.conditions

    def get_results(self) -> List[Result]:
        return self.status.results

    def get_params(self) -> List[Param]:
        return self.spec.params

    def get_provenance(self) -> Optional[Provenance]:
        return self.status.provenance

    def get_ref_source(self) -> Optional[RefSource]:
        provenance = self.status.provenance
        if provenance is None:
            return None
        return provenance.ref_source

    @abc.abstractmethod
    def _ref(self) -> Optional[Ref]: ...

    def is_remote(self) -> bool:
        ref = self._ref()
        return ref is not None and bool(ref.resolver) and ref.resolver != CLUSTER_RESOLVER

    def get_remote_provenance(self) -> Optional[Provenance]:
        if self.get_ref_source() is not None and self.is_remote():
            return self.status.provenance
        return None

    def is_completed(self) -> bool:
        return self.status.completion_time is not None


class TaskRun(_RunBase):
    kind: str = "TaskRun"
    spec: TaskRunSpec = Field(default_factory=TaskRunSpec)
    status: TaskRunStatus = Field(default_factory=TaskRunStatus)

    def _ref(self) -> Optional[Ref]:
        return self.spec.task_ref

    def get_service_account_name(self) -> str:
        return self.spec.service_account_name

    def get_step_images(self) -> List[str]:
        return [step.image_id for step in self.status.steps]

    def get_sidecar_images(self) -> List[str]:
        return [sidecar.image_id for sidecar in self.status.sidecars]

    def get_step_results(self) -> List[Result]:
        out: List[Result] = []
        for step in self.status.steps:
            out.extend(step.results)
        return out

    def get_param_specs(self) -> List[ParamSpec]:
        if self.status.task_spec is None:
            return []
        return self.status.task_spec.params


class PipelineRun(_RunBase):
    kind: str = "PipelineRun"
    spec: PipelineRunSpec = Field(default_factory=PipelineRunSpec)
    status: PipelineRunStatus = Field(default_factory=PipelineRunStatus)

    _task_runs: List[TaskRun] = PrivateAttr(default_factory=list)

    def _ref(self) -> Optional[Ref]:
        return self.spec.pipeline_ref

    def get_service_account_name(self) -> str:
        if self.spec.task_run_template is not None and self.spec.task_run_template.service_account_name:
            return self.spec.task_run_template.service_account_name
        return self.spec.service_account_name

    def get_param_specs(self) -> List[ParamSpec]:
        if self.status.pipeline_spec is None:
            return []
        return self.status.pipeline_spec.params

    @property
    def task_runs(self) -> List[TaskRun]:
        return list(self._task_runs)

    def append_task_run(self, task_run: TaskRun) -> None:
        self._task_runs.append(task_run)

    def get_task_runs_from_task(self, task_name: str) -> List[TaskRun]:
        return [tr for tr in self._task_runs if tr.get_labels().get(PIPELINE_TASK_LABEL) == task_name]

    def get_task_run_from_task(self, task_name: str) -> Optional[TaskRun]:
        task_runs = self.get_task_runs_from_task(task_name)
        return task_runs[0] if task_runs else None

    def get_executed_tasks(self) -> List[TaskRun]:
        """Completed child task runs, in pipeline task order (finally tasks last)."""
        if self.status.pipeline_spec is None:
            return []
        out: List[TaskRun] = []
        for task in self.status.pipeline_spec.all_tasks():
            for tr in self.get_task_runs_from_task(task.name):
                if tr.is_completed():
                    out.append(tr)
        return out


RunRecord = Union[TaskRun, PipelineRun]


def _param_value_strings(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    if isinstance(value, dict):
        return [v for v in value.values() if isinstance(v, str)]
    return []


def load_run_record(payload: Dict[str, Any]) -> RunRecord:
    kind = payload.get("kind")
    if kind == "TaskRun":
        return TaskRun.model_validate(payload)
    if kind == "PipelineRun":
        return PipelineRun.model_validate(payload)
    raise UnsupportedObjectError(f"unsupported run kind: {kind!r}")
