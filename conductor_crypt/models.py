"""Execution record and definition models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConductorModel(BaseModel):
    """Base model accepting Conductor's camelCase JSON as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkflowTask(ConductorModel):
    """A task definition as it appears inside a workflow definition."""

    name: str
    task_reference_name: str
    type: str = "SIMPLE"
    input_parameters: Dict[str, Any] = Field(default_factory=dict)
    input_template: Dict[str, Any] = Field(default_factory=dict)


class WorkflowDef(ConductorModel):
    """Workflow blueprint. Its ``input_template`` carries encryption metadata."""

    name: str
    version: int = 1
    description: Optional[str] = None
    input_template: Dict[str, Any] = Field(default_factory=dict)
    tasks: List[WorkflowTask] = Field(default_factory=list)

    def get_task_by_ref_name(self, reference_name: str | None) -> Optional[WorkflowTask]:
        """Return the task definition registered under ``reference_name``."""
        if not reference_name:
            return None
        for task in self.tasks:
            if task.task_reference_name == reference_name:
                return task
        return None


class TaskRecord(ConductorModel):
    """A task instance and its payload."""

    task_id: str
    workflow_id: str
    task_type: str = "SIMPLE"
    reference_task_name: Optional[str] = None
    status: str = "SCHEDULED"
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)
    scheduled_time: datetime = Field(default_factory=_utcnow)


class WorkflowRecord(ConductorModel):
    """A workflow instance and its payload."""

    workflow_id: str
    workflow_name: Optional[str] = None
    status: str = "RUNNING"
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)
    workflow_definition: Optional[WorkflowDef] = None
    tasks: List[TaskRecord] = Field(default_factory=list)
    create_time: datetime = Field(default_factory=_utcnow)

    @property
    def name(self) -> Optional[str]:
        if self.workflow_name:
            return self.workflow_name
        if self.workflow_definition is not None:
            return self.workflow_definition.name
        return None


class EncryptionContext(BaseModel):
    """Resolved encryption settings for one payload. Never persisted."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    key_id: str
    sensitive_paths: FrozenSet[str] = Field(default_factory=frozenset)
