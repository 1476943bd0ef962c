"""Repository abstraction for execution record persistence."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from ..models import TaskRecord, WorkflowRecord


class ExecutionRepository(Protocol):
    """Protocol for workflow and task execution stores."""

    def create_workflow(self, workflow: WorkflowRecord) -> str:
        """Persist a new workflow instance and return its id."""

    def update_workflow(self, workflow: WorkflowRecord) -> str:
        """Persist changes to an existing workflow instance."""

    def remove_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow and its tasks."""

    def get_workflow(
        self, workflow_id: str, include_tasks: bool = True
    ) -> Optional[WorkflowRecord]:
        """Retrieve a workflow, optionally with its tasks."""

    def get_running_workflow_ids(self, workflow_name: str) -> List[str]:
        """Return ids of running workflows with ``workflow_name``."""

    def get_running_workflow_count(self, workflow_name: str) -> int:
        """Return the number of running workflows with ``workflow_name``."""

    def get_pending_workflows(self, workflow_name: str) -> List[WorkflowRecord]:
        """Return running workflows with ``workflow_name`` (without tasks)."""

    def get_workflows_by_time(
        self, workflow_name: str, start_time: datetime, end_time: datetime
    ) -> List[WorkflowRecord]:
        """Return workflows created within ``[start_time, end_time]`` with tasks."""

    def create_task(self, task: TaskRecord) -> None:
        """Persist a new task instance."""

    def bulk_create_tasks(self, tasks: List[TaskRecord]) -> None:
        """Persist several task instances."""

    def update_task(self, task: TaskRecord) -> None:
        """Persist changes to an existing task instance."""

    def remove_task(self, task_id: str) -> bool:
        """Delete a task."""

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        """Retrieve a task by id."""

    def get_tasks(self, task_ids: List[str]) -> List[TaskRecord]:
        """Retrieve several tasks; unknown ids are omitted."""

    def get_tasks_for_workflow(self, workflow_id: str) -> List[TaskRecord]:
        """Return all tasks of a workflow in scheduling order."""

    def get_queued_tasks_for_type(self, task_type: str) -> List[TaskRecord]:
        """Return scheduled, not yet started tasks of ``task_type``."""

    def get_task_count(self, task_type: str) -> int:
        """Return the number of tasks of ``task_type``."""
