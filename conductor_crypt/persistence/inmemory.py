"""In-memory implementation of the execution repository."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional

from ..models import TaskRecord, WorkflowRecord
from .repository import ExecutionRepository

RUNNING = "RUNNING"
SCHEDULED = "SCHEDULED"


class InMemoryExecutionRepository(ExecutionRepository):
    """Store execution records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out, so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowRecord] = {}
        self._tasks: Dict[str, TaskRecord] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    def create_workflow(self, workflow: WorkflowRecord) -> str:
        stored = workflow.model_copy(update={"tasks": []}, deep=True)
        with self._lock:
            self._workflows[workflow.workflow_id] = stored
        return workflow.workflow_id

    def update_workflow(self, workflow: WorkflowRecord) -> str:
        return self.create_workflow(workflow)

    def remove_workflow(self, workflow_id: str) -> bool:
        with self._lock:
            removed = self._workflows.pop(workflow_id, None)
            for task_id in [t.task_id for t in self._tasks.values() if t.workflow_id == workflow_id]:
                del self._tasks[task_id]
        return removed is not None

    def get_workflow(
        self, workflow_id: str, include_tasks: bool = True
    ) -> Optional[WorkflowRecord]:
        with self._lock:
            wf = self._workflows.get(workflow_id)
            if wf is None:
                return None
            tasks = self._workflow_tasks(workflow_id) if include_tasks else []
            return wf.model_copy(update={"tasks": tasks}, deep=True)

    def get_running_workflow_ids(self, workflow_name: str) -> List[str]:
        return [wf.workflow_id for wf in self._running(workflow_name)]

    def get_running_workflow_count(self, workflow_name: str) -> int:
        return len(self._running(workflow_name))

    def get_pending_workflows(self, workflow_name: str) -> List[WorkflowRecord]:
        return [wf.model_copy(deep=True) for wf in self._running(workflow_name)]

    def get_workflows_by_time(
        self, workflow_name: str, start_time: datetime, end_time: datetime
    ) -> List[WorkflowRecord]:
        with self._lock:
            return [
                wf.model_copy(update={"tasks": self._workflow_tasks(wf.workflow_id)}, deep=True)
                for wf in self._workflows.values()
                if wf.name == workflow_name and start_time <= wf.create_time <= end_time
            ]

    # ------------------------------------------------------------------
    def create_task(self, task: TaskRecord) -> None:
        with self._lock:
            self._tasks[task.task_id] = task.model_copy(deep=True)

    def bulk_create_tasks(self, tasks: List[TaskRecord]) -> None:
        with self._lock:
            for task in tasks:
                self._tasks[task.task_id] = task.model_copy(deep=True)

    def update_task(self, task: TaskRecord) -> None:
        self.create_task(task)

    def remove_task(self, task_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def get_tasks(self, task_ids: List[str]) -> List[TaskRecord]:
        with self._lock:
            return [
                self._tasks[task_id].model_copy(deep=True)
                for task_id in task_ids
                if task_id in self._tasks
            ]

    def get_tasks_for_workflow(self, workflow_id: str) -> List[TaskRecord]:
        with self._lock:
            return self._workflow_tasks(workflow_id)

    def get_queued_tasks_for_type(self, task_type: str) -> List[TaskRecord]:
        with self._lock:
            return [
                t.model_copy(deep=True)
                for t in self._tasks.values()
                if t.task_type == task_type and t.status == SCHEDULED
            ]

    def get_task_count(self, task_type: str) -> int:
        with self._lock:
            return sum(1 for t in self._tasks.values() if t.task_type == task_type)

    # ------------------------------------------------------------------
    def _workflow_tasks(self, workflow_id: str) -> List[TaskRecord]:
        tasks = [t for t in self._tasks.values() if t.workflow_id == workflow_id]
        return [t.model_copy(deep=True) for t in sorted(tasks, key=lambda t: t.scheduled_time)]

    def _running(self, workflow_name: str) -> List[WorkflowRecord]:
        with self._lock:
            return [
                wf
                for wf in self._workflows.values()
                if wf.name == workflow_name and wf.status == RUNNING
            ]
