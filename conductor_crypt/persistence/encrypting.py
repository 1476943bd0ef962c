"""Execution repository decorator adding field-level encryption.

Writes resolve the encryption context from the plaintext record, encrypt the
sensitive leaves of ``input`` and ``output`` and hand the sealed copy to the
wrapped repository. Reads fetch from the wrapped repository first, since the
definition that drives the context is only known once the record is loaded,
and decrypt before returning.

Failures never degrade to plaintext writes or ciphertext reads: a write that
cannot be encrypted raises :class:`RecordEncryptionError` and nothing is
persisted; a read that cannot be decrypted raises
:class:`RecordDecryptionError`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, TypeVar

from ..errors import (
    PathFailure,
    RecordDecryptionError,
    RecordEncryptionError,
    TransformError,
)
from ..models import EncryptionContext, TaskRecord, WorkflowRecord
from ..resolver import ConfigResolver
from ..transform import PathTransformEngine, TransformMode
from .repository import ExecutionRepository

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", WorkflowRecord, TaskRecord)

PAYLOAD_FIELDS = ("input", "output")


class EncryptingExecutionRepository(ExecutionRepository):
    """Wrap ``delegate`` so sensitive payload fields are stored encrypted.

    The decorator keeps no state between calls. Parent workflows looked up
    for task payloads are cached only for the duration of one call.
    """

    def __init__(
        self,
        delegate: ExecutionRepository,
        engine: PathTransformEngine,
        resolver: Optional[ConfigResolver] = None,
    ) -> None:
        self.delegate = delegate
        self.engine = engine
        self.resolver = resolver or ConfigResolver()
        logger.info(
            f"Encrypting repository initialized, wrapping {type(delegate).__name__}"
        )

    # ------------------------------------------------------------------
    # Payload processing
    def _process(
        self,
        record: RecordT,
        ctx: EncryptionContext,
        mode: TransformMode,
        record_kind: str,
        record_id: str,
    ) -> RecordT:
        if not ctx.enabled or not ctx.sensitive_paths:
            return record

        updates: Dict[str, Any] = {}
        failures: List[PathFailure] = []
        for field in PAYLOAD_FIELDS:
            try:
                updates[field] = self.engine.apply(
                    getattr(record, field), ctx.sensitive_paths, mode, ctx
                )
            except TransformError as e:
                failures.extend(
                    PathFailure(path=f"{field}:{f.path}", error=f.error) for f in e.failures
                )

        if failures:
            error_cls = (
                RecordEncryptionError if mode is TransformMode.ENCRYPT else RecordDecryptionError
            )
            logger.error(
                f"Aborting {mode.value} of {record_kind} {record_id} (key_id={ctx.key_id}): "
                f"{len(failures)} path(s) failed"
            )
            raise error_cls(record_kind, record_id, failures) from failures[0].error

        return record.model_copy(update=updates)

    def _seal_workflow(self, workflow: WorkflowRecord) -> WorkflowRecord:
        ctx = self.resolver.resolve(workflow)
        return self._process(
            workflow, ctx, TransformMode.ENCRYPT, "workflow", workflow.workflow_id
        )

    def _open_workflow(self, workflow: WorkflowRecord) -> WorkflowRecord:
        ctx = self.resolver.resolve(workflow)
        opened = self._process(
            workflow, ctx, TransformMode.DECRYPT, "workflow", workflow.workflow_id
        )
        if workflow.tasks:
            tasks = [self._open_task(task, workflow) for task in workflow.tasks]
            opened = opened.model_copy(update={"tasks": tasks})
        return opened

    def _seal_task(self, task: TaskRecord, parent: Optional[WorkflowRecord]) -> TaskRecord:
        if parent is None:
            logger.warning(
                f"Workflow {task.workflow_id} not found for task {task.task_id}; "
                "resolving encryption context from the task alone"
            )
        ctx = self.resolver.resolve(parent, task)
        return self._process(task, ctx, TransformMode.ENCRYPT, "task", task.task_id)

    def _open_task(self, task: TaskRecord, parent: Optional[WorkflowRecord]) -> TaskRecord:
        if parent is None:
            logger.warning(
                f"Workflow {task.workflow_id} not found for task {task.task_id}; "
                "resolving decryption context from the task alone"
            )
        ctx = self.resolver.resolve(parent, task)
        return self._process(task, ctx, TransformMode.DECRYPT, "task", task.task_id)

    def _parent(
        self, workflow_id: str, cache: Dict[str, Optional[WorkflowRecord]]
    ) -> Optional[WorkflowRecord]:
        if workflow_id not in cache:
            cache[workflow_id] = self.delegate.get_workflow(workflow_id, include_tasks=False)
        return cache[workflow_id]

    def _open_tasks(self, tasks: List[TaskRecord]) -> List[TaskRecord]:
        parents: Dict[str, Optional[WorkflowRecord]] = {}
        return [self._open_task(t, self._parent(t.workflow_id, parents)) for t in tasks]

    # ------------------------------------------------------------------
    # Workflow operations
    def create_workflow(self, workflow: WorkflowRecord) -> str:
        return self.delegate.create_workflow(self._seal_workflow(workflow))

    def update_workflow(self, workflow: WorkflowRecord) -> str:
        return self.delegate.update_workflow(self._seal_workflow(workflow))

    def remove_workflow(self, workflow_id: str) -> bool:
        return self.delegate.remove_workflow(workflow_id)

    def get_workflow(
        self, workflow_id: str, include_tasks: bool = True
    ) -> Optional[WorkflowRecord]:
        workflow = self.delegate.get_workflow(workflow_id, include_tasks=include_tasks)
        if workflow is None:
            return None
        return self._open_workflow(workflow)

    def get_running_workflow_ids(self, workflow_name: str) -> List[str]:
        return self.delegate.get_running_workflow_ids(workflow_name)

    def get_running_workflow_count(self, workflow_name: str) -> int:
        return self.delegate.get_running_workflow_count(workflow_name)

    def get_pending_workflows(self, workflow_name: str) -> List[WorkflowRecord]:
        return [self._open_workflow(wf) for wf in self.delegate.get_pending_workflows(workflow_name)]

    def get_workflows_by_time(
        self, workflow_name: str, start_time: datetime, end_time: datetime
    ) -> List[WorkflowRecord]:
        workflows = self.delegate.get_workflows_by_time(workflow_name, start_time, end_time)
        return [self._open_workflow(wf) for wf in workflows]

    # ------------------------------------------------------------------
    # Task operations
    def create_task(self, task: TaskRecord) -> None:
        parent = self.delegate.get_workflow(task.workflow_id, include_tasks=False)
        self.delegate.create_task(self._seal_task(task, parent))

    def bulk_create_tasks(self, tasks: List[TaskRecord]) -> None:
        parents: Dict[str, Optional[WorkflowRecord]] = {}
        sealed = [self._seal_task(t, self._parent(t.workflow_id, parents)) for t in tasks]
        self.delegate.bulk_create_tasks(sealed)

    def update_task(self, task: TaskRecord) -> None:
        parent = self.delegate.get_workflow(task.workflow_id, include_tasks=False)
        self.delegate.update_task(self._seal_task(task, parent))

    def remove_task(self, task_id: str) -> bool:
        return self.delegate.remove_task(task_id)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        task = self.delegate.get_task(task_id)
        if task is None:
            return None
        parent = self.delegate.get_workflow(task.workflow_id, include_tasks=False)
        return self._open_task(task, parent)

    def get_tasks(self, task_ids: List[str]) -> List[TaskRecord]:
        return self._open_tasks(self.delegate.get_tasks(task_ids))

    def get_tasks_for_workflow(self, workflow_id: str) -> List[TaskRecord]:
        return self._open_tasks(self.delegate.get_tasks_for_workflow(workflow_id))

    def get_queued_tasks_for_type(self, task_type: str) -> List[TaskRecord]:
        return self._open_tasks(self.delegate.get_queued_tasks_for_type(task_type))

    def get_task_count(self, task_type: str) -> int:
        return self.delegate.get_task_count(task_type)
