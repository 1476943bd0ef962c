"""SQLite implementation of the execution repository."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from ..models import TaskRecord, WorkflowRecord
from .repository import ExecutionRepository


class SQLiteExecutionRepository(ExecutionRepository):
    """Persist execution records using SQLite.

    Records are stored as JSON documents next to the columns used for
    lookups.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                workflow_id TEXT PRIMARY KEY,
                workflow_name TEXT,
                status TEXT NOT NULL,
                create_time TEXT NOT NULL,
                body TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                task_id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                task_type TEXT NOT NULL,
                status TEXT NOT NULL,
                scheduled_time TEXT NOT NULL,
                body TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_workflow ON tasks (workflow_id)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.rowcount

    def _executemany(self, query: str, rows: List[tuple]) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.executemany(query, rows)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _task_row(task: TaskRecord) -> tuple:
        return (
            task.task_id,
            task.workflow_id,
            task.task_type,
            task.status,
            task.scheduled_time.isoformat(),
            task.model_dump_json(by_alias=True),
        )

    @staticmethod
    def _to_task(row: sqlite3.Row) -> TaskRecord:
        return TaskRecord.model_validate_json(row["body"])

    def _to_workflow(self, row: sqlite3.Row, include_tasks: bool) -> WorkflowRecord:
        wf = WorkflowRecord.model_validate_json(row["body"])
        if include_tasks:
            wf.tasks = self.get_tasks_for_workflow(wf.workflow_id)
        return wf

    # ------------------------------------------------------------------
    # Repository API
    def create_workflow(self, workflow: WorkflowRecord) -> str:
        body = workflow.model_copy(update={"tasks": []}).model_dump_json(by_alias=True)
        self._execute(
            """
            INSERT OR REPLACE INTO workflows
                (workflow_id, workflow_name, status, create_time, body)
            VALUES (?, ?, ?, ?, ?)
            """,
            workflow.workflow_id,
            workflow.name,
            workflow.status,
            workflow.create_time.isoformat(),
            body,
        )
        return workflow.workflow_id

    def update_workflow(self, workflow: WorkflowRecord) -> str:
        return self.create_workflow(workflow)

    def remove_workflow(self, workflow_id: str) -> bool:
        self._execute("DELETE FROM tasks WHERE workflow_id = ?", workflow_id)
        return self._execute("DELETE FROM workflows WHERE workflow_id = ?", workflow_id) > 0

    def get_workflow(
        self, workflow_id: str, include_tasks: bool = True
    ) -> Optional[WorkflowRecord]:
        row = self._fetchone("SELECT body FROM workflows WHERE workflow_id = ?", workflow_id)
        if not row:
            return None
        return self._to_workflow(row, include_tasks)

    def get_running_workflow_ids(self, workflow_name: str) -> List[str]:
        rows = self._fetchall(
            "SELECT workflow_id FROM workflows WHERE workflow_name = ? AND status = 'RUNNING' ORDER BY create_time",
            workflow_name,
        )
        return [r["workflow_id"] for r in rows]

    def get_running_workflow_count(self, workflow_name: str) -> int:
        row = self._fetchone(
            "SELECT COUNT(*) AS n FROM workflows WHERE workflow_name = ? AND status = 'RUNNING'",
            workflow_name,
        )
        return int(row["n"]) if row else 0

    def get_pending_workflows(self, workflow_name: str) -> List[WorkflowRecord]:
        rows = self._fetchall(
            "SELECT body FROM workflows WHERE workflow_name = ? AND status = 'RUNNING' ORDER BY create_time",
            workflow_name,
        )
        return [self._to_workflow(r, include_tasks=False) for r in rows]

    def get_workflows_by_time(
        self, workflow_name: str, start_time: datetime, end_time: datetime
    ) -> List[WorkflowRecord]:
        rows = self._fetchall(
            "SELECT body FROM workflows WHERE workflow_name = ? ORDER BY create_time",
            workflow_name,
        )
        workflows = [self._to_workflow(r, include_tasks=True) for r in rows]
        return [wf for wf in workflows if start_time <= wf.create_time <= end_time]

    def create_task(self, task: TaskRecord) -> None:
        self.bulk_create_tasks([task])

    def bulk_create_tasks(self, tasks: List[TaskRecord]) -> None:
        self._executemany(
            """
            INSERT OR REPLACE INTO tasks
                (task_id, workflow_id, task_type, status, scheduled_time, body)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [self._task_row(t) for t in tasks],
        )

    def update_task(self, task: TaskRecord) -> None:
        self.create_task(task)

    def remove_task(self, task_id: str) -> bool:
        return self._execute("DELETE FROM tasks WHERE task_id = ?", task_id) > 0

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        row = self._fetchone("SELECT body FROM tasks WHERE task_id = ?", task_id)
        return self._to_task(row) if row else None

    def get_tasks(self, task_ids: List[str]) -> List[TaskRecord]:
        if not task_ids:
            return []
        placeholders = ", ".join("?" for _ in task_ids)
        rows = self._fetchall(
            f"SELECT task_id, body FROM tasks WHERE task_id IN ({placeholders})",
            *task_ids,
        )
        by_id = {r["task_id"]: self._to_task(r) for r in rows}
        return [by_id[task_id] for task_id in task_ids if task_id in by_id]

    def get_tasks_for_workflow(self, workflow_id: str) -> List[TaskRecord]:
        rows = self._fetchall(
            "SELECT body FROM tasks WHERE workflow_id = ? ORDER BY scheduled_time",
            workflow_id,
        )
        return [self._to_task(r) for r in rows]

    def get_queued_tasks_for_type(self, task_type: str) -> List[TaskRecord]:
        rows = self._fetchall(
            "SELECT body FROM tasks WHERE task_type = ? AND status = 'SCHEDULED' ORDER BY scheduled_time",
            task_type,
        )
        return [self._to_task(r) for r in rows]

    def get_task_count(self, task_type: str) -> int:
        row = self._fetchone("SELECT COUNT(*) AS n FROM tasks WHERE task_type = ?", task_type)
        return int(row["n"]) if row else 0

    def close(self) -> None:
        with self._lock:
            self._conn.close()
