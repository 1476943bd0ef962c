"""Per-record resolution of encryption settings.

Each setting is looked up through an ordered list of layers. A layer whose
key is absent, or holds a value of the wrong type, is skipped; a mismatch is
logged and never raised to the caller.

============  =======================================================
setting       precedence (first match wins)
============  =======================================================
key id        task input ``clientId``, task definition ``_clientId``,
              workflow input ``clientId``, workflow variables
              ``clientId``, configured default
enabled       task input ``_enableEncryption``, workflow input
              ``_enableEncryption``, workflow definition
              ``_defaultEncryptionEnabled``, ``False``
paths         task definition ``_sensitivePaths``, workflow definition
              ``_sensitivePaths``, empty
============  =======================================================
"""

from __future__ import annotations

import logging
from typing import Any, Callable, FrozenSet, List, Mapping, Optional, Tuple

from .constants import (
    CLIENT_ID_INPUT_KEY,
    CLIENT_ID_KEY,
    DEFAULT_CLIENT_ID,
    DEFAULT_ENCRYPTION_ENABLED_KEY,
    ENABLE_ENCRYPTION_KEY,
    ENCRYPTED_PREFIX,
    SENSITIVE_PATHS_KEY,
)
from .errors import ConfigResolutionWarning, InvalidPathError
from .models import EncryptionContext, TaskRecord, WorkflowRecord, WorkflowTask
from .transform.paths import normalize

logger = logging.getLogger(__name__)

# (label, source mapping, key)
Layer = Tuple[str, Optional[Mapping[str, Any]], str]

_MISSING = object()


def _checked(value: Any, expected: type, label: str, key: str) -> Any:
    if expected is bool:
        valid = type(value) is bool
    else:
        valid = isinstance(value, expected)
    if not valid:
        raise ConfigResolutionWarning(
            f"'{key}' at {label} is {type(value).__name__}, expected {expected.__name__}"
        )
    return value


class ConfigResolver:
    """Compute the :class:`EncryptionContext` for a workflow or task payload."""

    def __init__(self, default_key_id: str = DEFAULT_CLIENT_ID) -> None:
        self.default_key_id = default_key_id

    # ------------------------------------------------------------------
    # Layer walking
    def _first(
        self,
        layers: List[Layer],
        expected: type,
        validate: Optional[Callable[[Any], None]] = None,
    ) -> Any:
        for label, source, key in layers:
            if not source or key not in source:
                continue
            try:
                value = _checked(source[key], expected, label, key)
                if validate is not None:
                    validate(value)
            except ConfigResolutionWarning as w:
                logger.warning(f"Ignoring malformed configuration: {w}")
                continue
            logger.debug(f"Resolved '{key}' from {label}")
            return value
        return _MISSING

    @staticmethod
    def _task_def(
        workflow: Optional[WorkflowRecord], task: Optional[TaskRecord]
    ) -> Optional[WorkflowTask]:
        if task is None or workflow is None or workflow.workflow_definition is None:
            return None
        return workflow.workflow_definition.get_task_by_ref_name(task.reference_task_name)

    @staticmethod
    def _workflow_template(workflow: Optional[WorkflowRecord]) -> Optional[Mapping[str, Any]]:
        if workflow is None or workflow.workflow_definition is None:
            return None
        return workflow.workflow_definition.input_template

    # ------------------------------------------------------------------
    # Public API
    def resolve_key_id(
        self, workflow: Optional[WorkflowRecord], task: Optional[TaskRecord] = None
    ) -> str:
        task_def = self._task_def(workflow, task)
        layers: List[Layer] = [
            ("task input", task.input if task else None, CLIENT_ID_INPUT_KEY),
            ("task definition", task_def.input_template if task_def else None, CLIENT_ID_KEY),
            ("workflow input", workflow.input if workflow else None, CLIENT_ID_INPUT_KEY),
            ("workflow variables", workflow.variables if workflow else None, CLIENT_ID_INPUT_KEY),
        ]

        def usable(value: str) -> None:
            if not value:
                raise ConfigResolutionWarning("client id is empty")
            if value.startswith(ENCRYPTED_PREFIX):
                raise ConfigResolutionWarning("client id is itself encrypted")

        key_id = self._first(layers, str, usable)
        if key_id is _MISSING:
            logger.debug(f"No client id configured, using default {self.default_key_id}")
            return self.default_key_id
        return key_id

    def is_enabled(
        self, workflow: Optional[WorkflowRecord], task: Optional[TaskRecord] = None
    ) -> bool:
        layers: List[Layer] = [
            ("task input", task.input if task else None, ENABLE_ENCRYPTION_KEY),
            ("workflow input", workflow.input if workflow else None, ENABLE_ENCRYPTION_KEY),
            ("workflow definition", self._workflow_template(workflow), DEFAULT_ENCRYPTION_ENABLED_KEY),
        ]
        enabled = self._first(layers, bool)
        return False if enabled is _MISSING else enabled

    def sensitive_paths(
        self, workflow: Optional[WorkflowRecord], task: Optional[TaskRecord] = None
    ) -> FrozenSet[str]:
        """Task-level paths replace workflow-level paths entirely."""
        task_def = self._task_def(workflow, task)
        layers: List[Layer] = [
            ("task definition", task_def.input_template if task_def else None, SENSITIVE_PATHS_KEY),
            ("workflow definition", self._workflow_template(workflow), SENSITIVE_PATHS_KEY),
        ]
        raw = self._first(layers, list)
        if raw is _MISSING:
            return frozenset()

        paths = set()
        for entry in raw:
            if not isinstance(entry, str):
                logger.warning(
                    f"Ignoring {type(entry).__name__} entry in '{SENSITIVE_PATHS_KEY}'"
                )
                continue
            try:
                paths.add(normalize(entry))
            except InvalidPathError as e:
                logger.warning(f"Ignoring sensitive path: {e}")
        return frozenset(paths)

    def resolve(
        self, workflow: Optional[WorkflowRecord], task: Optional[TaskRecord] = None
    ) -> EncryptionContext:
        """Resolve all settings for one payload."""
        return EncryptionContext(
            enabled=self.is_enabled(workflow, task),
            key_id=self.resolve_key_id(workflow, task),
            sensitive_paths=self.sensitive_paths(workflow, task),
        )
