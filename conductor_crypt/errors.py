"""Exception hierarchy for conductor-crypt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class ConductorCryptError(Exception):
    """Base exception for all conductor-crypt errors."""


class ConfigResolutionWarning(UserWarning):
    """A configuration layer holds a value of the wrong type.

    Raised and caught inside the resolver; the layer is treated as absent.
    """


class InvalidPathError(ConductorCryptError, ValueError):
    """A path expression could not be parsed."""


class PathNotFound(ConductorCryptError, LookupError):
    """No value exists at the addressed path."""


class NonStringLeaf(ConductorCryptError, TypeError):
    """The addressed value exists but is not a string."""


class KeyResolutionError(ConductorCryptError):
    """The key store is unreachable or does not know ``key_id``."""

    def __init__(self, key_id: str, message: str) -> None:
        super().__init__(f"Cannot resolve key '{key_id}': {message}")
        self.key_id = key_id


class CryptoOperationError(ConductorCryptError):
    """A cipher operation failed (corrupt ciphertext, tag mismatch, ...)."""


@dataclass(frozen=True)
class PathFailure:
    """A single path that failed during a transform."""

    path: str
    error: Exception


class TransformError(ConductorCryptError):
    """One or more paths failed during a transform."""

    def __init__(self, mode: str, failures: Sequence[PathFailure]) -> None:
        paths = ", ".join(f.path for f in failures)
        super().__init__(f"{mode} failed for {len(failures)} path(s): {paths}")
        self.mode = mode
        self.failures = list(failures)


class RecordCryptError(ConductorCryptError):
    """Encryption or decryption of an execution record failed."""

    def __init__(
        self,
        record_kind: str,
        record_id: str | None,
        failures: Sequence[PathFailure] = (),
        message: str | None = None,
    ) -> None:
        self.record_kind = record_kind
        self.record_id = record_id
        self.failures = list(failures)
        if message is None:
            paths = ", ".join(f.path for f in self.failures) or "n/a"
            message = f"{self._action} failed for {record_kind} {record_id} (paths: {paths})"
        super().__init__(message)

    _action = "Processing"

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.failures]


class RecordEncryptionError(RecordCryptError):
    """Write-time failure. Nothing was persisted."""

    _action = "Encryption"


class RecordDecryptionError(RecordCryptError):
    """Read-time failure. The record was not returned."""

    _action = "Decryption"
