"""Path-targeted transformation of JSON payloads."""

from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional

from ..constants import ENCRYPTED_PREFIX
from ..crypto import CryptoProvider
from ..errors import (
    ConductorCryptError,
    InvalidPathError,
    NonStringLeaf,
    PathFailure,
    PathNotFound,
    TransformError,
)
from ..models import EncryptionContext
from .paths import JsonValue, read_string, write_value

logger = logging.getLogger(__name__)

# Receives the current string value and its path; returns the replacement,
# or None to leave the leaf untouched.
LeafTransform = Callable[[str, str], Optional[str]]


class TransformMode(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class PathTransformEngine:
    """Rewrite the string leaves addressed by a set of paths.

    Everything not addressed is returned untouched. The input is never
    mutated: a deep copy is taken the first time a leaf changes, so a
    payload without anything to rewrite comes back as the same object.
    """

    def __init__(self, provider: CryptoProvider, marker: str = ENCRYPTED_PREFIX) -> None:
        self.provider = provider
        self.marker = marker

    def is_encrypted(self, value: object) -> bool:
        return isinstance(value, str) and value.startswith(self.marker)

    def apply(
        self,
        record: JsonValue,
        paths: Iterable[str],
        mode: TransformMode,
        ctx: EncryptionContext,
        *,
        strict: bool = True,
    ) -> JsonValue:
        """Encrypt or decrypt the leaves of ``record`` addressed by ``paths``.

        Raises:
            TransformError: When ``strict`` and at least one path failed.
                All paths are attempted before raising.
        """
        if not record or not ctx.enabled or not paths:
            return record

        if mode is TransformMode.ENCRYPT:
            leaf = self._encrypt_leaf(ctx.key_id)
        else:
            leaf = self._decrypt_leaf(ctx.key_id)
        return self.transform(record, paths, leaf, label=mode.value, strict=strict)

    def transform(
        self,
        record: JsonValue,
        paths: Iterable[str],
        leaf: LeafTransform,
        *,
        label: str = "transform",
        strict: bool = True,
    ) -> JsonValue:
        """Run ``leaf`` over every string addressed by ``paths``."""
        if not record:
            return record

        result = record
        copied = False
        failures: List[PathFailure] = []
        for path in sorted(set(paths)):
            try:
                value = read_string(result, path)
            except PathNotFound:
                logger.debug(f"Path {path} not present, skipping {label}")
                continue
            except NonStringLeaf as e:
                logger.warning(f"Skipping {label} of {path}: {e}")
                continue
            except InvalidPathError as e:
                logger.warning(f"Skipping {label} of malformed path: {e}")
                continue

            try:
                replacement = leaf(value, path)
            except ConductorCryptError as e:
                logger.error(f"Failed to {label} path {path}: {e}")
                failures.append(PathFailure(path=path, error=e))
                continue

            if replacement is None or replacement == value:
                continue
            if not copied:
                result = copy.deepcopy(record)
                copied = True
            write_value(result, path, replacement)
            logger.debug(f"Applied {label} to path {path}")

        if failures and strict:
            raise TransformError(label, failures)
        return result

    def _encrypt_leaf(self, key_id: str) -> LeafTransform:
        def encrypt(value: str, path: str) -> Optional[str]:
            if self.is_encrypted(value):
                logger.debug(f"Path {path} already encrypted")
                return None
            return self.marker + self.provider.encrypt(value, key_id)

        return encrypt

    def _decrypt_leaf(self, key_id: str) -> LeafTransform:
        def decrypt(value: str, path: str) -> Optional[str]:
            if not self.is_encrypted(value):
                return None
            return self.provider.decrypt(value[len(self.marker):], key_id)

        return decrypt
