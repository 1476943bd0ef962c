"""Persistence layer for execution records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CryptConfig, load_config
from ..crypto import get_crypto_provider
from ..resolver import ConfigResolver
from ..transform import PathTransformEngine
from .encrypting import EncryptingExecutionRepository
from .inmemory import InMemoryExecutionRepository
from .repository import ExecutionRepository
from .sqlite import SQLiteExecutionRepository


def get_repository(
    database_url: Optional[str] = None, config: Optional[CryptConfig] = None
) -> ExecutionRepository:
    """Factory function to obtain a plain execution repository.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``CONDUCTOR_CRYPT_DATABASE_URL``, or
    from loaded configuration. When no database is configured, an in-memory
    repository is returned.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("CONDUCTOR_CRYPT_DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        return InMemoryExecutionRepository()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteExecutionRepository(path)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_encrypting_repository(
    delegate: Optional[ExecutionRepository] = None,
    config: Optional[CryptConfig] = None,
) -> EncryptingExecutionRepository:
    """Wrap ``delegate`` (or the configured repository) with encryption."""

    config = config or load_config()
    delegate = delegate or get_repository(config=config)
    engine = PathTransformEngine(get_crypto_provider(config))
    resolver = ConfigResolver(default_key_id=config.encryption.default_client_id)
    return EncryptingExecutionRepository(delegate, engine, resolver)


__all__ = [
    "EncryptingExecutionRepository",
    "ExecutionRepository",
    "InMemoryExecutionRepository",
    "SQLiteExecutionRepository",
    "get_encrypting_repository",
    "get_repository",
]
