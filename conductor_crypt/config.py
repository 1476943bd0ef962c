from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_CLIENT_ID


class KeyStoreConfig(BaseModel):
    """Configuration for the key store backing the crypto provider."""

    backend: Literal["static", "file", "http"] = "static"
    keys: Dict[str, str] = Field(
        default_factory=dict, description="key id -> base64 or hex key (static)"
    )
    directory: Optional[str] = None
    url: Optional[str] = None
    token: Optional[str] = None
    timeout: float = 5.0
    cache: bool = True


class EncryptionConfig(BaseModel):
    """Defaults applied when no layer of a record configures a value."""

    default_client_id: str = DEFAULT_CLIENT_ID


class CryptConfig(BaseModel):
    """Top-level configuration model."""

    key_store: KeyStoreConfig = Field(default_factory=KeyStoreConfig)
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> CryptConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CONDUCTOR_CRYPT_CONFIG
            env variable or 'conductor-crypt.yaml' in the current directory.
    """

    config_path = path or os.getenv("CONDUCTOR_CRYPT_CONFIG", "conductor-crypt.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CryptConfig(**data)
    else:
        config = CryptConfig()

    env_db_url = os.getenv("CONDUCTOR_CRYPT_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_token = os.getenv("CONDUCTOR_CRYPT_KEY_TOKEN")
    if env_token:
        config.key_store.token = env_token
    return config
