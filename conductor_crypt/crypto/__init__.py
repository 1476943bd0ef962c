"""Crypto provider and key store factory."""

from __future__ import annotations

from typing import Optional

from ..config import CryptConfig, load_config
from .cipher import CryptoProvider, generate_key
from .keys import (
    FileKeyStore,
    HttpKeyStore,
    KeyCache,
    KeyStore,
    StaticKeyStore,
    decode_key,
)


def get_key_store(config: Optional[CryptConfig] = None) -> KeyStore:
    """Factory function to get the configured key store."""

    config = config or load_config()
    ks_conf = config.key_store
    backend = ks_conf.backend.lower()

    if backend == "static":
        return StaticKeyStore(ks_conf.keys)
    elif backend == "file":
        if not ks_conf.directory:
            raise ValueError("File key store requires 'key_store.directory'")
        return FileKeyStore(ks_conf.directory)
    elif backend == "http":
        if not ks_conf.url:
            raise ValueError("HTTP key store requires 'key_store.url'")
        return HttpKeyStore(ks_conf.url, token=ks_conf.token, timeout=ks_conf.timeout)
    else:
        raise ValueError(f"Unsupported key store backend: {backend}")


def get_crypto_provider(config: Optional[CryptConfig] = None) -> CryptoProvider:
    """Build a crypto provider over the configured key store."""

    config = config or load_config()
    cache = KeyCache() if config.key_store.cache else None
    return CryptoProvider(get_key_store(config), cache=cache)


__all__ = [
    "CryptoProvider",
    "FileKeyStore",
    "HttpKeyStore",
    "KeyCache",
    "KeyStore",
    "StaticKeyStore",
    "decode_key",
    "generate_key",
    "get_crypto_provider",
    "get_key_store",
]
