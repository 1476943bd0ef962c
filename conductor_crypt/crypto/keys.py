"""Key stores and the key cache used by the crypto provider."""

from __future__ import annotations

import abc
import base64
import binascii
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

import requests

from ..constants import VALID_KEY_SIZES
from ..errors import KeyResolutionError

logger = logging.getLogger(__name__)


def decode_key(raw: bytes | str, key_id: str) -> bytes:
    """Decode key material given as hex, base64 or raw bytes.

    Encodings are tried first, on the stripped input, so text read from a
    file or service decodes the same way wherever it comes from. Hex goes
    before base64 since every hex string is also valid base64. Bytes are
    taken as the raw key only when neither encoding yields a valid length.

    Raises:
        KeyResolutionError: If no interpretation yields a valid AES key length.
    """
    if isinstance(raw, str):
        raw_bytes = None
        stripped = raw.strip().encode("utf-8")
    else:
        raw_bytes = raw
        stripped = raw.strip()

    try:
        decoded = bytes.fromhex(stripped.decode("ascii"))
        if len(decoded) in VALID_KEY_SIZES:
            return decoded
    except (UnicodeDecodeError, ValueError):
        pass

    try:
        decoded = base64.b64decode(stripped, validate=True)
        if len(decoded) in VALID_KEY_SIZES:
            return decoded
    except (binascii.Error, ValueError):
        pass

    if raw_bytes is not None and len(raw_bytes) in VALID_KEY_SIZES:
        return raw_bytes

    raise KeyResolutionError(
        key_id, f"key material must decode to {VALID_KEY_SIZES} bytes"
    )


class KeyStore(metaclass=abc.ABCMeta):
    """Abstract source of symmetric keys addressed by identifier."""

    @abc.abstractmethod
    def get_key(self, key_id: str) -> bytes:
        """Return the raw key for ``key_id``.

        Raises:
            KeyResolutionError: If the id is unknown or the store is unreachable.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release store resources (no-op by default)."""
        pass


class StaticKeyStore(KeyStore):
    """Keys held in process memory, typically loaded from configuration."""

    def __init__(self, keys: Mapping[str, bytes | str]) -> None:
        self._keys: Dict[str, bytes] = {
            key_id: decode_key(material, key_id) for key_id, material in keys.items()
        }

    def get_key(self, key_id: str) -> bytes:
        try:
            return self._keys[key_id]
        except KeyError:
            raise KeyResolutionError(key_id, "unknown key id") from None


class FileKeyStore(KeyStore):
    """One ``<key_id>.key`` file per key inside ``directory``."""

    def __init__(self, directory: str | Path, suffix: str = ".key") -> None:
        self.directory = Path(directory)
        self.suffix = suffix

    def _path_for(self, key_id: str) -> Path:
        if not key_id or "/" in key_id or "\\" in key_id or key_id.startswith("."):
            raise KeyResolutionError(key_id, "invalid key id for file store")
        return self.directory / f"{key_id}{self.suffix}"

    def get_key(self, key_id: str) -> bytes:
        path = self._path_for(key_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise KeyResolutionError(key_id, f"key file not found: {path}") from None
        except OSError as e:
            raise KeyResolutionError(key_id, f"failed to read key file: {e}") from e
        return decode_key(raw, key_id)


class HttpKeyStore(KeyStore):
    """Fetch keys from a remote key service.

    Issues ``GET {url}/keys/{key_id}`` and expects a JSON body of the form
    ``{"key": "<base64>"}``.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def get_key(self, key_id: str) -> bytes:
        try:
            resp = self._session.get(f"{self.url}/keys/{key_id}", timeout=self.timeout)
        except requests.RequestException as e:
            raise KeyResolutionError(key_id, f"key service unreachable: {e}") from e

        if resp.status_code == 404:
            raise KeyResolutionError(key_id, "unknown key id")
        try:
            resp.raise_for_status()
            material = resp.json()["key"]
        except requests.HTTPError as e:
            raise KeyResolutionError(key_id, f"key service error: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise KeyResolutionError(key_id, "malformed key service response") from e
        return decode_key(material, key_id)

    def close(self) -> None:
        self._session.close()


class KeyCache:
    """Thread-safe cache of resolved keys.

    Reads go straight to the dictionary. A miss takes a lock held for that
    key id only, re-checks and loads once, so concurrent callers asking for
    the same id share one fetch while other ids are not held up by it.
    """

    def __init__(self) -> None:
        self._keys: Dict[str, bytes] = {}
        self._load_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _load_lock(self, key_id: str) -> threading.Lock:
        with self._lock:
            return self._load_locks.setdefault(key_id, threading.Lock())

    def get_or_load(self, key_id: str, loader: Callable[[str], bytes]) -> bytes:
        key = self._keys.get(key_id)
        if key is not None:
            return key
        with self._load_lock(key_id):
            key = self._keys.get(key_id)
            if key is None:
                key = loader(key_id)
                with self._lock:
                    self._keys[key_id] = key
                logger.debug(f"Cached key for key_id={key_id}")
        return key

    def invalidate(self, key_id: str) -> None:
        with self._lock:
            self._keys.pop(key_id, None)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()
            self._load_locks.clear()

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._keys

    def __len__(self) -> int:
        return len(self._keys)
