"""AES-GCM crypto provider for leaf values.

Wire format of an encrypted value (before the ``ENC:`` marker is added)::

    base64( nonce (12 bytes) || ciphertext || auth tag (16 bytes) )

A fresh random nonce is generated for every call and the key id is bound as
associated data, so a value sealed for one client cannot be opened under
another client's id even when both map to the same key.
"""

from __future__ import annotations

import base64
import binascii
import logging
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..constants import NONCE_SIZE
from ..errors import CryptoOperationError
from .keys import KeyCache, KeyStore

logger = logging.getLogger(__name__)

AUTH_TAG_SIZE = 16


def generate_key(bit_length: int = 256) -> bytes:
    """Return new random key material suitable for the provider."""
    return AESGCM.generate_key(bit_length=bit_length)


class CryptoProvider:
    """Encrypt and decrypt strings with keys looked up by id.

    Args:
        key_store: Source of keys.
        cache: Optional key cache owned by this provider. Cleared on
            :meth:`close`.
    """

    def __init__(self, key_store: KeyStore, cache: Optional[KeyCache] = None) -> None:
        self.key_store = key_store
        self.cache = cache

    def get_key(self, key_id: str) -> bytes:
        if self.cache is None:
            return self.key_store.get_key(key_id)
        return self.cache.get_or_load(key_id, self.key_store.get_key)

    def encrypt(self, plaintext: str, key_id: str) -> str:
        """Encrypt ``plaintext`` with the key for ``key_id``.

        Raises:
            KeyResolutionError: If the key cannot be obtained.
            CryptoOperationError: If the cipher fails.
        """
        key = self.get_key(key_id)
        nonce = secrets.token_bytes(NONCE_SIZE)
        try:
            sealed = AESGCM(key).encrypt(
                nonce, plaintext.encode("utf-8"), key_id.encode("utf-8")
            )
        except (ValueError, TypeError) as e:
            raise CryptoOperationError(f"Encryption failed: {e}") from e
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str, key_id: str) -> str:
        """Decrypt a value produced by :meth:`encrypt`.

        Raises:
            KeyResolutionError: If the key cannot be obtained.
            CryptoOperationError: On malformed input or authentication failure.
        """
        try:
            blob = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoOperationError("Ciphertext is not valid base64") from e
        if len(blob) < NONCE_SIZE + AUTH_TAG_SIZE:
            raise CryptoOperationError(
                f"Ciphertext too short: {len(blob)} bytes"
            )

        key = self.get_key(key_id)
        nonce, sealed = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            plaintext = AESGCM(key).decrypt(nonce, sealed, key_id.encode("utf-8"))
        except InvalidTag as e:
            raise CryptoOperationError(
                f"Authentication failed for key_id={key_id} (wrong key or tampered data)"
            ) from e
        except (ValueError, TypeError) as e:
            raise CryptoOperationError(f"Decryption failed: {e}") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoOperationError("Decrypted value is not valid UTF-8") from e

    def close(self) -> None:
        if self.cache is not None:
            self.cache.clear()
        self.key_store.close()
        logger.debug("Crypto provider closed")

    def __enter__(self) -> "CryptoProvider":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
