"""Tests for key stores, the key cache and the AES-GCM provider."""

import base64
import threading
import time

import pytest
import requests

from conductor_crypt.crypto import (
    CryptoProvider,
    FileKeyStore,
    HttpKeyStore,
    KeyCache,
    KeyStore,
    StaticKeyStore,
    decode_key,
    generate_key,
)
from conductor_crypt.errors import CryptoOperationError, KeyResolutionError

KEY = b"k" * 32
RAW_KEY = bytes(range(32))


def test_decode_key_formats():
    assert decode_key(RAW_KEY, "raw") == RAW_KEY
    assert decode_key(base64.b64encode(KEY).decode(), "b64") == KEY
    assert decode_key(KEY.hex(), "hex") == KEY
    assert decode_key(base64.b64encode(KEY) + b"\n", "b64-file") == KEY
    with pytest.raises(KeyResolutionError):
        decode_key("tooshort", "bad")


def test_decode_key_prefers_encodings_over_raw_bytes():
    short = b"K" * 16
    # both encodings are themselves a valid AES key length
    assert decode_key(base64.b64encode(short), "b64") == short
    assert decode_key(short.hex().encode(), "hex") == short


def test_static_key_store_unknown_id():
    store = StaticKeyStore({"clientA": base64.b64encode(KEY).decode()})
    assert store.get_key("clientA") == KEY
    with pytest.raises(KeyResolutionError) as exc_info:
        store.get_key("clientB")
    assert exc_info.value.key_id == "clientB"


def test_file_key_store(tmp_path):
    (tmp_path / "clientA.key").write_text(base64.b64encode(KEY).decode() + "\n")
    store = FileKeyStore(tmp_path)
    assert store.get_key("clientA") == KEY
    with pytest.raises(KeyResolutionError):
        store.get_key("missing")
    with pytest.raises(KeyResolutionError):
        store.get_key("../clientA")


@pytest.mark.parametrize("encode", [lambda k: base64.b64encode(k), lambda k: k.hex().encode()])
def test_file_key_store_128_bit_without_newline(tmp_path, encode):
    short = b"K" * 16
    (tmp_path / "clientA.key").write_bytes(encode(short))
    static = StaticKeyStore({"clientA": encode(short).decode()})
    assert FileKeyStore(tmp_path).get_key("clientA") == static.get_key("clientA") == short


class _FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._body


class _FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.headers = {}
        self.requested = []

    def get(self, url, timeout):
        self.requested.append(url)
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


def test_http_key_store():
    session = _FakeSession(
        {
            "https://kms/keys/clientA": _FakeResponse(200, {"key": base64.b64encode(KEY).decode()}),
            "https://kms/keys/gone": _FakeResponse(404, {}),
            "https://kms/keys/broken": _FakeResponse(200, {"unexpected": True}),
            "https://kms/keys/down": requests.ConnectionError("refused"),
        }
    )
    store = HttpKeyStore("https://kms/", token="t0ken", session=session)

    assert store.get_key("clientA") == KEY
    assert session.headers["Authorization"] == "Bearer t0ken"
    for key_id in ("gone", "broken", "down"):
        with pytest.raises(KeyResolutionError):
            store.get_key(key_id)


def test_key_cache_loads_once_under_concurrency():
    cache = KeyCache()
    loads = []

    def loader(key_id):
        loads.append(key_id)
        time.sleep(0.01)
        return KEY

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(cache.get_or_load("clientA", loader)))
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert loads == ["clientA"]
    assert results == [KEY] * 8
    assert "clientA" in cache


def test_key_cache_slow_load_does_not_block_other_ids():
    cache = KeyCache()
    started = threading.Event()
    release = threading.Event()

    def slow(key_id):
        started.set()
        release.wait(5)
        return KEY

    worker = threading.Thread(target=cache.get_or_load, args=("slow", slow))
    worker.start()
    assert started.wait(5)

    assert cache.get_or_load("fast", lambda key_id: RAW_KEY) == RAW_KEY
    assert "slow" not in cache

    release.set()
    worker.join()
    assert cache.get_or_load("slow", slow) == KEY


def test_key_cache_does_not_store_failures():
    cache = KeyCache()

    def failing(key_id):
        raise KeyResolutionError(key_id, "unreachable")

    with pytest.raises(KeyResolutionError):
        cache.get_or_load("clientA", failing)
    assert len(cache) == 0


def test_provider_round_trip_and_wire_format():
    provider = CryptoProvider(StaticKeyStore({"c": base64.b64encode(KEY).decode()}))
    ciphertext = provider.encrypt("123-45-6789", "c")

    blob = base64.b64decode(ciphertext)
    # nonce + plaintext + tag
    assert len(blob) == 12 + len("123-45-6789") + 16
    assert provider.decrypt(ciphertext, "c") == "123-45-6789"
    assert provider.encrypt("123-45-6789", "c") != ciphertext


def test_provider_binds_key_id():
    material = base64.b64encode(KEY).decode()
    provider = CryptoProvider(StaticKeyStore({"a": material, "b": material}))
    ciphertext = provider.encrypt("value", "a")
    with pytest.raises(CryptoOperationError):
        provider.decrypt(ciphertext, "b")


@pytest.mark.parametrize("ciphertext", ["not base64!", base64.b64encode(b"short").decode()])
def test_provider_rejects_malformed_ciphertext(ciphertext):
    provider = CryptoProvider(StaticKeyStore({"c": KEY.hex()}))
    with pytest.raises(CryptoOperationError):
        provider.decrypt(ciphertext, "c")


def test_provider_rejects_tampered_ciphertext():
    provider = CryptoProvider(StaticKeyStore({"c": KEY.hex()}))
    blob = bytearray(base64.b64decode(provider.encrypt("value", "c")))
    blob[-1] ^= 0x01
    with pytest.raises(CryptoOperationError):
        provider.decrypt(base64.b64encode(bytes(blob)).decode(), "c")


class _BadKeyStore(KeyStore):
    def get_key(self, key_id):
        return b"not-an-aes-key"


def test_provider_reports_invalid_key_length_as_crypto_error():
    provider = CryptoProvider(_BadKeyStore())
    with pytest.raises(CryptoOperationError):
        provider.encrypt("value", "c")
    with pytest.raises(CryptoOperationError):
        provider.decrypt(base64.b64encode(bytes(40)).decode(), "c")


def test_provider_close_clears_cache():
    cache = KeyCache()
    with CryptoProvider(StaticKeyStore({"c": KEY.hex()}), cache=cache) as provider:
        provider.encrypt("value", "c")
        assert "c" in cache
    assert len(cache) == 0


def test_generate_key_lengths():
    assert len(generate_key()) == 32
    assert len(generate_key(128)) == 16
