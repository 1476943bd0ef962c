import base64

import pytest

from conductor_crypt.crypto import CryptoProvider, KeyCache, StaticKeyStore
from conductor_crypt.models import TaskRecord, WorkflowDef, WorkflowRecord
from conductor_crypt.transform import PathTransformEngine

KEYS = {
    "clientA": base64.b64encode(b"A" * 32).decode(),
    "clientB": base64.b64encode(b"B" * 32).decode(),
    "GLOBAL_DEFAULT_CLIENT": base64.b64encode(b"D" * 32).decode(),
}

SECURE_WORKFLOW_DEF = {
    "name": "MyFullyDynamicSecureWorkflow",
    "version": 1,
    "inputTemplate": {
        "_defaultEncryptionEnabled": True,
        "_sensitivePaths": ["$.workflowMetadata.sensitiveId"],
    },
    "tasks": [
        {
            "name": "data_collection_task",
            "taskReferenceName": "collect_customer_data",
            "inputTemplate": {
                "_clientId": "clientA",
                "_sensitivePaths": ["$.customerInfo.ssn", "$.accountDetails.cardNumber"],
            },
        },
        {
            "name": "identity_verification_task",
            "taskReferenceName": "verify_identity",
            "inputTemplate": {
                "_clientId": "clientB",
                "_sensitivePaths": ["$.verificationData.documentId"],
            },
        },
        {
            "name": "non_sensitive_task",
            "taskReferenceName": "process_public_data",
            "inputTemplate": {},
        },
    ],
}


class CountingProvider(CryptoProvider):
    """Crypto provider recording how often the cipher is invoked."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.encrypt_calls = 0
        self.decrypt_calls = 0

    def encrypt(self, plaintext, key_id):
        self.encrypt_calls += 1
        return super().encrypt(plaintext, key_id)

    def decrypt(self, ciphertext, key_id):
        self.decrypt_calls += 1
        return super().decrypt(ciphertext, key_id)


@pytest.fixture
def key_store():
    return StaticKeyStore(KEYS)


@pytest.fixture
def provider(key_store):
    return CountingProvider(key_store, cache=KeyCache())


@pytest.fixture
def engine(provider):
    return PathTransformEngine(provider)


@pytest.fixture
def definition():
    return WorkflowDef.model_validate(SECURE_WORKFLOW_DEF)


@pytest.fixture
def workflow(definition):
    return WorkflowRecord(
        workflow_id="wf-1",
        input={
            "workflowMetadata": {"sensitiveId": "WF-SECRET-42"},
            "publicData": "visible",
        },
        workflow_definition=definition,
    )


@pytest.fixture
def customer_task():
    return TaskRecord(
        task_id="task-1",
        workflow_id="wf-1",
        task_type="data_collection_task",
        reference_task_name="collect_customer_data",
        input={
            "customerInfo": {"ssn": "123-45-6789", "name": "Ada"},
            "accountDetails": {"cardNumber": "4111111111111111"},
        },
    )


@pytest.fixture
def config_file(tmp_path):
    """YAML config with the test keys and a SQLite store under ``tmp_path``."""
    keys = "\n".join(f"    {key_id}: {material}" for key_id, material in KEYS.items())
    path = tmp_path / "conductor-crypt.yaml"
    path.write_text(
        f"""
key_store:
  backend: static
  keys:
{keys}
database_url: sqlite://{tmp_path / "exec.db"}
log_level: WARNING
"""
    )
    return path
