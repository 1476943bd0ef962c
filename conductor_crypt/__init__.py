"""conductor-crypt: field-level encryption for workflow execution records."""

from .config import CryptConfig, load_config
from .crypto import CryptoProvider, KeyCache, KeyStore, StaticKeyStore, get_crypto_provider
from .errors import (
    ConductorCryptError,
    CryptoOperationError,
    KeyResolutionError,
    RecordDecryptionError,
    RecordEncryptionError,
)
from .models import EncryptionContext, TaskRecord, WorkflowDef, WorkflowRecord, WorkflowTask
from .persistence import (
    EncryptingExecutionRepository,
    get_encrypting_repository,
    get_repository,
)
from .resolver import ConfigResolver
from .transform import PathTransformEngine, TransformMode

__version__ = "0.1.0"
__all__ = [
    "ConductorCryptError",
    "ConfigResolver",
    "CryptConfig",
    "CryptoOperationError",
    "CryptoProvider",
    "EncryptingExecutionRepository",
    "EncryptionContext",
    "KeyCache",
    "KeyResolutionError",
    "KeyStore",
    "PathTransformEngine",
    "RecordDecryptionError",
    "RecordEncryptionError",
    "StaticKeyStore",
    "TaskRecord",
    "TransformMode",
    "WorkflowDef",
    "WorkflowRecord",
    "WorkflowTask",
    "get_crypto_provider",
    "get_encrypting_repository",
    "get_repository",
    "load_config",
]
