"""Reserved metadata keys and encoding constants."""

ENCRYPTED_PREFIX = "ENC:"

DEFAULT_CLIENT_ID = "GLOBAL_DEFAULT_CLIENT"

# Execution data keys
CLIENT_ID_INPUT_KEY = "clientId"
ENABLE_ENCRYPTION_KEY = "_enableEncryption"

# Definition template keys
CLIENT_ID_KEY = "_clientId"
SENSITIVE_PATHS_KEY = "_sensitivePaths"
DEFAULT_ENCRYPTION_ENABLED_KEY = "_defaultEncryptionEnabled"

NONCE_SIZE = 12  # 96 bits, standard for GCM
VALID_KEY_SIZES = (16, 24, 32)
