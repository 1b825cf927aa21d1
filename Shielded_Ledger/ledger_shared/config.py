import os

# Redis Connection (local key store)

REDIS_HOST              = os.environ.get("SL_REDIS_HOST", "localhost")
REDIS_PORT              = int(os.environ.get("SL_REDIS_PORT", "6379"))
REDIS_KEYSTORE_DB       = 0
REDIS_SOCKET_TIMEOUT    = 5          # seconds

# Key Namespace Prefixes

KEYSTORE_KEY_PREFIX     = "keystore:v1:enc"     # keystore:v1:enc:{identity_id}
KEYSTORE_LOCK_RETRIES   = 3

# Key Derivation

KEY_DERIVATION_MODE     = os.environ.get("SL_KEY_DERIVATION_MODE", "direct")   # "direct" | "hkdf"
VALID_DERIVATION_MODES  = {"direct", "hkdf"}
HKDF_INFO               = b"shielded-ledger-enc-v1"
SCALAR_MODULUS          = 2 ** 256

# Envelope

ENVELOPE_VERSION        = 1
BOX_PUBLIC_KEY_SIZE     = 32
BOX_SECRET_KEY_SIZE     = 32
BOX_NONCE_SIZE          = 24
BOX_MAC_SIZE            = 16

# Output Splitting

MIN_DUST_ATOMS          = 1_000      # 0.000001 SOL at 9 decimals

# Token id used when none is given

DEFAULT_TOKEN_ID        = 0

# Reconciliation

DECRYPT_MAX_WORKERS     = 8

# Messaging Relay / Overview Service

RELAY_BASE_URL          = os.environ.get("SL_SERVER_URL", "http://localhost:8788")
RELAY_AUTH_TOKEN        = os.environ.get("SL_AUTH_TOKEN")
HTTP_TIMEOUT_SECONDS    = 30.0
MESSAGES_PATH           = "/api/v1/messages"
OVERVIEW_PATH           = "/api/v1/account/overview"
DEFAULT_FETCH_LIMIT     = 100

# Note Publication

PUBLISH_RETRY_ATTEMPTS      = 3
PUBLISH_RETRY_BASE_DELAY    = 0.5     # seconds, doubled per attempt

# Valid Enums (for validation)

KIND_DEPOSIT            = "deposit"
KIND_TRANSFER           = "transfer"
VALID_MESSAGE_KINDS     = {KIND_DEPOSIT, KIND_TRANSFER}
