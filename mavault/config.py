"""
Configuration constants for MaVault.

Every tunable lives here so the generator, backup crypto, storage and the
terminal front end agree on the same values.
"""

import string

# ==============================================================================
# APPLICATION METADATA
# ==============================================================================

APP_NAME = "MaVault"
APP_VERSION = "1.0.0"

# ==============================================================================
# PASSWORD GENERATOR
# ==============================================================================

PASSWORD_MIN_LENGTH = 8        # Smallest length offered to users
PASSWORD_MAX_LENGTH = 128      # Largest length offered to users
PASSWORD_DEFAULT_LENGTH = 16

# Character alphabets used for generation
UPPERCASE_CHARS = string.ascii_uppercase   # 26
LOWERCASE_CHARS = string.ascii_lowercase   # 26
DIGIT_CHARS = string.digits                # 10
SYMBOL_CHARS = string.punctuation          # 32 ASCII punctuation characters

# Pool sizes used when scoring an arbitrary password
POOL_SIZE_LOWERCASE = 26
POOL_SIZE_UPPERCASE = 26
POOL_SIZE_DIGITS = 10
POOL_SIZE_SYMBOLS = 32

# Strength thresholds in bits of entropy (lower bound inclusive)
STRENGTH_THRESHOLD_FAIR = 28
STRENGTH_THRESHOLD_GOOD = 36
STRENGTH_THRESHOLD_STRONG = 60

# ==============================================================================
# BACKUP CRYPTO
# ==============================================================================

SALT_SIZE = 16      # Key-derivation salt (bytes)
IV_SIZE = 16        # AES-CBC initialization vector (bytes)
NONCE_SIZE = 12     # AES-GCM nonce (bytes)
TAG_SIZE = 16       # AES-GCM authentication tag (bytes)
KEY_SIZE = 32       # AES-256

# Legacy format: PBKDF2-HMAC-SHA1
PBKDF2_ITERATIONS = 10000

# AEAD format: Argon2id
ARGON2_TIME_COST = 2
ARGON2_MEMORY_COST = 65536  # KiB (64 MB)
ARGON2_PARALLELISM = 4

LEGACY_ENVELOPE_VERSION = "1.0"   # AES-256-CBC, no authentication
AEAD_ENVELOPE_VERSION = "2.0"     # AES-256-GCM
SUPPORTED_ENVELOPE_VERSIONS = (LEGACY_ENVELOPE_VERSION, AEAD_ENVELOPE_VERSION)
DEFAULT_ENVELOPE_VERSION = AEAD_ENVELOPE_VERSION

ENVELOPE_FIELDS = ("data", "iv", "salt", "version")

# ==============================================================================
# BACKUP PAYLOAD
# ==============================================================================

BACKUP_PAYLOAD_VERSION = "1.0"
BACKUP_FILE_EXTENSION = ".mvb"

# ==============================================================================
# STORAGE
# ==============================================================================

STORAGE_KEY_ACCOUNTS = "@mavault_accounts"

DEFAULT_STORE_FILE = "mavault_store.json"

# ==============================================================================
# USER INTERFACE
# ==============================================================================

CLIPBOARD_CLEAR_TIMEOUT = 30  # seconds
