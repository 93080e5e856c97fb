"""
Backup encryption for MaVault.

This module encrypts a serialized vault under a user passphrase and wraps the
result in a self-describing envelope:

    {"data": ..., "iv": ..., "salt": ..., "version": ...}

Two envelope formats are understood:

- "1.0" (legacy): PBKDF2-HMAC-SHA1 (10,000 iterations) and AES-256-CBC with
  PKCS#7 padding. Compatible with backups written by the crypto-js based
  mobile client. It carries NO authentication: a wrong passphrase is only
  detected through bad padding or undecodable text, and a tampered
  ciphertext that still pads correctly decrypts to garbage undetected.
- "2.0" (AEAD): Argon2id key derivation and AES-256-GCM. The version tag is
  bound as associated data. New backups use this format by default.

Every operation is a pure function of its inputs plus fresh randomness from
the injected SecureRandomSource. No key material outlives a call.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

# Cryptography library imports
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from . import config
from .random_source import SecureRandomSource, default_random_source

DECRYPTION_FAILED_MESSAGE = "Failed to decrypt backup. Please check your password."

# ==============================================================================
# EXCEPTIONS
# ==============================================================================

class BackupError(Exception):
    """Base class for backup encryption and restore errors."""
    pass


class MalformedEnvelope(BackupError):
    """The envelope is not an object or lacks one of data/iv/salt/version."""
    pass


class UnsupportedVersion(BackupError):
    """The envelope version is not one this implementation can read."""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Unsupported backup version: {version!r}")


class DecryptionFailed(BackupError):
    """
    Wrong passphrase, corrupted ciphertext or undecodable envelope fields.

    The causes are deliberately indistinguishable to the caller.
    """

    def __init__(self, message: str = DECRYPTION_FAILED_MESSAGE):
        super().__init__(message)


class CorruptBackup(BackupError):
    """Decrypted backup content is not a valid backup payload."""
    pass


class UnencodableText(BackupError):
    """Plaintext or passphrase cannot be encoded as UTF-8 (e.g. lone surrogates)."""
    pass

# ==============================================================================
# ENVELOPE
# ==============================================================================

@dataclass(frozen=True)
class EncryptedEnvelope:
    """Encrypted backup container: ciphertext plus everything needed to decrypt it."""

    data: str
    iv: str
    salt: str
    version: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "data": self.data,
            "iv": self.iv,
            "salt": self.salt,
            "version": self.version,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, raw: Any) -> "EncryptedEnvelope":
        """
        Build an envelope from a decoded JSON object.

        Raises:
            MalformedEnvelope: raw is not a mapping, or a field is missing or
                               not a string.
        """
        if not isinstance(raw, Mapping):
            raise MalformedEnvelope("Backup envelope must be a JSON object")

        missing = [field for field in config.ENVELOPE_FIELDS if field not in raw]
        if missing:
            raise MalformedEnvelope(f"Backup envelope missing field(s): {', '.join(missing)}")

        for field in config.ENVELOPE_FIELDS:
            if not isinstance(raw[field], str):
                raise MalformedEnvelope(f"Backup envelope field '{field}' must be a string")

        return cls(
            data=raw["data"],
            iv=raw["iv"],
            salt=raw["salt"],
            version=raw["version"],
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "EncryptedEnvelope":
        try:
            raw = json.loads(text)
        except (ValueError, TypeError) as e:
            raise MalformedEnvelope(f"Backup envelope is not valid JSON: {e}") from e
        return cls.from_dict(raw)


EnvelopeLike = Union[EncryptedEnvelope, Mapping[str, Any]]


def _coerce_envelope(envelope: EnvelopeLike) -> EncryptedEnvelope:
    if isinstance(envelope, EncryptedEnvelope):
        return envelope
    return EncryptedEnvelope.from_dict(envelope)

# ==============================================================================
# KEY DERIVATION
# ==============================================================================

def derive_key(passphrase: str, salt_hex: str, version: str) -> bytes:
    """
    Derive the 256-bit AES key for a given envelope version.

    Args:
        passphrase (str): Backup passphrase (UTF-8 encoded)
        salt_hex (str): Envelope salt as stored (hex text)
        version (str): Envelope version selecting the KDF

    Returns:
        bytes: KEY_SIZE-byte key

    Notes:
        - "1.0" feeds the hex salt *text* into PBKDF2, as crypto-js does
          when handed a string salt, and uses its SHA-1 default PRF.
        - "2.0" uses the decoded salt bytes with Argon2id.
    """
    secret = passphrase.encode("utf-8")

    if version == config.LEGACY_ENVELOPE_VERSION:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA1(),
            length=config.KEY_SIZE,
            salt=salt_hex.encode("utf-8"),
            iterations=config.PBKDF2_ITERATIONS,
        )
        return kdf.derive(secret)

    if version == config.AEAD_ENVELOPE_VERSION:
        kdf = Argon2id(
            salt=bytes.fromhex(salt_hex),
            length=config.KEY_SIZE,
            iterations=config.ARGON2_TIME_COST,
            lanes=config.ARGON2_PARALLELISM,
            memory_cost=config.ARGON2_MEMORY_COST,
        )
        return kdf.derive(secret)

    raise UnsupportedVersion(version)

# ==============================================================================
# FORMAT IMPLEMENTATIONS
# ==============================================================================

def _encrypt_cbc(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def _decrypt_cbc(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    # Raises ValueError on bad padding, the usual symptom of a wrong passphrase
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def _decode_fields(envelope: EncryptedEnvelope, iv_size: int, min_data: int):
    try:
        iv = bytes.fromhex(envelope.iv)
        bytes.fromhex(envelope.salt)
        ciphertext = base64.b64decode(envelope.data, validate=True)
    except (ValueError, binascii.Error) as e:
        raise DecryptionFailed() from e

    if (len(iv) != iv_size
            or len(envelope.salt) != config.SALT_SIZE * 2
            or len(ciphertext) < min_data):
        raise DecryptionFailed()
    return iv, ciphertext

# ==============================================================================
# BACKUP CRYPTO
# ==============================================================================

class BackupCrypto:
    """
    Password-based encryption of backup payloads.

    Holds only its random source and the default format version; every
    call derives its own key and keeps nothing afterwards, so one instance
    may serve concurrent callers.
    """

    def __init__(self,
                 random_source: Optional[SecureRandomSource] = None,
                 version: str = config.DEFAULT_ENVELOPE_VERSION):
        if version not in config.SUPPORTED_ENVELOPE_VERSIONS:
            raise UnsupportedVersion(version)
        self.random_source = random_source or default_random_source()
        self.version = version

    def encrypt(self, plaintext: str, passphrase: str,
                version: Optional[str] = None) -> EncryptedEnvelope:
        """
        Encrypt a plaintext (normally a backup JSON document).

        Args:
            plaintext (str): Text to protect
            passphrase (str): User backup passphrase
            version (str, optional): Envelope format; defaults to the
                                     instance version

        Returns:
            EncryptedEnvelope: New envelope with fresh salt and IV

        Raises:
            UnsupportedVersion: version is not a known format
            UnencodableText: plaintext or passphrase is not valid UTF-8 text
        """
        if version is None:
            version = self.version
        if version not in config.SUPPORTED_ENVELOPE_VERSIONS:
            raise UnsupportedVersion(version)

        try:
            passphrase.encode("utf-8")
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError as e:
            raise UnencodableText("Backup text and password must be valid UTF-8") from e

        salt_hex = self.random_source.token_hex(config.SALT_SIZE)
        key = derive_key(passphrase, salt_hex, version)

        if version == config.LEGACY_ENVELOPE_VERSION:
            iv = self.random_source.token_bytes(config.IV_SIZE)
            ciphertext = _encrypt_cbc(key, iv, data)
        else:
            iv = self.random_source.token_bytes(config.NONCE_SIZE)
            ciphertext = AESGCM(key).encrypt(iv, data, version.encode("ascii"))

        return EncryptedEnvelope(
            data=base64.b64encode(ciphertext).decode("ascii"),
            iv=iv.hex(),
            salt=salt_hex,
            version=version,
        )

    def decrypt(self, envelope: EnvelopeLike, passphrase: str) -> str:
        """
        Decrypt an envelope back to its plaintext.

        Checks run in order: envelope structure, version, then decryption.

        Raises:
            MalformedEnvelope: Missing or non-string fields
            UnsupportedVersion: Unknown envelope version
            DecryptionFailed: Wrong passphrase or corrupted data
        """
        envelope = _coerce_envelope(envelope)
        if envelope.version not in config.SUPPORTED_ENVELOPE_VERSIONS:
            raise UnsupportedVersion(envelope.version)

        legacy = envelope.version == config.LEGACY_ENVELOPE_VERSION
        if legacy:
            iv, ciphertext = _decode_fields(envelope, config.IV_SIZE, 1)
        else:
            # GCM output is ciphertext || tag
            iv, ciphertext = _decode_fields(envelope, config.NONCE_SIZE, config.TAG_SIZE + 1)

        # A passphrase that cannot be encoded cannot have produced this envelope
        try:
            passphrase.encode("utf-8")
        except (AttributeError, UnicodeEncodeError) as e:
            raise DecryptionFailed() from e
        key = derive_key(passphrase, envelope.salt, envelope.version)

        try:
            if legacy:
                # Padding and UTF-8 validity are the only signals available
                # here; see the module notes on the missing MAC.
                plaintext = _decrypt_cbc(key, iv, ciphertext)
            else:
                plaintext = AESGCM(key).decrypt(
                    iv, ciphertext, envelope.version.encode("ascii")
                )
            text = plaintext.decode("utf-8")
        except (ValueError, InvalidTag) as e:
            # UnicodeDecodeError is a ValueError
            raise DecryptionFailed() from e

        if not text:
            raise DecryptionFailed()
        return text

    def validate_password(self, envelope: EnvelopeLike, passphrase: str) -> bool:
        """Return True if passphrase decrypts envelope. Never raises."""
        if not isinstance(passphrase, str):
            return False
        try:
            self.decrypt(envelope, passphrase)
            return True
        except BackupError:
            return False

# ==============================================================================
# MODULE-LEVEL HELPERS
# ==============================================================================

def encrypt_backup(plaintext: str, passphrase: str,
                   version: str = config.DEFAULT_ENVELOPE_VERSION) -> EncryptedEnvelope:
    return BackupCrypto(version=version).encrypt(plaintext, passphrase)


def decrypt_backup(envelope: EnvelopeLike, passphrase: str) -> str:
    return BackupCrypto().decrypt(envelope, passphrase)


def validate_backup_password(envelope: EnvelopeLike, passphrase: str) -> bool:
    return BackupCrypto().validate_password(envelope, passphrase)
