# Tests for backup encryption
#
# Coverage:
#   - Round trips for both envelope formats
#   - Wrong passphrase -> DecryptionFailed
#   - Fresh salt / iv / ciphertext per call
#   - Envelope structure, version gating and field decoding errors
#   - Legacy format compatibility with the crypto-js construction
#   - Tamper detection (AEAD) and its absence (legacy)
#   - validate_password never raises

import base64
import json
from concurrent.futures import ThreadPoolExecutor

import pytest
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mavault.crypto import (
    BackupCrypto,
    BackupError,
    DecryptionFailed,
    EncryptedEnvelope,
    MalformedEnvelope,
    UnencodableText,
    UnsupportedVersion,
    decrypt_backup,
    derive_key,
    encrypt_backup,
    validate_backup_password,
)
from mavault.random_source import DeterministicRandomSource

PLAINTEXT = json.dumps({"version": "1.0", "count": 0, "accounts": []})


def _legacy_envelope(plaintext: bytes, passphrase: str) -> EncryptedEnvelope:
    """Build a 1.0 envelope by hand, the way the crypto-js client does."""
    salt_hex = "00112233445566778899aabbccddeeff"
    iv = bytes(range(16))
    key = PBKDF2HMAC(
        algorithm=hashes.SHA1(), length=32,
        salt=salt_hex.encode("utf-8"), iterations=10000,
    ).derive(passphrase.encode("utf-8"))

    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return EncryptedEnvelope(
        data=base64.b64encode(ciphertext).decode("ascii"),
        iv=iv.hex(),
        salt=salt_hex,
        version="1.0",
    )

# ── Round trips ─────────────────────────────────────────────────────


@pytest.mark.parametrize("plaintext", [
    PLAINTEXT,
    '{"accounts":[]}',
    json.dumps({"note": "ünïcødé ✓ 🔐"}, ensure_ascii=False),
    "x" * 5000,
])
def test_round_trip_default_format(backup_crypto, plaintext):
    envelope = backup_crypto.encrypt(plaintext, "correct-horse")
    assert envelope.version == "2.0"
    assert backup_crypto.decrypt(envelope, "correct-horse") == plaintext


@pytest.mark.parametrize("plaintext", [PLAINTEXT, "a", "0123456789abcdef"])
def test_round_trip_legacy_format(legacy_crypto, plaintext):
    envelope = legacy_crypto.encrypt(plaintext, "correct-horse")
    assert envelope.version == "1.0"
    assert legacy_crypto.decrypt(envelope, "correct-horse") == plaintext


def test_any_instance_decrypts_any_supported_version(backup_crypto, legacy_crypto):
    legacy = legacy_crypto.encrypt(PLAINTEXT, "pw")
    aead = backup_crypto.encrypt(PLAINTEXT, "pw")
    assert backup_crypto.decrypt(legacy, "pw") == PLAINTEXT
    assert legacy_crypto.decrypt(aead, "pw") == PLAINTEXT


def test_per_call_version_override(backup_crypto):
    envelope = backup_crypto.encrypt(PLAINTEXT, "pw", version="1.0")
    assert envelope.version == "1.0"


def test_module_helpers_round_trip():
    envelope = encrypt_backup(PLAINTEXT, "pw", version="1.0")
    assert decrypt_backup(envelope, "pw") == PLAINTEXT
    assert validate_backup_password(envelope, "pw")


def test_decrypt_accepts_plain_mapping(legacy_crypto):
    envelope = legacy_crypto.encrypt(PLAINTEXT, "pw")
    assert legacy_crypto.decrypt(envelope.to_dict(), "pw") == PLAINTEXT
    assert legacy_crypto.decrypt(json.loads(envelope.to_json()), "pw") == PLAINTEXT

# ── Wrong passphrase ────────────────────────────────────────────────


@pytest.mark.parametrize("version", ["1.0", "2.0"])
def test_wrong_passphrase_fails(version):
    crypto = BackupCrypto(version=version)
    envelope = crypto.encrypt('{"accounts":[]}', "correct-horse")

    with pytest.raises(DecryptionFailed):
        crypto.decrypt(envelope, "wrong-horse")


@pytest.mark.parametrize("wrong", ["", "Correct-horse", "correct-horse ", "correct-hors"])
def test_legacy_near_miss_passphrases_fail(legacy_crypto, wrong):
    envelope = legacy_crypto.encrypt(PLAINTEXT, "correct-horse")
    with pytest.raises(DecryptionFailed):
        legacy_crypto.decrypt(envelope, wrong)


def test_decryption_failed_message_is_generic(legacy_crypto):
    envelope = legacy_crypto.encrypt(PLAINTEXT, "a")
    with pytest.raises(DecryptionFailed, match="check your password"):
        legacy_crypto.decrypt(envelope, "b")

# ── Freshness ───────────────────────────────────────────────────────


@pytest.mark.parametrize("version", ["1.0", "2.0"])
def test_encrypt_is_non_deterministic(version):
    crypto = BackupCrypto(version=version)
    first = crypto.encrypt(PLAINTEXT, "pw")
    second = crypto.encrypt(PLAINTEXT, "pw")

    assert first.data != second.data
    assert first.iv != second.iv
    assert first.salt != second.salt


def test_envelope_field_shapes(backup_crypto, legacy_crypto):
    legacy = legacy_crypto.encrypt(PLAINTEXT, "pw")
    assert len(legacy.iv) == 32
    assert len(legacy.salt) == 32
    assert len(bytes.fromhex(legacy.iv)) == 16
    base64.b64decode(legacy.data, validate=True)

    aead = backup_crypto.encrypt(PLAINTEXT, "pw")
    assert len(aead.iv) == 24
    assert len(aead.salt) == 32


def test_envelope_json_has_exactly_four_fields(legacy_crypto):
    raw = json.loads(legacy_crypto.encrypt(PLAINTEXT, "pw").to_json())
    assert set(raw) == {"data", "iv", "salt", "version"}


def test_salt_and_iv_come_from_injected_source():
    a = BackupCrypto(DeterministicRandomSource(7), version="1.0").encrypt(PLAINTEXT, "pw")
    b = BackupCrypto(DeterministicRandomSource(7), version="1.0").encrypt(PLAINTEXT, "pw")
    assert a == b

# ── Legacy compatibility and tampering ──────────────────────────────


def test_decrypts_hand_built_legacy_envelope(legacy_crypto):
    envelope = _legacy_envelope(b'{"accounts":[]}', "correct-horse")
    assert legacy_crypto.decrypt(envelope, "correct-horse") == '{"accounts":[]}'


def test_legacy_key_uses_hex_salt_text():
    salt_hex = "ab" * 16
    expected = PBKDF2HMAC(
        algorithm=hashes.SHA1(), length=32,
        salt=salt_hex.encode("utf-8"), iterations=10000,
    ).derive(b"pw")
    assert derive_key("pw", salt_hex, "1.0") == expected


def test_derive_key_lengths_and_versions():
    salt_hex = "cd" * 16
    assert len(derive_key("pw", salt_hex, "1.0")) == 32
    assert len(derive_key("pw", salt_hex, "2.0")) == 32
    assert derive_key("pw", salt_hex, "1.0") != derive_key("pw", salt_hex, "2.0")
    with pytest.raises(UnsupportedVersion):
        derive_key("pw", salt_hex, "0.9")


def test_legacy_format_does_not_detect_iv_tampering(legacy_crypto):
    # Known weakness of 1.0: flipping an IV bit flips the same plaintext bit
    # and the result still decrypts.
    envelope = legacy_crypto.encrypt('{"accounts":[]}', "pw")
    iv = bytearray(bytes.fromhex(envelope.iv))
    iv[2] ^= 0x03
    tampered = EncryptedEnvelope(envelope.data, bytes(iv).hex(), envelope.salt, envelope.version)

    assert legacy_crypto.decrypt(tampered, "pw") == '{"bccounts":[]}'


def test_aead_format_detects_tampering(backup_crypto):
    envelope = backup_crypto.encrypt(PLAINTEXT, "pw")
    raw = bytearray(base64.b64decode(envelope.data))
    raw[0] ^= 0x01
    tampered = EncryptedEnvelope(
        base64.b64encode(bytes(raw)).decode("ascii"), envelope.iv, envelope.salt, envelope.version
    )

    with pytest.raises(DecryptionFailed):
        backup_crypto.decrypt(tampered, "pw")


def test_empty_plaintext_is_reported_as_failure(legacy_crypto):
    envelope = legacy_crypto.encrypt("", "pw")
    with pytest.raises(DecryptionFailed):
        legacy_crypto.decrypt(envelope, "pw")

# ── Envelope validation ─────────────────────────────────────────────


@pytest.mark.parametrize("missing", ["data", "iv", "salt", "version"])
def test_missing_field_is_malformed(legacy_crypto, missing):
    raw = legacy_crypto.encrypt(PLAINTEXT, "pw").to_dict()
    del raw[missing]

    with pytest.raises(MalformedEnvelope, match=missing):
        legacy_crypto.decrypt(raw, "pw")


@pytest.mark.parametrize("bad", [None, [], "text", 42])
def test_non_object_envelope_is_malformed(bad):
    with pytest.raises(MalformedEnvelope):
        EncryptedEnvelope.from_dict(bad)


def test_non_string_field_is_malformed():
    with pytest.raises(MalformedEnvelope):
        EncryptedEnvelope.from_dict({"data": 1, "iv": "", "salt": "", "version": "1.0"})


def test_from_json_rejects_invalid_json():
    with pytest.raises(MalformedEnvelope):
        EncryptedEnvelope.from_json("not json {")


def test_unknown_version_is_unsupported(legacy_crypto):
    raw = legacy_crypto.encrypt(PLAINTEXT, "pw").to_dict()
    raw["version"] = "3.0"

    with pytest.raises(UnsupportedVersion) as excinfo:
        legacy_crypto.decrypt(raw, "pw")
    assert excinfo.value.version == "3.0"


def test_missing_fields_checked_before_version():
    with pytest.raises(MalformedEnvelope):
        BackupCrypto().decrypt({"version": "9.9"}, "pw")


def test_unknown_version_rejected_on_encrypt():
    with pytest.raises(UnsupportedVersion):
        BackupCrypto(version="0.1")
    with pytest.raises(UnsupportedVersion):
        BackupCrypto().encrypt(PLAINTEXT, "pw", version="0.1")


def test_empty_version_is_not_the_default(legacy_crypto):
    with pytest.raises(UnsupportedVersion):
        legacy_crypto.encrypt(PLAINTEXT, "pw", version="")


@pytest.mark.parametrize("plaintext, passphrase", [
    (PLAINTEXT, "pass\ud800word"),
    ("\udfff", "pw"),
])
def test_encrypt_rejects_unencodable_text(legacy_crypto, plaintext, passphrase):
    with pytest.raises(UnencodableText):
        legacy_crypto.encrypt(plaintext, passphrase)


@pytest.mark.parametrize("field, value", [
    ("iv", "zz" * 16),
    ("iv", "00" * 8),
    ("salt", "not-hex"),
    ("salt", "00" * 4),
    ("data", "***not base64***"),
    ("data", ""),
])
def test_undecodable_fields_fail_decryption(legacy_crypto, field, value):
    raw = legacy_crypto.encrypt(PLAINTEXT, "pw").to_dict()
    raw[field] = value

    with pytest.raises(DecryptionFailed):
        legacy_crypto.decrypt(raw, "pw")


def test_all_errors_share_a_base():
    for error in (MalformedEnvelope, UnsupportedVersion, DecryptionFailed, UnencodableText):
        assert issubclass(error, BackupError)

# ── validate_password ───────────────────────────────────────────────


def test_validate_password(legacy_crypto):
    envelope = legacy_crypto.encrypt(PLAINTEXT, "pw")
    assert legacy_crypto.validate_password(envelope, "pw") is True
    assert legacy_crypto.validate_password(envelope, "nope") is False


@pytest.mark.parametrize("envelope", [
    None,
    42,
    {},
    {"data": 1, "iv": 2, "salt": 3, "version": 4},
    {"data": "", "iv": "", "salt": "", "version": "1.0"},
    {"data": "AAAA", "iv": "00", "salt": "00", "version": "7"},
])
def test_validate_password_never_raises(legacy_crypto, envelope):
    assert legacy_crypto.validate_password(envelope, "pw") is False


def test_validate_password_rejects_non_string_passphrase(legacy_crypto):
    envelope = legacy_crypto.encrypt(PLAINTEXT, "pw")
    assert legacy_crypto.validate_password(envelope, None) is False


@pytest.mark.parametrize("version", ["1.0", "2.0"])
def test_lone_surrogate_passphrase_fails_cleanly(version):
    crypto = BackupCrypto(version=version)
    envelope = crypto.encrypt('{"accounts":[]}', "pw")

    assert crypto.validate_password(envelope, "\ud800") is False
    with pytest.raises(DecryptionFailed):
        crypto.decrypt(envelope, "\ud800")

# ── Concurrency ─────────────────────────────────────────────────────


def test_concurrent_calls_do_not_interfere(legacy_crypto):
    def round_trip(i):
        passphrase = f"passphrase-{i}"
        text = json.dumps({"n": i})
        envelope = legacy_crypto.encrypt(text, passphrase)
        return legacy_crypto.decrypt(envelope, passphrase) == text

    with ThreadPoolExecutor(max_workers=4) as pool:
        assert all(pool.map(round_trip, range(8)))
