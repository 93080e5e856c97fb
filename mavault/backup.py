"""
MaVault Backup Module
Encrypted export and restore of the account collection
"""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from . import config
from .crypto import (
    BackupCrypto, CorruptBackup, EncryptedEnvelope, MalformedEnvelope,
    EnvelopeLike,
)
from .models import Account, InvalidAccount
from .storage import AccountRepository, KeyValueStore


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


@dataclass
class BackupPayload:
    """Plaintext document wrapped by a backup envelope."""
    accounts: List[Account]
    version: str = config.BACKUP_PAYLOAD_VERSION
    created_at: str = field(default_factory=_utc_now_iso)

    @property
    def count(self) -> int:
        return len(self.accounts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'createdAt': self.created_at,
            'count': self.count,
            'accounts': [account.to_dict() for account in self.accounts],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> 'BackupPayload':
        """
        Parse a decrypted payload

        Raises:
            CorruptBackup: Missing keys, bad account records, or a count that
                           disagrees with the number of accounts
        """
        if not isinstance(data, dict):
            raise CorruptBackup("Backup payload must be a JSON object")

        for key in ('version', 'createdAt', 'count', 'accounts'):
            if key not in data:
                raise CorruptBackup(f"Backup payload missing '{key}'")

        accounts_raw = data['accounts']
        if not isinstance(accounts_raw, list):
            raise CorruptBackup("Backup accounts must be a list")

        count = data['count']
        if isinstance(count, bool) or not isinstance(count, int) or count != len(accounts_raw):
            raise CorruptBackup(
                f"Backup count {count!r} does not match {len(accounts_raw)} account(s)"
            )

        try:
            accounts = [Account.from_dict(item) for item in accounts_raw]
        except InvalidAccount as e:
            raise CorruptBackup(f"Invalid account in backup: {e}") from e

        return cls(
            accounts=accounts,
            version=str(data['version']),
            created_at=str(data['createdAt']),
        )

    @classmethod
    def from_json(cls, text: str) -> 'BackupPayload':
        try:
            data = json.loads(text)
        except ValueError as e:
            raise CorruptBackup(f"Backup payload is not valid JSON: {e}") from e
        return cls.from_dict(data)


def create_backup(accounts: List[Account], passphrase: str,
                  crypto: Optional[BackupCrypto] = None) -> EncryptedEnvelope:
    """
    Encrypt an account collection into a backup envelope

    Args:
        accounts: Accounts to include, in order
        passphrase: Backup passphrase
        crypto: Crypto instance (default: OS randomness, current format)

    Returns:
        Encrypted envelope
    """
    crypto = crypto or BackupCrypto()
    payload = BackupPayload(accounts=list(accounts))
    return crypto.encrypt(payload.to_json(), passphrase)


def restore_backup(envelope: EnvelopeLike, passphrase: str,
                   crypto: Optional[BackupCrypto] = None) -> BackupPayload:
    """
    Decrypt and validate a backup envelope

    Raises:
        MalformedEnvelope, UnsupportedVersion, DecryptionFailed, CorruptBackup
    """
    crypto = crypto or BackupCrypto()
    return BackupPayload.from_json(crypto.decrypt(envelope, passphrase))


def read_envelope(backup_path: str) -> EncryptedEnvelope:
    """Load an envelope file; unreadable or non-JSON files are malformed"""
    try:
        with open(backup_path, 'r', encoding='utf-8') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedEnvelope(f"Cannot read backup file {backup_path}: {e}") from e
    return EncryptedEnvelope.from_json(text)


def write_envelope(envelope: EncryptedEnvelope, backup_path: str) -> None:
    directory = os.path.dirname(os.path.abspath(backup_path))
    os.makedirs(directory, exist_ok=True)
    with open(backup_path, 'w', encoding='utf-8') as f:
        f.write(envelope.to_json(indent=2))


def export_backup(store: KeyValueStore, passphrase: str, backup_path: str,
                  crypto: Optional[BackupCrypto] = None) -> EncryptedEnvelope:
    """
    Create an encrypted backup file from the accounts in a store

    Args:
        store: Key-value store holding the account collection
        passphrase: Backup encryption passphrase
        backup_path: Destination backup file path

    Returns:
        The envelope written to backup_path
    """
    accounts = AccountRepository(store).list()
    envelope = create_backup(accounts, passphrase, crypto)
    write_envelope(envelope, backup_path)
    return envelope


def import_backup(store: KeyValueStore, passphrase: str, backup_path: str,
                  crypto: Optional[BackupCrypto] = None,
                  merge: bool = False) -> List[Account]:
    """
    Restore accounts from an encrypted backup file into a store

    Args:
        store: Target key-value store
        passphrase: Backup passphrase
        backup_path: Backup file path
        merge: Keep existing accounts not present in the backup; on an id
               clash the backup copy wins. Otherwise the store is replaced.

    Returns:
        Accounts restored from the backup

    Raises:
        MalformedEnvelope, UnsupportedVersion, DecryptionFailed, CorruptBackup
    """
    envelope = read_envelope(backup_path)
    payload = restore_backup(envelope, passphrase, crypto)

    repository = AccountRepository(store)
    if merge:
        restored_ids = {account.id for account in payload.accounts}
        kept = [a for a in repository.list() if a.id not in restored_ids]
        repository.replace_all(kept + payload.accounts)
    else:
        repository.replace_all(payload.accounts)

    return payload.accounts
