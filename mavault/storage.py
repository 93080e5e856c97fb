"""
Key-value storage for MaVault.

The backup core never touches storage itself; the front end uses these
stores to fetch the account collection before a backup and to write a
restored collection back.

- MemoryStore keeps everything in a dict (tests, throwaway sessions)
- JSONFileStore persists one JSON object to disk with atomic replacement
- AccountRepository layers account CRUD and search on top of any store
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

from . import config
from .models import Account, AccountCategory, InvalidAccount

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The backing store cannot be read or written."""
    pass

# ==============================================================================
# KEY-VALUE STORES
# ==============================================================================

class KeyValueStore:
    """Minimal persistence interface: get / set / remove."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def contains(self, key: str) -> bool:
        return key in self.keys()


class MemoryStore(KeyValueStore):
    """Dict-backed store. Values are JSON round-tripped to mimic persistence."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> List[str]:
        return list(self._data)


class JSONFileStore(KeyValueStore):
    """
    Store persisted as a single JSON object file.

    Every write replaces the file atomically (temp file + os.replace) and
    restricts it to the owner, since it holds plaintext credentials.
    """

    def __init__(self, path: str = config.DEFAULT_STORE_FILE):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Store %s unreadable: %s", self.path, e)
            raise StorageError(f"Cannot read store {self.path}: {e}") from e

        if not isinstance(data, dict):
            logger.warning("Store %s does not contain a JSON object", self.path)
            raise StorageError(f"Store {self.path} is corrupted")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=directory, prefix='.mavault-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.chmod(temp_path, 0o600)
            os.replace(temp_path, self.path)
        except OSError as e:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise StorageError(f"Cannot write store {self.path}: {e}") from e
        logger.debug("Wrote %d key(s) to %s", len(data), self.path)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

    def clear(self) -> None:
        with self._lock:
            self._save({})

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load())

# ==============================================================================
# ACCOUNT REPOSITORY
# ==============================================================================

class AccountRepository:
    """Account collection stored under STORAGE_KEY_ACCOUNTS."""

    def __init__(self, store: KeyValueStore, key: str = config.STORAGE_KEY_ACCOUNTS):
        self.store = store
        self.key = key

    def list(self) -> List[Account]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        if not isinstance(raw, list):
            raise StorageError(f"Stored value under {self.key} is not a list")
        try:
            return [Account.from_dict(item) for item in raw]
        except InvalidAccount as e:
            logger.warning("Corrupt account record under %s: %s", self.key, e)
            raise StorageError(f"Corrupt account record: {e}") from e

    def replace_all(self, accounts: List[Account]) -> None:
        self.store.set(self.key, [account.to_dict() for account in accounts])

    def get(self, account_id: str) -> Optional[Account]:
        for account in self.list():
            if account.id == account_id:
                return account
        return None

    def add(self, account: Account) -> Account:
        accounts = self.list()
        if any(existing.id == account.id for existing in accounts):
            raise StorageError(f"Account {account.id} already exists")
        accounts.append(account)
        self.replace_all(accounts)
        return account

    def update(self, account: Account) -> Account:
        accounts = self.list()
        for i, existing in enumerate(accounts):
            if existing.id == account.id:
                account.touch()
                accounts[i] = account
                self.replace_all(accounts)
                return account
        raise StorageError(f"Account {account.id} not found")

    def delete(self, account_id: str) -> bool:
        accounts = self.list()
        remaining = [a for a in accounts if a.id != account_id]
        if len(remaining) == len(accounts):
            return False
        self.replace_all(remaining)
        return True

    def clear(self) -> None:
        self.store.remove(self.key)

    def search(self, query: str = '',
               category: Optional[AccountCategory] = None) -> List[Account]:
        """Case-insensitive match on name, username or website."""
        needle = query.strip().lower()
        results = []
        for account in self.list():
            if category is not None and account.category != category:
                continue
            haystack = [account.name, account.username, account.website or '']
            if needle and not any(needle in field.lower() for field in haystack):
                continue
            results.append(account)
        return results
