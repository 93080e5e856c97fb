"""
Account records stored in the vault and carried inside backups.
"""

import math
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class InvalidAccount(ValueError):
    """A serialized account record is missing fields or has bad values."""
    pass


class AccountCategory(str, Enum):
    ENTERTAINMENT = "entertainment"
    DEVELOPMENT = "development"
    SOCIAL = "social"
    FINANCE = "finance"
    WORK = "work"
    OTHER = "other"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class Account:
    """Represents a single stored credential."""
    id: str
    name: str
    username: str
    password: str
    category: AccountCategory = AccountCategory.OTHER
    website: Optional[str] = None
    icon: Optional[str] = None
    created_at: int = field(default_factory=now_millis)
    updated_at: int = field(default_factory=now_millis)

    @classmethod
    def create(cls, name: str, username: str, password: str,
               category: AccountCategory = AccountCategory.OTHER,
               website: Optional[str] = None,
               icon: Optional[str] = None) -> 'Account':
        """Create a new account with a fresh id and timestamps."""
        timestamp = now_millis()
        return cls(
            id=uuid.uuid4().hex,
            name=name,
            username=username,
            password=password,
            category=AccountCategory(category),
            website=website or None,
            icon=icon or None,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def touch(self) -> None:
        self.updated_at = max(now_millis(), self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in backups and storage."""
        data = {
            'id': self.id,
            'name': self.name,
            'username': self.username,
            'password': self.password,
            'category': self.category.value,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }
        if self.website:
            data['website'] = self.website
        if self.icon:
            data['icon'] = self.icon
        return data

    @classmethod
    def from_dict(cls, data: Any) -> 'Account':
        if not isinstance(data, dict):
            raise InvalidAccount("Account record must be an object")

        for key in ('id', 'name', 'username', 'password'):
            if not isinstance(data.get(key), str):
                raise InvalidAccount(f"Account field '{key}' missing or not a string")

        try:
            category = AccountCategory(data.get('category', AccountCategory.OTHER.value))
        except ValueError:
            raise InvalidAccount(f"Unknown account category: {data.get('category')!r}")

        timestamps = {}
        for key in ('createdAt', 'updatedAt'):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidAccount(f"Account field '{key}' must be a timestamp")
            if isinstance(value, float) and not math.isfinite(value):
                raise InvalidAccount(f"Account field '{key}' must be finite")
            timestamps[key] = int(value)

        for key in ('website', 'icon'):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise InvalidAccount(f"Account field '{key}' must be a string")

        return cls(
            id=data['id'],
            name=data['name'],
            username=data['username'],
            password=data['password'],
            category=category,
            website=data.get('website') or None,
            icon=data.get('icon') or None,
            created_at=timestamps['createdAt'],
            updated_at=timestamps['updatedAt'],
        )
