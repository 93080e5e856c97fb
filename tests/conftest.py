"""
Shared pytest fixtures for the MaVault test suite.
"""

import pytest

from mavault.crypto import BackupCrypto
from mavault.models import Account, AccountCategory
from mavault.password_generator import PasswordEngine
from mavault.random_source import DeterministicRandomSource
from mavault.storage import MemoryStore


@pytest.fixture
def rng():
    """Seeded random source so generated output is reproducible."""
    return DeterministicRandomSource(b"mavault-tests")


@pytest.fixture
def engine():
    return PasswordEngine()


@pytest.fixture
def backup_crypto():
    """Crypto instance producing the default (AEAD) envelope format."""
    return BackupCrypto()


@pytest.fixture
def legacy_crypto():
    return BackupCrypto(version="1.0")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sample_accounts():
    return [
        Account(
            id="1700000000000",
            name="GitHub",
            username="octocat@example.com",
            password="Tr0ub4dor&3-horse",
            category=AccountCategory.DEVELOPMENT,
            website="https://github.com",
            created_at=1700000000000,
            updated_at=1700000500000,
        ),
        Account(
            id="1700000001000",
            name="Bank",
            username="jdoe",
            password="correct horse battery staple",
            category=AccountCategory.FINANCE,
            created_at=1700000001000,
            updated_at=1700000001000,
        ),
        Account(
            id="1700000002000",
            name="Käse Forum",
            username="fromage",
            password="p@ßwörd✓",
            category=AccountCategory.SOCIAL,
            icon="MessageCircle",
            created_at=1700000002000,
            updated_at=1700000002000,
        ),
    ]
