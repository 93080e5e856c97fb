"""
Random byte sources for MaVault.

Both the password generator and the backup crypto draw every random value
through a SecureRandomSource, so the source can be swapped without touching
either component:

- SystemRandomSource reads from the operating system CSPRNG and is the
  default everywhere.
- DeterministicRandomSource replays a seeded SHA-256 stream. It exists for
  tests and must never back real passwords or backups.
"""

import hashlib
import os
import secrets
from typing import List, MutableSequence, Sequence, TypeVar, Union

T = TypeVar("T")


class SecureRandomSource:
    """
    Capability interface: produce N random bytes.

    Subclasses implement token_bytes(). Integer draws, choices and shuffles
    are derived from it here so every source shares the same unbiased
    sampling.
    """

    def token_bytes(self, n: int) -> bytes:
        raise NotImplementedError

    def token_hex(self, n: int) -> str:
        """Return n random bytes as 2n lowercase hex characters."""
        return self.token_bytes(n).hex()

    def randbelow(self, n: int) -> int:
        """
        Return a uniform integer in [0, n).

        Uses rejection sampling over the smallest whole number of bytes
        covering n, so results carry no modulo bias.
        """
        if n <= 0:
            raise ValueError("randbelow() upper bound must be positive")
        if n == 1:
            return 0

        bits = (n - 1).bit_length()
        num_bytes = (bits + 7) // 8
        mask = (1 << bits) - 1

        while True:
            value = int.from_bytes(self.token_bytes(num_bytes), "big") & mask
            if value < n:
                return value

    def choice(self, seq: Sequence[T]) -> T:
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[self.randbelow(len(seq))]

    def shuffle(self, items: MutableSequence) -> None:
        """Shuffle items in place (Fisher-Yates)."""
        for i in range(len(items) - 1, 0, -1):
            j = self.randbelow(i + 1)
            items[i], items[j] = items[j], items[i]


class SystemRandomSource(SecureRandomSource):
    """Operating system CSPRNG (os.urandom / secrets)."""

    def token_bytes(self, n: int) -> bytes:
        return os.urandom(n)

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise ValueError("randbelow() upper bound must be positive")
        return secrets.randbelow(n)


class DeterministicRandomSource(SecureRandomSource):
    """
    Reproducible byte stream for tests.

    Output block i is SHA-256(seed || i) with i as an 8-byte big-endian
    counter. Two sources built from the same seed yield identical sequences.
    """

    def __init__(self, seed: Union[bytes, str, int] = b"mavault-test"):
        if isinstance(seed, int):
            seed = seed.to_bytes(16, "big", signed=True)
        elif isinstance(seed, str):
            seed = seed.encode("utf-8")
        self._seed = bytes(seed)
        self._counter = 0
        self._buffer = b""

    def token_bytes(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("Byte count must be non-negative")

        chunks: List[bytes] = [self._buffer]
        available = len(self._buffer)
        while available < n:
            block = hashlib.sha256(
                self._seed + self._counter.to_bytes(8, "big")
            ).digest()
            self._counter += 1
            chunks.append(block)
            available += len(block)

        stream = b"".join(chunks)
        self._buffer = stream[n:]
        return stream[:n]


def default_random_source() -> SecureRandomSource:
    """Return a fresh OS-backed source."""
    return SystemRandomSource()
