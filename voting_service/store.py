"""
Key-value store capability and the voter/candidate key layout on top of it.

Key namespaces:
- ``<username>.cred``  credential (password digest)
- ``<username>.claim`` one-shot vote claim marker
- ``<username>``       voter counter (0 or 1)
- ``<candidate>``      candidate tally counter

Usernames always contain ``@`` and candidate ids never do, so the bare
counter keys cannot collide.
"""
import hashlib
import logging
from typing import List, Optional, Protocol, Sequence

from .exceptions import StorageError

logger = logging.getLogger(__name__)

CREDENTIAL_SUFFIX = ".cred"
CLAIM_SUFFIX = ".claim"


class KeyValueStore(Protocol):
    """
    Primitives required from the backing store.

    Each call is atomic on its own. Nothing here spans more than one call,
    so callers must not assume a read followed by a write is atomic.
    Implementations raise ``StorageError`` on any backend failure.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def set_if_absent(self, key: str, value: str) -> bool:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def incr(self, key: str) -> int:
        ...

    async def mget(self, keys: Sequence[str]) -> List[Optional[str]]:
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...


def credential_key(username: str) -> str:
    return username + CREDENTIAL_SUFFIX


def claim_key(username: str) -> str:
    return username + CLAIM_SUFFIX


def password_digest(password: str) -> str:
    """SHA-256 hex digest stored in place of the plaintext password."""
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def parse_counter(key: str, value: Optional[str]) -> int:
    """
    Convert a raw counter value to an int.

    Absent counters count as zero. Anything that is not a non-negative
    integer is an unexpected shape and raises ``StorageError``.
    """
    if value is None:
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise StorageError(f"Counter {key} holds a non-integer value: {value!r}")
    if count < 0:
        raise StorageError(f"Counter {key} is negative: {count}")
    return count


class CredentialStore:
    """Voter credentials and vote counters kept in a shared key-value store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def save_credential(self, username: str, password: str) -> None:
        """Store (or overwrite) the credential for a username."""
        await self.store.set(credential_key(username), password_digest(password))
        logger.debug(f"Credential stored for {username}")

    async def has_credential(self, username: str) -> bool:
        value = await self.store.get(credential_key(username))
        return value is not None

    async def voter_count(self, username: str) -> int:
        """
        Get the voter counter for a username.

        Returns:
            0 if the voter has not voted, otherwise the stored count
        """
        return parse_counter(username, await self.store.get(username))

    async def claim_voter(self, username: str) -> bool:
        """
        Atomically claim the right to vote for a username.

        Returns:
            True for the first caller only, False for every later caller
        """
        return await self.store.set_if_absent(claim_key(username), "1")

    async def release_claim(self, username: str) -> None:
        """Drop a claim whose vote was never counted, so the voter can retry."""
        await self.store.delete(claim_key(username))

    async def increment_candidate(self, candidate: str) -> int:
        return await self.store.incr(candidate)

    async def mark_voted(self, username: str) -> int:
        return await self.store.incr(username)

    async def candidate_counts(self, candidates: Sequence[str]) -> List[Optional[str]]:
        """Raw counter values for the given candidates, in the same order."""
        values = await self.store.mget(candidates)
        if len(values) != len(candidates):
            raise StorageError(
                f"Batched read returned {len(values)} values for {len(candidates)} keys"
            )
        return values
