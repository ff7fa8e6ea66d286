"""
Registration and one-vote-per-voter vote casting.

Per voter the ledger moves Unregistered -> Registered -> Voted. A voter is
Voted once their counter is nonzero (or, with the claim guard, once their
claim marker exists) and never leaves that state.

Recording a vote is two independent increments, candidate first and voter
second. If the second one fails the candidate counter stays incremented;
nothing is rolled back. A claim is only kept once the candidate increment
has completed, so a request that fails before counting anything can be
retried.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict

from .auth import Authenticator
from .candidates import CandidateRegistry
from .exceptions import InvalidCandidate, StorageError, Unauthorized
from .store import CredentialStore

logger = logging.getLogger(__name__)


class VoteOutcome(str, Enum):
    """Non-error results of casting a vote."""
    SUCCESS = "success"
    ALREADY_VOTED = "already_voted"


class VoteGuard(str, Enum):
    """How concurrent votes by the same voter are kept from double counting."""
    CLAIM = "claim"
    LOCK = "lock"
    NONE = "none"


@dataclass(frozen=True)
class VoteResult:
    """Who voted for whom, and how the attempt ended."""
    username: str
    candidate: str
    outcome: VoteOutcome


class KeyedLocks:
    """Table of asyncio locks created on demand and dropped when unused."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class VoteLedger:
    """Enforces one vote per registered voter and records votes."""

    def __init__(
        self,
        authenticator: Authenticator,
        credentials: CredentialStore,
        registry: CandidateRegistry,
        guard: VoteGuard = VoteGuard.CLAIM,
        timeout: float = 5.0
    ):
        self.authenticator = authenticator
        self.credentials = credentials
        self.registry = registry
        self.guard = VoteGuard(guard)
        self.timeout = timeout
        self._locks = KeyedLocks()

    async def register(self, username: str, password: str) -> str:
        """
        Register a voter and issue a token.

        Re-registering overwrites the stored credential; every call returns a
        fresh, independently valid token.

        Raises:
            InvalidIdentity: username/password rejected by the authenticator
            StorageError: credential could not be stored
        """
        token = self.authenticator.issue(username, password)
        await self._bounded(self.credentials.save_credential(username, password))
        logger.info(f"Registered voter {username}")
        return token

    async def cast_vote(self, token: str, candidate: str) -> VoteResult:
        """
        Cast the token holder's vote for a candidate.

        Returns:
            VoteResult whose outcome is SUCCESS when the vote was recorded
            and ALREADY_VOTED when the voter had already voted

        Raises:
            Unauthorized: bad token, or no stored credential for its user
            InvalidCandidate: candidate is not on the ballot
            StorageError: the store failed or the request timed out
        """
        claims = self.authenticator.verify(token)
        username = claims.username
        logger.info(f"cast_vote: username = {username} ; candidate = {candidate}")
        outcome = await self._bounded(self._cast(username, candidate))
        return VoteResult(username=username, candidate=candidate, outcome=outcome)

    async def _cast(self, username: str, candidate: str) -> VoteOutcome:
        if not await self.credentials.has_credential(username):
            logger.warning(f"No credential stored for {username}")
            raise Unauthorized(f"User {username} is not registered")

        if not self.registry.is_valid(candidate):
            logger.info(f"Invalid candidate : {candidate}")
            raise InvalidCandidate(candidate)

        if self.guard is VoteGuard.LOCK:
            async with self._locks.hold(username):
                return await self._record(username, candidate)
        return await self._record(username, candidate)

    async def _record(self, username: str, candidate: str) -> VoteOutcome:
        if await self.credentials.voter_count(username) > 0:
            logger.info(f"Already voted : {username}")
            return VoteOutcome.ALREADY_VOTED

        claimed = False
        if self.guard is VoteGuard.CLAIM:
            if not await self.credentials.claim_voter(username):
                logger.info(f"Already voted (claim held) : {username}")
                return VoteOutcome.ALREADY_VOTED
            claimed = True

        try:
            await self.credentials.increment_candidate(candidate)
        except (StorageError, asyncio.CancelledError):
            logger.error(f"Candidate increment failed for {candidate}; vote by {username} not counted")
            if claimed:
                await self._release_claim(username)
            raise

        try:
            await self.credentials.mark_voted(username)
        except StorageError:
            logger.error(
                f"Voter increment failed for {username} after counting a vote for {candidate}"
            )
            raise

        logger.info(f"Vote recorded: username = {username} ; candidate = {candidate}")
        return VoteOutcome.SUCCESS

    async def _release_claim(self, username: str) -> None:
        try:
            await self.credentials.release_claim(username)
            logger.info(f"Released vote claim for {username}")
        except StorageError as e:
            logger.error(f"Could not release vote claim for {username}; voter stays locked out: {e}")

    async def _bounded(self, coro):
        """Run store work under the request timeout."""
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Store operation exceeded {self.timeout}s")
            raise StorageError(f"Store operation timed out after {self.timeout}s") from e
