"""Per-candidate vote counts."""
import logging
from typing import Dict

from .candidates import CandidateRegistry
from .store import CredentialStore, parse_counter

logger = logging.getLogger(__name__)


class TallyReader:
    """Reads the running tally with one batched read over the ballot."""

    def __init__(self, credentials: CredentialStore, registry: CandidateRegistry):
        self.credentials = credentials
        self.registry = registry

    async def get_tally(self) -> Dict[str, int]:
        """
        Get current counts for every candidate, in ballot order.

        Candidates with no votes yet report 0. Votes landing while the read
        is in flight may or may not be included.
        """
        candidates = self.registry.candidates
        values = await self.credentials.candidate_counts(candidates)
        tally = {
            candidate: parse_counter(candidate, value)
            for candidate, value in zip(candidates, values)
        }
        logger.debug(f"Tally read: {tally}")
        return tally
