"""Fixed ballot of valid candidate identifiers."""
from typing import Iterable, Iterator, Tuple

from .store import CLAIM_SUFFIX, CREDENTIAL_SUFFIX


class CandidateRegistry:
    """
    Immutable, ordered set of candidate identifiers.

    Candidate ids share the store's bare key namespace with voter counters,
    so an id may never look like a username (no ``@``) or like one of the
    suffixed voter keys.
    """

    def __init__(self, candidates: Iterable[str]):
        ordered = tuple(candidates)
        if not ordered:
            raise ValueError("Ballot must contain at least one candidate")
        if len(set(ordered)) != len(ordered):
            raise ValueError("Ballot contains duplicate candidates")

        for candidate in ordered:
            if not candidate or not candidate.strip():
                raise ValueError("Candidate id cannot be empty")
            if "@" in candidate:
                raise ValueError(f"Candidate id may not contain '@': {candidate}")
            if candidate.endswith((CREDENTIAL_SUFFIX, CLAIM_SUFFIX)):
                raise ValueError(f"Candidate id collides with a voter key: {candidate}")

        self._ordered: Tuple[str, ...] = ordered
        self._members = frozenset(ordered)

    @property
    def candidates(self) -> Tuple[str, ...]:
        return self._ordered

    def is_valid(self, candidate: str) -> bool:
        return candidate in self._members

    def __contains__(self, candidate: object) -> bool:
        return candidate in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)
