"""
Token-gated voting service.

Voters register a username/password and receive a signed token; each token
holder can cast exactly one vote for a candidate on a fixed ballot. Counts
live in Redis.
"""

__version__ = '1.0.0'

from .auth import Authenticator, TokenClaims, parse_authorization_header, validate_username
from .candidates import CandidateRegistry
from .config import Settings
from .exceptions import (
    InvalidCandidate,
    InvalidIdentity,
    InvalidToken,
    StorageError,
    Unauthorized,
    VotingError,
)
from .ledger import VoteGuard, VoteLedger, VoteOutcome, VoteResult
from .store import CredentialStore, KeyValueStore
from .tally import TallyReader

__all__ = [
    'Authenticator',
    'TokenClaims',
    'parse_authorization_header',
    'validate_username',
    'CandidateRegistry',
    'Settings',
    'InvalidCandidate',
    'InvalidIdentity',
    'InvalidToken',
    'StorageError',
    'Unauthorized',
    'VotingError',
    'VoteGuard',
    'VoteLedger',
    'VoteOutcome',
    'VoteResult',
    'CredentialStore',
    'KeyValueStore',
    'TallyReader',
]
