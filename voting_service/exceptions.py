"""Error taxonomy for the voting service."""


class VotingError(Exception):
    """Base class for all errors raised by the voting service."""
    pass


class InvalidIdentity(VotingError):
    """Username is not email-shaped or the password is empty."""
    pass


class Unauthorized(VotingError):
    """Caller identity could not be established or is not registered."""
    pass


class InvalidToken(Unauthorized):
    """Token is missing, malformed, badly signed or has unexpected claims."""
    pass


class InvalidCandidate(VotingError):
    """Candidate is not on the ballot."""

    def __init__(self, candidate: str):
        super().__init__(f"Invalid candidate: {candidate}")
        self.candidate = candidate


class StorageError(VotingError):
    """Backing store is unreachable or returned an unexpected value."""
    pass
