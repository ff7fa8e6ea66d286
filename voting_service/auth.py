"""
Identity tokens for voters.

Tokens are HMAC-signed JWTs with no expiry. The signing secret is the only
state; nothing about a token is stored server side.
"""
import logging
import re
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError, validator

from .exceptions import InvalidIdentity, InvalidToken
from .store import CLAIM_SUFFIX, CREDENTIAL_SUFFIX

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")

USERNAME_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)

TOKEN_ERROR_MESSAGE = "Please provide a valid JWT token"

# A username ending in one of these would be some other voter's derived key.
RESERVED_SUFFIXES = (CREDENTIAL_SUFFIX, CLAIM_SUFFIX)


def validate_username(username: str) -> bool:
    """True if username is an email-shaped string outside the reserved key suffixes."""
    if not isinstance(username, str) or USERNAME_PATTERN.fullmatch(username) is None:
        return False
    return not username.endswith(RESERVED_SUFFIXES)


class TokenClaims(BaseModel):
    """Claims carried by an identity token."""

    username: str
    password: Optional[str] = None

    @validator("username")
    def validate_username_claim(cls, v):
        if not validate_username(v):
            raise ValueError("username claim is not a valid username")
        return v

    class Config:
        extra = "forbid"
        strict = True
        frozen = True


class Authenticator:
    """Issues and verifies signed identity tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", include_password: bool = False):
        if not secret:
            raise ValueError("Token signing secret cannot be empty")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret
        self.algorithm = algorithm
        self.include_password = include_password

    def issue(self, username: str, password: str) -> str:
        """
        Issue a signed token for a voter.

        Args:
            username: Email-shaped voter name
            password: Non-empty password

        Returns:
            str: Compact JWT

        Raises:
            InvalidIdentity: username is not email-shaped or password is empty
        """
        if not validate_username(username) or not isinstance(password, str) or password == "":
            logger.info("Illegal username or password")
            raise InvalidIdentity("Illegal username or password")

        claims = TokenClaims(
            username=username,
            password=password if self.include_password else None
        )
        return jwt.encode(
            claims.model_dump(exclude_none=True),
            self._secret,
            algorithm=self.algorithm
        )

    def verify(self, token: str) -> TokenClaims:
        """
        Verify a token and return its claims.

        Raises:
            InvalidToken: token is empty, malformed, signed with another
                algorithm, badly signed, or carries unexpected claims
        """
        if not token or not isinstance(token, str):
            raise InvalidToken(TOKEN_ERROR_MESSAGE)

        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != self.algorithm:
                logger.warning(f"Rejected token signed with {header.get('alg')!r}")
                raise InvalidToken(TOKEN_ERROR_MESSAGE)
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info(f"Error processing JWT token: {e}")
            raise InvalidToken(TOKEN_ERROR_MESSAGE) from e

        try:
            return TokenClaims(**payload)
        except (ValidationError, TypeError) as e:
            logger.info(f"Token claims rejected: {e}")
            raise InvalidToken(TOKEN_ERROR_MESSAGE) from e


def parse_authorization_header(value: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: <scheme> <token>`` header.

    Any scheme word is accepted (``Bearer``, ``jwt``, ...).
    """
    if not value:
        raise InvalidToken("An authorization header is required")
    parts = value.split(" ")
    if len(parts) != 2 or not parts[1]:
        raise InvalidToken("An authorization header with two components was not supplied")
    return parts[1]
