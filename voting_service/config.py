"""Configuration management for the voting service."""
from typing import Literal, Optional

from pydantic_settings import BaseSettings

DEFAULT_CANDIDATES = [
    "JoeBiden",
    "BetoORourke",
    "BernieSanders",
    "ElizabethWarren",
    "KamalaHarris",
    "DonaldTrump",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Instances are immutable. Build one at startup and hand it to
    ``create_app``; components receive it (or the values they need) at
    construction time.
    """

    # Service configuration
    SERVICE_NAME: str = "voting-service"
    API_VERSION: str = "v1"
    DEBUG: bool = False

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Redis configuration
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 50

    # Upper bound, in seconds, on the store work done by one request
    STORE_TIMEOUT: float = 5.0

    # Token signing
    JWT_SECRET: str = "secret"
    JWT_ALGORITHM: Literal["HS256", "HS384", "HS512"] = "HS256"
    TOKEN_INCLUDE_PASSWORD: bool = False

    # Ballot
    CANDIDATES: list[str] = DEFAULT_CANDIDATES

    # One-vote-per-voter guard: claim (store-wide), lock (per process), none
    VOTE_GUARD: Literal["claim", "lock", "none"] = "claim"

    # Rate limiting
    RATE_LIMIT: str = "100000/second"

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True
        frozen = True

    @property
    def redis_url(self) -> str:
        """Generate Redis connection URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
