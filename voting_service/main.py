"""
FastAPI application for the voting service.

Endpoints:
- POST /register           register a voter, returns a signed token
- POST /vote/{candidate}   cast the token holder's single vote
- GET  /vote               running tally
- GET  /help, /health, /metrics, /
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__, metrics
from .auth import Authenticator, parse_authorization_header
from .candidates import CandidateRegistry
from .config import Settings
from .exceptions import InvalidCandidate, InvalidIdentity, StorageError, Unauthorized
from .ledger import VoteGuard, VoteLedger, VoteOutcome
from .models import (
    ErrorResponse,
    HealthResponse,
    RegisterRequest,
    TokenResponse,
    VoteResponse,
)
from .redis_client import RedisStore
from .store import CredentialStore, KeyValueStore
from .tally import TallyReader

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "POST /register Body like: {'username': 'xxx', 'password': 'yyy'} (returns a JWT token)\n"
    "POST /vote/{candidate} Header like: 'authorization: jwt xxx.yyy.zzz' (one vote per user)\n"
    "GET /vote (shows current votes per candidate)\n"
)


def create_app(settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None) -> FastAPI:
    """
    Build the application and wire its components.

    Args:
        settings: Configuration; read from the environment when omitted
        store: Key-value store; a Redis store built from settings when omitted

    Returns:
        FastAPI: Configured application
    """
    if settings is None:
        settings = Settings()
    if store is None:
        store = RedisStore(settings)

    logging.basicConfig(
        level=logging.INFO if not settings.DEBUG else logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    registry = CandidateRegistry(settings.CANDIDATES)
    authenticator = Authenticator(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        include_password=settings.TOKEN_INCLUDE_PASSWORD
    )
    credentials = CredentialStore(store)
    ledger = VoteLedger(
        authenticator,
        credentials,
        registry,
        guard=VoteGuard(settings.VOTE_GUARD),
        timeout=settings.STORE_TIMEOUT
    )
    tally_reader = TallyReader(credentials, registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        logger.info(f"Starting {settings.SERVICE_NAME} service...")

        try:
            await store.ping()
            logger.info("Store connection established")
        except StorageError as e:
            logger.error(f"Failed to start {settings.SERVICE_NAME}: {e}")
            raise

        logger.info(
            f"{settings.SERVICE_NAME} started with {len(registry)} candidates, "
            f"vote guard '{ledger.guard.value}'"
        )

        yield

        logger.info(f"Shutting down {settings.SERVICE_NAME} service...")
        await store.close()

    app = FastAPI(
        title="Voting Service",
        description="Register voters, cast one vote per voter, read the tally",
        version=__version__,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.store = store
    app.state.ledger = ledger
    app.state.tally = tally_reader

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are client errors, reported as 400."""
        logger.info(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
        if request.url.path == "/register":
            metrics.registrations.labels(status="rejected").inc()
        else:
            metrics.vote_errors.labels(error_type="validation_error").inc()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Malformed request body"}
        )

    @app.middleware("http")
    async def prometheus_middleware(request: Request, call_next):
        """Middleware to track request duration."""
        start = time.perf_counter()
        response = await call_next(request)
        metrics.request_duration.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).observe(time.perf_counter() - start)
        return response

    @app.post(
        "/register",
        response_model=TokenResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid username or password"},
            429: {"description": "Rate limit exceeded"},
            500: {"model": ErrorResponse, "description": "Internal server error"}
        }
    )
    @limiter.limit(settings.RATE_LIMIT)
    async def register(request: Request, user: RegisterRequest) -> TokenResponse:
        """
        Register a voter.

        - **username**: email-shaped username
        - **password**: non-empty password

        Registering again with the same username overwrites the stored
        credential and returns a new token.
        """
        try:
            token = await ledger.register(user.username, user.password)
            metrics.registrations.labels(status="accepted").inc()
            return TokenResponse(token=token)

        except InvalidIdentity as e:
            metrics.registrations.labels(status="rejected").inc()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )
        except StorageError as e:
            metrics.vote_errors.labels(error_type="storage_error").inc()
            logger.error(f"Error registering {user.username}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to store credential"
            )
        except Exception as e:
            metrics.vote_errors.labels(error_type="internal_error").inc()
            logger.error(f"Error registering {user.username}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error"
            )

    @app.post(
        "/vote/{candidate}",
        response_model=VoteResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid candidate"},
            401: {"model": ErrorResponse, "description": "Unauthorized or already voted"},
            429: {"description": "Rate limit exceeded"},
            500: {"model": ErrorResponse, "description": "Internal server error"}
        }
    )
    @limiter.limit(settings.RATE_LIMIT)
    async def cast_vote(
        request: Request,
        candidate: str,
        authorization: Optional[str] = Header(default=None)
    ) -> VoteResponse:
        """
        Cast the caller's vote for a candidate.

        - **candidate**: candidate id from the ballot
        - **authorization** header: `<scheme> <token>`, e.g. `Bearer xxx.yyy.zzz`

        Each registered voter can vote once; later attempts return 401.
        """
        try:
            token = parse_authorization_header(authorization)
            result = await ledger.cast_vote(token, candidate)

            metrics.vote_outcomes.labels(outcome=result.outcome.value).inc()
            if result.outcome is VoteOutcome.ALREADY_VOTED:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail=f"User {result.username} has already voted"
                )

            metrics.votes_cast.labels(candidate=candidate).inc()
            return VoteResponse(status=result.outcome.value)

        except Unauthorized as e:
            metrics.vote_errors.labels(error_type="unauthorized").inc()
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(e)
            )
        except InvalidCandidate as e:
            metrics.vote_errors.labels(error_type="invalid_candidate").inc()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )
        except StorageError as e:
            metrics.vote_errors.labels(error_type="storage_error").inc()
            logger.error(f"Error casting vote for {candidate}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to record vote"
            )
        except HTTPException:
            raise
        except Exception as e:
            metrics.vote_errors.labels(error_type="internal_error").inc()
            logger.error(f"Error casting vote for {candidate}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error"
            )

    @app.get(
        "/vote",
        responses={
            500: {"model": ErrorResponse, "description": "Internal server error"}
        }
    )
    async def get_votes():
        """
        Get the running tally.

        Returns every candidate on the ballot mapped to its count as a
        string; candidates without votes report "0".
        """
        try:
            tally = await tally_reader.get_tally()
            return JSONResponse(
                content={candidate: str(count) for candidate, count in tally.items()}
            )

        except StorageError as e:
            logger.error(f"Error reading tally: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to read tally"
            )

    @app.get("/help", response_class=PlainTextResponse)
    async def help_text():
        """Plain-text usage summary."""
        return HELP_TEXT

    @app.get(
        "/health",
        response_model=HealthResponse,
        responses={
            503: {"model": HealthResponse, "description": "Service unhealthy"}
        }
    )
    async def health_check() -> HealthResponse:
        """Check connectivity to the backing store."""
        services = {}

        try:
            healthy = await store.ping()
            services["store"] = "connected" if healthy else "disconnected"
        except StorageError as e:
            logger.error(f"Store health check error: {e}")
            services["store"] = "disconnected"

        all_healthy = all(state == "connected" for state in services.values())
        response = HealthResponse(
            status="healthy" if all_healthy else "unhealthy",
            services=services,
            timestamp=datetime.utcnow()
        )

        return JSONResponse(
            status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json")
        )

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.SERVICE_NAME,
            "version": __version__,
            "status": "running",
            "candidates": list(registry.candidates),
            "endpoints": {
                "register": "/register",
                "cast_vote": "/vote/{candidate}",
                "get_votes": "/vote",
                "help": "/help",
                "health": "/health",
                "metrics": "/metrics"
            }
        }

    return app
