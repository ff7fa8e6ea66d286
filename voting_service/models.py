"""Pydantic models for request/response validation."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Voter registration request model.

    Username and password rules are enforced by the authenticator so that a
    bad identity is reported as 400, not as a schema error.
    """

    username: str = Field(default="", description="Email-shaped username")
    password: str = Field(default="", description="Non-empty password")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "alice@example.com",
                "password": "pw"
            }
        }


class TokenResponse(BaseModel):
    """Registration response carrying the signed identity token."""

    token: str = Field(..., description="Signed identity token (JWT)")


class VoteResponse(BaseModel):
    """Vote submission response model."""

    status: str = Field(..., description="Outcome of the vote")
    message: str = Field(default="Vote recorded successfully", description="Response message")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "success",
                "message": "Vote recorded successfully"
            }
        }


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Health check timestamp")


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(..., description="Error message")
