"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses

No response model has a password field, so hashes cannot leak through
serialization. The "_token" body field is read by the authorization gate
and ignored here.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Pydantic Request Models
# =============================================================================

class RegisterRequest(BaseModel):
    """Fields required to register a new user."""
    username: str = Field(..., min_length=1, max_length=50, description="Unique username")
    password: str = Field(..., min_length=1, description="Plain text password")
    first_name: str = Field(..., min_length=1, description="First name")
    last_name: str = Field(..., min_length=1, description="Last name")
    phone: str = Field(..., min_length=1, description="Phone number")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if v != v.strip() or "/" in v:
            raise ValueError("username must not contain '/' or surrounding whitespace")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "username": "alice",
                    "password": "secret",
                    "first_name": "Alice",
                    "last_name": "Smith",
                    "phone": "+14155550000"
                }
            ]
        }
    }


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SendMessageRequest(BaseModel):
    """Body of POST /messages. The sender is the caller's identity."""
    to_username: str = Field(..., min_length=1, description="Recipient username")
    body: str = Field(..., min_length=1, description="Message text")

    @field_validator("body")
    @classmethod
    def validate_body_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("body must not be blank")
        return v


# =============================================================================
# Pydantic Response Models
# =============================================================================

class TokenResponse(BaseModel):
    token: str = Field(..., description="Bearer token, send back as _token")


class ErrorResponse(BaseModel):
    """Uniform error body for every failure."""
    status: int = Field(..., description="HTTP status code")
    message: str = Field(..., description="Error description")


class UserSummary(BaseModel):
    """Public fields of a user."""
    username: str
    first_name: str
    last_name: str
    phone: str


class UserProfile(UserSummary):
    """Public profile, including join and last-login times."""
    join_at: str
    last_login_at: Optional[str] = None


class UsersListResponse(BaseModel):
    users: list[UserSummary] = Field(default_factory=list)


class UserResponse(BaseModel):
    user: UserProfile


class SentMessage(BaseModel):
    id: int
    to_user: UserSummary
    body: str
    sent_at: str
    read_at: Optional[str] = None


class ReceivedMessage(BaseModel):
    id: int
    from_user: UserSummary
    body: str
    sent_at: str
    read_at: Optional[str] = None


class SentMessagesResponse(BaseModel):
    messages: list[SentMessage] = Field(default_factory=list)


class ReceivedMessagesResponse(BaseModel):
    messages: list[ReceivedMessage] = Field(default_factory=list)


class MessageDetail(BaseModel):
    """A single message with sender and recipient expanded."""
    id: int
    from_user: UserSummary
    to_user: UserSummary
    body: str
    sent_at: str
    read_at: Optional[str] = None


class MessageDetailResponse(BaseModel):
    message: MessageDetail


class CreatedMessage(BaseModel):
    id: int
    from_username: str
    to_username: str
    body: str
    sent_at: str
    read_at: Optional[str] = None

    model_config = {"from_attributes": True}


class CreatedMessageResponse(BaseModel):
    message: CreatedMessage


class ReadReceipt(BaseModel):
    id: int
    read_at: str


class ReadReceiptResponse(BaseModel):
    message: ReadReceipt


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
