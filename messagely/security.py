"""
Password hashing and bearer-token handling.

Tokens are HS256 JWTs carrying the username they were issued for. The
username in a valid token is trusted as-is for the token's lifetime.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Request

from messagely.config import settings

logger = logging.getLogger(__name__)

TOKEN_FIELD = "_token"

# bcrypt ignores (newer releases reject) anything past 72 bytes
_BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class IdentityClaim:
    """Who a verified token says the caller is."""
    username: str
    issued_at: Optional[int] = None


def _password_bytes(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain_password: str) -> str:
    """
    Hash a plain password using bcrypt.

    Args:
        plain_password: The plain text password to hash

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_WORK_FACTOR)
    return bcrypt.hashpw(_password_bytes(plain_password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns:
        True if passwords match, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def sign(payload: Dict[str, Any]) -> str:
    """
    Sign a token for the given claims.

    Adds iat, and exp when ACCESS_TOKEN_EXPIRE_MINUTES is set.
    """
    issued_at = int(time.time())
    token_payload = {**payload, "iat": issued_at}
    if settings.ACCESS_TOKEN_EXPIRE_MINUTES > 0:
        token_payload["exp"] = issued_at + settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    return jwt.encode(token_payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify(token: str) -> Dict[str, Any]:
    """
    Decode and validate a token.

    Raises:
        jwt.PyJWTError: bad signature, malformed token or expired token
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def issue_token(username: str) -> str:
    return sign({"username": username})


def resolve_identity(token: Optional[str]) -> Optional[IdentityClaim]:
    """
    Turn a raw token into an IdentityClaim.

    Never raises: a missing, malformed, forged or expired token, or one
    without a username, resolves to None (anonymous).
    """
    if not token:
        return None
    try:
        payload = verify(token)
    except jwt.PyJWTError as e:
        logger.info(f"Token verification failed: {type(e).__name__}")
        return None

    username = payload.get("username")
    if not isinstance(username, str) or not username:
        logger.info("Token payload has no username")
        return None
    return IdentityClaim(username=username, issued_at=payload.get("iat"))


async def extract_token(request: Request) -> Optional[str]:
    """
    Find the bearer token on a request.

    Looked up, in order: the JSON body field "_token", the "_token" query
    parameter, then an "Authorization: Bearer" header.
    """
    raw_body = await request.body()
    if raw_body:
        try:
            body = json.loads(raw_body)
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get(TOKEN_FIELD), str):
            return body[TOKEN_FIELD]

    token = request.query_params.get(TOKEN_FIELD)
    if token:
        return token

    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None
