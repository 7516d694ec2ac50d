"""
Security Utilities
==================

JWT token generation/validation and password hashing.

Access and refresh tokens are signed with different secrets, so one kind
can never be accepted in place of the other.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError
from passlib.context import CryptContext

from config import Settings, get_settings
from models import User


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _encode(
    claims: dict,
    secret: str,
    expires_delta: timedelta,
    settings: Settings
) -> str:
    to_encode = claims.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + expires_delta,
        "jti": uuid.uuid4().hex,
    })
    return jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, secret: str, token_type: str, settings: Settings) -> Dict[str, Any]:
    payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    if payload.get("type") != token_type:
        raise JWTError(f"Expected a {token_type} token")
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload


def create_access_token(
    user: User,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None
) -> str:
    """
    Create a JWT access token carrying the user's identity claims.

    Args:
        user: The user the token is issued to
        expires_delta: Optional custom expiration time
        settings: Optional settings override

    Returns:
        str: The encoded JWT token
    """
    settings = settings or get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    claims = {
        "sub": user.id,
        "email": user.email,
        "username": user.username,
        "fullname": user.fullname,
        "type": ACCESS_TOKEN_TYPE,
    }
    return _encode(claims, settings.access_token_secret, expires_delta, settings)


def create_refresh_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None
) -> str:
    """
    Create a JWT refresh token.

    Only the subject is embedded. Each token gets a random `jti`, so two
    tokens issued for the same user in the same second still differ.

    Args:
        user_id: Id of the user the token is issued to
        expires_delta: Optional custom expiration time
        settings: Optional settings override

    Returns:
        str: The encoded JWT refresh token
    """
    settings = settings or get_settings()

    if expires_delta is None:
        expires_delta = timedelta(days=settings.refresh_token_expire_days)

    claims = {"sub": user_id, "type": REFRESH_TOKEN_TYPE}
    return _encode(claims, settings.refresh_token_secret, expires_delta, settings)


def verify_access_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        JWTError: If the token is invalid, expired or not an access token
    """
    settings = settings or get_settings()
    return _decode(token, settings.access_token_secret, ACCESS_TOKEN_TYPE, settings)


def verify_refresh_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Verify and decode a refresh token.

    Raises:
        JWTError: If the token is invalid, expired or not a refresh token
    """
    settings = settings or get_settings()
    return _decode(token, settings.refresh_token_secret, REFRESH_TOKEN_TYPE, settings)


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        bool: True if password matches
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a recognizable hash
        return False
