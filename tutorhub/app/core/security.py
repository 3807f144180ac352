"""Credential handling: bcrypt password hashes and signed bearer tokens.

Access tokens are HS256 JWTs whose ``sub`` is the user's id as a string.
They also carry ``role`` so clients can pick a dashboard without an extra
request; the server never trusts that claim and reloads the user instead.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from tutorhub.app.core.settings import get_settings
from tutorhub.app.core.time import utc_now

TOKEN_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def token_lifetime(expires_minutes: Optional[int] = None) -> timedelta:
    if expires_minutes is None:
        expires_minutes = get_settings().ACCESS_TOKEN_EXPIRE_MINUTES
    return timedelta(minutes=expires_minutes)


def create_access_token(user_id: int, expires_minutes: Optional[int] = None, role: Optional[str] = None) -> str:
    issued_at = utc_now()
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + token_lifetime(expires_minutes),
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, get_settings().SECRET_KEY, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the verified claims; any failure surfaces as ValueError."""
    try:
        return jwt.decode(
            token,
            get_settings().SECRET_KEY,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Invalid token") from exc
