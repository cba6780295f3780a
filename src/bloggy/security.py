import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from passlib.context import CryptContext
from pydantic import BaseModel

from bloggy.config import Settings
from bloggy.errors import TokenInvalid, TokenMissing

logger = structlog.get_logger(__name__)

#==============================================================================
# PASSWORD HASHING
#==============================================================================

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

# bcrypt only reads this many bytes of the secret
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    if password_too_long(password):
        raise ValueError(f"password must contain at most {MAX_PASSWORD_BYTES} bytes")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check a password against its hash, False for unusable hashes"""
    if not hashed_password or password_too_long(plain_password):
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("password_hash_unreadable")
        return False


def generate_temporary_password() -> str:
    return secrets.token_hex(10)

#==============================================================================
# SESSION TOKENS
#==============================================================================

class TokenClaims(BaseModel):
    firstName: str
    lastName: str = ""
    email: str
    avatarUrl: Optional[str] = None


def issue_token(claims: Dict, settings: Settings) -> str:
    """Sign a session token valid for settings.token_expire_hours"""
    now = datetime.now(timezone.utc)
    to_encode = dict(claims)
    to_encode.update({
        "iat": now,
        "exp": now + timedelta(hours=settings.token_expire_hours),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def _clean_token(token: Optional[str]) -> str:
    token = (token or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    # the frontend stores the token JSON encoded
    if token.startswith('"'):
        token = token[1:]
    if token.endswith('"'):
        token = token[:-1]
    return token


def verify_token(token: Optional[str], settings: Settings) -> Dict:
    """Return the claims of a valid token

    Raises TokenMissing for an absent token and TokenInvalid for a bad
    signature, a malformed token or an expired one.
    """
    token = _clean_token(token)
    if not token:
        raise TokenMissing()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenInvalid(detail="token expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalid(detail=f"token rejected: {e}")

#==============================================================================
# AUTH GATE
#==============================================================================

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


async def require_token(
    request: Request,
    token: Optional[str] = Depends(authorization_header),
) -> TokenClaims:
    """Reject requests without a valid session token"""
    settings: Settings = request.app.state.settings
    payload = verify_token(token, settings)
    try:
        return TokenClaims(**payload)
    except ValueError:
        raise TokenInvalid(detail="token claims incomplete")
