from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from jose import jwt, JWTError
import structlog

from p2p.config import settings

logger = structlog.get_logger()

# ---------- key loading ----------

_key_cache: dict[str, str] = {}


def _read_key(path: Optional[str]) -> str:
    if not path:
        raise JWTError(f"No key file configured for {settings.JWT_ALGORITHM}")
    if path not in _key_cache:
        with open(path, "r") as f:
            _key_cache[path] = f.read()
    return _key_cache[path]


def _signing_key() -> str:
    if settings.JWT_ALGORITHM.startswith("HS"):
        return settings.JWT_SECRET_KEY
    return _read_key(settings.JWT_PRIVATE_KEY_PATH)


def _verification_key() -> str:
    if settings.JWT_ALGORITHM.startswith("HS"):
        return settings.JWT_SECRET_KEY
    return _read_key(settings.JWT_PUBLIC_KEY_PATH)


# ---------- token generation ----------

def create_access_token(
    user_id: str,
    email: str,
    name: Optional[str] = None,
    role: Optional[str] = None,
    permissions: Optional[Iterable[str]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "name": name or email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "type": "access",
    }
    if role:
        claims["role"] = role
    if permissions is not None:
        claims["permissions"] = [str(getattr(p, "value", p)) for p in permissions]
    return jwt.encode(claims, _signing_key(), algorithm=settings.JWT_ALGORITHM)


# ---------- token verification ----------

def decode_token(token: str) -> dict:
    """Decode and verify a JWT token. Raises JWTError on failure."""
    return jwt.decode(token, _verification_key(), algorithms=[settings.JWT_ALGORITHM])


def verify_access_token(token: str) -> dict:
    """Verify an access token and return its claims."""
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise JWTError("Not an access token")
    return payload
