from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from bunkhouse.core.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a signed token. Used by tests and local tooling; production tokens come from the auth provider."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode, settings.secret_key, algorithm=settings.access_token_algorithm
    )


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(
            token, settings.secret_key, algorithms=[settings.access_token_algorithm]
        )
    except JWTError:
        return None
