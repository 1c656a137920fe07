from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config


@dataclass(frozen=True)
class TokenClaims:
    email: str
    expires_at: datetime


def create_access_token(email: str, expires_minutes: int | None = None) -> str:
    """Sign a bearer token for ``email``. Login flows live outside this service."""
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {"sub": email, "exp": issued_at + timedelta(minutes=expire_minutes), "iat": issued_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    payload = jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    email = str(payload["sub"]).strip().lower()
    if not email:
        raise jwt.InvalidTokenError("Token subject is empty.")
    return TokenClaims(email=email, expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc))
