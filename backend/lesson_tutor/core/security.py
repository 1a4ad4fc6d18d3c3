from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from lesson_tutor.core.config import settings


def create_access_token(*, subject: str, expires_minutes: int = 60, extra: Optional[Dict[str, Any]] = None) -> str:
    """Issue a token for ``subject``. Production tokens come from the identity provider; this is for tests and local tooling."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=int(expires_minutes))

    to_encode: Dict[str, Any] = {
        "sub": str(subject),
        "exp": int(expire.timestamp()),
        "iat": int(datetime.now(timezone.utc).timestamp()),
    }
    if extra:
        to_encode.update(extra)
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def safe_decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return decode_token(token)
    except JWTError:
        return None


def identity_from_token(token: str) -> Optional[str]:
    claims = safe_decode_token(token)
    if not claims:
        return None
    sub = str(claims.get("sub") or "").strip()
    return sub or None
