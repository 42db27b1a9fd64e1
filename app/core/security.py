from datetime import timedelta

import jwt

from app.core.clock import utcnow
from app.core.config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Sign a token carrying ``sub``, ``email`` and ``is_admin`` claims."""
    payload = dict(data)
    payload["exp"] = utcnow() + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    # raises jwt.PyJWTError on a bad signature or an expired token
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
