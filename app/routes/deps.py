import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_access_token
from app.schemas.users import CurrentUser

bearer_scheme = HTTPBearer(auto_error=False)


def _user_from_token(token: str) -> CurrentUser:
    try:
        payload = decode_access_token(token)
        return CurrentUser(
            id=int(payload["sub"]),
            email=payload.get("email", ""),
            is_admin=bool(payload.get("is_admin", False)),
        )
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser | None:
    """Guests are allowed; a token that is present must still be valid."""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return _user_from_token(credentials.credentials)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
