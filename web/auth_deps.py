"""
FastAPI dependencies for sandbox authentication and authorization.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Request, status

from .errors import ApiError

ALGORITHM = "HS256"


def issue_token(user: Dict[str, Any], secret: str, ttl: timedelta) -> str:
    """Sign a bearer token carrying the user id and admin flag"""
    now = datetime.now(timezone.utc)
    claims = {
        "user": {"id": user["_id"], "isAdmin": bool(user["isAdmin"])},
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def get_session_token(request: Request) -> Optional[str]:
    """Extract the bearer token from the Authorization header"""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Dependency to get the current authenticated user"""
    token = get_session_token(request)
    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "No token, authorization denied")

    try:
        claims = jwt.decode(token, request.app.state.secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Token expired")
    except jwt.PyJWTError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Token is not valid")

    user_id = (claims.get("user") or {}).get("id")
    user = request.app.state.store.users.get(user_id)
    if not user:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Token is not valid")
    return user


async def require_admin(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not current_user["isAdmin"]:
        raise ApiError(status.HTTP_403_FORBIDDEN, "Admin access required")
    return current_user


require_auth = get_current_user
