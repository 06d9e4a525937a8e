"""
Client session: the bearer token and the claims derived from it.

The token is decoded without signature verification; the server verifies it
on every call. The admin flag only drives what the client shows.

Expiry is advisory. An expired or undecodable token makes is_fresh() report
False but is never cleared automatically; only logout() and a new login()
write the stored token.
"""

import json
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import jwt

from ..models.user import TokenClaims, UserProfile
from ..utils.exceptions import AuthorizationError, ConfigError
from ..utils.logger import get_logger

logger = get_logger(__name__)

LANDING_PATH = "/"
LOGIN_PATH = "/login"


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode the JWT payload without verifying it. None if malformed."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
            algorithms=["HS256", "HS384", "HS512", "RS256"],
        )
    except jwt.PyJWTError as e:
        logger.warning("Could not decode token", error=str(e))
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def claims_from_payload(payload: Dict[str, Any]) -> TokenClaims:
    user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
    admin_flag = user.get("isAdmin")
    if admin_flag is None:
        admin_flag = payload.get("isAdmin")
    subject = user.get("id") or payload.get("id") or payload.get("sub")
    exp = payload.get("exp")
    expires_at = None
    if isinstance(exp, (int, float)):
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    return TokenClaims(
        subject_id=str(subject) if subject is not None else None,
        is_admin=bool(admin_flag),
        expires_at=expires_at,
    )


class TokenStore:
    """Durable token storage in a small JSON file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            return None
        token = data.get("token")
        return token if isinstance(token, str) and token else None

    def save(self, token: Optional[str]) -> None:
        """Atomically write the token (None clears it)"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=str(self.path.parent), delete=False, encoding="utf-8"
        ) as tf:
            json.dump({"token": token}, tf)
            temp_path = Path(tf.name)
        try:
            shutil.move(str(temp_path), str(self.path))
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save session to {self.path}: {str(e)}")


class MemoryTokenStore:
    """Process-local store for tests and throwaway sessions"""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    def load(self) -> Optional[str]:
        return self.token

    def save(self, token: Optional[str]) -> None:
        self.token = token


class Session:
    """
    Holds the bearer credential. The single writer of the token.

    Pass one instance to every service that makes authenticated calls.
    """

    def __init__(self, store=None):
        self._store = store if store is not None else MemoryTokenStore()
        self._token: Optional[str] = None
        self._claims: Optional[TokenClaims] = None
        self.profile: Optional[UserProfile] = None

    def restore(self) -> bool:
        """Load a persisted token. Returns True if one was found."""
        token = self._store.load()
        if not token:
            return False
        payload = decode_token(token)
        self._token = token
        self._claims = claims_from_payload(payload) if payload else None
        logger.info("Session restored", fresh=self.is_fresh())
        return True

    def login(self, token: str) -> bool:
        """Store a new token. Does nothing and returns False if it cannot be decoded."""
        payload = decode_token(token)
        if payload is None:
            logger.warning("Login ignored: token could not be decoded")
            return False
        self._token = token
        self._claims = claims_from_payload(payload)
        self.profile = None
        self._store.save(token)
        logger.info("Logged in", subject_id=self._claims.subject_id, is_admin=self._claims.is_admin)
        return True

    def logout(self) -> str:
        """Clear the token and return the unauthenticated landing path"""
        self._token = None
        self._claims = None
        self.profile = None
        self._store.save(None)
        logger.info("Logged out")
        return LANDING_PATH

    def update_profile(self, profile: UserProfile) -> None:
        self.profile = profile

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def claims(self) -> Optional[TokenClaims]:
        return self._claims

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    @property
    def is_admin(self) -> bool:
        return bool(self._claims and self._claims.is_admin)

    @property
    def subject_id(self) -> Optional[str]:
        return self._claims.subject_id if self._claims else None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._claims.expires_at if self._claims else None

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        """True only for a present, decodable, unexpired token. Never clears anything."""
        if not self._token or self._claims is None:
            return False
        if self._claims.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now < self._claims.expires_at

    def require_authenticated(self, next_path: Optional[str] = None) -> None:
        if not self.is_fresh():
            redirect = LOGIN_PATH
            if next_path:
                redirect = f"{LOGIN_PATH}?next={quote(next_path)}"
            raise AuthorizationError(
                "Please log in to continue",
                reason=AuthorizationError.UNAUTHENTICATED,
                redirect_to=redirect,
            )

    def require_admin(self) -> None:
        self.require_authenticated()
        if not self.is_admin:
            raise AuthorizationError(
                "Admin access required",
                reason=AuthorizationError.FORBIDDEN,
                redirect_to=LANDING_PATH,
            )

    def auth_headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}
