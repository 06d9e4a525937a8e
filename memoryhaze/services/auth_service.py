"""Account flows: login, OTP signup and password reset"""

from typing import Optional

from ..api.client import MemoryHazeClient
from ..auth.session import Session
from ..models.user import UserProfile
from ..utils.exceptions import ServerError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _require(value: Optional[str], field: str, label: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{label} is required", field=field)
    return value.strip()


class AuthService:
    """Talks to /api/auth and hands tokens to the session"""

    def __init__(self, client: MemoryHazeClient, session: Session):
        self.client = client
        self.session = session

    def _accept_token(self, body: dict) -> UserProfile:
        token = body.get("token")
        if not token or not self.session.login(token):
            raise ServerError("The server did not return a usable token")
        return self.fetch_profile()

    def login(self, email: str, password: str) -> UserProfile:
        email = _require(email, "email", "Email")
        password = _require(password, "password", "Password")
        body = self.client.login(email, password)
        logger.info("Login succeeded", email=email)
        return self._accept_token(body)

    def send_signup_otp(self, email: str) -> str:
        body = self.client.send_signup_otp(_require(email, "email", "Email"))
        return body.get("message") or body.get("msg") or "OTP sent"

    def verify_signup(self, email: str, otp: str, name: str, password: str) -> UserProfile:
        body = self.client.verify_signup(
            _require(email, "email", "Email"),
            _require(otp, "otp", "OTP"),
            _require(name, "name", "Name"),
            _require(password, "password", "Password"),
        )
        logger.info("Signup verified", email=email)
        return self._accept_token(body)

    def send_reset_otp(self, email: str) -> str:
        body = self.client.send_reset_otp(_require(email, "email", "Email"))
        return body.get("message") or body.get("msg") or "OTP sent"

    def verify_reset_otp(self, email: str, otp: str) -> str:
        body = self.client.verify_reset_otp(_require(email, "email", "Email"), _require(otp, "otp", "OTP"))
        return body.get("message") or body.get("msg") or "OTP verified"

    def reset_password(self, email: str, otp: str, password: str, confirm: str) -> str:
        if password != confirm:
            raise ValidationError("Passwords do not match", field="confirm")
        body = self.client.reset_password(
            _require(email, "email", "Email"),
            _require(otp, "otp", "OTP"),
            _require(password, "password", "Password"),
        )
        logger.info("Password reset", email=email)
        return body.get("message") or body.get("msg") or "Password reset successful"

    def fetch_profile(self) -> UserProfile:
        """Resolve /api/auth/me and cache it on the session"""
        self.session.require_authenticated()
        profile = UserProfile.model_validate(self.client.get_me())
        self.session.update_profile(profile)
        return profile

    def logout(self) -> str:
        return self.session.logout()
