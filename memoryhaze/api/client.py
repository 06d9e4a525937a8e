"""MemoryHaze collaborator API client"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..auth.session import Session
from ..utils.exceptions import (
    AuthorizationError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

VALIDATION_STATUSES = {400, 409, 422}

# Reads are idempotent and retried on transient failures; writes never are.
read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(ServerError),
    reraise=True,
)


def error_message(body: Any, default: str) -> str:
    """Pick the human-readable message out of an error body"""
    if not isinstance(body, dict):
        return default
    texts = []
    for key in ("error", "message", "msg"):
        value = body.get(key)
        if isinstance(value, str) and value.strip() and value.strip() not in texts:
            texts.append(value.strip())
    details = body.get("details")
    if not texts:
        if isinstance(details, str) and details.strip():
            return details.strip()
        return default

    message = ": ".join(texts[:2])
    if isinstance(details, list):
        parts = [f"{d.get('field')}: {d.get('message')}" for d in details if isinstance(d, dict)]
        if parts:
            message += f" ({', '.join(parts)})"
    return message


class MemoryHazeClient:
    """Client for the MemoryHaze REST API with bearer auth and error mapping"""

    def __init__(
        self,
        session: Session,
        base_url: str = "http://localhost:5000",
        http: Optional[Any] = None,
        connection_timeout: int = 10,
        read_timeout: int = 30,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        # Anything with a requests-style .request(); tests pass a FastAPI TestClient
        self.http = http if http is not None else requests.Session()
        self.timeout = (connection_timeout, read_timeout)

    def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request to the API

        Args:
            method: HTTP method
            path: API path starting with /api
            params: Query parameters
            json: JSON body
            auth: Attach the session's bearer token

        Returns:
            Decoded JSON body

        Raises:
            ValidationError: 400/409/422
            AuthorizationError: 401/403
            NotFoundError: 404
            ServerError: any other failure, including transport errors
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"Accept": "application/json"}
        if auth:
            headers.update(self.session.auth_headers())

        logger.debug("Sending API request", method=method, path=path)
        try:
            kwargs = {"params": params, "headers": headers}
            if json is not None:
                kwargs["json"] = json
            if isinstance(self.http, requests.Session):
                kwargs["timeout"] = self.timeout
            response = self.http.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.error("Request timeout", path=path, error=str(e))
            raise ServerError("The server took too long to respond. Please try again.")
        except requests.exceptions.RequestException as e:
            logger.error("Request failed", path=path, error=str(e))
            raise ServerError("Failed to connect to server")

        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}

        logger.info("Received API response", method=method, path=path, status_code=status_code)

        if status_code < 400:
            return body if isinstance(body, dict) else {"data": body}

        payload = body if isinstance(body, dict) else {}
        if status_code in VALIDATION_STATUSES:
            raise ValidationError(
                error_message(payload, "The request was not accepted"),
                status_code=status_code,
                payload=payload,
            )
        if status_code == 401:
            raise AuthorizationError(
                error_message(payload, "Your session has expired. Please log in again."),
                reason=AuthorizationError.UNAUTHENTICATED,
                status_code=status_code,
                payload=payload,
            )
        if status_code == 403:
            raise AuthorizationError(
                error_message(payload, "You are not allowed to do that"),
                reason=AuthorizationError.FORBIDDEN,
                status_code=status_code,
                payload=payload,
            )
        if status_code == 404:
            raise NotFoundError(
                error_message(payload, "Not found"),
                status_code=status_code,
                payload=payload,
            )
        raise ServerError(
            error_message(payload, f"Server error ({status_code})"),
            status_code=status_code,
            payload=payload,
        )

    # -------------------------
    # Auth
    # -------------------------

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._make_request("POST", "/api/auth/login", json={"email": email, "password": password}, auth=False)

    def send_signup_otp(self, email: str) -> Dict[str, Any]:
        return self._make_request("POST", "/api/auth/send-otp", json={"email": email}, auth=False)

    def verify_signup(self, email: str, otp: str, name: str, password: str) -> Dict[str, Any]:
        return self._make_request(
            "POST",
            "/api/auth/verify-signup",
            json={"email": email, "otp": otp, "name": name, "password": password},
            auth=False,
        )

    def send_reset_otp(self, email: str) -> Dict[str, Any]:
        return self._make_request("POST", "/api/auth/forgot/send-otp", json={"email": email}, auth=False)

    def verify_reset_otp(self, email: str, otp: str) -> Dict[str, Any]:
        return self._make_request("POST", "/api/auth/forgot/verify", json={"email": email, "otp": otp}, auth=False)

    def reset_password(self, email: str, otp: str, password: str) -> Dict[str, Any]:
        return self._make_request(
            "POST",
            "/api/auth/forgot/reset",
            json={"email": email, "otp": otp, "password": password},
            auth=False,
        )

    @read_retry
    def get_me(self) -> Dict[str, Any]:
        return self._make_request("GET", "/api/auth/me")

    # -------------------------
    # Customer gifts
    # -------------------------

    def create_gift_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._make_request("POST", "/api/gifts/request", json=payload)

    @read_retry
    def list_gifts(self) -> Dict[str, Any]:
        return self._make_request("GET", "/api/gifts")

    def get_gift(self, gift_id: str, encrypted_recipient_id: Optional[str] = None) -> Dict[str, Any]:
        # Not retried: a 403/404 here is an answer, not a transient failure
        if encrypted_recipient_id:
            path = f"/api/gifts/{quote(gift_id, safe='')}/{quote(encrypted_recipient_id, safe='')}"
        else:
            path = f"/api/gifts/{quote(gift_id, safe='')}"
        return self._make_request("GET", path)

    # -------------------------
    # Admin request queue
    # -------------------------

    @read_retry
    def list_requests(self, status: str = "all", page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return self._make_request(
            "GET",
            "/api/admin/requests",
            params={"status": status, "page": page, "limit": limit},
        )

    @read_retry
    def request_stats(self) -> Dict[str, Any]:
        return self._make_request("GET", "/api/admin/requests/stats")

    def verify_request(self, request_id: str) -> Dict[str, Any]:
        return self._make_request("PATCH", f"/api/admin/requests/{quote(request_id, safe='')}/verify")

    def reject_request(self, request_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._make_request(
            "PATCH",
            f"/api/admin/requests/{quote(request_id, safe='')}/reject",
            json={"reason": reason or ""},
        )

    def complete_request(self, request_id: str, audio_url: str, audio_public_id: str, lyrics: str) -> Dict[str, Any]:
        return self._make_request(
            "PATCH",
            f"/api/admin/requests/{quote(request_id, safe='')}/complete",
            json={"audio": audio_url, "audioPublicId": audio_public_id, "lyrics": lyrics},
        )

    # -------------------------
    # Admin users and gifts
    # -------------------------

    @read_retry
    def list_users(self, search: str = "", page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return self._make_request(
            "GET",
            "/api/admin/users",
            params={"search": search, "page": page, "limit": limit},
        )

    def create_user(self, email: str, password: str) -> Dict[str, Any]:
        return self._make_request("POST", "/api/admin/users", json={"email": email, "password": password})

    @read_retry
    def list_user_gifts(self, user_id: str) -> Dict[str, Any]:
        return self._make_request("GET", f"/api/admin/users/{quote(user_id, safe='')}/gifts")

    def create_gift_for_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._make_request("POST", "/api/admin/gifts", json=payload)

    def set_gift_access(self, gift_id: str, access_enabled: bool, reset_expiry: bool) -> Dict[str, Any]:
        return self._make_request(
            "PATCH",
            f"/api/admin/gifts/{quote(gift_id, safe='')}/access",
            json={"accessEnabled": access_enabled, "resetExpiry": reset_expiry},
        )

    def delete_gift_permanently(self, gift_id: str) -> Dict[str, Any]:
        return self._make_request("DELETE", f"/api/admin/gifts/{quote(gift_id, safe='')}/permanent")
