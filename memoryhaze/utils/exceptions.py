"""Custom exceptions for the MemoryHaze client"""

from typing import Any, Dict, Optional


class MemoryHazeError(Exception):
    """Base exception for MemoryHaze"""

    kind = "error"

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(MemoryHazeError):
    """Caller-fixable input, precondition or state failure"""

    kind = "validation"

    def __init__(
        self,
        message: str,
        step: Optional[int] = None,
        field: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.step = step
        self.field = field
        super().__init__(message, status_code=status_code, payload=payload)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.step is not None:
            data["step"] = self.step
        if self.field:
            data["field"] = self.field
        return data


class InvalidTransitionError(ValidationError):
    """Gift request status transition not allowed from the current status"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move a {current} request to {target}", field="status")


class AuthorizationError(MemoryHazeError):
    """Missing/expired session or wrong role for the action"""

    kind = "authorization"

    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"

    def __init__(
        self,
        message: str,
        reason: str = UNAUTHENTICATED,
        redirect_to: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.reason = reason
        if redirect_to is None:
            redirect_to = "/login" if reason == self.UNAUTHENTICATED else "/"
        self.redirect_to = redirect_to
        super().__init__(message, status_code=status_code, payload=payload)


class AccessDeniedError(MemoryHazeError):
    """Gift exists but is not viewable by the current identity"""

    kind = "access_denied"

    def __init__(self, message: str, reason: str, redirect_to: Optional[str] = None):
        self.reason = reason
        self.redirect_to = redirect_to
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class NotFoundError(MemoryHazeError):
    """Requested record does not exist"""

    kind = "not_found"


class UploadError(MemoryHazeError):
    """Media provider rejected or failed a transfer"""

    kind = "upload"


class ServerError(MemoryHazeError):
    """Non-2xx response or connection failure. Transient and retryable."""

    kind = "server"
    retryable = True


class ConfigError(MemoryHazeError):
    """Configuration error"""

    kind = "config"
