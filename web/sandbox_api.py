"""
FastAPI sandbox implementing the MemoryHaze HTTP API in memory.

Used for local development (see main.py) and as the backend the test
suite drives the client against. One admin account is seeded at start-up.
"""

import os
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from itsdangerous import BadSignature, URLSafeSerializer

from memoryhaze.models.gift import GiftStatus
from memoryhaze.models.grant import effective_access
from memoryhaze.models.viewer import Gift
from memoryhaze.services.templates import is_known_template
from memoryhaze.services.viewer_service import denial_for_grant
from memoryhaze.utils.exceptions import InvalidTransitionError, ValidationError
from memoryhaze.utils.logger import get_logger

from .auth_deps import issue_token, require_admin, require_auth
from .errors import ApiError, api_error_handler, validation_error_handler
from .models import (
    AccessBody,
    CompleteBody,
    CreateGiftBody,
    CreateGiftRequestBody,
    CreateUserRequest,
    EmailRequest,
    LoginRequest,
    OtpVerifyRequest,
    PasswordResetRequest,
    RejectBody,
    SignupVerifyRequest,
)
from .sandbox_store import SandboxStore

logger = get_logger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@memoryhaze.app"


def gift_json(gift: Gift) -> Dict[str, Any]:
    return gift.model_dump(mode="json", by_alias=True)


def get_store(request: Request) -> SandboxStore:
    return request.app.state.store


def create_app(
    secret_key: Optional[str] = None,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
    token_ttl: timedelta = timedelta(days=7),
    bcrypt_rounds: int = 12,
) -> FastAPI:
    """Build a sandbox app with fresh in-memory state"""
    app = FastAPI(
        title="MemoryHaze Sandbox API",
        description="In-memory MemoryHaze API for development and tests",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.state.secret_key = secret_key or os.getenv("SANDBOX_SECRET_KEY") or secrets.token_urlsafe(32)
    app.state.token_ttl = token_ttl
    app.state.store = SandboxStore(bcrypt_rounds=bcrypt_rounds)
    app.state.recipients = URLSafeSerializer(app.state.secret_key, salt="gift-recipient")

    admin_email = admin_email or os.getenv("SANDBOX_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL)
    admin_password = admin_password or os.getenv("SANDBOX_ADMIN_PASSWORD", "admin123")
    app.state.store.create_user(admin_email, admin_password, name="Admin", is_admin=True)

    def token_for(user: Dict[str, Any]) -> str:
        return issue_token(user, app.state.secret_key, app.state.token_ttl)

    # -------------------------
    # Auth
    # -------------------------

    @app.post("/api/auth/login")
    async def login(body: LoginRequest, store: SandboxStore = Depends(get_store)):
        user = store.get_user_by_email(body.email)
        if not user or not store.verify_password(body.password, user["passwordHash"]):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid credentials")
        logger.info("Sandbox login", email=user["email"])
        return {"token": token_for(user), "user": store.public_user(user)}

    @app.post("/api/auth/send-otp")
    async def send_signup_otp(body: EmailRequest, store: SandboxStore = Depends(get_store)):
        if store.get_user_by_email(body.email):
            raise ApiError(status.HTTP_409_CONFLICT, "User already exists")
        store.issue_code(body.email, "signup")
        return {"message": "OTP sent to your email"}

    @app.post("/api/auth/verify-signup", status_code=status.HTTP_201_CREATED)
    async def verify_signup(body: SignupVerifyRequest, store: SandboxStore = Depends(get_store)):
        if store.get_user_by_email(body.email):
            raise ApiError(status.HTTP_409_CONFLICT, "User already exists")
        if not store.check_code(body.email, body.otp, "signup"):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP")
        store.consume_code(body.email, "signup")
        user = store.create_user(body.email, body.password, name=body.name)
        return {"token": token_for(user), "user": store.public_user(user)}

    @app.post("/api/auth/forgot/send-otp")
    async def send_reset_otp(body: EmailRequest, store: SandboxStore = Depends(get_store)):
        if not store.get_user_by_email(body.email):
            raise ApiError(status.HTTP_404_NOT_FOUND, "No account with that email")
        store.issue_code(body.email, "reset")
        return {"message": "OTP sent to your email"}

    @app.post("/api/auth/forgot/verify")
    async def verify_reset_otp(body: OtpVerifyRequest, store: SandboxStore = Depends(get_store)):
        if not store.check_code(body.email, body.otp, "reset"):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP", msg="Invalid or expired OTP")
        store.verified_resets.add(body.email.strip().lower())
        return {"message": "OTP verified"}

    @app.post("/api/auth/forgot/reset")
    async def reset_password(body: PasswordResetRequest, store: SandboxStore = Depends(get_store)):
        user = store.get_user_by_email(body.email)
        if not user or not store.check_code(body.email, body.otp, "reset"):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP", msg="Failed to reset password")
        store.set_password(user, body.password)
        store.consume_code(body.email, "reset")
        return {"message": "Password reset successful"}

    @app.get("/api/auth/me")
    async def me(current_user: Dict[str, Any] = Depends(require_auth), store: SandboxStore = Depends(get_store)):
        return store.public_user(current_user)

    # -------------------------
    # Customer gifts
    # -------------------------

    @app.post("/api/gifts/request", status_code=status.HTTP_201_CREATED)
    async def create_gift_request(
        body: CreateGiftRequestBody,
        current_user: Dict[str, Any] = Depends(require_auth),
        store: SandboxStore = Depends(get_store),
    ):
        request = store.add_request(current_user, body.model_dump(mode="json"))
        logger.info("Sandbox gift request created", request_id=request.id, user_id=current_user["userId"])
        return {"message": "Gift request submitted", "request": request.to_api()}

    @app.get("/api/gifts")
    async def list_gifts(current_user: Dict[str, Any] = Depends(require_auth), store: SandboxStore = Depends(get_store)):
        return {"gifts": [gift_json(g) for g in store.gifts_for(current_user["_id"])]}

    def view_gift(gift_id: str, current_user: Dict[str, Any], store: SandboxStore, recipient_token: Optional[str]):
        gift = store.gifts.get(gift_id)
        if gift is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Gift not found")

        if recipient_token is not None:
            try:
                link = app.state.recipients.loads(recipient_token)
            except BadSignature:
                raise ApiError(status.HTTP_404_NOT_FOUND, "Gift not found")
            # A recipient link is only valid for the gift and owner it was issued for
            if not isinstance(link, dict) or link.get("gift") != gift_id:
                raise ApiError(status.HTTP_404_NOT_FOUND, "Gift not found")
            if link.get("user") != store.gift_owners.get(gift_id):
                raise ApiError(status.HTTP_404_NOT_FOUND, "Gift not found")
            intended_for = link["user"]
        else:
            intended_for = store.gift_owners.get(gift_id)
        if intended_for != current_user["_id"] and not current_user["isAdmin"]:
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "This gift was created for a different user",
                intendedForDifferentUser=True,
            )

        if not effective_access(gift.grant):
            reason = denial_for_grant(gift)
            raise ApiError(status.HTTP_403_FORBIDDEN, f"Gift access {reason.value}", reason=reason.value)
        return {"gift": gift_json(gift)}

    @app.get("/api/gifts/{gift_id}")
    async def get_gift(
        gift_id: str,
        current_user: Dict[str, Any] = Depends(require_auth),
        store: SandboxStore = Depends(get_store),
    ):
        return view_gift(gift_id, current_user, store, None)

    @app.get("/api/gifts/{gift_id}/{recipient_token}")
    async def get_gift_for_recipient(
        gift_id: str,
        recipient_token: str,
        current_user: Dict[str, Any] = Depends(require_auth),
        store: SandboxStore = Depends(get_store),
    ):
        return view_gift(gift_id, current_user, store, recipient_token)

    # -------------------------
    # Admin request queue
    # -------------------------

    @app.get("/api/admin/requests/stats")
    async def request_stats(admin: Dict[str, Any] = Depends(require_admin), store: SandboxStore = Depends(get_store)):
        return store.stats().model_dump()

    @app.get("/api/admin/requests")
    async def list_requests(
        status_filter: str = Query("all", alias="status"),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        requests = store.list_requests(status_filter)
        start = (page - 1) * limit
        return {
            "requests": [r.to_api() for r in requests[start:start + limit]],
            "total": len(requests),
        }

    def move_request(store: SandboxStore, request_id: str, target: GiftStatus, **side_data):
        if request_id not in store.requests:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Gift request not found")
        try:
            updated = store.transition(request_id, target, **side_data)
        except InvalidTransitionError as e:
            raise ApiError(status.HTTP_409_CONFLICT, e.message)
        except ValidationError as e:
            raise ApiError(status.HTTP_400_BAD_REQUEST, e.message)
        logger.info("Sandbox request moved", request_id=request_id, status=updated.status.value)
        return {"request": updated.to_api()}

    @app.patch("/api/admin/requests/{request_id}/verify")
    async def verify_request(
        request_id: str,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        return move_request(store, request_id, GiftStatus.VERIFIED)

    @app.patch("/api/admin/requests/{request_id}/reject")
    async def reject_request(
        request_id: str,
        body: Optional[RejectBody] = None,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        return move_request(store, request_id, GiftStatus.REJECTED, reason=body.reason if body else None)

    @app.patch("/api/admin/requests/{request_id}/complete")
    async def complete_request(
        request_id: str,
        body: CompleteBody,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        audio = store.completion_audio(body.audio, body.audioPublicId)
        return move_request(store, request_id, GiftStatus.COMPLETED, audio=audio, lyrics=body.lyrics)

    # -------------------------
    # Admin users and gifts
    # -------------------------

    @app.get("/api/admin/users")
    async def list_users(
        search: str = "",
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        users = store.search_users(search)
        start = (page - 1) * limit
        return {"users": [store.public_user(u) for u in users[start:start + limit]], "total": len(users)}

    @app.post("/api/admin/users", status_code=status.HTTP_201_CREATED)
    async def create_user(
        body: CreateUserRequest,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        if store.get_user_by_email(body.email):
            raise ApiError(status.HTTP_409_CONFLICT, "User already exists")
        user = store.create_user(body.email, body.password)
        return {"user": store.public_user(user)}

    @app.get("/api/admin/users/{user_id}/gifts")
    async def list_user_gifts(
        user_id: str,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        if user_id not in store.users:
            raise ApiError(status.HTTP_404_NOT_FOUND, "User not found")
        gifts = []
        for gift in store.gifts_for(user_id):
            data = gift_json(gift)
            token = app.state.recipients.dumps({"gift": gift.id, "user": user_id})
            data["recipientLink"] = f"/gifts/{gift.id}/{token}"
            gifts.append(data)
        return {"gifts": gifts}

    @app.post("/api/admin/gifts", status_code=status.HTTP_201_CREATED)
    async def create_gift(
        body: CreateGiftBody,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        if body.userId not in store.users:
            raise ApiError(status.HTTP_404_NOT_FOUND, "User not found")
        if not is_known_template(body.templateId):
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Validation failed",
                details=[{"field": "templateId", "message": "unknown template"}],
            )
        data = body.model_dump(mode="json", exclude={"userId"})
        gift = store.add_gift(body.userId, data)
        logger.info("Sandbox gift created", gift_id=gift.id, user_id=body.userId)
        return {"gift": gift_json(gift)}

    @app.patch("/api/admin/gifts/{gift_id}/access")
    async def set_gift_access(
        gift_id: str,
        body: AccessBody,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        gift = store.gifts.get(gift_id)
        if gift is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Gift not found")
        if gift.permanently_deleted:
            raise ApiError(status.HTTP_409_CONFLICT, "Gift has been permanently deleted")
        reset = body.accessEnabled if body.resetExpiry is None else body.resetExpiry
        return {"gift": gift_json(store.set_access(gift_id, body.accessEnabled, reset))}

    @app.delete("/api/admin/gifts/{gift_id}/permanent")
    async def delete_gift_permanently(
        gift_id: str,
        admin: Dict[str, Any] = Depends(require_admin),
        store: SandboxStore = Depends(get_store),
    ):
        if gift_id not in store.gifts:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Gift not found")
        gift = store.delete_permanently(gift_id)
        logger.warning("Sandbox gift permanently deleted", gift_id=gift_id)
        return {"message": "Gift permanently deleted", "gift": gift_json(gift)}

    return app
