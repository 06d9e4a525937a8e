"""
In-memory state for the sandbox API.

Holds users, one-time codes, gift requests and fulfilled gifts for one
process. Status and access changes go through the same model functions the
client uses, so both sides apply one set of rules.
"""

import secrets
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt

from memoryhaze.models.gift import GiftRequest, GiftStatus, RequestStats, apply_transition
from memoryhaze.models.grant import apply_permanent_delete, apply_set_access, new_grant
from memoryhaze.models.upload import UploadReference
from memoryhaze.models.viewer import Gift
from memoryhaze.services.templates import template_for_occasion
from memoryhaze.utils.logger import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


class SandboxStore:
    """Process-local records guarded by a single lock"""

    def __init__(self, bcrypt_rounds: int = 12):
        self.bcrypt_rounds = bcrypt_rounds
        self._lock = threading.RLock()
        self.users: Dict[str, Dict[str, Any]] = {}
        self.requests: Dict[str, GiftRequest] = {}
        self.gifts: Dict[str, Gift] = {}
        # gift id -> owning user _id
        self.gift_owners: Dict[str, str] = {}
        self.signup_codes: Dict[str, str] = {}
        self.reset_codes: Dict[str, str] = {}
        self.verified_resets: set = set()
        # Provider public ids / URLs scheduled for removal
        self.deletion_queue: List[str] = []
        # Emails that would have been sent (OTPs, completion notices)
        self.outbox: List[Dict[str, str]] = []
        self._user_seq = 0

    # -------------------------
    # Users
    # -------------------------

    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.strip().lower()
        return next((u for u in self.users.values() if u["email"] == email), None)

    def create_user(self, email: str, password: str, name: str = "", is_admin: bool = False) -> Dict[str, Any]:
        with self._lock:
            self._user_seq += 1
            user = {
                "_id": _new_id(),
                "userId": f"usr-{self._user_seq:05d}",
                "email": email.strip().lower(),
                "name": name,
                "isAdmin": is_admin,
                "passwordHash": self.hash_password(password),
                "createdAt": _now(),
            }
            self.users[user["_id"]] = user
        logger.info("Sandbox user created", email=user["email"], user_id=user["userId"])
        return user

    def set_password(self, user: Dict[str, Any], password: str) -> None:
        with self._lock:
            user["passwordHash"] = self.hash_password(password)

    def search_users(self, search: str) -> List[Dict[str, Any]]:
        search = (search or "").strip().lower()
        users = [u for u in self.users.values() if not u["isAdmin"]]
        if search:
            users = [u for u in users if search in u["email"] or search in u["userId"].lower()]
        return sorted(users, key=lambda u: u["createdAt"], reverse=True)

    @staticmethod
    def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "_id": user["_id"],
            "userId": user["userId"],
            "email": user["email"],
            "name": user["name"],
            "isAdmin": user["isAdmin"],
            "createdAt": user["createdAt"].isoformat(),
        }

    # -------------------------
    # One-time codes
    # -------------------------

    def issue_code(self, email: str, purpose: str) -> str:
        code = f"{secrets.randbelow(1000000):06d}"
        with self._lock:
            codes = self.signup_codes if purpose == "signup" else self.reset_codes
            codes[email.strip().lower()] = code
            self.outbox.append({"to": email.strip().lower(), "subject": f"{purpose} code", "body": code})
        return code

    def check_code(self, email: str, code: str, purpose: str) -> bool:
        codes = self.signup_codes if purpose == "signup" else self.reset_codes
        expected = codes.get(email.strip().lower())
        return bool(expected) and secrets.compare_digest(expected, str(code).strip())

    def consume_code(self, email: str, purpose: str) -> None:
        with self._lock:
            codes = self.signup_codes if purpose == "signup" else self.reset_codes
            codes.pop(email.strip().lower(), None)
            self.verified_resets.discard(email.strip().lower())

    # -------------------------
    # Gift requests
    # -------------------------

    def add_request(self, user: Dict[str, Any], data: Dict[str, Any]) -> GiftRequest:
        request = GiftRequest.model_validate(
            {
                **data,
                "_id": _new_id(),
                "user": {"_id": user["_id"], "email": user["email"], "userId": user["userId"]},
                "status": GiftStatus.PENDING.value,
                "submittedAt": _now(),
            }
        )
        with self._lock:
            self.requests[request.id] = request
        return request

    def list_requests(self, status: str) -> List[GiftRequest]:
        requests = list(self.requests.values())
        if status and status != "all":
            requests = [r for r in requests if r.status.value == status]
        return sorted(requests, key=lambda r: r.submitted_at or _now(), reverse=True)

    def stats(self) -> RequestStats:
        counts = {s.value: 0 for s in GiftStatus}
        for request in self.requests.values():
            counts[request.status.value] += 1
        return RequestStats(total=len(self.requests), **counts)

    def transition(self, request_id: str, target: GiftStatus, **side_data) -> GiftRequest:
        """Apply a status change; InvalidTransitionError/ValidationError propagate"""
        with self._lock:
            request = self.requests[request_id]
            updated = apply_transition(request, target, now=_now(), **side_data)
            self.requests[request_id] = updated

            if target == GiftStatus.REJECTED:
                self.deletion_queue.extend(updated.photo_public_ids)
            elif target == GiftStatus.COMPLETED:
                self._fulfil(updated)
        return updated

    def _fulfil(self, request: GiftRequest) -> Gift:
        now = _now()
        gift = Gift(
            id=_new_id(),
            template_id=template_for_occasion(request.occasion),
            scenarios=list(request.scenarios),
            memory=request.occasion.value,
            plan=request.plan.value,
            photos=list(request.photos),
            audio=request.audio,
            lyrics=request.lyrics or "",
            message=request.message,
            created_at=now,
            assigned_at=now,
        )
        gift = gift.with_grant(new_grant(gift.id, request.plan, now=now))
        self.gifts[gift.id] = gift
        self.gift_owners[gift.id] = request.user.id
        if request.user.email:
            self.outbox.append(
                {"to": request.user.email, "subject": "Your gift is ready", "body": f"/gifts/{gift.id}"}
            )
        return gift

    # -------------------------
    # Gifts and access
    # -------------------------

    def add_gift(self, owner_id: str, data: Dict[str, Any]) -> Gift:
        now = _now()
        gift = Gift.model_validate({**data, "_id": _new_id(), "createdAt": now, "assignedAt": now})
        gift = gift.with_grant(new_grant(gift.id, gift.plan, now=now))
        with self._lock:
            self.gifts[gift.id] = gift
            self.gift_owners[gift.id] = owner_id
        return gift

    def gifts_for(self, owner_id: str) -> List[Gift]:
        gifts = [g for gid, g in self.gifts.items() if self.gift_owners.get(gid) == owner_id]
        return sorted(gifts, key=lambda g: g.created_at or _now(), reverse=True)

    def set_access(self, gift_id: str, enabled: bool, reset_expiry: bool) -> Gift:
        with self._lock:
            gift = self.gifts[gift_id]
            updated = gift.with_grant(apply_set_access(gift.grant, enabled, reset_expiry, now=_now()))
            self.gifts[gift_id] = updated
        return updated

    def delete_permanently(self, gift_id: str) -> Gift:
        with self._lock:
            gift = self.gifts[gift_id]
            updated = gift.with_grant(apply_permanent_delete(gift.grant, now=_now()))
            self.deletion_queue.extend(gift.photos)
            if gift.audio:
                self.deletion_queue.append(gift.audio)
            self.gifts[gift_id] = updated
        return updated

    @staticmethod
    def completion_audio(audio_url: Optional[str], audio_public_id: Optional[str]) -> Optional[UploadReference]:
        if not audio_url:
            return None
        return UploadReference(url=audio_url, public_id=audio_public_id or "")
