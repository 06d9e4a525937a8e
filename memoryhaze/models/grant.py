"""
Access grant model and its pure rules.

effective_access() is the one place viewability is decided. The admin
remaining-time display, the viewer gate and the sandbox API all call it.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .gift import Plan

GRANT_WINDOWS = {
    Plan.MOMENTUM: timedelta(days=7),
    Plan.EVERLASTING: timedelta(days=14),
}

EXPIRED = "Expired"
DELETED = "Deleted"
NO_EXPIRY = "No expiry"


class AccessGrant(BaseModel):
    """Time-boxed, revocable viewability attached to a completed gift"""
    model_config = ConfigDict(populate_by_name=True)

    gift_id: str = Field(alias="giftId")
    plan: Optional[Plan] = None
    access_enabled: bool = Field(default=False, alias="accessEnabled")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    permanently_deleted: bool = Field(default=False, alias="permanentlyDeleted")
    deleted_at: Optional[datetime] = Field(default=None, alias="deletedAt")
    assigned_at: Optional[datetime] = Field(default=None, alias="assignedAt")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def grant_window(plan: Optional[Union[Plan, str]]) -> timedelta:
    """Window length for a plan; unknown plans get the shortest window"""
    try:
        return GRANT_WINDOWS[Plan(plan)]
    except ValueError:
        return GRANT_WINDOWS[Plan.MOMENTUM]


def new_grant(gift_id: str, plan: Union[Plan, str], now: Optional[datetime] = None) -> AccessGrant:
    """Grant created when a request reaches completed"""
    now = now or utcnow()
    return AccessGrant(
        gift_id=gift_id,
        plan=Plan(plan),
        access_enabled=True,
        expires_at=now + grant_window(plan),
        assigned_at=now,
    )


def effective_access(grant: AccessGrant, now: Optional[datetime] = None) -> bool:
    if grant.permanently_deleted:
        return False
    if not grant.access_enabled:
        return False
    if grant.expires_at is None:
        return True
    now = now or utcnow()
    return _aware(now) < _aware(grant.expires_at)


def apply_set_access(
    grant: AccessGrant,
    enabled: bool,
    reset_expiry: bool = False,
    now: Optional[datetime] = None,
) -> AccessGrant:
    """
    Toggle access. Re-enabling with reset_expiry starts a fresh window from now.
    A permanently deleted grant is returned unchanged.
    """
    if grant.permanently_deleted:
        return grant
    changes = {"access_enabled": bool(enabled)}
    if enabled and reset_expiry:
        now = now or utcnow()
        changes["expires_at"] = now + grant_window(grant.plan)
    return grant.model_copy(update=changes)


def apply_permanent_delete(grant: AccessGrant, now: Optional[datetime] = None) -> AccessGrant:
    if grant.permanently_deleted:
        return grant
    return grant.model_copy(
        update={
            "permanently_deleted": True,
            "access_enabled": False,
            "deleted_at": now or utcnow(),
        }
    )


def remaining_time(grant: AccessGrant, now: Optional[datetime] = None) -> Union[timedelta, str]:
    """Operator display only; not an access check"""
    if grant.permanently_deleted:
        return DELETED
    if grant.expires_at is None:
        return NO_EXPIRY
    now = now or utcnow()
    diff = _aware(grant.expires_at) - _aware(now)
    if diff <= timedelta(0):
        return EXPIRED
    return diff


def format_remaining(grant: AccessGrant, now: Optional[datetime] = None) -> str:
    """Render remaining time as e.g. "2d 3h 5m", "4h 0m" or "12m"."""
    remaining = remaining_time(grant, now)
    if isinstance(remaining, str):
        return remaining
    total_minutes = int(remaining.total_seconds() // 60)
    days, rest = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours or days:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)
