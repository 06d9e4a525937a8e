"""Fulfilled gift records and the viewer-facing payload"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.exceptions import AccessDeniedError
from .grant import AccessGrant


class DenialReason(str, Enum):
    LOGIN_REQUIRED = "login_required"
    WRONG_IDENTITY = "wrong_identity"
    EXPIRED = "expired"
    DISABLED = "disabled"
    DELETED = "deleted"
    NOT_FOUND = "not_found"


DENIAL_MESSAGES = {
    DenialReason.LOGIN_REQUIRED: "Please log in to view this gift.",
    DenialReason.WRONG_IDENTITY: (
        "This gift was created for a specific person and can only be viewed by "
        "logging in with the email address it was sent to."
    ),
    DenialReason.EXPIRED: "This gift's viewing window has ended.",
    DenialReason.DISABLED: "Access to this gift has been turned off.",
    DenialReason.DELETED: "This gift has been permanently deleted.",
    DenialReason.NOT_FOUND: "Gift not found.",
}


class Gift(BaseModel):
    """A fulfilled gift as returned by the gift and admin gift endpoints"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    template_id: str = Field(alias="templateId")
    scenarios: List[str] = Field(default_factory=list)
    memory: Optional[str] = None
    plan: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    audio: Optional[str] = None
    lyrics: str = ""
    message: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    assigned_at: Optional[datetime] = Field(default=None, alias="assignedAt")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    access_enabled: bool = Field(default=False, alias="accessEnabled")
    permanently_deleted: bool = Field(default=False, alias="permanentlyDeleted")
    deleted_at: Optional[datetime] = Field(default=None, alias="deletedAt")

    @property
    def grant(self) -> AccessGrant:
        plan = self.plan if self.plan in ("momentum", "everlasting") else None
        return AccessGrant(
            gift_id=self.id,
            plan=plan,
            access_enabled=self.access_enabled,
            expires_at=self.expires_at,
            permanently_deleted=self.permanently_deleted,
            deleted_at=self.deleted_at,
            assigned_at=self.assigned_at,
        )

    def with_grant(self, grant: AccessGrant) -> "Gift":
        return self.model_copy(
            update={
                "access_enabled": grant.access_enabled,
                "expires_at": grant.expires_at,
                "permanently_deleted": grant.permanently_deleted,
                "deleted_at": grant.deleted_at,
            }
        )


class GiftPayload(BaseModel):
    """Read-only data a template renderer consumes"""
    model_config = ConfigDict(frozen=True)

    photos: List[str]
    lyrics: str
    audio_url: Optional[str] = None
    template_id: str

    @classmethod
    def from_gift(cls, gift: Gift) -> "GiftPayload":
        return cls(
            photos=list(gift.photos),
            lyrics=gift.lyrics,
            audio_url=gift.audio,
            template_id=gift.template_id,
        )


class GiftView(BaseModel):
    """Either a released payload or a denial; never both"""
    model_config = ConfigDict(frozen=True)

    payload: Optional[GiftPayload] = None
    denial: Optional[DenialReason] = None
    message: Optional[str] = None
    redirect_to: Optional[str] = None
    next_path: Optional[str] = None

    @property
    def accessible(self) -> bool:
        return self.payload is not None

    def require_payload(self) -> GiftPayload:
        """The payload, or AccessDeniedError carrying the denial reason"""
        if self.payload is None:
            reason = self.denial or DenialReason.NOT_FOUND
            raise AccessDeniedError(
                self.message or DENIAL_MESSAGES[reason],
                reason=reason.value,
                redirect_to=self.redirect_to,
            )
        return self.payload

    @classmethod
    def granted(cls, payload: GiftPayload) -> "GiftView":
        return cls(payload=payload)

    @classmethod
    def denied(
        cls,
        reason: DenialReason,
        message: Optional[str] = None,
        redirect_to: Optional[str] = None,
        next_path: Optional[str] = None,
    ) -> "GiftView":
        return cls(
            denial=reason,
            message=message or DENIAL_MESSAGES[reason],
            redirect_to=redirect_to,
            next_path=next_path,
        )
