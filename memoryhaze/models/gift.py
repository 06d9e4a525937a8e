"""Gift request data models and status lifecycle"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.exceptions import InvalidTransitionError, ValidationError
from .upload import UploadReference


class Occasion(str, Enum):
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"
    VALENTINES = "valentines"

    @property
    def label(self) -> str:
        return {
            Occasion.BIRTHDAY: "Birthday",
            Occasion.ANNIVERSARY: "Anniversary",
            Occasion.VALENTINES: "Valentine's Day",
        }[self]


class Plan(str, Enum):
    MOMENTUM = "momentum"
    EVERLASTING = "everlasting"


class SongGenre(str, Enum):
    POP = "pop"
    BALLAD = "ballad"
    ACOUSTIC = "acoustic"
    UPBEAT = "upbeat"
    ROCK = "rock"
    JAZZ = "jazz"
    CLASSICAL = "classical"
    HIPHOP = "hiphop"
    RNB = "rnb"
    COUNTRY = "country"


class GiftStatus(str, Enum):
    """Gift request status enumeration"""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    COMPLETED = "completed"


ALLOWED_TRANSITIONS: Dict[GiftStatus, FrozenSet[GiftStatus]] = {
    GiftStatus.PENDING: frozenset({GiftStatus.VERIFIED, GiftStatus.REJECTED}),
    GiftStatus.VERIFIED: frozenset({GiftStatus.COMPLETED}),
    GiftStatus.REJECTED: frozenset(),
    GiftStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({GiftStatus.REJECTED, GiftStatus.COMPLETED})


class RequestOwner(BaseModel):
    """Submitting user as embedded in admin listings"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    email: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class GiftRequest(BaseModel):
    """A customer's submitted order"""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    id: str = Field(alias="_id")
    user: Optional[RequestOwner] = None
    recipient_name: str = Field(alias="recipientName")
    occasion: Occasion
    occasion_date: date = Field(alias="occasionDate")
    scenarios: List[str] = Field(default_factory=list)
    song_genre: str = Field(alias="songGenre")
    photos: List[str] = Field(default_factory=list)
    photo_public_ids: List[str] = Field(default_factory=list, alias="photoPublicIds")
    plan: Plan
    message: str = ""
    status: GiftStatus = GiftStatus.PENDING
    rejection_reason: Optional[str] = Field(default=None, alias="rejectionReason")
    audio: Optional[str] = None
    audio_public_id: Optional[str] = Field(default=None, alias="audioPublicId")
    lyrics: Optional[str] = None
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    verified_at: Optional[datetime] = Field(default=None, alias="verifiedAt")
    rejected_at: Optional[datetime] = Field(default=None, alias="rejectedAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RequestStats(BaseModel):
    """Counts by status for the admin queue"""
    pending: int = 0
    verified: int = 0
    completed: int = 0
    rejected: int = 0
    total: int = 0


class RequestPage(BaseModel):
    requests: List[GiftRequest] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)


def can_transition(current: GiftStatus, target: GiftStatus) -> bool:
    return GiftStatus(target) in ALLOWED_TRANSITIONS[GiftStatus(current)]


def check_transition(current: GiftStatus, target: GiftStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed"""
    if not can_transition(current, target):
        raise InvalidTransitionError(GiftStatus(current).value, GiftStatus(target).value)


def validate_completion(audio: Optional[UploadReference], lyrics: Optional[str]) -> None:
    if audio is None or not audio.url:
        raise ValidationError("An audio file is required to complete a gift", field="audio")
    if not lyrics or not lyrics.strip():
        raise ValidationError("Lyrics are required to complete a gift", field="lyrics")


def apply_transition(
    request: GiftRequest,
    target: GiftStatus,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
    audio: Optional[UploadReference] = None,
    lyrics: Optional[str] = None,
) -> GiftRequest:
    """
    Return a copy of request moved to target with its side-data attached.

    The input is never mutated; on any failure the caller still holds the
    original record with its original status.

    Raises:
        InvalidTransitionError: target not reachable from the current status
        ValidationError: completion without audio or lyrics
    """
    target = GiftStatus(target)
    check_transition(request.status, target)
    now = now or datetime.now(timezone.utc)

    changes = {"status": target}
    if target == GiftStatus.VERIFIED:
        changes["verified_at"] = now
    elif target == GiftStatus.REJECTED:
        changes["rejected_at"] = now
        changes["rejection_reason"] = reason.strip() if reason and reason.strip() else None
    elif target == GiftStatus.COMPLETED:
        validate_completion(audio, lyrics)
        changes["completed_at"] = now
        changes["audio"] = audio.url
        changes["audio_public_id"] = audio.public_id
        changes["lyrics"] = lyrics.strip()

    return request.model_copy(update=changes)
