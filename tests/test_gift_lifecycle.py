from datetime import date, datetime, timezone

import pytest

from memoryhaze.models.gift import (
    GiftRequest,
    GiftStatus,
    apply_transition,
    can_transition,
)
from memoryhaze.models.upload import UploadReference
from memoryhaze.utils.exceptions import InvalidTransitionError, ValidationError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
AUDIO = UploadReference(url="https://res.cloudinary.com/demo/video/upload/a.mp3", public_id="MemoryHaze/usr-1/gift1/audio")

ALLOWED = {
    (GiftStatus.PENDING, GiftStatus.VERIFIED),
    (GiftStatus.PENDING, GiftStatus.REJECTED),
    (GiftStatus.VERIFIED, GiftStatus.COMPLETED),
}


def make_request(status=GiftStatus.PENDING):
    return GiftRequest(
        id="req1",
        recipient_name="Sam",
        occasion="birthday",
        occasion_date=date(2026, 5, 1),
        scenarios=["x" * 150] * 3,
        song_genre="pop",
        photos=["https://res.cloudinary.com/demo/image/upload/v1/MemoryHaze/usr-1/gift1/photo_1.jpg"],
        photo_public_ids=["MemoryHaze/usr-1/gift1/photo_1"],
        plan="momentum",
        status=status,
    )


@pytest.mark.parametrize("current", list(GiftStatus))
@pytest.mark.parametrize("target", list(GiftStatus))
def test_transition_table(current, target):
    assert can_transition(current, target) == ((current, target) in ALLOWED)


@pytest.mark.parametrize("current", [GiftStatus.REJECTED, GiftStatus.COMPLETED])
def test_terminal_statuses_have_no_exits(current):
    request = make_request(current)
    assert request.is_terminal
    for target in GiftStatus:
        with pytest.raises(InvalidTransitionError):
            apply_transition(request, target, now=NOW)


def test_invalid_transition_leaves_status_untouched():
    request = make_request(GiftStatus.PENDING)
    with pytest.raises(InvalidTransitionError) as exc_info:
        apply_transition(request, GiftStatus.COMPLETED, now=NOW, audio=AUDIO, lyrics="la la")
    assert exc_info.value.current == "pending"
    assert exc_info.value.target == "completed"
    assert request.status == GiftStatus.PENDING


def test_verify_stamps_time_without_mutating_input():
    request = make_request()
    verified = apply_transition(request, GiftStatus.VERIFIED, now=NOW)
    assert verified.status == GiftStatus.VERIFIED
    assert verified.verified_at == NOW
    assert request.status == GiftStatus.PENDING
    assert request.verified_at is None


def test_reject_keeps_trimmed_reason():
    rejected = apply_transition(make_request(), GiftStatus.REJECTED, now=NOW, reason="  blurry photos ")
    assert rejected.rejection_reason == "blurry photos"
    assert rejected.rejected_at == NOW


def test_reject_with_blank_reason_stores_none():
    rejected = apply_transition(make_request(), GiftStatus.REJECTED, now=NOW, reason="   ")
    assert rejected.rejection_reason is None


def test_complete_requires_audio_and_lyrics():
    verified = make_request(GiftStatus.VERIFIED)
    with pytest.raises(ValidationError) as exc_info:
        apply_transition(verified, GiftStatus.COMPLETED, now=NOW, audio=None, lyrics="words")
    assert exc_info.value.field == "audio"

    with pytest.raises(ValidationError) as exc_info:
        apply_transition(verified, GiftStatus.COMPLETED, now=NOW, audio=AUDIO, lyrics="  \n ")
    assert exc_info.value.field == "lyrics"
    assert verified.status == GiftStatus.VERIFIED


def test_complete_attaches_audio_and_lyrics():
    completed = apply_transition(
        make_request(GiftStatus.VERIFIED), GiftStatus.COMPLETED, now=NOW, audio=AUDIO, lyrics=" Verse one\n"
    )
    assert completed.status == GiftStatus.COMPLETED
    assert completed.audio == AUDIO.url
    assert completed.audio_public_id == AUDIO.public_id
    assert completed.lyrics == "Verse one"
    assert completed.completed_at == NOW


def test_api_shape_uses_camel_case_keys():
    data = make_request().to_api()
    assert data["_id"] == "req1"
    assert data["recipientName"] == "Sam"
    assert data["occasionDate"] == "2026-05-01"
    assert data["photoPublicIds"] == ["MemoryHaze/usr-1/gift1/photo_1"]
    assert data["status"] == "pending"
