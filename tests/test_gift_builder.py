from io import BytesIO
from pathlib import Path

import pytest

from memoryhaze.models.user import DirectoryUser
from memoryhaze.services.gift_builder import AdminGiftDraft, GiftCreationResult
from memoryhaze.utils.exceptions import AuthorizationError, UploadError, ValidationError


@pytest.fixture
def alice(customer):
    return DirectoryUser.model_validate(customer)


def photos(count):
    return [Path(f"photo{n}.jpg") for n in range(count)]


def test_creates_gift_in_user_folder(admin_app, alice, store, fake_cloudinary):
    draft = admin_app.new_admin_gift(alice, occasion="birthday", plan="everlasting", lyrics="La la")
    draft.add_photos(photos(3))
    draft.set_audio(Path("song.mp3"))

    result = admin_app.builder.create(draft)

    assert result.folder == "MemoryHaze/usr-00002/gift1"
    assert result.uploaded_images == 3
    assert not result.partial
    assert result.summary() == "3 image(s) + audio uploaded to folder: MemoryHaze/usr-00002/gift1"
    assert result.gift.template_id == "birthday-celebration"
    assert result.gift.audio.endswith("/gift1/audio.mp3")
    assert result.gift.access_enabled
    assert admin_app.builder.creating is False

    stored = store.gifts_for(alice.id)
    assert [g.id for g in stored] == [result.gift.id]
    assert stored[0].photos == result.gift.photos


def test_second_gift_goes_to_next_folder(admin_app, alice, fake_cloudinary):
    first = admin_app.new_admin_gift(alice, occasion="birthday", plan="momentum")
    first.add_photos(photos(1))
    admin_app.builder.create(first)

    second = admin_app.new_admin_gift(alice, occasion="birthday", plan="momentum")
    second.add_photos(photos(1))
    assert admin_app.builder.create(second).folder == "MemoryHaze/usr-00002/gift2"


def test_failed_images_are_left_out(admin_app, alice, fake_cloudinary):
    fake_cloudinary.fake.fail_ids.add("photo_2")
    draft = admin_app.new_admin_gift(alice, occasion="anniversary", plan="momentum")
    draft.add_photos(photos(3))

    result = admin_app.builder.create(draft)

    assert result.uploaded_images == 2
    assert result.failed_images == 1
    assert result.partial
    assert result.summary() == "1 image(s) failed"
    assert [p.rsplit("/", 1)[-1] for p in result.gift.photos] == ["photo_1.jpg", "photo_3.jpg"]


def test_audio_failure_still_saves(admin_app, alice, store, fake_cloudinary):
    fake_cloudinary.fake.fail_ids.add("audio")
    draft = admin_app.new_admin_gift(alice, occasion="anniversary", plan="momentum")
    draft.add_photos(photos(1))
    draft.set_audio(Path("song.mp3"))

    result = admin_app.builder.create(draft)

    assert result.audio_failed
    assert result.gift.audio is None
    assert result.summary() == "audio failed"
    assert len(store.gifts_for(alice.id)) == 1


def test_audio_only_gift(admin_app, alice, fake_cloudinary):
    draft = admin_app.new_admin_gift(alice, occasion="valentines", plan="momentum")
    draft.set_audio(BytesIO(b"ID3"))

    result = admin_app.builder.create(draft)
    assert result.gift.photos == []
    assert result.gift.audio is not None
    assert result.gift.template_id == "minimalist-love"


def test_explicit_template_wins(admin_app, alice, fake_cloudinary):
    draft = admin_app.new_admin_gift(
        alice, occasion="birthday", plan="momentum", template_id="romantic-evening"
    )
    draft.add_photos(photos(1))
    assert admin_app.builder.create(draft).gift.template_id == "romantic-evening"


def test_scenarios_are_trimmed_and_blank_ones_dropped(alice):
    draft = AdminGiftDraft(alice, occasion="birthday", plan="momentum", scenarios=["  first  ", "", "   "])
    payload = draft.to_payload(["https://example.com/a.jpg"], None)
    assert payload["scenarios"] == ["first"]
    assert payload["userId"] == alice.id
    assert payload["memory"] == "birthday"


class TestDraftValidation:
    def test_needs_media(self, alice):
        draft = AdminGiftDraft(alice, occasion="birthday", plan="momentum")
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "photos"

    def test_needs_occasion_and_plan(self, alice):
        draft = AdminGiftDraft(alice, plan="momentum")
        draft.add_photos(photos(1))
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "occasion"

        draft.occasion = "birthday"
        draft.plan = "platinum"
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "plan"

    def test_unknown_template(self, alice):
        draft = AdminGiftDraft(alice, occasion="birthday", plan="momentum", template_id="neon-party")
        draft.add_photos(photos(1))
        with pytest.raises(ValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.field == "templateId"

    def test_photo_limit(self, alice):
        draft = AdminGiftDraft(alice, occasion="birthday", plan="momentum")
        with pytest.raises(ValidationError):
            draft.add_photos(photos(draft.settings.admin_max_photos + 1))
        assert draft.photos == []


def test_invalid_draft_uploads_nothing(admin_app, alice, fake_cloudinary):
    draft = admin_app.new_admin_gift(alice, plan="momentum")
    draft.add_photos(photos(2))

    with pytest.raises(ValidationError):
        admin_app.builder.create(draft)
    assert fake_cloudinary.call_count == 0


def test_unconfigured_cloudinary(admin_app, alice, fake_cloudinary):
    admin_app.uploads.settings = admin_app.uploads.settings.model_copy(update={"upload_preset": None})
    draft = admin_app.new_admin_gift(alice, occasion="birthday", plan="momentum")
    draft.add_photos(photos(1))

    with pytest.raises(UploadError, match="Cloudinary not configured"):
        admin_app.builder.create(draft)
    assert fake_cloudinary.call_count == 0


def test_requires_admin(customer_app, alice):
    draft = customer_app.new_admin_gift(alice, occasion="birthday", plan="momentum")
    draft.add_photos(photos(1))
    with pytest.raises(AuthorizationError):
        customer_app.builder.create(draft)


def test_result_summary_for_mixed_failure():
    from memoryhaze.models.viewer import Gift

    gift = Gift.model_validate({"_id": "g1", "templateId": "minimalist-love"})
    result = GiftCreationResult(gift=gift, folder="f", uploaded_images=1, failed_images=2, audio_failed=True)
    assert result.summary() == "2 image(s) failed, audio failed"
