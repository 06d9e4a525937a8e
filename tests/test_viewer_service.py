from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

from memoryhaze.models.user import DirectoryUser
from memoryhaze.models.viewer import DenialReason
from memoryhaze.services.viewer_service import ViewerService, gift_path
from memoryhaze.utils.exceptions import AccessDeniedError


@pytest.fixture
def completed_gift(admin_app, submitted_request, store, customer):
    verified = admin_app.requests.verify(submitted_request)
    admin_app.requests.complete(verified, Path("song.mp3"), "Verse one\nChorus")
    return store.gifts_for(customer["_id"])[0]


def recipient_token(sandbox, gift, user):
    return sandbox.state.recipients.dumps({"gift": gift.id, "user": user["_id"]})


def test_completed_gift_releases_payload(customer_app, completed_gift):
    view = customer_app.viewer.open(completed_gift.id)

    assert view.accessible
    assert view.denial is None
    assert view.payload.template_id == "birthday-celebration"
    assert view.payload.lyrics == "Verse one\nChorus"
    assert view.payload.audio_url.endswith("/MemoryHaze/usr-00002/gift1/audio.mp3")
    assert len(view.payload.photos) == 2


def test_expired_gift_is_denied_without_payload(customer_app, completed_gift, store):
    store.gifts[completed_gift.id] = completed_gift.model_copy(
        update={"expires_at": datetime.now(timezone.utc) - timedelta(minutes=1)}
    )

    view = customer_app.viewer.open(completed_gift.id)
    assert not view.accessible
    assert view.payload is None
    assert view.denial == DenialReason.EXPIRED


def test_disabled_and_expired_gift_is_denied_without_payload(customer_app, completed_gift, store):
    store.gifts[completed_gift.id] = completed_gift.model_copy(
        update={
            "access_enabled": False,
            "expires_at": datetime.now(timezone.utc) - timedelta(days=1),
        }
    )

    view = customer_app.viewer.open(completed_gift.id)
    assert not view.accessible
    assert view.payload is None
    assert view.denial == DenialReason.DISABLED


def test_client_rechecks_grant_from_response(customer_app, completed_gift):
    stale = completed_gift.model_copy(
        update={"expires_at": datetime.now(timezone.utc) - timedelta(minutes=1)}
    )
    client = Mock()
    client.get_gift.return_value = {"gift": stale.model_dump(mode="json", by_alias=True)}

    view = ViewerService(client, customer_app.session).open(completed_gift.id)
    assert view.denial == DenialReason.EXPIRED
    assert view.payload is None


def test_disabled_and_deleted_are_distinguished(customer_app, admin_app, completed_gift):
    disabled = admin_app.access.set_access(completed_gift, False)
    assert customer_app.viewer.open(completed_gift.id).denial == DenialReason.DISABLED

    admin_app.access.permanently_delete(disabled, lambda gift: True)
    view = customer_app.viewer.open(completed_gift.id)
    assert view.denial == DenialReason.DELETED
    assert "permanently deleted" in view.message


def test_unknown_gift_is_not_found(customer_app):
    view = customer_app.viewer.open("does-not-exist")
    assert view.denial == DenialReason.NOT_FOUND
    assert view.payload is None


def test_logged_out_viewer_is_sent_to_login(make_app, completed_gift):
    app = make_app()
    view = app.viewer.open(completed_gift.id, "enc-123")

    assert view.denial == DenialReason.LOGIN_REQUIRED
    assert view.next_path == f"/gifts/{completed_gift.id}/enc-123"
    assert view.redirect_to == f"/login?next=/gifts/{completed_gift.id}/enc-123"


def test_recipient_link_for_someone_else(make_app, sandbox, completed_gift, customer, other_customer):
    bob_app = make_app()
    bob_app.auth.login("bob@example.com", "bob-pass")
    link_for_alice = recipient_token(sandbox, completed_gift, customer)

    view = bob_app.viewer.open(completed_gift.id, link_for_alice)
    assert view.denial == DenialReason.WRONG_IDENTITY
    assert "specific person" in view.message

    # Without a link Bob is also not the intended viewer
    assert bob_app.viewer.open(completed_gift.id).denial == DenialReason.WRONG_IDENTITY


def test_recipient_link_for_intended_user(customer_app, sandbox, completed_gift, customer):
    view = customer_app.viewer.open(completed_gift.id, recipient_token(sandbox, completed_gift, customer))
    assert view.accessible


def test_own_recipient_link_does_not_open_another_gift(
    make_app, admin_app, completed_gift, other_customer, fake_cloudinary
):
    bob = DirectoryUser.model_validate(other_customer)
    draft = admin_app.new_admin_gift(bob, occasion="birthday", plan="momentum", lyrics="Bob's song")
    draft.add_photos([Path("one.jpg")])
    admin_app.builder.create(draft)

    bob_link = admin_app.client.list_user_gifts(bob.id)["gifts"][0]["recipientLink"]
    bob_token = bob_link.rsplit("/", 1)[-1]

    bob_app = make_app()
    bob_app.auth.login("bob@example.com", "bob-pass")
    assert bob_app.viewer.open(bob_link.split("/")[2], bob_token).accessible

    view = bob_app.viewer.open(completed_gift.id, bob_token)
    assert not view.accessible
    assert view.payload is None
    assert view.denial == DenialReason.NOT_FOUND


def test_list_gifts(customer_app, completed_gift):
    gifts = customer_app.viewer.list_gifts()
    assert [g.id for g in gifts] == [completed_gift.id]


def test_gift_path():
    assert gift_path("g1") == "/gifts/g1"
    assert gift_path("g1", "tok") == "/gifts/g1/tok"


def test_require_payload_raises_access_denied(customer_app, admin_app, completed_gift):
    assert customer_app.viewer.open(completed_gift.id).require_payload().template_id == "birthday-celebration"

    admin_app.access.set_access(completed_gift, False)
    with pytest.raises(AccessDeniedError) as exc_info:
        customer_app.viewer.open(completed_gift.id).require_payload()
    assert exc_info.value.reason == "disabled"
    assert exc_info.value.to_dict()["kind"] == "access_denied"
