"""
Gate between a stored gift and whatever renders it.

open() either releases the full payload or a denial with a reason the
caller can message on. Nothing partial ever leaves this module.
"""

from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

from ..api.client import MemoryHazeClient
from ..auth.session import LOGIN_PATH, Session
from ..models.grant import effective_access
from ..models.viewer import DenialReason, Gift, GiftPayload, GiftView
from ..utils.exceptions import AuthorizationError, NotFoundError
from ..utils.logger import get_logger
from .access_service import gift_from_response

logger = get_logger(__name__)


def gift_path(gift_id: str, encrypted_recipient_id: Optional[str] = None) -> str:
    if encrypted_recipient_id:
        return f"/gifts/{gift_id}/{encrypted_recipient_id}"
    return f"/gifts/{gift_id}"


def denial_for_grant(gift: Gift) -> DenialReason:
    if gift.permanently_deleted:
        return DenialReason.DELETED
    if not gift.access_enabled:
        return DenialReason.DISABLED
    return DenialReason.EXPIRED


class ViewerService:
    """Loads gifts for the signed-in viewer"""

    def __init__(self, client: MemoryHazeClient, session: Session):
        self.client = client
        self.session = session

    def list_gifts(self) -> List[Gift]:
        self.session.require_authenticated(next_path="/gifts")
        body = self.client.list_gifts()
        gifts = body.get("gifts")
        return [Gift.model_validate(g) for g in gifts] if isinstance(gifts, list) else []

    def open(
        self,
        gift_id: str,
        encrypted_recipient_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GiftView:
        """
        Resolve a gift link for the current viewer

        Returns:
            GiftView with the payload, or with a denial reason and message.
            Server failures are raised, not turned into denials.
        """
        next_path = gift_path(gift_id, encrypted_recipient_id)
        if not self.session.is_fresh(now):
            return GiftView.denied(
                DenialReason.LOGIN_REQUIRED,
                redirect_to=f"{LOGIN_PATH}?next={quote(next_path)}",
                next_path=next_path,
            )

        try:
            body = self.client.get_gift(gift_id, encrypted_recipient_id)
        except NotFoundError:
            return GiftView.denied(DenialReason.NOT_FOUND)
        except AuthorizationError as e:
            return self._denied_by_server(e, next_path)

        gift = gift_from_response(body)
        if gift is None:
            return GiftView.denied(DenialReason.NOT_FOUND)

        # The server already gated this; check again before releasing anything
        if not effective_access(gift.grant, now):
            reason = denial_for_grant(gift)
            logger.info("Gift not viewable", gift_id=gift_id, reason=reason.value)
            return GiftView.denied(reason)

        return GiftView.granted(GiftPayload.from_gift(gift))

    def _denied_by_server(self, error: AuthorizationError, next_path: str) -> GiftView:
        if error.reason == AuthorizationError.UNAUTHENTICATED:
            return GiftView.denied(
                DenialReason.LOGIN_REQUIRED,
                redirect_to=f"{LOGIN_PATH}?next={quote(next_path)}",
                next_path=next_path,
            )
        payload = error.payload
        if payload.get("intendedForDifferentUser"):
            return GiftView.denied(DenialReason.WRONG_IDENTITY)
        try:
            reason = DenialReason(payload.get("reason"))
        except ValueError:
            return GiftView.denied(DenialReason.DISABLED, message=error.message or None)
        return GiftView.denied(reason)
