"""Operator control over who can view a finished gift, and for how long"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..api.client import MemoryHazeClient
from ..auth.session import Session
from ..models.grant import (
    apply_permanent_delete,
    apply_set_access,
    effective_access,
    format_remaining,
)
from ..models.viewer import Gift
from ..utils.logger import get_logger

logger = get_logger(__name__)


def gift_from_response(body: Dict[str, Any]) -> Optional[Gift]:
    record = body.get("gift")
    if isinstance(record, dict):
        return Gift.model_validate(record)
    return None


class AccessService:
    """Toggle, reset and permanently revoke access grants"""

    def __init__(self, client: MemoryHazeClient, session: Session):
        self.client = client
        self.session = session

    def list_user_gifts(self, user_id: str) -> List[Gift]:
        self.session.require_admin()
        body = self.client.list_user_gifts(user_id)
        return [Gift.model_validate(g) for g in body.get("gifts") or []]

    def set_access(self, gift: Gift, enabled: bool, reset_expiry: Optional[bool] = None) -> Gift:
        """
        Enable or disable viewing.

        reset_expiry defaults to enabled: granting access again starts a
        fresh window from now. A permanently deleted gift is returned
        unchanged without contacting the API.
        """
        self.session.require_admin()
        if gift.permanently_deleted:
            logger.warning("Ignoring access change on deleted gift", gift_id=gift.id)
            return gift
        if reset_expiry is None:
            reset_expiry = enabled

        body = self.client.set_gift_access(gift.id, enabled, reset_expiry)
        updated = gift_from_response(body)
        if updated is None:
            updated = gift.with_grant(apply_set_access(gift.grant, enabled, reset_expiry))
        logger.info(
            "Gift access updated",
            gift_id=gift.id,
            access_enabled=updated.access_enabled,
            expires_at=updated.expires_at.isoformat() if updated.expires_at else None,
        )
        return updated

    def permanently_delete(self, gift: Gift, confirm: Callable[[Gift], bool]) -> Gift:
        """
        Remove the gift's assets and revoke access for good.

        Nothing happens unless confirm(gift) returns True.
        """
        self.session.require_admin()
        if gift.permanently_deleted:
            return gift
        if not confirm(gift):
            logger.info("Permanent delete cancelled", gift_id=gift.id)
            return gift

        body = self.client.delete_gift_permanently(gift.id)
        updated = gift_from_response(body)
        if updated is None:
            updated = gift.with_grant(apply_permanent_delete(gift.grant))
        logger.warning("Gift permanently deleted", gift_id=gift.id)
        return updated

    @staticmethod
    def is_viewable(gift: Gift, now: Optional[datetime] = None) -> bool:
        return effective_access(gift.grant, now)

    @staticmethod
    def remaining(gift: Gift, now: Optional[datetime] = None) -> str:
        return format_remaining(gift.grant, now)
