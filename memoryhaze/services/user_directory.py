"""Operator search over customer accounts"""

from typing import List

from ..api.client import MemoryHazeClient
from ..auth.session import Session
from ..models.user import DirectoryUser, UserPage
from ..utils.exceptions import MemoryHazeError, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

SUGGESTION_LIMIT = 5
MIN_SUGGEST_LENGTH = 2


class UserDirectory:
    def __init__(self, client: MemoryHazeClient, session: Session):
        self.client = client
        self.session = session

    def search(self, query: str = "", page: int = 1, limit: int = 10) -> UserPage:
        self.session.require_admin()
        body = self.client.list_users(search=query.strip(), page=page, limit=limit)
        return UserPage(
            users=[DirectoryUser.model_validate(u) for u in body.get("users") or []],
            total=int(body.get("total") or 0),
            page=page,
            limit=limit,
        )

    def suggest(self, query: str) -> List[DirectoryUser]:
        """Type-ahead matches. Failures yield no suggestions."""
        query = (query or "").strip()
        if len(query) < MIN_SUGGEST_LENGTH:
            return []
        try:
            page = self.search(query, page=1, limit=SUGGESTION_LIMIT)
        except MemoryHazeError as e:
            logger.warning("User suggestions unavailable", query=query, error=str(e))
            return []
        return page.users[:SUGGESTION_LIMIT]

    def create_user(self, email: str, password: str) -> DirectoryUser:
        if not email or not email.strip() or not password:
            raise ValidationError("Email and password are required", field="email")
        self.session.require_admin()
        body = self.client.create_user(email.strip(), password)
        user = DirectoryUser.model_validate(body.get("user") or {})
        logger.info("User created", email=user.email, user_id=user.user_id)
        return user
