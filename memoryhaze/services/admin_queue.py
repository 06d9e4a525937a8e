"""Operator view over gift requests: one tab and page at a time"""

from typing import List, Optional, Set

from ..api.cloudinary_helper import MediaFile
from ..models.gift import GiftRequest, RequestStats
from ..utils.exceptions import ValidationError
from ..utils.logger import get_logger
from .lifecycle import STATUS_FILTERS, GiftRequestService

logger = get_logger(__name__)

PAGE_SIZE = 10


class AdminQueue:
    """
    Local cache of the request list for the current tab and page.

    Mutations mark the request busy until their response arrives, replace
    the cached record in place and then refresh. A failed mutation leaves
    the cache as it was.
    """

    def __init__(self, lifecycle: GiftRequestService, limit: int = PAGE_SIZE):
        self.lifecycle = lifecycle
        self.limit = limit
        self.tab = "all"
        self.page = 1
        self.requests: List[GiftRequest] = []
        self.total = 0
        self.stats = RequestStats()
        self.loading = False
        self.busy: Set[str] = set()

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit > 0 else 0

    def select_tab(self, tab: str) -> None:
        if tab not in STATUS_FILTERS:
            raise ValidationError(f"Unknown status filter: {tab}", field="status")
        self.tab = tab
        self.page = 1
        self.refresh()

    def go_to_page(self, page: int) -> None:
        last = max(self.total_pages, 1)
        self.page = min(max(page, 1), last)
        self.refresh()

    def next_page(self) -> None:
        self.go_to_page(self.page + 1)

    def previous_page(self) -> None:
        self.go_to_page(self.page - 1)

    def refresh(self) -> None:
        """Load stats, then the current page"""
        self.stats = self.lifecycle.stats()
        self.loading = True
        try:
            page = self.lifecycle.list(status=self.tab, page=self.page, limit=self.limit)
        finally:
            self.loading = False
        self.requests = page.requests
        self.total = page.total

    def get(self, request_id: str) -> Optional[GiftRequest]:
        for request in self.requests:
            if request.id == request_id:
                return request
        return None

    def is_busy(self, request_id: str) -> bool:
        return request_id in self.busy

    def _replace(self, updated: GiftRequest) -> None:
        for index, request in enumerate(self.requests):
            if request.id == updated.id:
                self.requests[index] = updated
                return

    def _mutate(self, request: GiftRequest, action, *args) -> GiftRequest:
        if request.id in self.busy:
            raise ValidationError("This request is already being updated")
        self.busy.add(request.id)
        try:
            updated = action(request, *args)
        finally:
            self.busy.discard(request.id)
        self._replace(updated)
        self.refresh()
        return updated

    def verify(self, request: GiftRequest) -> GiftRequest:
        return self._mutate(request, self.lifecycle.verify)

    def reject(self, request: GiftRequest, reason: Optional[str] = None) -> GiftRequest:
        return self._mutate(request, self.lifecycle.reject, reason)

    def complete(self, request: GiftRequest, audio_file: Optional[MediaFile], lyrics: Optional[str]) -> GiftRequest:
        return self._mutate(request, self.lifecycle.complete, audio_file, lyrics)
