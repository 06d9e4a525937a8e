"""
Gift request lifecycle: customer submission and operator transitions.

Transitions are checked against the local transition table before any
network call, so an out-of-order verify/reject/complete never reaches the
API. The server remains the authority and its answer replaces the local
record.
"""

from datetime import date
from typing import Any, Callable, Dict, Optional

from ..api.client import MemoryHazeClient
from ..api.cloudinary_helper import MediaFile
from ..auth.session import Session
from ..models.gift import (
    GiftRequest,
    GiftStatus,
    RequestPage,
    RequestStats,
    apply_transition,
    check_transition,
    validate_completion,
)
from ..utils.exceptions import ServerError, ValidationError
from ..utils.logger import get_logger
from .submission import SubmissionDraft
from .upload_service import UploadService

logger = get_logger(__name__)

PHASE_UPLOADING = "uploading"
PHASE_SAVING = "saving"

STATUS_FILTERS = ("all", "pending", "verified", "completed", "rejected")


def request_from_response(body: Dict[str, Any]) -> Optional[GiftRequest]:
    """The API returns the record under "request" (or "giftRequest")"""
    record = body.get("request") or body.get("giftRequest")
    if isinstance(record, dict):
        return GiftRequest.model_validate(record)
    return None


class GiftRequestService:
    """Creates gift requests and moves them through their statuses"""

    def __init__(self, client: MemoryHazeClient, session: Session, uploads: UploadService):
        self.client = client
        self.session = session
        self.uploads = uploads
        self.submitting = False
        self.phase: Optional[str] = None

    def _set_phase(self, phase: Optional[str], on_phase: Optional[Callable[[str], None]]) -> None:
        self.phase = phase
        if phase and on_phase:
            on_phase(phase)

    def submit(
        self,
        draft: SubmissionDraft,
        on_phase: Optional[Callable[[str], None]] = None,
        today: Optional[date] = None,
    ) -> GiftRequest:
        """
        Submit a customer's order

        Args:
            draft: Completed submission draft
            on_phase: Called with "uploading" then "saving"
            today: Reference date for the occasion-date check

        Returns:
            The created request, status pending

        Raises:
            ValidationError: Draft incomplete, or a submission is already running
            AuthorizationError: Not logged in
            UploadError: A photo failed to upload; nothing was saved
            ServerError: The API rejected or failed the save
        """
        if self.submitting:
            raise ValidationError("Your order is already being submitted")
        self.session.require_authenticated(next_path="/customize")
        draft.validate(today=today)

        self.submitting = True
        try:
            self._set_phase(PHASE_UPLOADING, on_phase)
            folder = self.uploads.customer_folder(
                self.session.profile.user_id if self.session.profile else None
            )
            photos = self.uploads.upload_photos(draft.photos, folder)

            self._set_phase(PHASE_SAVING, on_phase)
            body = self.client.create_gift_request(draft.to_payload(photos))
            request = request_from_response(body)
            if request is None:
                raise ServerError("Failed to submit order")
            logger.info("Gift request submitted", request_id=request.id, folder=folder)
            return request
        finally:
            self.submitting = False
            self.phase = None

    def _transition(self, request: GiftRequest, target: GiftStatus, body: Dict[str, Any], **side_data) -> GiftRequest:
        updated = request_from_response(body)
        if updated is None:
            updated = apply_transition(request, target, **side_data)
        logger.info("Gift request moved", request_id=request.id, status=updated.status.value)
        return updated

    def verify(self, request: GiftRequest) -> GiftRequest:
        self.session.require_admin()
        check_transition(request.status, GiftStatus.VERIFIED)
        body = self.client.verify_request(request.id)
        return self._transition(request, GiftStatus.VERIFIED, body)

    def reject(self, request: GiftRequest, reason: Optional[str] = None) -> GiftRequest:
        """Reject a pending request. The server deletes its uploaded photos."""
        self.session.require_admin()
        check_transition(request.status, GiftStatus.REJECTED)
        reason = reason.strip() if reason and reason.strip() else None
        body = self.client.reject_request(request.id, reason)
        return self._transition(request, GiftStatus.REJECTED, body, reason=reason)

    def complete(self, request: GiftRequest, audio_file: Optional[MediaFile], lyrics: Optional[str]) -> GiftRequest:
        """
        Attach the finished song to a verified request.

        Audio and lyrics are checked before anything is uploaded; the audio
        lands in the request's own gift folder.
        """
        self.session.require_admin()
        check_transition(request.status, GiftStatus.COMPLETED)
        if audio_file is None:
            raise ValidationError("Please upload an audio file", field="audio")
        if not lyrics or not lyrics.strip():
            raise ValidationError("Please enter the lyrics", field="lyrics")

        folder = self.uploads.completion_folder(request.photos)
        audio = self.uploads.upload_audio(audio_file, folder)
        validate_completion(audio, lyrics)

        body = self.client.complete_request(request.id, audio.url, audio.public_id, lyrics.strip())
        return self._transition(request, GiftStatus.COMPLETED, body, audio=audio, lyrics=lyrics)

    def list(self, status: str = "all", page: int = 1, limit: int = 10) -> RequestPage:
        self.session.require_admin()
        if status not in STATUS_FILTERS:
            raise ValidationError(f"Unknown status filter: {status}", field="status")
        body = self.client.list_requests(status=status, page=page, limit=limit)
        return RequestPage(
            requests=[GiftRequest.model_validate(r) for r in body.get("requests") or []],
            total=int(body.get("total") or 0),
            page=page,
            limit=limit,
        )

    def stats(self) -> RequestStats:
        self.session.require_admin()
        return RequestStats.model_validate(self.client.request_stats())
