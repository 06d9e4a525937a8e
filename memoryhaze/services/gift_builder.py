"""Operator path for creating a finished gift directly for a user"""

from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel

from ..api.client import MemoryHazeClient
from ..api.cloudinary_helper import MediaFile, is_image_file
from ..auth.session import Session
from ..models.gift import Occasion, Plan
from ..models.user import DirectoryUser
from ..models.viewer import Gift
from ..utils.config import SubmissionSettings
from ..utils.exceptions import ServerError, UploadError, ValidationError
from ..utils.logger import get_logger
from .access_service import gift_from_response
from .templates import is_known_template, resolve_template
from .upload_service import UploadService

logger = get_logger(__name__)


class GiftCreationResult(BaseModel):
    gift: Gift
    folder: str
    uploaded_images: int = 0
    failed_images: int = 0
    audio_failed: bool = False

    @property
    def partial(self) -> bool:
        return bool(self.failed_images or self.audio_failed)

    def summary(self) -> str:
        if self.partial:
            parts = []
            if self.failed_images:
                parts.append(f"{self.failed_images} image(s) failed")
            if self.audio_failed:
                parts.append("audio failed")
            return ", ".join(parts)
        audio = " + audio" if self.gift.audio else ""
        return f"{self.uploaded_images} image(s){audio} uploaded to folder: {self.folder}"


class AdminGiftDraft:
    """Form state for one gift for one user. Discard it after create()."""

    def __init__(
        self,
        user: DirectoryUser,
        occasion: Optional[Union[Occasion, str]] = None,
        plan: Optional[Union[Plan, str]] = None,
        scenarios: Optional[Sequence[str]] = None,
        lyrics: str = "",
        message: str = "",
        template_id: Optional[str] = None,
        settings: Optional[SubmissionSettings] = None,
    ):
        self.user = user
        self.settings = settings or SubmissionSettings()
        self.occasion = occasion
        self.plan = plan
        self.scenarios = list(scenarios) if scenarios else []
        self.lyrics = lyrics
        self.message = message
        self.template_id = template_id
        self.photos: List[MediaFile] = []
        self.audio: Optional[MediaFile] = None

    def add_photos(self, files: Sequence[MediaFile]) -> int:
        limit = self.settings.admin_max_photos
        if len(self.photos) + len(files) > limit:
            raise ValidationError(f"You can only upload up to {limit} photos.", field="photos")
        images = [f for f in files if is_image_file(f)]
        self.photos.extend(images)
        return len(images)

    def set_audio(self, file: Optional[MediaFile]) -> None:
        self.audio = file

    @property
    def resolved_template(self) -> str:
        return resolve_template(self.template_id, self.occasion)

    def validate(self) -> None:
        if not self.photos and self.audio is None:
            raise ValidationError("Please upload at least one image or audio file.", field="photos")
        try:
            Occasion(self.occasion)
        except ValueError:
            raise ValidationError("Please select an occasion type.", field="occasion")
        try:
            Plan(self.plan)
        except ValueError:
            raise ValidationError("Please select a plan.", field="plan")
        if self.template_id and not is_known_template(self.template_id):
            raise ValidationError(f"Unknown template: {self.template_id}", field="templateId")

    def to_payload(self, photos: List[str], audio_url: Optional[str]) -> Dict[str, Any]:
        return {
            "userId": self.user.id,
            "templateId": self.resolved_template,
            "scenarios": [s.strip() for s in self.scenarios if s and s.strip()],
            "memory": Occasion(self.occasion).value,
            "plan": Plan(self.plan).value,
            "photos": photos,
            "audio": audio_url,
            "lyrics": self.lyrics,
            "message": self.message,
        }


class AdminGiftBuilder:
    """Uploads a draft's media and saves the gift"""

    def __init__(self, client: MemoryHazeClient, session: Session, uploads: UploadService):
        self.client = client
        self.session = session
        self.uploads = uploads
        self.creating = False

    def create(self, draft: AdminGiftDraft) -> GiftCreationResult:
        """
        Create a gift for draft.user

        Images are uploaded concurrently and any that fail are left out. A
        failed audio upload is reported but does not stop the save.

        Raises:
            ValidationError: Draft incomplete, or a creation is already running
            UploadError: Cloudinary not configured
            ServerError: The API failed to save the gift
        """
        if self.creating:
            raise ValidationError("A gift is already being created")
        self.session.require_admin()
        draft.validate()
        if not self.uploads.settings.is_configured():
            raise UploadError("Cloudinary not configured")

        self.creating = True
        try:
            folder = self.uploads.user_folder(draft.user.id, draft.user.folder_key)
            batch = self.uploads.upload_photos_settled(draft.photos, folder)

            audio_url = None
            audio_failed = False
            if draft.audio is not None:
                try:
                    audio_url = self.uploads.upload_audio(draft.audio, folder).url
                except UploadError as e:
                    logger.error("Audio upload error", user_id=draft.user.id, error=e.message)
                    audio_failed = True

            body = self.client.create_gift_for_user(draft.to_payload(batch.urls, audio_url))
            gift = gift_from_response(body)
            if gift is None:
                raise ServerError("Failed to create gift record")
        finally:
            self.creating = False

        result = GiftCreationResult(
            gift=gift,
            folder=folder,
            uploaded_images=len(batch.uploaded),
            failed_images=batch.failed,
            audio_failed=audio_failed,
        )
        logger.info("Gift created for user", user_id=draft.user.id, gift_id=gift.id, summary=result.summary())
        return result
