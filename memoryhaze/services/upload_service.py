"""
Media upload service.

Every photo and audio reference sent to the API comes from here. Files for
one gift share a folder, root/<userId>/gift<n>, where n follows the number
of gifts the subject already has. The count lookup is best-effort: on any
failure the folder falls back to gift1 and the subject to "guest".
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from ..api.client import MemoryHazeClient
from ..api.cloudinary_helper import MediaFile, folder_from_url, upload_to_cloudinary
from ..models.upload import UploadBatch, UploadContext, UploadReference
from ..utils.config import CloudinarySettings
from ..utils.exceptions import MemoryHazeError, UploadError
from ..utils.logger import get_logger

logger = get_logger(__name__)

GUEST_SUBJECT = "guest"


class UploadService:
    """Transfers gift media to Cloudinary"""

    def __init__(
        self,
        client: MemoryHazeClient,
        settings: CloudinarySettings,
        uploader: Callable[..., UploadReference] = upload_to_cloudinary,
        max_workers: int = 4,
    ):
        self.client = client
        self.settings = settings
        self._uploader = uploader
        self.max_workers = max_workers

    def upload_media(self, file: MediaFile, context: UploadContext) -> UploadReference:
        """Single transfer. Raises UploadError on any provider failure."""
        return self._uploader(file, context, self.settings)

    def gift_folder(self, subject: str, gift_count: int) -> str:
        return f"{self.settings.root_folder}/{subject}/gift{gift_count + 1}"

    def customer_folder(self, user_id: Optional[str] = None) -> str:
        """Folder for the signed-in customer's next gift"""
        subject = user_id or GUEST_SUBJECT
        gift_count = 0
        try:
            if not user_id:
                profile = self.client.get_me()
                subject = profile.get("userId") or GUEST_SUBJECT
            gifts = self.client.list_gifts().get("gifts") or []
            gift_count = len(gifts)
        except MemoryHazeError as e:
            logger.warning("Could not fetch user data or gift count", error=str(e))
        return self.gift_folder(subject, gift_count)

    def user_folder(self, user_id: str, folder_key: Optional[str] = None) -> str:
        """Folder for an operator-created gift for another user"""
        gift_count = 0
        try:
            gifts = self.client.list_user_gifts(user_id).get("gifts") or []
            gift_count = len(gifts)
        except MemoryHazeError as e:
            logger.warning("Could not fetch gift count for user", user_id=user_id, error=str(e))
        return self.gift_folder(folder_key or user_id, gift_count)

    def completion_folder(self, photo_urls: Sequence[str]) -> Optional[str]:
        """Audio for a completed request goes next to its photos"""
        first = photo_urls[0] if photo_urls else None
        return folder_from_url(first, self.settings.root_folder)

    def upload_photos(self, files: Sequence[MediaFile], folder: str) -> List[UploadReference]:
        """
        Upload photos one after another, stopping at the first failure.

        Raises:
            UploadError: from the first failed transfer
        """
        if not self.settings.is_configured():
            raise UploadError("Cloudinary not configured")
        references = []
        for index, file in enumerate(files):
            references.append(self.upload_media(file, UploadContext.photo(folder, index)))
        logger.info("Uploaded photos", folder=folder, count=len(references))
        return references

    def upload_photos_settled(self, files: Sequence[MediaFile], folder: str) -> UploadBatch:
        """
        Attempt every photo concurrently and join.

        Successes keep the order of the input files; failures are counted.
        """
        if not self.settings.is_configured():
            raise UploadError("Cloudinary not configured")
        if not files:
            return UploadBatch()

        batch = UploadBatch()
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self.upload_media, file, UploadContext.photo(folder, index))
                for index, file in enumerate(files)
            ]
            for future in futures:
                try:
                    batch.uploaded.append(future.result())
                except MemoryHazeError as e:
                    batch.failed += 1
                    batch.errors.append(e.message)

        if batch.failed:
            logger.warning("Some photos failed to upload", folder=folder, failed=batch.failed)
        return batch

    def upload_audio(self, file: MediaFile, folder: Optional[str]) -> UploadReference:
        return self.upload_media(file, UploadContext.audio(folder))
