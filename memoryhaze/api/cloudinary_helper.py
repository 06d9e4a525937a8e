"""Cloudinary helper for unsigned media uploads"""

import re
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Union

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from ..models.upload import UploadContext, UploadReference
from ..utils.config import CloudinarySettings
from ..utils.exceptions import UploadError
from ..utils.logger import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}

# MemoryHaze/<user>/gift<n> inside a delivery URL
GIFT_FOLDER_PATTERN = re.compile(r"MemoryHaze/[^/]+/gift\d+")

MediaFile = Union[str, Path, bytes, BinaryIO]


def init_cloudinary(settings: CloudinarySettings) -> bool:
    """Point the SDK at the configured cloud. False if not configured."""
    if not settings.is_configured():
        return False
    cloudinary.config(cloud_name=settings.cloud_name, secure=True)
    return True


def is_image_file(file: MediaFile) -> bool:
    """Images are recognised by extension; in-memory buffers are trusted"""
    name = None
    if isinstance(file, (str, Path)):
        name = str(file)
    else:
        name = getattr(file, "name", None)
    if not name:
        return True
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


def folder_from_url(url: Optional[str], root_folder: str = "MemoryHaze") -> Optional[str]:
    """Extract the gift folder (root/<user>/gift<n>) from a delivery URL"""
    if not url:
        return None
    pattern = GIFT_FOLDER_PATTERN
    if root_folder != "MemoryHaze":
        pattern = re.compile(re.escape(root_folder) + r"/[^/]+/gift\d+")
    match = pattern.search(url)
    return match.group(0) if match else None


def upload_to_cloudinary(
    file: MediaFile,
    context: UploadContext,
    settings: CloudinarySettings,
) -> UploadReference:
    """
    Upload one file with the unsigned preset for its resource type

    Args:
        file: Path, raw bytes or an open binary file
        context: Target folder, public id and resource type
        settings: Cloudinary settings

    Returns:
        UploadReference with the secure URL and provider public id

    Raises:
        UploadError: Not configured, or the provider rejected the transfer
    """
    if not init_cloudinary(settings):
        raise UploadError("Cloudinary not configured")

    preset = settings.audio_preset() if context.resource_type == "video" else settings.image_preset()
    options: Dict[str, Any] = {"resource_type": context.resource_type}
    if context.folder:
        options["folder"] = context.folder
    if context.public_id:
        options["public_id"] = context.public_id

    payload = str(file) if isinstance(file, Path) else file
    try:
        result = cloudinary.uploader.unsigned_upload(payload, preset, **options)
    except cloudinary.exceptions.Error as e:
        logger.error("Cloudinary upload failed", folder=context.folder, public_id=context.public_id, error=str(e))
        raise UploadError(str(e) or "Upload failed")
    except Exception as e:
        logger.error("Unexpected upload failure", folder=context.folder, public_id=context.public_id, error=repr(e))
        raise UploadError(f"Upload failed: {e}")

    url = result.get("secure_url") or result.get("url")
    public_id = result.get("public_id")
    if not url or not public_id:
        error = result.get("error")
        message = error.get("message") if isinstance(error, dict) else None
        raise UploadError(message or "Upload failed")

    logger.info("Uploaded media", public_id=public_id, resource_type=context.resource_type)
    return UploadReference(url=url, public_id=public_id, folder=context.folder)
