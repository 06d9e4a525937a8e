"""Upload reference models"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadReference(BaseModel):
    """A media object durably accepted by the provider"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str
    public_id: str = Field(alias="publicId")
    folder: Optional[str] = None


class UploadContext(BaseModel):
    """Where a transfer lands: shared folder plus a positional name"""
    model_config = ConfigDict(frozen=True)

    folder: Optional[str] = None
    public_id: Optional[str] = None
    resource_type: str = "image"

    @classmethod
    def photo(cls, folder: Optional[str], index: int) -> "UploadContext":
        """index is zero-based; names are photo_1, photo_2, ..."""
        return cls(folder=folder, public_id=f"photo_{index + 1}", resource_type="image")

    @classmethod
    def audio(cls, folder: Optional[str]) -> "UploadContext":
        # Cloudinary stores audio under the video resource type
        return cls(
            folder=folder,
            public_id="audio" if folder else None,
            resource_type="video",
        )


class UploadBatch(BaseModel):
    """Outcome of a settled multi-file upload"""

    uploaded: List[UploadReference] = Field(default_factory=list)
    failed: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def urls(self) -> List[str]:
        return [ref.url for ref in self.uploaded]

    @property
    def public_ids(self) -> List[str]:
        return [ref.public_id for ref in self.uploaded]
