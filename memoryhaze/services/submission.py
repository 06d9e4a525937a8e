"""Customer gift request draft and step validation"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from ..api.cloudinary_helper import MediaFile, is_image_file
from ..models.gift import Occasion, Plan, SongGenre
from ..models.upload import UploadReference
from ..utils.config import SubmissionSettings
from ..utils.exceptions import ValidationError
from .plans import max_photos

STEP_TITLES = {
    1: "Occasion & Basic Info",
    2: "Song Writing Details",
    3: "Photos & Plan",
    4: "Message & Submit",
}

# Step 4 (message) is optional and always passes
REQUIRED_STEPS = (1, 2, 3)


def _enum_value(enum_cls, value):
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


class SubmissionDraft:
    """
    A customer's in-progress order, filled in over four steps.

    Photos are held as local files until submit; nothing is uploaded while
    the draft is being edited.
    """

    def __init__(
        self,
        occasion: Optional[Union[Occasion, str]] = None,
        recipient_name: str = "",
        occasion_date: Optional[Union[date, str]] = None,
        scenarios: Optional[Sequence[str]] = None,
        song_genre: Optional[Union[SongGenre, str]] = None,
        plan: Optional[Union[Plan, str]] = None,
        message: str = "",
        settings: Optional[SubmissionSettings] = None,
    ):
        self.settings = settings or SubmissionSettings()
        self.occasion = occasion
        self.recipient_name = recipient_name
        self.occasion_date = occasion_date
        self.scenarios = list(scenarios) if scenarios else [""] * self.settings.scenario_count
        self.song_genre = song_genre
        self.plan = plan
        self.message = message
        self.photos: List[MediaFile] = []

    @property
    def photo_limit(self) -> int:
        return max_photos(_enum_value(Plan, self.plan), self.settings.default_max_photos)

    def add_photos(self, files: Sequence[MediaFile]) -> int:
        """
        Add photos to the draft. Non-image files are skipped.

        Returns:
            Number of photos added

        Raises:
            ValidationError: The selection would exceed the photo limit
        """
        limit = self.photo_limit
        if len(self.photos) + len(files) > limit:
            raise ValidationError(
                f"You can only upload up to {limit} photos.", step=3, field="photos"
            )
        images = [f for f in files if is_image_file(f)]
        self.photos.extend(images)
        return len(images)

    def remove_photo(self, index: int) -> None:
        if 0 <= index < len(self.photos):
            del self.photos[index]

    def _parsed_date(self) -> Optional[date]:
        if isinstance(self.occasion_date, date):
            return self.occasion_date
        if not self.occasion_date:
            return None
        try:
            return date.fromisoformat(str(self.occasion_date))
        except ValueError:
            return None

    def validate_step(self, step: int, today: Optional[date] = None) -> None:
        """Raise ValidationError naming the step and field if it is incomplete"""
        if step == 1:
            if _enum_value(Occasion, self.occasion) is None:
                raise ValidationError("Please choose an occasion", step=1, field="occasion")
            if not (self.recipient_name or "").strip():
                raise ValidationError("Please enter the recipient's name", step=1, field="recipientName")
            occasion_date = self._parsed_date()
            if occasion_date is None:
                raise ValidationError("Please choose the occasion date", step=1, field="occasionDate")
            if occasion_date < (today or date.today()):
                raise ValidationError("The occasion date cannot be in the past", step=1, field="occasionDate")
        elif step == 2:
            minimum = self.settings.min_scenario_length
            if len(self.scenarios) != self.settings.scenario_count:
                raise ValidationError(
                    f"Please describe {self.settings.scenario_count} memories", step=2, field="scenarios"
                )
            for index, scenario in enumerate(self.scenarios):
                if len(scenario or "") < minimum:
                    raise ValidationError(
                        f"Memory {index + 1} needs at least {minimum} characters",
                        step=2,
                        field=f"scenarios[{index}]",
                    )
            if _enum_value(SongGenre, self.song_genre) is None:
                raise ValidationError("Please choose a song genre", step=2, field="songGenre")
        elif step == 3:
            if not self.photos:
                raise ValidationError("Please add at least one photo", step=3, field="photos")
            if _enum_value(Plan, self.plan) is None:
                raise ValidationError("Please choose a plan", step=3, field="plan")
            if len(self.photos) > self.photo_limit:
                raise ValidationError(
                    f"You can only upload up to {self.photo_limit} photos.", step=3, field="photos"
                )

    def validate(self, today: Optional[date] = None) -> None:
        """Re-check every required step; the error names the first incomplete one"""
        for step in REQUIRED_STEPS:
            self.validate_step(step, today=today)

    def is_step_complete(self, step: int, today: Optional[date] = None) -> bool:
        try:
            self.validate_step(step, today=today)
        except ValidationError:
            return False
        return True

    def to_payload(self, photos: Sequence[UploadReference]) -> Dict[str, Any]:
        """Request body for POST /api/gifts/request"""
        return {
            "recipientName": self.recipient_name.strip(),
            "occasion": Occasion(self.occasion).value,
            "occasionDate": self._parsed_date().isoformat(),
            "scenarios": [s.strip() for s in self.scenarios],
            "songGenre": SongGenre(self.song_genre).value,
            "photos": [ref.url for ref in photos],
            "photoPublicIds": [ref.public_id for ref in photos],
            "plan": Plan(self.plan).value,
            "message": (self.message or "").strip(),
        }
