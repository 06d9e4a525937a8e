"""Request bodies accepted by the sandbox API"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from memoryhaze.models.gift import Occasion, Plan, SongGenre
from memoryhaze.utils.config import SubmissionSettings

SUBMISSION = SubmissionSettings()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class SignupVerifyRequest(BaseModel):
    email: EmailStr
    otp: str
    name: str = ""
    password: str = Field(..., min_length=6)


class OtpVerifyRequest(BaseModel):
    email: EmailStr
    otp: str


class PasswordResetRequest(BaseModel):
    email: EmailStr
    otp: str
    password: str = Field(..., min_length=6)


class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class CreateGiftRequestBody(BaseModel):
    """Customer order as posted to /api/gifts/request"""
    recipientName: str = Field(..., min_length=1)
    occasion: Occasion
    occasionDate: date
    scenarios: List[str]
    songGenre: SongGenre
    photos: List[str] = Field(..., min_length=1)
    photoPublicIds: List[str] = Field(default_factory=list)
    plan: Plan
    message: str = ""

    @field_validator("scenarios")
    @classmethod
    def check_scenarios(cls, value: List[str]) -> List[str]:
        if len(value) != SUBMISSION.scenario_count:
            raise ValueError(f"exactly {SUBMISSION.scenario_count} scenarios are required")
        # The character minimum is measured on the untrimmed text before submit
        if any(not s.strip() for s in value):
            raise ValueError("scenarios cannot be blank")
        return [s.strip() for s in value]

    @model_validator(mode="after")
    def check_public_ids(self) -> "CreateGiftRequestBody":
        if self.photoPublicIds and len(self.photoPublicIds) != len(self.photos):
            raise ValueError("photoPublicIds must match photos")
        return self


class RejectBody(BaseModel):
    reason: Optional[str] = None


class CompleteBody(BaseModel):
    audio: Optional[str] = None
    audioPublicId: Optional[str] = None
    lyrics: Optional[str] = None


class CreateGiftBody(BaseModel):
    """Operator-created gift for an existing user"""
    userId: str
    templateId: str
    scenarios: List[str] = Field(default_factory=list)
    memory: Optional[Occasion] = None
    plan: Plan
    photos: List[str] = Field(default_factory=list)
    audio: Optional[str] = None
    lyrics: str = ""
    message: str = ""


class AccessBody(BaseModel):
    accessEnabled: bool
    resetExpiry: Optional[bool] = None
