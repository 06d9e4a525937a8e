"""User data models for identity and the operator directory"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenClaims(BaseModel):
    """Claims derived from an unverified decode of the bearer token"""
    model_config = ConfigDict(frozen=True)

    subject_id: Optional[str] = None
    is_admin: bool = False
    expires_at: Optional[datetime] = None


class UserProfile(BaseModel):
    """Identity as resolved by /api/auth/me"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    # Human-facing sequential id (usr-00001), used for storage folders
    user_id: Optional[str] = Field(default=None, alias="userId")
    email: Optional[str] = None
    name: Optional[str] = None


class DirectoryUser(BaseModel):
    """A customer account as listed by the operator directory"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: Optional[str] = Field(default=None, alias="userId")
    email: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @property
    def folder_key(self) -> str:
        return self.user_id or self.id


class UserPage(BaseModel):
    users: List[DirectoryUser] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)
