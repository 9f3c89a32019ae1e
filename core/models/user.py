"""
User Schema - Buyers and vendors.

The password is stored only as a salted hash and is excluded from every
serialization except the database document.
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.common import new_id, utc_now


Role = Literal["buyer", "vendor"]

USERS_COLLECTION = "users"


class User(BaseModel):
    """A marketplace account stored in the 'users' collection."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")
    name: str
    email: str
    phone: Optional[str] = None
    role: Role = "buyer"
    password_hash: str = Field(default="", exclude=True, repr=False)

    is_verified: bool = False
    is_active: bool = True
    avatar: Optional[str] = None
    location: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    response_time: str = "Usually responds within 24 hours"
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_vendor(self) -> bool:
        return self.role == "vendor"

    def to_public_dict(self) -> Dict[str, Any]:
        """Outward representation; never contains the password hash."""
        return self.model_dump(by_alias=True, mode="json")

    def to_dict_for_db(self) -> dict:
        document = self.model_dump(by_alias=True)
        document["password_hash"] = self.password_hash
        return document

    def identity(self) -> "Identity":
        return Identity(user_id=self.id, role=self.role, name=self.name, email=self.email)


# Loose shape check; deliverability is not verified
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    phone: str = Field(..., min_length=10)
    role: Role = "buyer"


class LoginRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class Identity(BaseModel):
    """The caller behind a resolved bearer credential."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_vendor(self) -> bool:
        return self.role == "vendor"

    @property
    def display_name(self) -> str:
        return self.name or self.user_id
