"""
app/users/schemas.py

User Schemas
- Own profile read and partial update
- Public craftsman listing and its filter
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.schemas import UTCDateTime
from app.database.enums import UserRole


class UserAddress(BaseModel):
    street: str = Field(..., min_length=5)
    postal_code: str = Field(..., min_length=5)
    city: str = Field(..., min_length=2)


# ---------------------------------------------------
# Profile Schemas
# ---------------------------------------------------
class UserRead(BaseModel):
    """Full profile as seen by its owner."""

    id: UUID
    email: EmailStr
    role: UserRole
    first_name: str
    last_name: str
    company_name: str | None = None
    display_name: str
    phone: str | None = None
    address: UserAddress | None = None
    bio: str | None = None
    categories: list[str] = Field(default_factory=list)
    experience_years: int | None = None
    profile_completed: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    """Partial profile update. Craftsman-only fields are ignored for customers."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    company_name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    address: UserAddress | None = None
    bio: str | None = None
    categories: list[str] | None = None
    experience_years: int | None = Field(None, ge=0)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name darf nicht leer sein")
        return v


# ---------------------------------------------------
# Craftsman Directory
# ---------------------------------------------------
class CraftsmanFilter(BaseModel):
    category: str | None = None
    city: str | None = None


class CraftsmanRead(BaseModel):
    """Public craftsman card."""

    id: UUID
    first_name: str
    last_name: str
    company_name: str | None = None
    display_name: str
    bio: str | None = None
    categories: list[str] = Field(default_factory=list)
    experience_years: int | None = None
    city: str | None = None

    model_config = ConfigDict(from_attributes=True)
