from typing import Optional

from pydantic import EmailStr, Field, field_validator

from sustainability_dashboard.models.common import CamelModel
from sustainability_dashboard.models.enums import UserRole

PUBLIC_USER_FIELDS = (
    "_id",
    "email",
    "name",
    "role",
    "department",
    "unit",
    "isActive",
    "lastLogin",
    "createdAt",
    "updatedAt",
)


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterIn(CamelModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=8)
    role: UserRole = UserRole.VIEWER
    department: Optional[str] = None
    unit: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class ProfileUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, max_length=50)
    department: Optional[str] = None
    unit: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip() if v else v

    @field_validator("department", "unit")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class ChangePasswordIn(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


def public_user(doc: dict) -> dict:
    """User document without the password hash, `_id` as str."""
    out = {k: doc.get(k) for k in PUBLIC_USER_FIELDS if k in doc}
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out
