# auth_service/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import Role


# --- Request Schemas ---
class RegisterData(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=50)
    role: Role = Role.USER


class LoginData(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordData(BaseModel):
    email: EmailStr


class ResetPasswordData(BaseModel):
    password: str = Field(min_length=6, max_length=50)


# --- Response Schemas ---
class UserPublic(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    name: Optional[str] = None
    email: str
    role: Role


class UserDetail(UserPublic):
    created_at: datetime
    updated_at: datetime


def public_profile(user) -> dict:
    return UserPublic.model_validate(user).model_dump(by_alias=True, mode="json")
