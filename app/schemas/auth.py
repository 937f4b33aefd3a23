from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.schemas.base import CamelModel


class SigninRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class SignupRequest(SigninRequest):
    name: str = Field(min_length=1, max_length=100)
    username: Optional[str] = Field(default=None, min_length=1, max_length=50)

    @field_validator("name", "username", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class SignupResponse(CamelModel):
    id: int


class UserRead(CamelModel):
    id: int
    name: str
    username: Optional[str] = None
    email: str
    created_at: Optional[datetime] = None
