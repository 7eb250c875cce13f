from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


UserRole = Literal["admin", "sales", "project_manager", "developer"]


class UserWrite(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: str | None = None
    email_address: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: UserRole = "developer"
    password: str | None = None

    @field_validator("email_address")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("id", "password", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email_address: str
    name: str
    role: str
    created_at: datetime
    updated_at: datetime


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserRead
