"""Pydantic schemas for profile changes and user administration."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator, model_validator

from taskhub.models.user import NAME_MAX_LENGTH
from taskhub.schemas.common import MessageResponse, otp_text, required_text

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 36


def _name(v: str) -> str:
    v = required_text(v, "Name")
    if len(v) > NAME_MAX_LENGTH:
        raise ValueError(f"Name cannot exceed {NAME_MAX_LENGTH} characters.")
    return v


# ── Self-service ────────────────────────────────────────────────────
class RenameRequest(BaseModel):
    new_name: str = Field(alias="newName")

    model_config = {"populate_by_name": True}

    @field_validator("new_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _name(v)


class EmailChangeRequest(BaseModel):
    new_email: str = Field(alias="newEmail")

    model_config = {"populate_by_name": True}

    @field_validator("new_email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format.")
        return v


class OtpRequest(BaseModel):
    otp: str

    @field_validator("otp", mode="before")
    @classmethod
    def _otp_number(cls, v: object) -> object:
        return otp_text(v)

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str) -> str:
        return required_text(v, "OTP")


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")
    confirm_password: str = Field(alias="confirmPassword")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _check(self) -> "PasswordChangeRequest":
        if not (self.current_password and self.new_password and self.confirm_password):
            raise ValueError("All password fields are required.")
        if self.new_password != self.confirm_password:
            raise ValueError("New password and confirm password do not match.")
        if not PASSWORD_MIN_LENGTH <= len(self.new_password) <= PASSWORD_MAX_LENGTH:
            raise ValueError(
                f"Password must be between {PASSWORD_MIN_LENGTH} and "
                f"{PASSWORD_MAX_LENGTH} characters long."
            )
        return self


class SearchRequest(BaseModel):
    search: str

    @field_validator("search")
    @classmethod
    def _search(cls, v: str) -> str:
        return required_text(v, "Search query")


class UserIdRequest(BaseModel):
    user_id: str

    @field_validator("user_id")
    @classmethod
    def _user_id(cls, v: str) -> str:
        return required_text(v, "User ID")


# ── Administration ─────────────────────────────────────────────────
class PermissionFlags(BaseModel):
    edit_user: bool = False
    delete_user: bool = False
    create_task: bool = False
    edit_task: bool = False
    delete_task: bool = False
    edit_task_state: bool = False


class TargetUserUpdate(BaseModel):
    user_id: str
    name: str
    power: int
    role: str
    permissions: PermissionFlags = Field(default_factory=PermissionFlags)

    @field_validator("user_id")
    @classmethod
    def _user_id(cls, v: str) -> str:
        return required_text(v, "User ID")

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _name(v)

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        v = required_text(v, "Role")
        if len(v) > 45:
            raise ValueError("Role cannot exceed 45 characters.")
        return v


class UpdateUserRequest(BaseModel):
    target_user: TargetUserUpdate = Field(alias="targetUser")

    model_config = {"populate_by_name": True}


class DeleteUserRequest(BaseModel):
    target_user: str = Field(alias="targetUser")

    model_config = {"populate_by_name": True}

    @field_validator("target_user")
    @classmethod
    def _target(cls, v: str) -> str:
        return required_text(v, "Target user ID")


# ── Responses ───────────────────────────────────────────────────────
class UserRead(BaseModel):
    user_id: str
    name: str
    power: int
    role: str
    email: str
    permissions: PermissionFlags

    model_config = {"from_attributes": True}


class UserResponse(MessageResponse):
    user: UserRead


class UserSummary(BaseModel):
    user_id: str
    name: str

    model_config = {"from_attributes": True}


class UserSearchResponse(MessageResponse):
    users: list[UserSummary]
