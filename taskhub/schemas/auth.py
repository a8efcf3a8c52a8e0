"""Pydantic schemas for registration, login and OTP verification."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from taskhub.schemas.common import MessageResponse, otp_text, required_text

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,45}$")
REGISTER_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,6}$")


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    confirm_password: str | None = Field(default=None, alias="confirmPassword")

    model_config = {"populate_by_name": True}

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("Username must be 1-45 letters, digits, '.', '_' or '-'")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip()
        if not REGISTER_EMAIL_RE.match(v):
            raise ValueError("The email format is invalid.")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class VerifyOtpRequest(BaseModel):
    username: str
    otp: str

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        return required_text(v, "Username")

    @field_validator("otp", mode="before")
    @classmethod
    def _otp_number(cls, v: object) -> object:
        return otp_text(v)

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str) -> str:
        return required_text(v, "OTP")


class LoginRequest(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        return required_text(v, "Username")

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password must not be empty")
        return v


class LogoutRequest(BaseModel):
    cookie: str | None = None


class LoginVerifiedResponse(MessageResponse):
    cookie: str
