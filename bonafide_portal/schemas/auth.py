"""
Bonafide Portal — Identity, OTP and signup schemas
"""
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from bonafide_portal.models.user import Role
from bonafide_portal.schemas.base import CamelModel


class Identity(BaseModel):
    """What the identity adapter hands to the core: id, closed role, metadata."""

    id: str
    email: str
    role: Role
    metadata: dict[str, Any] = Field(default_factory=dict)


# ─── OTP ──────────────────────────────────────────────────────────────────────

class SendOtpRequest(CamelModel):
    phone: str = Field(..., examples=["9876543210"])


class SendOtpResponse(CamelModel):
    success: bool = True
    message: str
    code: str | None = None  # only populated when OTP_DEV_MODE is on


class VerifyOtpRequest(CamelModel):
    phone: str
    otp: str = Field(..., min_length=1)


class VerifyOtpResponse(CamelModel):
    success: bool = True
    message: str
    verification_token: str
    expires_in: int


# ─── Signup ───────────────────────────────────────────────────────────────────

class StudentSignupRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    usn: str = Field(..., min_length=1, max_length=32)
    father_name: str = Field(..., min_length=1, max_length=255)
    semester: str
    year: str
    department: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    phone: str
    password: str = Field(..., max_length=128)
    confirm_password: str | None = None
    verification_token: str | None = None


class AdminSignupRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str
    password: str = Field(..., max_length=128)
    confirm_password: str | None = None
    secret_code: str


class StudentProfile(CamelModel):
    id: str
    full_name: str
    usn: str
    father_name: str
    semester: str
    year: str
    department: str
    email: str
    phone: str


class AdminProfile(CamelModel):
    id: str
    full_name: str
    email: str
    phone: str


class SignupResponse(CamelModel):
    success: bool = True
    message: str
    user_id: str


# ─── Login / session ──────────────────────────────────────────────────────────

class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    role: Role


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user_id: str
    role: Role


class CurrentUserResponse(CamelModel):
    success: bool = True
    user: dict[str, Any]
    role: Role
