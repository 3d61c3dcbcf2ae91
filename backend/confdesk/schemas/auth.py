# confdesk/schemas/auth.py
"""
Pydantic schemas for authentication endpoints.
Fields are optional where a missing value must produce a 400 envelope
instead of a 422 validation error.
"""
from typing import Optional
from pydantic import BaseModel, Field


class RegisterIn(BaseModel):
    """
    Request model for self-registration.
    Only the Author role can be chosen here; staff accounts are created by
    editors and admins.
    """
    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None  # Defaults to the local part of the email
    role: Optional[str] = "Author"
    country: Optional[str] = None
    userType: Optional[str] = None  # student / faculty / scholar


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyEmailIn(BaseModel):
    token: Optional[str] = None
    email: Optional[str] = None


class EmailIn(BaseModel):
    email: Optional[str] = None


class ResetPasswordIn(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None
    newPassword: Optional[str] = Field(default=None, min_length=6)


class ChangePasswordIn(BaseModel):
    currentPassword: str
    newPassword: str = Field(min_length=6)


class CountryIn(BaseModel):
    country: Optional[str] = None
