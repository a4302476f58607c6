"""Pydantic schemas for request/response payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class IssueCodeRequest(_Request):
    email: Optional[str] = None


class CompleteSignupRequest(_Request):
    email: Optional[str] = None
    code: Optional[str] = Field(default=None, validation_alias=AliasChoices("code", "otpCode", "otp"))
    password: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("full_name", "fullName"))


class ResetPasswordRequest(_Request):
    email: Optional[str] = None
    code: Optional[str] = Field(default=None, validation_alias=AliasChoices("code", "otp", "otpCode"))
    new_password: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("new_password", "newPassword")
    )


class OTCResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    error: Optional[str] = None
    user_id: Optional[str] = None
