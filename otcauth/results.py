"""Discriminated results returned by every provisioning flow."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorCategory(str, enum.Enum):
    INPUT = "input"
    BUSINESS = "business"
    CHALLENGE = "challenge"
    INFRASTRUCTURE = "infrastructure"
    DELIVERY = "delivery"


class ErrorKind(str, enum.Enum):
    MISSING_FIELDS = "MissingFields"
    INVALID_EMAIL = "InvalidEmail"
    INVALID_FIELDS = "InvalidFields"
    WEAK_CREDENTIAL = "WeakCredential"
    ALREADY_REGISTERED = "AlreadyRegistered"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    INVALID_OR_EXPIRED_CODE = "InvalidOrExpiredCode"
    STORAGE_UNAVAILABLE = "StorageUnavailable"
    DELIVERY_UNAVAILABLE = "DeliveryUnavailable"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_CATEGORIES = {
    ErrorKind.MISSING_FIELDS: ErrorCategory.INPUT,
    ErrorKind.INVALID_EMAIL: ErrorCategory.INPUT,
    ErrorKind.INVALID_FIELDS: ErrorCategory.INPUT,
    ErrorKind.WEAK_CREDENTIAL: ErrorCategory.INPUT,
    ErrorKind.ALREADY_REGISTERED: ErrorCategory.BUSINESS,
    ErrorKind.ACCOUNT_NOT_FOUND: ErrorCategory.BUSINESS,
    ErrorKind.INVALID_OR_EXPIRED_CODE: ErrorCategory.CHALLENGE,
    ErrorKind.STORAGE_UNAVAILABLE: ErrorCategory.INFRASTRUCTURE,
    ErrorKind.DELIVERY_UNAVAILABLE: ErrorCategory.DELIVERY,
}

_MESSAGES = {
    ErrorKind.MISSING_FIELDS: "Missing required fields",
    ErrorKind.INVALID_EMAIL: "A valid email address is required",
    ErrorKind.INVALID_FIELDS: "One or more fields are too long",
    ErrorKind.WEAK_CREDENTIAL: "Password does not meet the password policy",
    ErrorKind.ALREADY_REGISTERED: "Email already registered",
    ErrorKind.ACCOUNT_NOT_FOUND: "User not found",
    ErrorKind.INVALID_OR_EXPIRED_CODE: "Invalid or expired code",
    ErrorKind.STORAGE_UNAVAILABLE: "Service temporarily unavailable, please try again",
    ErrorKind.DELIVERY_UNAVAILABLE: "Failed to send verification email, please try again",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T = None  # type: ignore[assignment]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        """User-facing text. Input errors may carry a specific detail, the rest stay generic."""
        if self.detail and self.kind.category is ErrorCategory.INPUT:
            return self.detail
        return self.kind.message


Result = Union[Ok[Any], Err]
