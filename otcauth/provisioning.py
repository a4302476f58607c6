"""Privileged actions gated by a consumed challenge."""

from __future__ import annotations

import logging
from typing import Optional

from .database import Database, StorageError
from .events import log_event, mask_email, new_request_id
from .identity import AccountNotFoundError, DuplicateAccountError, IdentityStore, IdentityStoreError
from .models import Profile
from .results import Err, ErrorKind, Ok, Result

LOGGER = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


def check_password(password: str, min_length: int = 6) -> Result:
    if len(password) < min_length:
        return Err(ErrorKind.WEAK_CREDENTIAL, f"Password must be at least {min_length} characters")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return Err(ErrorKind.WEAK_CREDENTIAL, f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return Ok()


class ProfileStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def create(self, account_id: str, username: str, full_name: str) -> Profile:
        profile = Profile(id=account_id, username=username, full_name=full_name)
        with self.db.session() as session:
            session.add(profile)
            session.flush()
        return profile

    def get(self, account_id: str) -> Optional[Profile]:
        with self.db.session() as session:
            return session.get(Profile, account_id)


class ProvisioningActions:
    def __init__(self, identity: IdentityStore, profiles: ProfileStore) -> None:
        self.identity = identity
        self.profiles = profiles

    def complete_signup(
        self,
        email: str,
        password: str,
        username: str,
        full_name: str,
        req: Optional[str] = None,
    ) -> Result:
        """Create a verified account and its profile. Returns ``Ok(account_id)``."""
        req = req or new_request_id()
        try:
            if self.identity.exists(email):
                return Err(ErrorKind.ALREADY_REGISTERED)
            account = self.identity.create_account(
                email,
                password,
                email_verified=True,
                user_metadata={"username": username, "full_name": full_name},
            )
        except DuplicateAccountError:
            return Err(ErrorKind.ALREADY_REGISTERED)
        except IdentityStoreError as exc:
            LOGGER.error("Identity store failed creating account: %s", exc)
            return Err(ErrorKind.STORAGE_UNAVAILABLE, str(exc))

        try:
            self.profiles.create(account.id, username, full_name)
        except StorageError as exc:
            # account stays; a reconciliation job can backfill the profile
            log_event(
                LOGGER,
                "Provisioning",
                "signup",
                "profile.failed",
                req,
                level=logging.ERROR,
                email=mask_email(email),
                user_id=account.id,
                error=str(exc),
            )
        return Ok(account.id)

    def complete_password_reset(self, email: str, new_password: str) -> Result:
        try:
            account = self.identity.find_by_email(email)
            if account is None:
                return Err(ErrorKind.ACCOUNT_NOT_FOUND)
            self.identity.update_password(account.id, new_password)
        except AccountNotFoundError:
            LOGGER.warning("Account %s removed before its password could be reset", account.id)
            return Err(ErrorKind.ACCOUNT_NOT_FOUND)
        except IdentityStoreError as exc:
            LOGGER.error("Identity store failed updating password: %s", exc)
            return Err(ErrorKind.STORAGE_UNAVAILABLE, str(exc))
        return Ok(account.id)
