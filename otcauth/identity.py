"""Identity store adapters: the system of record for accounts and credentials."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .database import Database, StorageError
from .models import AccountRow, normalize_email

LOGGER = logging.getLogger(__name__)


class IdentityStoreError(RuntimeError):
    """The identity store was unreachable or rejected the call."""


class DuplicateAccountError(IdentityStoreError):
    pass


class AccountNotFoundError(IdentityStoreError):
    """The account disappeared between lookup and update."""


@dataclass
class Account:
    id: str
    email: str
    email_verified: bool
    user_metadata: Dict[str, Any] = field(default_factory=dict)


class IdentityStore(Protocol):
    def exists(self, email: str) -> bool:
        ...

    def find_by_email(self, email: str) -> Optional[Account]:
        ...

    def create_account(
        self,
        email: str,
        password: str,
        email_verified: bool,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> Account:
        ...

    def update_password(self, account_id: str, password: str) -> None:
        """Raise ``AccountNotFoundError`` when no account has ``account_id``."""
        ...


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def check_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("ascii"))


def _to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        email_verified=row.email_verified,
        user_metadata=dict(row.user_metadata or {}),
    )


class SqlIdentityStore:
    """Accounts in a SQL table, passwords hashed with bcrypt."""

    def __init__(self, db: Database, bcrypt_rounds: int = 12) -> None:
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    def exists(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def find_by_email(self, email: str) -> Optional[Account]:
        stmt = select(AccountRow).where(AccountRow.email == normalize_email(email))
        try:
            with self.db.session() as session:
                row = session.scalar(stmt)
        except StorageError as exc:
            raise IdentityStoreError(str(exc)) from exc
        return _to_account(row) if row else None

    def create_account(
        self,
        email: str,
        password: str,
        email_verified: bool,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> Account:
        row = AccountRow(
            id=str(uuid.uuid4()),
            email=normalize_email(email),
            password_hash=hash_password(password, self.bcrypt_rounds),
            email_verified=email_verified,
            user_metadata=dict(user_metadata or {}),
        )
        try:
            with self.db.session() as session:
                session.add(row)
                session.flush()
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateAccountError(f"Account already exists for {row.email}") from exc
            raise IdentityStoreError(str(exc)) from exc
        LOGGER.debug("Created account %s", row.id)
        return _to_account(row)

    def update_password(self, account_id: str, password: str) -> None:
        password_hash = hash_password(password, self.bcrypt_rounds)
        try:
            with self.db.session() as session:
                row = session.get(AccountRow, account_id)
                if row is None:
                    raise AccountNotFoundError(f"Account {account_id} not found")
                row.password_hash = password_hash
        except StorageError as exc:
            raise IdentityStoreError(str(exc)) from exc

    def verify_password(self, email: str, password: str) -> bool:
        stmt = select(AccountRow.password_hash).where(AccountRow.email == normalize_email(email))
        try:
            with self.db.session() as session:
                hashed = session.scalar(stmt)
        except StorageError as exc:
            raise IdentityStoreError(str(exc)) from exc
        return bool(hashed) and check_password(password, hashed)
