"""Durable challenge store backed by SQLAlchemy."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update

from .database import Database
from .models import Challenge, ChallengePurpose


class ChallengeStore:
    """Append-only log of issued codes.

    Rows are never deleted here. The only mutation is the conditional
    ``consumed`` flip in :meth:`consume`, which is the sole point of mutual
    exclusion between concurrent validations.
    """

    def __init__(self, db: Database, ttl: timedelta = timedelta(minutes=10)) -> None:
        self.db = db
        self.ttl = ttl

    def issue(self, email: str, code: str, purpose: ChallengePurpose, now: datetime) -> Challenge:
        challenge = Challenge(
            email=email,
            code=code,
            purpose=purpose,
            issued_at=now,
            expires_at=now + self.ttl,
            consumed=False,
        )
        with self.db.session() as session:
            session.add(challenge)
            session.flush()
        return challenge

    def latest(self, email: str, purpose: ChallengePurpose) -> Optional[Challenge]:
        """Most recently issued challenge for the pair, whatever its state."""
        stmt = (
            select(Challenge)
            .where(Challenge.email == email, Challenge.purpose == purpose)
            .order_by(Challenge.issued_at.desc(), Challenge.id.desc())
            .limit(1)
        )
        with self.db.session() as session:
            return session.scalar(stmt)

    def find_live(
        self, email: str, code: str, purpose: ChallengePurpose, now: datetime
    ) -> Optional[Challenge]:
        """Newest unconsumed, unexpired challenge matching the code."""
        stmt = (
            select(Challenge)
            .where(
                Challenge.email == email,
                Challenge.code == code,
                Challenge.purpose == purpose,
                Challenge.consumed.is_(False),
                Challenge.expires_at > now,
            )
            .order_by(Challenge.issued_at.desc(), Challenge.id.desc())
            .limit(1)
        )
        with self.db.session() as session:
            return session.scalar(stmt)

    def consume(self, challenge_id: int, now: datetime) -> bool:
        """Compare-and-set ``consumed`` false -> true. False means another caller got there first."""
        stmt = (
            update(Challenge)
            .where(Challenge.id == challenge_id, Challenge.consumed.is_(False))
            .values(consumed=True, consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        with self.db.session() as session:
            result = session.execute(stmt)
        return result.rowcount == 1
