from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Tuple
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import func, select

from otcauth.challenges import ChallengeStore
from otcauth.config import ProvisioningSettings
from otcauth.mailer import DeliveryError
from otcauth.models import Challenge, ChallengePurpose
from otcauth.service import ProvisioningService


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, ChallengePurpose]] = []
        self.fail = False

    def send_code(self, to: str, code: str, purpose: ChallengePurpose, ttl_minutes: int) -> None:
        if self.fail:
            raise DeliveryError("mailbox unreachable")
        self.sent.append((to, code, purpose))

    def last_code(self, to: str | None = None) -> str:
        for recipient, code, _ in reversed(self.sent):
            if to is None or recipient == to:
                return code
        raise AssertionError(f"no code sent to {to}")


@pytest.fixture(autouse=True)
def fake_keyring(monkeypatch):
    storage: Dict[Tuple[str, str], str] = {}

    def set_password(service: str, username: str, password: str) -> None:
        storage[(service, username)] = password

    def get_password(service: str, username: str) -> str | None:
        return storage.get((service, username))

    monkeypatch.setattr("otcauth.mailer.keyring.set_password", set_password)
    monkeypatch.setattr("otcauth.mailer.keyring.get_password", get_password)
    yield storage


@pytest.fixture
def temp_settings(tmp_path: Path) -> ProvisioningSettings:
    return ProvisioningSettings(
        database_url=f"sqlite:///{tmp_path / 'otcauth.db'}",
        bcrypt_rounds=4,
        recovery_min_duration=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def service(temp_settings, clock, mailer) -> ProvisioningService:
    return ProvisioningService.from_settings(temp_settings, mailer=mailer, clock=clock)


@pytest.fixture
def registered(service) -> str:
    email = "member@example.com"
    service.identity.create_account(email, "original-pass", email_verified=True)
    return email


@pytest.fixture
def challenge_count():
    def count(store: ChallengeStore, email: str | None = None, purpose: ChallengePurpose | None = None) -> int:
        stmt = select(func.count()).select_from(Challenge)
        if email is not None:
            stmt = stmt.where(Challenge.email == email)
        if purpose is not None:
            stmt = stmt.where(Challenge.purpose == purpose)
        with store.db.session() as session:
            return session.scalar(stmt) or 0

    return count


@pytest.fixture
def challenge_row():
    def load(store: ChallengeStore, challenge_id: int) -> Challenge | None:
        with store.db.session() as session:
            return session.get(Challenge, challenge_id)

    return load
