from __future__ import annotations

from datetime import timedelta

import pytest

from otcauth.database import StorageError
from otcauth.identity import IdentityStoreError
from otcauth.issuer import RECOVERY_MESSAGE
from otcauth.models import ChallengePurpose
from otcauth.results import ErrorKind
from otcauth.service import ProvisioningService

SIGNUP = ChallengePurpose.SIGNUP_VERIFICATION
RESET = ChallengePurpose.PASSWORD_RESET


def test_signup_issuance_creates_one_challenge(service, mailer, clock, challenge_count):
    result = service.request_signup_code("New@Example.com ")

    assert result.ok
    assert challenge_count(service.store) == 1
    challenge = service.store.latest("new@example.com", SIGNUP)
    assert challenge.issued_at == clock.now
    assert challenge.expires_at == challenge.issued_at + timedelta(minutes=10)
    assert challenge.consumed is False
    assert mailer.sent == [("new@example.com", challenge.code, SIGNUP)]


def test_signup_issuance_rejects_registered_email(service, registered, mailer, challenge_count):
    result = service.request_signup_code(registered.upper())

    assert not result.ok
    assert result.kind is ErrorKind.ALREADY_REGISTERED
    assert challenge_count(service.store) == 0
    assert mailer.sent == []


def test_signup_delivery_failure_is_swallowed(service, mailer, challenge_count):
    mailer.fail = True

    result = service.request_signup_code("new@example.com")

    assert result.ok
    assert challenge_count(service.store, email="new@example.com", purpose=SIGNUP) == 1


def test_signup_storage_failure_is_fatal(service, monkeypatch, mailer):
    def broken(*args, **kwargs):
        raise StorageError("disk I/O error")

    monkeypatch.setattr(service.store, "issue", broken)

    result = service.request_signup_code("new@example.com")

    assert result.kind is ErrorKind.STORAGE_UNAVAILABLE
    assert "disk" not in result.message
    assert mailer.sent == []


def test_signup_identity_outage_is_storage_unavailable(service, monkeypatch, challenge_count):
    def broken(email):
        raise IdentityStoreError("connection refused")

    monkeypatch.setattr(service.identity, "exists", broken)

    assert service.request_signup_code("new@example.com").kind is ErrorKind.STORAGE_UNAVAILABLE
    assert challenge_count(service.store) == 0


def test_recovery_for_unknown_email_looks_like_success(service, registered, mailer, challenge_count):
    unknown = service.request_password_reset("ghost@example.com")
    known = service.request_password_reset(registered)

    assert unknown.ok and known.ok
    assert unknown.value == known.value == RECOVERY_MESSAGE
    assert challenge_count(service.store, email="ghost@example.com") == 0
    assert challenge_count(service.store, email=registered, purpose=RESET) == 1
    assert [to for to, _, _ in mailer.sent] == [registered]


def test_recovery_delivery_failure_is_surfaced(service, registered, mailer):
    mailer.fail = True

    result = service.request_password_reset(registered)

    assert result.kind is ErrorKind.DELIVERY_UNAVAILABLE
    assert result.message == ErrorKind.DELIVERY_UNAVAILABLE.message


def test_recovery_storage_failure_after_existence_is_fatal(service, registered, monkeypatch):
    def broken(*args, **kwargs):
        raise StorageError("database is locked")

    monkeypatch.setattr(service.store, "issue", broken)

    assert service.request_password_reset(registered).kind is ErrorKind.STORAGE_UNAVAILABLE


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0
        self.slept = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


def timed_service(settings, clock, mailer, timer, delivery_seconds=0.0):
    send = mailer.send_code

    def slow_send(*args):
        timer.now += delivery_seconds
        send(*args)

    mailer.send_code = slow_send
    service = ProvisioningService.from_settings(
        settings, mailer=mailer, clock=clock, sleep=timer.sleep, monotonic=timer
    )
    service.identity.create_account("member@example.com", "secret1", email_verified=True)
    return service


def elapsed(timer, call, *args) -> float:
    started = timer.now
    call(*args)
    return timer.now - started


def test_recovery_pads_both_paths_to_minimum_duration(temp_settings, clock, mailer):
    timer = FakeTimer()
    settings = temp_settings.model_copy(update={"recovery_min_duration": 0.25})
    service = timed_service(settings, clock, mailer, timer)

    service.request_password_reset("ghost@example.com")
    service.request_password_reset("member@example.com")

    assert timer.slept == pytest.approx([0.25, 0.25])


def test_unknown_email_waits_as_long_as_slow_delivery(temp_settings, clock, mailer):
    timer = FakeTimer()
    settings = temp_settings.model_copy(update={"recovery_min_duration": 0.25})
    service = timed_service(settings, clock, mailer, timer, delivery_seconds=0.8)

    known = elapsed(timer, service.request_password_reset, "member@example.com")
    unknown = elapsed(timer, service.request_password_reset, "ghost@example.com")
    known_again = elapsed(timer, service.request_password_reset, "member@example.com")

    assert known == pytest.approx(0.8)
    assert unknown == pytest.approx(known)
    assert known_again == pytest.approx(known)
    assert service.recovery_latency.value == pytest.approx(0.8)


def test_recovery_latency_is_recorded_when_delivery_fails(temp_settings, clock, mailer):
    timer = FakeTimer()
    settings = temp_settings.model_copy(update={"recovery_min_duration": 0.0})
    service = timed_service(settings, clock, mailer, timer, delivery_seconds=2.0)
    mailer.fail = True

    assert service.request_password_reset("member@example.com").kind is ErrorKind.DELIVERY_UNAVAILABLE
    assert elapsed(timer, service.request_password_reset, "ghost@example.com") == pytest.approx(2.0)


def test_issuance_requires_an_email(service, challenge_count):
    assert service.request_signup_code("").kind is ErrorKind.MISSING_FIELDS
    assert service.request_signup_code(None).kind is ErrorKind.MISSING_FIELDS
    assert service.request_password_reset("not-an-email").kind is ErrorKind.INVALID_EMAIL
    assert challenge_count(service.store) == 0
