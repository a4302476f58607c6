"""Challenge issuance for signup verification and password recovery."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .challenges import ChallengeStore
from .codes import generate_code
from .database import StorageError
from .events import log_event, mask_email, new_request_id
from .identity import IdentityStore, IdentityStoreError
from .mailer import DeliveryError, MailSender
from .models import ChallengePurpose, utcnow
from .results import Err, ErrorKind, Ok, Result
from .timing import LatencyEstimate

LOGGER = logging.getLogger(__name__)

RECOVERY_MESSAGE = "If an account exists, a verification code was sent"
SIGNUP_MESSAGE = "Verification code sent to your email"


class ChallengeIssuer:
    def __init__(
        self,
        store: ChallengeStore,
        identity: IdentityStore,
        mailer: MailSender,
        generator: Callable[[], str] = generate_code,
        clock: Callable[[], object] = utcnow,
        latency: Optional[LatencyEstimate] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.identity = identity
        self.mailer = mailer
        self.generator = generator
        self.clock = clock
        self.latency = latency or LatencyEstimate()
        self.monotonic = monotonic

    @property
    def ttl_minutes(self) -> int:
        return int(self.store.ttl.total_seconds() // 60)

    def issue_signup(self, email: str, req: Optional[str] = None) -> Result:
        """Issue a signup code unless the email already has an account.

        Delivery failures are logged and swallowed; the caller sees success.
        """
        req = req or new_request_id()
        try:
            registered = self.identity.exists(email)
        except IdentityStoreError as exc:
            LOGGER.error("Identity store unavailable during signup issuance: %s", exc)
            return Err(ErrorKind.STORAGE_UNAVAILABLE, str(exc))
        if registered:
            log_event(LOGGER, "Issuer", "signup", "issue.registered", req, email=mask_email(email))
            return Err(ErrorKind.ALREADY_REGISTERED)

        code = self.generator()
        stored = self._persist(email, code, ChallengePurpose.SIGNUP_VERIFICATION)
        if not stored.ok:
            return stored
        try:
            self.mailer.send_code(email, code, ChallengePurpose.SIGNUP_VERIFICATION, self.ttl_minutes)
        except DeliveryError as exc:
            log_event(
                LOGGER,
                "Issuer",
                "signup",
                "delivery.failed",
                req,
                level=logging.WARNING,
                email=mask_email(email),
                error=str(exc),
            )
        log_event(LOGGER, "Issuer", "signup", "issue.success", req, email=mask_email(email), challenge_id=stored.value)
        return Ok(SIGNUP_MESSAGE)

    def issue_recovery(self, email: str, req: Optional[str] = None) -> Result:
        """Issue a password reset code if an account exists.

        Both outcomes return the same ``Ok`` message. Delivery failure is reported
        as ``DeliveryUnavailable`` once the account is known to exist. The
        duration of every known-account issuance is fed to ``self.latency``.
        """
        req = req or new_request_id()
        started = self.monotonic()
        try:
            account = self.identity.find_by_email(email)
        except IdentityStoreError as exc:
            LOGGER.error("Identity store unavailable during recovery issuance: %s", exc)
            return Err(ErrorKind.STORAGE_UNAVAILABLE, str(exc))

        code = self.generator()
        if account is None:
            log_event(LOGGER, "Issuer", "recovery", "issue.unknown", req, email=mask_email(email))
            return Ok(RECOVERY_MESSAGE)

        try:
            return self._deliver_recovery(email, code, req)
        finally:
            self.latency.observe(self.monotonic() - started)

    def _deliver_recovery(self, email: str, code: str, req: str) -> Result:
        stored = self._persist(email, code, ChallengePurpose.PASSWORD_RESET)
        if not stored.ok:
            return stored
        try:
            self.mailer.send_code(email, code, ChallengePurpose.PASSWORD_RESET, self.ttl_minutes)
        except DeliveryError as exc:
            log_event(
                LOGGER,
                "Issuer",
                "recovery",
                "delivery.failed",
                req,
                level=logging.ERROR,
                email=mask_email(email),
                error=str(exc),
            )
            return Err(ErrorKind.DELIVERY_UNAVAILABLE, str(exc))
        log_event(LOGGER, "Issuer", "recovery", "issue.success", req, email=mask_email(email), challenge_id=stored.value)
        return Ok(RECOVERY_MESSAGE)

    def _persist(self, email: str, code: str, purpose: ChallengePurpose) -> Result:
        try:
            challenge = self.store.issue(email, code, purpose, self.clock())
        except StorageError as exc:
            LOGGER.error("Failed to store %s challenge: %s", purpose.value, exc)
            return Err(ErrorKind.STORAGE_UNAVAILABLE, str(exc))
        return Ok(challenge.id)
