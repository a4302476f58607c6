"""Provisioning flows: issue a code, then validate it and act."""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable, Optional

from .challenges import ChallengeStore
from .config import ProvisioningSettings
from .database import Database
from .events import log_event, mask_email, new_request_id
from .identity import IdentityStore, SqlIdentityStore
from .issuer import ChallengeIssuer
from .mailer import MailSender, build_mailer
from .models import (
    EMAIL_MAX_LENGTH,
    FULL_NAME_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    ChallengePurpose,
    normalize_email,
    utcnow,
)
from .provisioning import ProfileStore, ProvisioningActions, check_password
from .results import Err, ErrorKind, Ok, Result
from .timing import LatencyEstimate
from .validator import ChallengeValidator

LOGGER = logging.getLogger(__name__)


def _normalized(email: Optional[str]) -> Result:
    if not email or not email.strip():
        return Err(ErrorKind.MISSING_FIELDS, "Email is required")
    email = normalize_email(email)
    local, _, domain = email.partition("@")
    if not local or not domain or " " in email or len(email) > EMAIL_MAX_LENGTH:
        return Err(ErrorKind.INVALID_EMAIL)
    return Ok(email)


def _missing(**fields: Optional[str]) -> Optional[Err]:
    absent = sorted(name for name, value in fields.items() if not value or not value.strip())
    if absent:
        return Err(ErrorKind.MISSING_FIELDS, f"Missing required fields: {', '.join(absent)}")
    return None


def _too_long(username: str, full_name: str) -> Optional[Err]:
    limits = {"username": (username, USERNAME_MAX_LENGTH), "full_name": (full_name, FULL_NAME_MAX_LENGTH)}
    for name, (value, limit) in limits.items():
        if len(value) > limit:
            return Err(ErrorKind.INVALID_FIELDS, f"{name} must be at most {limit} characters")
    return None


class ProvisioningService:
    """Entry point for the four request/response operations."""

    def __init__(
        self,
        settings: ProvisioningSettings,
        store: ChallengeStore,
        identity: IdentityStore,
        profiles: ProfileStore,
        mailer: MailSender,
        clock: Callable = utcnow,
        generator: Optional[Callable[[], str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.store = store
        self.identity = identity
        issuer_kwargs = {"generator": generator} if generator else {}
        self.recovery_latency = LatencyEstimate(decay=settings.recovery_latency_decay)
        self.issuer = ChallengeIssuer(
            store,
            identity,
            mailer,
            clock=clock,
            latency=self.recovery_latency,
            monotonic=monotonic,
            **issuer_kwargs,
        )
        self.validator = ChallengeValidator(
            store, supersede_on_reissue=settings.supersede_on_reissue, clock=clock
        )
        self.actions = ProvisioningActions(identity, profiles)
        self._sleep = sleep
        self._monotonic = monotonic

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ProvisioningSettings] = None,
        mailer: Optional[MailSender] = None,
        identity: Optional[IdentityStore] = None,
        **kwargs,
    ) -> "ProvisioningService":
        settings = settings or ProvisioningSettings()
        db = Database(settings.database_url, timeout=settings.db_timeout)
        db.create_all()
        if identity is None:
            if settings.resolved_identity_url == settings.database_url:
                identity_db = db
            else:
                identity_db = Database(settings.resolved_identity_url, timeout=settings.db_timeout)
                identity_db.create_all()
            identity = SqlIdentityStore(identity_db, bcrypt_rounds=settings.bcrypt_rounds)
        store = ChallengeStore(db, ttl=timedelta(minutes=settings.code_ttl_minutes))
        return cls(
            settings,
            store=store,
            identity=identity,
            profiles=ProfileStore(db),
            mailer=mailer or build_mailer(settings),
            **kwargs,
        )

    # ------------------------------------------------------------------
    def request_signup_code(self, email: Optional[str]) -> Result:
        normalized = _normalized(email)
        if not normalized.ok:
            return normalized
        req = new_request_id()
        log_event(LOGGER, "Service", "signup", "issue.start", req, email=mask_email(normalized.value))
        return self.issuer.issue_signup(normalized.value, req=req)

    def request_password_reset(self, email: Optional[str]) -> Result:
        normalized = _normalized(email)
        if not normalized.ok:
            return normalized
        req = new_request_id()
        log_event(LOGGER, "Service", "recovery", "issue.start", req, email=mask_email(normalized.value))
        started = self._monotonic()
        try:
            return self.issuer.issue_recovery(normalized.value, req=req)
        finally:
            # Both paths end no earlier than recent known-account issuances did.
            target = self.recovery_latency.pad_target(self.settings.recovery_min_duration)
            remaining = target - (self._monotonic() - started)
            if remaining > 0:
                self._sleep(remaining)

    # ------------------------------------------------------------------
    def complete_signup(
        self,
        email: Optional[str],
        code: Optional[str],
        password: Optional[str],
        username: Optional[str],
        full_name: Optional[str],
    ) -> Result:
        """Validate a signup code and create the account. ``Ok(user_id)`` on success."""
        missing = _missing(email=email, code=code, password=password, username=username, full_name=full_name)
        if missing:
            return missing
        normalized = _normalized(email)
        if not normalized.ok:
            return normalized
        email = normalized.value
        username, full_name = username.strip(), full_name.strip()
        oversized = _too_long(username, full_name)
        if oversized:
            return oversized
        policy = check_password(password, self.settings.min_password_length)
        if not policy.ok:
            return policy

        req = new_request_id()
        log_event(LOGGER, "Service", "signup", "verify.start", req, email=mask_email(email))
        validated = self.validator.validate(email, code.strip(), ChallengePurpose.SIGNUP_VERIFICATION)
        if not validated.ok:
            return self._rejected("signup", req, email, validated)

        result = self.actions.complete_signup(email, password, username, full_name, req=req)
        if not result.ok:
            return self._rejected("signup", req, email, result)
        log_event(LOGGER, "Service", "signup", "verify.success", req, email=mask_email(email), user_id=result.value)
        return result

    def reset_password(
        self,
        email: Optional[str],
        code: Optional[str],
        new_password: Optional[str],
    ) -> Result:
        missing = _missing(email=email, code=code, new_password=new_password)
        if missing:
            return missing
        normalized = _normalized(email)
        if not normalized.ok:
            return normalized
        email = normalized.value
        policy = check_password(new_password, self.settings.min_password_length)
        if not policy.ok:
            return policy

        req = new_request_id()
        log_event(LOGGER, "Service", "recovery", "verify.start", req, email=mask_email(email))
        validated = self.validator.validate(email, code.strip(), ChallengePurpose.PASSWORD_RESET)
        if not validated.ok:
            return self._rejected("recovery", req, email, validated)

        result = self.actions.complete_password_reset(email, new_password)
        if not result.ok:
            return self._rejected("recovery", req, email, result)
        log_event(LOGGER, "Service", "recovery", "verify.success", req, email=mask_email(email), user_id=result.value)
        return result

    @staticmethod
    def _rejected(stage: str, req: str, email: str, err: Err) -> Err:
        log_event(
            LOGGER,
            "Service",
            stage,
            "verify.rejected",
            req,
            level=logging.WARNING,
            email=mask_email(email),
            error=err.kind.value,
        )
        return err
