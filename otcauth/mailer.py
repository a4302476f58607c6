"""Email delivery channel for one-time codes."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional, Protocol

import keyring
from keyring.errors import KeyringError

from .config import ProvisioningSettings
from .models import ChallengePurpose

LOGGER = logging.getLogger(__name__)

SUBJECTS = {
    ChallengePurpose.SIGNUP_VERIFICATION: "Your Signup Verification Code",
    ChallengePurpose.PASSWORD_RESET: "Password Reset Verification Code",
}


class DeliveryError(RuntimeError):
    pass


class MailSender(Protocol):
    def send_code(self, to: str, code: str, purpose: ChallengePurpose, ttl_minutes: int) -> None:
        ...


def build_message(
    sender: str, to: str, code: str, purpose: ChallengePurpose, ttl_minutes: int
) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = SUBJECTS[purpose]
    msg["From"] = sender
    msg["To"] = to
    msg.set_content(
        f"Your verification code is: {code}\n\n"
        f"This code will expire in {ttl_minutes} minutes.\n"
        "If you didn't request this code, please ignore this email."
    )
    return msg


class SmtpMailer:
    """Sends codes over SMTP, every network call bounded by ``smtp_timeout``."""

    def __init__(self, settings: ProvisioningSettings) -> None:
        if not settings.smtp_host:
            raise ValueError("smtp_host is required for SmtpMailer")
        self.settings = settings

    def _password(self) -> Optional[str]:
        if self.settings.smtp_password:
            return self.settings.smtp_password
        if not self.settings.smtp_username:
            return None
        try:
            return keyring.get_password(self.settings.keyring_service, self.settings.smtp_username)
        except KeyringError as exc:
            raise DeliveryError("SMTP password unavailable from keyring") from exc

    def send_code(self, to: str, code: str, purpose: ChallengePurpose, ttl_minutes: int) -> None:
        settings = self.settings
        msg = build_message(settings.mail_from, to, code, purpose, ttl_minutes)
        password = self._password()
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout) as smtp:
                if settings.smtp_use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                if settings.smtp_username and password:
                    smtp.login(settings.smtp_username, password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery via {settings.smtp_host}:{settings.smtp_port} failed") from exc


class NoopMailer:
    """Used when no SMTP host is configured. Nothing leaves the process."""

    def send_code(self, to: str, code: str, purpose: ChallengePurpose, ttl_minutes: int) -> None:
        LOGGER.warning("Email delivery disabled, %s code not sent", purpose.value)


def build_mailer(settings: ProvisioningSettings) -> MailSender:
    if settings.smtp_host:
        return SmtpMailer(settings)
    return NoopMailer()
