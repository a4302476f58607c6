"""Configuration for the one-time-code provisioning service."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_DB_PATH = DATA_DIR / "otcauth.db"


class ProvisioningSettings(BaseSettings):
    """Runtime settings, read from ``OTCAUTH_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="OTCAUTH_")

    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_DB_PATH}",
        description="SQLAlchemy connection string for challenges and profiles",
    )
    identity_database_url: Optional[str] = Field(
        default=None,
        description="Connection string for the account store, defaults to database_url",
    )
    db_timeout: float = Field(default=5.0, description="Datastore busy/pool timeout in seconds")

    code_ttl_minutes: int = Field(default=10, ge=1)
    supersede_on_reissue: bool = Field(
        default=True,
        description="Only the most recently issued code for an email/purpose validates",
    )
    min_password_length: int = Field(default=6, ge=1)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    recovery_min_duration: float = Field(
        default=0.5,
        ge=0,
        description="Minimum wall time of a recovery issuance, in seconds",
    )
    recovery_latency_decay: float = Field(
        default=0.1,
        gt=0,
        le=1,
        description="How fast the recovery pad falls back after a slow known-account issuance",
    )

    smtp_host: Optional[str] = Field(default=None, description="Unset disables delivery")
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    smtp_timeout: float = 10.0
    mail_from: str = "PrivacyGuard <no-reply@localhost>"
    keyring_service: str = Field(
        default="otcauth",
        description="Keyring service holding the SMTP password when smtp_password is unset",
    )

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @property
    def resolved_identity_url(self) -> str:
        return self.identity_database_url or self.database_url
