"""One-time-code account provisioning and password recovery."""

from .challenges import ChallengeStore
from .codes import generate_code
from .config import ProvisioningSettings
from .identity import Account, IdentityStore, SqlIdentityStore
from .issuer import ChallengeIssuer
from .mailer import MailSender, NoopMailer, SmtpMailer
from .models import Challenge, ChallengePurpose
from .provisioning import ProvisioningActions
from .results import Err, ErrorCategory, ErrorKind, Ok
from .service import ProvisioningService
from .validator import ChallengeValidator

__all__ = [
    "Account",
    "Challenge",
    "ChallengeIssuer",
    "ChallengePurpose",
    "ChallengeStore",
    "ChallengeValidator",
    "Err",
    "ErrorCategory",
    "ErrorKind",
    "IdentityStore",
    "MailSender",
    "NoopMailer",
    "Ok",
    "ProvisioningActions",
    "ProvisioningService",
    "ProvisioningSettings",
    "SmtpMailer",
    "SqlIdentityStore",
    "generate_code",
]
