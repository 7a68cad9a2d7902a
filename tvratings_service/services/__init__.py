"""Service classes"""

from .backend import Backend, get_backend
from .dataset_importer import ImdbDatasetImporter
from .mail_service import Mailer
from .notification_service import NewEpisodeNotifier
from .rate_limiter import LoginRateLimiter
from .recaptcha_service import RecaptchaVerifier
from .token_service import SignedTokenManager
from .update_controller import LiveSnapshot, SnapshotUpdateController
from .verification_code import generate_verification_code

__all__ = [
    "Backend",
    "get_backend",
    "ImdbDatasetImporter",
    "Mailer",
    "NewEpisodeNotifier",
    "LoginRateLimiter",
    "RecaptchaVerifier",
    "SignedTokenManager",
    "LiveSnapshot",
    "SnapshotUpdateController",
    "generate_verification_code",
]
