"""Application configuration"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from tvratings_service.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".snap"


def _get_config_value(key: str, default: str | None = None) -> str | None:
    """
    Get configuration value from environment or local.settings.json.

    Priority:
    1. Environment variable
    2. local.settings.json (Values.key)
    3. Default value

    Args:
        key: Configuration key name
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    value = os.getenv(key)
    if value:
        return value

    project_root = Path(__file__).resolve().parent.parent
    local_settings_path = project_root / "local.settings.json"

    if local_settings_path.exists():
        try:
            with open(local_settings_path) as f:
                settings = json.load(f)
                value = settings.get("Values", {}).get(key)
                if value:
                    return value
        except (json.JSONDecodeError, KeyError):
            pass

    return default


@dataclass
class Configuration:
    """All tunable parameters of the service.

    Field names match the keys of the JSON configuration file.
    """

    # server
    serverPort: int = 7070

    # ssl
    sslEnabled: bool = False
    sslCertificatePath: str = ""
    sslPrivateKeyPath: str = ""

    # cors
    corsHost: str = "http://localhost:63342"

    # jwt
    jwtExpireSeconds: int = 60 * 60 * 24 * 7
    jwtSecretKey: str = "abc123"

    # mail
    smtpHost: str = "smtp.gmail.com"
    smtpPort: str = "587"
    smtpAuth: bool = True
    smtpStartTLS: bool = True
    emailUsername: str = "user"
    emailPassword: str = "pass"
    emailFrom: str = ""

    # recaptcha
    recaptchaSecret: str = ""

    # database updates
    updateDatabase: bool = True
    snapshotRetention: int = 0

    def create_if_not_exists(self, path: Path) -> bool:
        """
        Write this configuration to `path` unless the file already exists.

        Returns:
            True if a new file was written
        """
        path = Path(path)
        if path.exists():
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)

        logger.info(f"Created default configuration at {path}")
        return True

    def load(self, path: Path) -> "Configuration":
        """
        Load values from a JSON file into this configuration.

        Missing keys keep their current value, unknown keys are ignored.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            with open(path) as f:
                values = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read configuration {path}: {e}") from e

        if not isinstance(values, dict):
            raise ConfigurationError(f"Configuration {path} must contain a JSON object")

        known = {field.name for field in fields(self)}
        for key, value in values.items():
            if key in known:
                setattr(self, key, value)
            else:
                logger.warning(f"Ignoring unknown configuration key '{key}'")

        return self


def get_configuration_path() -> Path:
    """Path of the JSON configuration file (default: configuration.json)."""
    return Path(_get_config_value("CONFIGURATION_PATH", default="configuration.json"))


def get_database_directory() -> Path:
    """Directory holding the user store and the catalog snapshots."""
    return Path(_get_config_value("DATABASE_DIRECTORY", default="databases"))


def get_user_store_path(database_dir: Path | None = None) -> Path:
    """Path of the user store file."""
    return Path(database_dir or get_database_directory()) / f"users{SNAPSHOT_SUFFIX}"


def get_snapshot_directory(database_dir: Path | None = None) -> Path:
    """Directory holding the dated catalog snapshots."""
    return Path(database_dir or get_database_directory()) / "imdb"


def get_configuration(path: Path | None = None) -> Configuration:
    """
    Create the configuration file if missing, then load it.

    Errors are logged and the defaults are returned so the service can still start.
    """
    path = Path(path or get_configuration_path())
    configuration = Configuration()

    try:
        configuration.create_if_not_exists(path)
        configuration.load(path)
    except ConfigurationError as e:
        logger.error(f"Error while creating or loading the configuration: {e}")
        return Configuration()

    return configuration
