"""Configuration management for PassTool."""

import os
from pathlib import Path


class Config:
    """Configuration settings for PassTool."""

    DEFAULT_HOME = "~/.passtool"
    HOME_ENV = "PASSTOOL_HOME"
    KEYRING_SERVICE_ENV = "PASSTOOL_KEYRING_SERVICE"
    MASTER_PASSWORD_ENV = "PASSTOOL_MASTER_PASSWORD"
    DEFAULT_KEYRING_SERVICE = "passtool"
    KEY_ALIAS = "PasswordManagerKey"
    DEFAULT_CATEGORY = "General"

    PROFILES_FILE = "profiles.json"
    SECRETS_FILE = "secrets.json"
    SETTINGS_FILE = "settings.json"

    # Security constants
    MIN_MASTER_LENGTH = 6
    MAX_PASSWORD_ATTEMPTS = 3
    MAX_PASSWORD_LENGTH = 128
    DEFAULT_AUTO_LOCK_MINUTES = 5
    CLIPBOARD_TIMEOUT_SECONDS = 30

    # Autofill
    AUTOFILL_FALLBACK_LIMIT = 5
    AUTOFILL_PLACEHOLDER = "••••••••"
    USERNAME_WORDS = ("email", "username", "käyttäjä")
    PASSWORD_WORDS = ("password", "salasana")

    def __init__(self):
        """Initialize configuration with environment variable support."""
        self.home = self._get_home()
        self.keyring_service = os.getenv(
            self.KEYRING_SERVICE_ENV, self.DEFAULT_KEYRING_SERVICE
        )

    def _get_home(self) -> str:
        """Get data directory from environment or use default."""
        env_home = os.getenv(self.HOME_ENV)
        if env_home:
            return os.path.expanduser(env_home)
        return os.path.expanduser(self.DEFAULT_HOME)

    @property
    def profiles_path(self) -> str:
        return os.path.join(self.home, self.PROFILES_FILE)

    @property
    def secrets_path(self) -> str:
        return os.path.join(self.home, self.SECRETS_FILE)

    @property
    def settings_path(self) -> str:
        return os.path.join(self.home, self.SETTINGS_FILE)

    def ensure_home(self) -> None:
        """Ensure the data directory exists."""
        Path(self.home).mkdir(parents=True, exist_ok=True)


config = Config()
