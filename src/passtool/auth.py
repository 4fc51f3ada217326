"""Interactive prompts for the master password and derivation passphrases."""

import os
from typing import Optional, Tuple

import questionary

from .config import Config
from .gate import AuthError, MasterSecretGate
from . import ui


def get_master_password(message: str = "Master password:") -> Optional[str]:
    """Read the master password from the environment or a hidden prompt.

    Returns None if the prompt is cancelled.
    """
    env_password = os.getenv(Config.MASTER_PASSWORD_ENV)
    if env_password is not None:
        return env_password
    return questionary.password(message, style=ui.select_style).ask()


def prompt_new_master_password() -> Optional[Tuple[str, str]]:
    """Ask for a new master password and its confirmation."""
    env_password = os.getenv(Config.MASTER_PASSWORD_ENV)
    if env_password is not None:
        return env_password, env_password

    password = questionary.password(
        "Create master password:", style=ui.select_style
    ).ask()
    if password is None:
        return None
    confirmation = questionary.password(
        "Confirm master password:", style=ui.select_style
    ).ask()
    if confirmation is None:
        return None
    return password, confirmation


def prompt_passphrase(message: str = "Passphrase:") -> Optional[str]:
    """Hidden prompt for a derivation passphrase."""
    return questionary.password(message, style=ui.select_style).ask()


def unlock_with_retry(
    gate: MasterSecretGate, max_attempts: int = Config.MAX_PASSWORD_ATTEMPTS
) -> bool:
    """Prompt until the gate unlocks, the user cancels, or attempts run out."""
    if os.getenv(Config.MASTER_PASSWORD_ENV) is not None:
        max_attempts = 1

    for attempt in range(1, max_attempts + 1):
        password = get_master_password()
        if password is None:
            ui.error("Unlock cancelled")
            return False

        result = gate.unlock(password)
        if result.ok:
            return True
        if result.error is AuthError.NOT_INITIALIZED:
            ui.error("No master password set. Run 'passtool setup' first.")
            return False

        remaining = max_attempts - attempt
        if remaining > 0:
            ui.error(f"Incorrect password ({remaining} attempts remaining)")
        else:
            ui.error("Incorrect password")

    return False
