"""CLI using Typer."""

import json
import os
import sys
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__, auth, ui
from .autofill import AssistStructure, find_fields, rank_profiles
from .clipboard import copy_to_clipboard_with_autoclear
from .config import Config, config
from .crypto import CryptoError, DecryptionError, KeyringKeyStore, KeyStore, SecretCipher
from .derivation import check_compatibility, derive, derive_for_profile
from .gate import AuthenticationFailed, GateState, MasterSecretGate, SetupError
from .log import setup_logging
from .models import CredentialProfile, InvalidProfile, Secret, StoredSecret
from .passwordgen import DEFAULT_LEN, GenOptions, InvalidPolicy, generate_password, score_password
from .repository import ProfileRepository, SecretRepository
from .settings import FileSettingsStore, SettingsError
from .store import JsonRecordStore, StoreError

app = typer.Typer(
    name="passtool",
    help="Deterministic password derivation and encrypted credential storage",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    rich_markup_mode="rich",
)
profile_app = typer.Typer(help="Manage password profiles", no_args_is_help=True)
secret_app = typer.Typer(help="Manage encrypted secrets", no_args_is_help=True)
app.add_typer(profile_app, name="profile")
app.add_typer(secret_app, name="secret")


# ============================================================================
# Service wiring
# ============================================================================


def get_key_store() -> KeyStore:
    return KeyringKeyStore()


def get_gate() -> MasterSecretGate:
    try:
        return MasterSecretGate(FileSettingsStore(config.settings_path))
    except SettingsError as e:
        ui.error(str(e))
        raise typer.Exit(1)


def get_profiles() -> ProfileRepository:
    try:
        return ProfileRepository(JsonRecordStore(config.profiles_path, CredentialProfile))
    except StoreError as e:
        ui.error(str(e))
        raise typer.Exit(1)


def get_secrets() -> SecretRepository:
    try:
        store = JsonRecordStore(config.secrets_path, StoredSecret)
    except StoreError as e:
        ui.error(str(e))
        raise typer.Exit(1)
    return SecretRepository(store, SecretCipher(get_key_store()))


def require_unlocked() -> MasterSecretGate:
    """Unlock the gate for this process or exit."""
    gate = get_gate()
    if gate.state is GateState.UNINITIALIZED:
        ui.error("No master password set. Run 'passtool setup' first.")
        raise typer.Exit(1)
    if not auth.unlock_with_retry(gate):
        raise typer.Exit(1)
    return gate


def deliver_password(password: str, show: bool, title: str = "Password") -> None:
    if show:
        ui.show_password(password, copied=False, title=title, requested=True)
    else:
        ui.show_password(password, copy_to_clipboard_with_autoclear(password), title=title)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"passtool {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    home: Annotated[
        Optional[str],
        typer.Option("--home", help="Data directory (default: ~/.passtool)"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Enable debug logging")
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
):
    """Deterministic password derivation and encrypted credential storage."""
    if home:
        config.home = os.path.expanduser(home)
    setup_logging(verbose)


# ============================================================================
# Master password
# ============================================================================


@app.command("setup", help="Create the master password", rich_help_panel="Master Password")
def setup_master(
    biometric: Annotated[
        bool, typer.Option("--biometric", help="Allow biometric unlock")
    ] = False,
):
    gate = get_gate()
    if gate.is_initialized:
        ui.error("Master password already set. Use 'passtool reset' to start over.")
        raise typer.Exit(1)

    answers = auth.prompt_new_master_password()
    if answers is None:
        ui.error("Setup cancelled")
        raise typer.Exit(1)

    try:
        gate.setup(*answers, biometric_enabled=biometric)
    except (SetupError, SettingsError) as e:
        ui.error(str(e))
        raise typer.Exit(1)
    ui.success("Master password set")


@app.command("unlock", help="Check the master password", rich_help_panel="Master Password")
def unlock():
    require_unlocked()
    ui.success("Unlocked")


@app.command("status", help="Show master password status", rich_help_panel="Master Password")
def status():
    gate = get_gate()
    if not gate.is_initialized:
        ui.info("Master password not set")
        return
    ui.info(f"Biometric unlock: {'enabled' if gate.biometric_enabled else 'disabled'}")
    ui.info(f"Auto-lock timeout: {gate.auto_lock_timeout_minutes} min")
    ui.info(f"Last unlock: {ui.humanize_millis(gate.last_unlock_millis)}")
    if gate.is_expired():
        ui.warning("Last session has expired")


@app.command("settings", help="Change gate settings", rich_help_panel="Master Password")
def change_settings(
    timeout: Annotated[
        Optional[int], typer.Option("--timeout", help="Auto-lock timeout in minutes")
    ] = None,
    biometric: Annotated[
        Optional[bool],
        typer.Option("--biometric/--no-biometric", help="Allow biometric unlock"),
    ] = None,
):
    gate = require_unlocked()
    try:
        if timeout is not None:
            gate.set_auto_lock_timeout(timeout)
        if biometric is not None:
            gate.set_biometric_enabled(biometric)
    except (ValueError, SetupError, SettingsError) as e:
        ui.error(str(e))
        raise typer.Exit(1)
    ui.success("Settings updated")


@app.command("change-password", help="Change the master password", rich_help_panel="Master Password")
def change_password():
    gate = get_gate()
    if not gate.is_initialized:
        ui.error("No master password set. Run 'passtool setup' first.")
        raise typer.Exit(1)

    current = auth.get_master_password("Current master password:")
    if current is None:
        ui.error("Cancelled")
        raise typer.Exit(1)
    answers = auth.prompt_new_master_password()
    if answers is None:
        ui.error("Cancelled")
        raise typer.Exit(1)
    try:
        gate.change_passphrase(current, *answers)
    except (AuthenticationFailed, SetupError, SettingsError) as e:
        ui.error(str(e))
        raise typer.Exit(1)
    ui.success("Master password changed")


@app.command(
    "reset",
    help="Forget the master password and delete all stored secrets",
    rich_help_panel="Master Password",
)
def reset(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    gate = require_unlocked()
    if not force and not ui.confirm(
        "Forget the master password and delete all stored secrets?", default=False
    ):
        ui.info("Cancelled")
        return
    try:
        removed = get_secrets().wipe()
        gate.reset()
    except (CryptoError, StoreError, SettingsError) as e:
        ui.error(str(e))
        raise typer.Exit(1)
    ui.success(f"Master password removed, {removed} secrets deleted")


# ============================================================================
# Passwords
# ============================================================================


@app.command("derive", help="Derive a password from a passphrase", rich_help_panel="Passwords")
def derive_command(
    length: Annotated[
        int, typer.Option("--length", "-l", help="Password length")
    ] = DEFAULT_LEN,
    show: Annotated[
        bool, typer.Option("--show", "-s", help="Print instead of copying")
    ] = False,
):
    passphrase = auth.prompt_passphrase()
    if passphrase is None:
        ui.error("Cancelled")
        raise typer.Exit(1)
    try:
        password = derive(passphrase, length)
    except ValueError as e:
        ui.error(str(e))
        raise typer.Exit(1)
    deliver_password(password, show)


@app.command("genpass", help="Generate a random password", rich_help_panel="Passwords")
def genpass(
    length: Annotated[
        int, typer.Option("--length", "-l", help="Password length")
    ] = DEFAULT_LEN,
    upper: Annotated[bool, typer.Option("--upper/--no-upper")] = True,
    lower: Annotated[bool, typer.Option("--lower/--no-lower")] = True,
    digits: Annotated[bool, typer.Option("--digits/--no-digits")] = True,
    symbols: Annotated[bool, typer.Option("--symbols/--no-symbols")] = True,
    show: Annotated[
        bool, typer.Option("--show", "-s", help="Print instead of copying")
    ] = False,
):
    opts = GenOptions(length=length, upper=upper, lower=lower, digits=digits, symbols=symbols)
    try:
        password = generate_password(opts)
    except InvalidPolicy as e:
        ui.error(str(e))
        raise typer.Exit(1)
    deliver_password(password, show, title="Generated Password")
    ui.info(f"Strength: {ui.strength_badge(score_password(password))}")


@app.command("strength", help="Score a password", rich_help_panel="Passwords")
def strength(
    password: Annotated[Optional[str], typer.Argument(help="Password to score")] = None,
):
    if password is None:
        password = auth.prompt_passphrase("Password:")
        if password is None:
            raise typer.Exit(1)
    ui.info(f"Strength: {ui.strength_badge(score_password(password))}")


@app.command("selftest", help="Check shell-generator compatibility", rich_help_panel="Passwords")
def selftest():
    if check_compatibility():
        ui.success("Derivation matches the PassTool shell generator")
    else:
        ui.error("Derivation does NOT match the PassTool shell generator")
        raise typer.Exit(1)


# ============================================================================
# Profiles
# ============================================================================


@profile_app.command("add", help="Add a profile")
def profile_add(
    title: Annotated[str, typer.Option("--title", "-t", help="Profile title")],
    website: Annotated[str, typer.Option("--website", "-w")] = "",
    username: Annotated[str, typer.Option("--username", "-u")] = "",
    notes: Annotated[str, typer.Option("--notes")] = "",
    category: Annotated[str, typer.Option("--category", "-c")] = Config.DEFAULT_CATEGORY,
    length: Annotated[int, typer.Option("--length", "-l")] = DEFAULT_LEN,
    special: Annotated[bool, typer.Option("--special/--no-special")] = True,
):
    profiles = get_profiles()
    try:
        profile_id = profiles.add_profile(
            CredentialProfile(
                title=title,
                website=website,
                username=username,
                notes=notes,
                category=category,
                password_length=length,
                use_special_chars=special,
            )
        )
    except (InvalidProfile, StoreError) as e:
        ui.error(str(e))
        raise typer.Exit(1)
    ui.success(f"Added profile '{title}' ({profile_id})")


@profile_app.command("list", help="List profiles")
def profile_list(
    category: Annotated[
        Optional[str], typer.Option("--category", "-c", help="Filter by category")
    ] = None,
):
    profiles = get_profiles()
    if category:
        ui.show_profiles_table(profiles.profiles_by_category(category), title=f"Profiles in '{category}'")
    else:
        ui.show_profiles_table(profiles.list_profiles())


@profile_app.command("search", help="Search profiles")
def profile_search(query: Annotated[str, typer.Argument(help="Search text")]):
    ui.show_profiles_table(get_profiles().search_profiles(query), title=f"Matching '{query}'")


@profile_app.command("derive", help="Derive a profile's password")
def profile_derive(
    profile_id: Annotated[str, typer.Argument(help="Profile ID")],
    show: Annotated[
        bool, typer.Option("--show", "-s", help="Print instead of copying")
    ] = False,
):
    profile = get_profiles().get_profile(profile_id)
    if profile is None:
        ui.error(f"Profile '{profile_id}' not found")
        raise typer.Exit(1)

    passphrase = auth.prompt_passphrase(f"Passphrase for {profile.title}:")
    if passphrase is None:
        ui.error("Cancelled")
        raise typer.Exit(1)
    try:
        password = derive_for_profile(profile, passphrase)
    except ValueError as e:
        ui.error(str(e))
        raise typer.Exit(1)
    deliver_password(password, show)


@profile_app.command("delete", help="Delete a profile")
def profile_delete(
    profile_id: Annotated[str, typer.Argument(help="Profile ID")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    profiles = get_profiles()
    if profiles.get_profile(profile_id) is None:
        ui.error(f"Profile '{profile_id}' not found")
        raise typer.Exit(1)
    if not force and not ui.confirm(f"Delete profile '{profile_id}'?", default=False):
        ui.info("Cancelled")
        return
    profiles.delete_profile(profile_id)
    ui.success(f"Deleted profile '{profile_id}'")


# ============================================================================
# Secrets
# ============================================================================


@secret_app.command("add", help="Store an encrypted secret")
def secret_add(
    title: Annotated[str, typer.Option("--title", "-t")],
    website: Annotated[str, typer.Option("--website", "-w")] = "",
    username: Annotated[str, typer.Option("--username", "-u")] = "",
    notes: Annotated[str, typer.Option("--notes")] = "",
    category: Annotated[str, typer.Option("--category", "-c")] = Config.DEFAULT_CATEGORY,
    generate: Annotated[
        bool, typer.Option("--generate", "-g", help="Generate a random password")
    ] = False,
):
    require_unlocked()
    if generate:
        password = generate_password(GenOptions())
    else:
        password = auth.prompt_passphrase("Password to store:")
        if not password:
            ui.error("Cancelled")
            raise typer.Exit(1)

    try:
        secret_id = get_secrets().add_secret(
            Secret(
                title=title,
                website=website,
                username=username,
                password=password,
                notes=notes,
                category=category,
            )
        )
    except (ValueError, CryptoError, StoreError) as e:
        ui.error(str(e))
        raise typer.Exit(1)
    ui.success(f"Stored secret '{title}' ({secret_id})")
    if generate:
        deliver_password(password, show=False, title="Generated Password")


@secret_app.command("list", help="List stored secrets")
def secret_list(
    query: Annotated[Optional[str], typer.Argument(help="Optional search text")] = None,
):
    require_unlocked()
    secrets = get_secrets()
    ui.show_secrets_table(secrets.search_secrets(query) if query else secrets.list_secrets())


@secret_app.command("get", help="Decrypt a stored secret")
def secret_get(
    secret_id: Annotated[str, typer.Argument(help="Secret ID")],
    show: Annotated[
        bool, typer.Option("--show", "-s", help="Show password in output")
    ] = False,
):
    require_unlocked()
    try:
        secret = get_secrets().get_secret(secret_id)
    except DecryptionError as e:
        ui.error(f"Cannot decrypt '{secret_id}': {e}")
        raise typer.Exit(1)
    except CryptoError as e:
        ui.error(str(e))
        raise typer.Exit(1)

    if secret is None:
        ui.error(f"Secret '{secret_id}' not found")
        raise typer.Exit(1)

    if not show:
        deliver_password(secret.password, show=False)
    ui.show_secret_panel(secret, score_password(secret.password), show=show)


@secret_app.command("delete", help="Delete a stored secret")
def secret_delete(
    secret_id: Annotated[str, typer.Argument(help="Secret ID")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip confirmation prompt")
    ] = False,
):
    require_unlocked()
    if not force and not ui.confirm(f"Delete secret '{secret_id}'?", default=False):
        ui.info("Cancelled")
        return
    if get_secrets().delete_secret(secret_id):
        ui.success(f"Deleted secret '{secret_id}'")
    else:
        ui.error(f"Secret '{secret_id}' not found")
        raise typer.Exit(1)


# ============================================================================
# Autofill
# ============================================================================


@app.command("autofill", help="Match profiles against a view-tree dump", rich_help_panel="Autofill")
def autofill(
    tree: Annotated[str, typer.Argument(help="JSON file with package_name and windows")],
    app_id: Annotated[
        Optional[str], typer.Option("--app", help="Override the package name")
    ] = None,
):
    try:
        with open(os.path.expanduser(tree), "r", encoding="utf-8") as f:
            structure = AssistStructure.from_dict(json.load(f))
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        ui.error(f"Cannot read view tree: {e}")
        raise typer.Exit(1)

    fields = find_fields(structure)
    ui.show_fields_table(fields)
    if not fields:
        raise typer.Exit(1)

    ranked = rank_profiles(
        get_profiles().list_profiles(),
        app_id or structure.package_name,
        Config.AUTOFILL_FALLBACK_LIMIT,
    )
    ui.show_profiles_table(ranked, title="Candidate profiles")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        ui.error("Operation cancelled")
        sys.exit(1)


if __name__ == "__main__":
    main()
