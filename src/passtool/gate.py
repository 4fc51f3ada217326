"""Master-secret gate: setup, unlock, lock and auto-lock bookkeeping.

States::

    UNINITIALIZED --setup--> UNLOCKED <--unlock/lock--> LOCKED

A freshly constructed gate over an existing record starts LOCKED, so a
process restart always requires re-authentication. The gate runs no timer:
callers check :meth:`MasterSecretGate.is_expired` (or call
:meth:`MasterSecretGate.enforce_auto_lock`) when they resume work.
"""

import hashlib
import hmac
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Protocol

from .config import Config
from .models import MasterSecretRecord, now_millis
from .settings import SettingsStore

logger = logging.getLogger(__name__)


class GateState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class GateError(Exception):
    """Base exception for gate errors."""

    pass


class SetupError(GateError):
    """Raised when the master passphrase cannot be set up or changed."""

    pass


class AuthenticationFailed(GateError):
    """Raised by :meth:`AuthResult.raise_for_error` on a failed unlock."""

    pass


class AuthError(str, Enum):
    AUTHENTICATION_FAILED = "authentication_failed"
    NOT_INITIALIZED = "not_initialized"
    BIOMETRIC_DISABLED = "biometric_disabled"
    BIOMETRIC_ERROR = "biometric_error"
    BIOMETRIC_CANCELLED = "biometric_cancelled"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an unlock attempt."""

    state: GateState
    error: Optional[AuthError] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise AuthenticationFailed(self.message or self.error.value)


class BiometricStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BiometricOutcome:
    """What the platform biometric prompt reported."""

    status: BiometricStatus
    message: str = ""

    @classmethod
    def success(cls) -> "BiometricOutcome":
        return cls(BiometricStatus.SUCCESS)

    @classmethod
    def error(cls, message: str) -> "BiometricOutcome":
        return cls(BiometricStatus.ERROR, message)

    @classmethod
    def cancelled(cls) -> "BiometricOutcome":
        return cls(BiometricStatus.CANCELLED, "Authentication cancelled")


class BiometricPrompt(Protocol):
    """Platform prompt that reports its result through a callback."""

    def authenticate(self, callback: Callable[[BiometricOutcome], None]) -> None: ...


def hash_passphrase(passphrase: str) -> str:
    """Lowercase hex SHA-256 of the UTF-8 passphrase."""
    return hashlib.sha256(passphrase.encode("utf-8")).hexdigest()


class MasterSecretGate:
    """Guards access behind the master passphrase."""

    def __init__(
        self,
        settings: SettingsStore,
        clock: Callable[[], int] = now_millis,
    ):
        self.settings = settings
        self.clock = clock
        self._write_lock = threading.Lock()
        self._record = settings.load()
        self._state = GateState.LOCKED if self._record else GateState.UNINITIALIZED

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._record is not None

    @property
    def is_unlocked(self) -> bool:
        return self._state is GateState.UNLOCKED

    @property
    def biometric_enabled(self) -> bool:
        return bool(self._record and self._record.biometric_enabled)

    @property
    def auto_lock_timeout_minutes(self) -> int:
        if self._record is None:
            return Config.DEFAULT_AUTO_LOCK_MINUTES
        return self._record.auto_lock_timeout_minutes

    @property
    def last_unlock_millis(self) -> int:
        return self._record.last_unlock_epoch_millis if self._record else 0

    def _check_new_passphrase(self, passphrase: str, confirmation: str) -> None:
        if len(passphrase) < Config.MIN_MASTER_LENGTH:
            raise SetupError(
                f"Master password must be at least {Config.MIN_MASTER_LENGTH} characters."
            )
        if passphrase != confirmation:
            raise SetupError("Passwords do not match.")

    def _save(self, record: MasterSecretRecord) -> None:
        with self._write_lock:
            self.settings.save(record)
            self._record = record

    def _update(self, **changes) -> None:
        """Persist a modified copy of the record; memory changes only once saved.

        Raises:
            SetupError: If the master password is not set up.
        """
        with self._write_lock:
            if self._record is None:
                raise SetupError("Master password is not set up.")
            record = replace(self._record, **changes)
            self.settings.save(record)
            self._record = record

    def _mark_unlocked(self) -> AuthResult:
        self._update(last_unlock_epoch_millis=self.clock())
        self._state = GateState.UNLOCKED
        logger.info("Gate unlocked")
        return AuthResult(self._state)

    def setup(
        self, passphrase: str, confirmation: str, biometric_enabled: bool = False
    ) -> GateState:
        """Create the master secret and unlock.

        Raises:
            SetupError: Already set up, too short, or confirmation mismatch.
        """
        if self._record is not None:
            raise SetupError("Master password is already set up.")
        self._check_new_passphrase(passphrase, confirmation)

        self._save(
            MasterSecretRecord(
                password_hash=hash_passphrase(passphrase),
                biometric_enabled=biometric_enabled,
                last_unlock_epoch_millis=self.clock(),
            )
        )
        self._state = GateState.UNLOCKED
        logger.info("Master password set up (biometric=%s)", biometric_enabled)
        return self._state

    def verify(self, passphrase: str) -> bool:
        """Constant-time check of a passphrase against the stored digest."""
        if self._record is None:
            return False
        return hmac.compare_digest(
            hash_passphrase(passphrase), self._record.password_hash
        )

    def unlock(self, passphrase: str) -> AuthResult:
        if self._record is None:
            return AuthResult(
                self._state, AuthError.NOT_INITIALIZED, "Master password is not set up."
            )
        if not self.verify(passphrase):
            logger.warning("Unlock failed: wrong master password")
            return AuthResult(
                self._state, AuthError.AUTHENTICATION_FAILED, "Wrong master password."
            )
        return self._mark_unlocked()

    def unlock_with_biometric(self, outcome: BiometricOutcome) -> AuthResult:
        """Unlock on a biometric success; the platform already verified identity."""
        if self._record is None:
            return AuthResult(
                self._state, AuthError.NOT_INITIALIZED, "Master password is not set up."
            )
        if not self._record.biometric_enabled:
            return AuthResult(
                self._state, AuthError.BIOMETRIC_DISABLED, "Biometric unlock is disabled."
            )
        if outcome.status is BiometricStatus.ERROR:
            return AuthResult(self._state, AuthError.BIOMETRIC_ERROR, outcome.message)
        if outcome.status is BiometricStatus.CANCELLED:
            return AuthResult(self._state, AuthError.BIOMETRIC_CANCELLED, outcome.message)
        return self._mark_unlocked()

    def request_biometric_unlock(
        self,
        prompt: BiometricPrompt,
        on_result: Optional[Callable[[AuthResult], None]] = None,
    ) -> None:
        """Show the platform prompt and feed its outcome into the gate."""

        def _callback(outcome: BiometricOutcome) -> None:
            result = self.unlock_with_biometric(outcome)
            if on_result is not None:
                on_result(result)

        prompt.authenticate(_callback)

    def lock(self) -> GateState:
        if self._record is not None:
            self._state = GateState.LOCKED
            logger.info("Gate locked")
        return self._state

    def is_expired(self, now_millis: Optional[int] = None) -> bool:
        """Whether the auto-lock timeout has passed since the last unlock."""
        if self._record is None:
            return False
        now = self.clock() if now_millis is None else now_millis
        timeout_millis = self._record.auto_lock_timeout_minutes * 60_000
        return now - self._record.last_unlock_epoch_millis >= timeout_millis

    def enforce_auto_lock(self, now_millis: Optional[int] = None) -> GateState:
        """Lock if unlocked and the timeout has expired."""
        if self.is_unlocked and self.is_expired(now_millis):
            logger.info("Auto-lock timeout expired")
            self.lock()
        return self._state

    def change_passphrase(self, current: str, new: str, confirmation: str) -> None:
        if not self.verify(current):
            raise AuthenticationFailed("Wrong master password.")
        self._check_new_passphrase(new, confirmation)
        self._update(password_hash=hash_passphrase(new))
        logger.info("Master password changed")

    def set_biometric_enabled(self, enabled: bool) -> None:
        self._update(biometric_enabled=enabled)

    def set_auto_lock_timeout(self, minutes: int) -> None:
        if self._record is None:
            raise SetupError("Master password is not set up.")
        if minutes < 1:
            raise ValueError("Auto-lock timeout must be at least 1 minute.")
        self._update(auto_lock_timeout_minutes=minutes)

    def reset(self) -> GateState:
        """Forget the master secret entirely."""
        with self._write_lock:
            self.settings.clear()
            self._record = None
        self._state = GateState.UNINITIALIZED
        logger.warning("Master password reset")
        return self._state
