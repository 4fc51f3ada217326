"""Data models for credential profiles, stored secrets and the master record."""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from .config import Config

DEFAULT_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
DEFAULT_PROFILE_LENGTH = 16


def now_millis() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class InvalidProfile(ValueError):
    """Raised when a profile breaks its invariants (blank title, bad length)."""


@dataclass(frozen=True)
class CredentialProfile:
    """Metadata describing how to derive a password. No secret is stored."""

    title: str
    website: str = ""
    username: str = ""
    notes: str = ""
    category: str = Config.DEFAULT_CATEGORY
    password_length: int = DEFAULT_PROFILE_LENGTH
    use_special_chars: bool = True
    special_chars: str = DEFAULT_SPECIAL_CHARS
    id: Optional[str] = None
    created_at: int = field(default_factory=now_millis)
    updated_at: int = field(default_factory=now_millis)

    def validate(self) -> "CredentialProfile":
        """Check invariants, returning self so calls can be chained."""
        if not self.title or not self.title.strip():
            raise InvalidProfile("Profile title cannot be blank.")
        if not 1 <= self.password_length <= Config.MAX_PASSWORD_LENGTH:
            raise InvalidProfile(
                f"Password length ({self.password_length}) must be between 1 "
                f"and {Config.MAX_PASSWORD_LENGTH}."
            )
        return self

    def copy_with_updates(self, **updates) -> "CredentialProfile":
        """Return a new profile with updated fields and a fresh updated_at."""
        updates.setdefault("updated_at", now_millis())
        return replace(self, **updates)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON storage."""
        return {
            "id": self.id,
            "title": self.title,
            "website": self.website,
            "username": self.username,
            "notes": self.notes,
            "category": self.category,
            "password_length": self.password_length,
            "use_special_chars": self.use_special_chars,
            "special_chars": self.special_chars,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialProfile":
        """Create a profile from a stored dictionary."""
        data = dict(data)
        data.setdefault("category", Config.DEFAULT_CATEGORY)
        data.setdefault("password_length", DEFAULT_PROFILE_LENGTH)
        data.setdefault("use_special_chars", True)
        data.setdefault("special_chars", DEFAULT_SPECIAL_CHARS)
        return cls(**data)


@dataclass(frozen=True)
class StoredSecret:
    """A secret record as persisted: the password is an encryption token."""

    title: str
    encrypted_password: str
    website: str = ""
    username: str = ""
    notes: str = ""
    category: str = Config.DEFAULT_CATEGORY
    id: Optional[str] = None
    created_at: int = field(default_factory=now_millis)
    updated_at: int = field(default_factory=now_millis)

    def copy_with_updates(self, **updates) -> "StoredSecret":
        updates.setdefault("updated_at", now_millis())
        return replace(self, **updates)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "website": self.website,
            "username": self.username,
            "encrypted_password": self.encrypted_password,
            "notes": self.notes,
            "category": self.category,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredSecret":
        data = dict(data)
        data.setdefault("category", Config.DEFAULT_CATEGORY)
        return cls(**data)


@dataclass(frozen=True)
class Secret:
    """Decrypted view of a stored secret. Never persisted as-is."""

    title: str
    password: str
    website: str = ""
    username: str = ""
    notes: str = ""
    category: str = Config.DEFAULT_CATEGORY
    id: Optional[str] = None
    created_at: int = field(default_factory=now_millis)
    updated_at: int = field(default_factory=now_millis)

    def __repr__(self) -> str:
        return f"Secret(id={self.id!r}, title={self.title!r}, username={self.username!r})"


@dataclass
class MasterSecretRecord:
    """Persisted master-secret settings."""

    password_hash: str
    biometric_enabled: bool = False
    auto_lock_timeout_minutes: int = Config.DEFAULT_AUTO_LOCK_MINUTES
    last_unlock_epoch_millis: int = 0

    def to_dict(self) -> dict:
        return {
            "password_hash": self.password_hash,
            "biometric_enabled": self.biometric_enabled,
            "auto_lock_timeout_minutes": self.auto_lock_timeout_minutes,
            "last_unlock_epoch_millis": self.last_unlock_epoch_millis,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MasterSecretRecord":
        return cls(
            password_hash=data["password_hash"],
            biometric_enabled=bool(data.get("biometric_enabled", False)),
            auto_lock_timeout_minutes=int(
                data.get("auto_lock_timeout_minutes", Config.DEFAULT_AUTO_LOCK_MINUTES)
            ),
            last_unlock_epoch_millis=int(data.get("last_unlock_epoch_millis", 0)),
        )


class FieldKind(str, Enum):
    """Classification of a fillable field."""

    USERNAME = "username"
    PASSWORD = "password"


@dataclass(frozen=True)
class AutofillFieldDescriptor:
    """A classified input location in a foreign form."""

    field_id: str
    kind: FieldKind
