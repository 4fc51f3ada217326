"""Shared pytest fixtures for all tests."""

import os
import tempfile
from typing import Generator

import pytest

from passtool.crypto import MemoryKeyStore, SecretCipher
from passtool.gate import MasterSecretGate
from passtool.models import CredentialProfile, StoredSecret
from passtool.repository import ProfileRepository, SecretRepository
from passtool.settings import MemorySettingsStore
from passtool.store import MemoryRecordStore

# ============================================================================
# File System Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Provide a temporary directory that's automatically cleaned up."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def store_path(temp_dir: str) -> str:
    return os.path.join(temp_dir, "profiles.json")


# ============================================================================
# Crypto Fixtures
# ============================================================================


@pytest.fixture
def key_store() -> MemoryKeyStore:
    return MemoryKeyStore()


@pytest.fixture
def cipher(key_store: MemoryKeyStore) -> SecretCipher:
    return SecretCipher(key_store)


# ============================================================================
# Gate Fixtures
# ============================================================================


@pytest.fixture
def master_password() -> str:
    """Standard master password for tests."""
    return "TestMasterPassword123!"


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance_minutes(self, minutes: float) -> None:
        self.now += int(minutes * 60_000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> MemorySettingsStore:
    return MemorySettingsStore()


@pytest.fixture
def gate(settings: MemorySettingsStore, clock: FakeClock) -> MasterSecretGate:
    return MasterSecretGate(settings, clock=clock)


@pytest.fixture
def unlocked_gate(gate: MasterSecretGate, master_password: str) -> MasterSecretGate:
    gate.setup(master_password, master_password)
    return gate


# ============================================================================
# Model / Repository Fixtures
# ============================================================================


@pytest.fixture
def sample_profile() -> CredentialProfile:
    return CredentialProfile(
        title="GitHub",
        website="github.com",
        username="developer",
        password_length=20,
    )


@pytest.fixture
def profile_repo() -> ProfileRepository:
    return ProfileRepository(MemoryRecordStore[CredentialProfile]())


@pytest.fixture
def populated_profiles(profile_repo: ProfileRepository) -> ProfileRepository:
    profile_repo.add_profile(
        CredentialProfile(title="Gmail", website="mail.google.com", username="me@gmail.com", updated_at=1)
    )
    profile_repo.add_profile(
        CredentialProfile(title="GitHub", website="github.com", username="developer", updated_at=2)
    )
    profile_repo.add_profile(
        CredentialProfile(title="Bank", website="mybank.com", username="user123", updated_at=3)
    )
    return profile_repo


@pytest.fixture
def secret_repo(cipher: SecretCipher) -> SecretRepository:
    return SecretRepository(MemoryRecordStore[StoredSecret](), cipher)
