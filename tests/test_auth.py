"""Tests for the interactive prompts.

This will test:
- Master password from env var or hidden prompt
- Creation prompt with confirmation and cancel
- Retry loop around the gate
"""

from unittest.mock import patch

import pytest

from passtool.auth import (
    get_master_password,
    prompt_new_master_password,
    prompt_passphrase,
    unlock_with_retry,
)
from passtool.config import Config


@pytest.fixture(autouse=True)
def no_env_password(monkeypatch):
    monkeypatch.delenv(Config.MASTER_PASSWORD_ENV, raising=False)


def answers(*values):
    """Patch questionary.password so successive prompts return ``values``."""
    it = iter(values)
    mock = patch("passtool.auth.questionary.password")
    started = mock.start()
    started.return_value.ask.side_effect = lambda: next(it)
    return mock


@pytest.fixture
def prompts():
    patchers = []

    def _set(*values):
        patchers.append(answers(*values))

    yield _set
    for p in patchers:
        p.stop()


def test_get_master_password_from_env(monkeypatch):
    monkeypatch.setenv(Config.MASTER_PASSWORD_ENV, "FromEnv!")
    with patch("passtool.auth.questionary.password") as mock_password:
        assert get_master_password() == "FromEnv!"
    mock_password.assert_not_called()


def test_get_master_password_prompt(prompts):
    prompts("Secret!")
    assert get_master_password() == "Secret!"


def test_get_master_password_cancelled(prompts):
    prompts(None)
    assert get_master_password() is None


def test_prompt_new_master_password(prompts):
    prompts("Pass123", "Pass124")
    assert prompt_new_master_password() == ("Pass123", "Pass124")


def test_prompt_new_master_password_cancel_on_confirm(prompts):
    prompts("Pass123", None)
    assert prompt_new_master_password() is None


def test_prompt_new_master_password_env(monkeypatch):
    monkeypatch.setenv(Config.MASTER_PASSWORD_ENV, "FromEnv!")
    assert prompt_new_master_password() == ("FromEnv!", "FromEnv!")


def test_prompt_passphrase_ignores_env(monkeypatch, prompts):
    monkeypatch.setenv(Config.MASTER_PASSWORD_ENV, "FromEnv!")
    prompts("derivation phrase")
    assert prompt_passphrase() == "derivation phrase"


class TestUnlockWithRetry:
    """Test the prompt loop around the gate."""

    def test_first_try(self, unlocked_gate, master_password, prompts):
        unlocked_gate.lock()
        prompts(master_password)
        assert unlock_with_retry(unlocked_gate)
        assert unlocked_gate.is_unlocked

    def test_gives_up_after_max_attempts(self, unlocked_gate, prompts, capsys):
        unlocked_gate.lock()
        prompts("a", "b", "c")
        assert not unlock_with_retry(unlocked_gate, max_attempts=3)
        out = capsys.readouterr().out
        assert "2 attempts remaining" in out
        assert "1 attempts remaining" in out

    def test_cancel_stops(self, unlocked_gate, prompts):
        unlocked_gate.lock()
        prompts(None)
        assert not unlock_with_retry(unlocked_gate)

    def test_env_password_gets_one_attempt(self, unlocked_gate, monkeypatch):
        unlocked_gate.lock()
        monkeypatch.setenv(Config.MASTER_PASSWORD_ENV, "wrong-password")
        assert not unlock_with_retry(unlocked_gate, max_attempts=3)

    def test_uninitialized(self, gate, prompts):
        prompts("whatever")
        assert not unlock_with_retry(gate)
