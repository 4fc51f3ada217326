"""Persistent settings holding the master-secret record."""

import json
import logging
import os
import stat
import tempfile
import threading
from typing import Optional, Protocol

from .config import config
from .models import MasterSecretRecord

logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Raised when the settings file cannot be read or written."""

    pass


class SettingsStore(Protocol):
    def load(self) -> Optional[MasterSecretRecord]: ...

    def save(self, record: MasterSecretRecord) -> None: ...

    def clear(self) -> None: ...


class MemorySettingsStore:
    """Settings kept in memory only."""

    def __init__(self, record: Optional[MasterSecretRecord] = None):
        self._record = record

    def load(self) -> Optional[MasterSecretRecord]:
        return self._record

    def save(self, record: MasterSecretRecord) -> None:
        self._record = record

    def clear(self) -> None:
        self._record = None


class FileSettingsStore:
    """Settings persisted to a 0600 JSON file. Writes are serialized."""

    def __init__(self, file_path: Optional[str] = None):
        self.file_path = file_path or config.settings_path
        self._lock = threading.Lock()

    def load(self) -> Optional[MasterSecretRecord]:
        if not os.path.exists(self.file_path):
            return None
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return MasterSecretRecord.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise SettingsError(f"Settings file is unreadable: {e}") from e

    def save(self, record: MasterSecretRecord) -> None:
        with self._lock:
            settings_dir = os.path.dirname(self.file_path) or "."
            os.makedirs(settings_dir, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=settings_dir, prefix=".settings_tmp_", suffix=".json"
            )
            try:
                with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                    json.dump(record.to_dict(), f, indent=2)
                os.chmod(temp_path, stat.S_IRUSR | stat.S_IWUSR)
                os.replace(temp_path, self.file_path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise SettingsError(f"Failed to save settings: {e}") from e

    def clear(self) -> None:
        with self._lock:
            try:
                os.unlink(self.file_path)
                logger.info("Removed settings file %s", self.file_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise SettingsError(f"Failed to remove settings: {e}") from e
