"""Key-indexed record stores for profiles and encrypted secrets."""

import json
import logging
import os
import stat
import tempfile
import threading
import uuid
from dataclasses import replace
from typing import Callable, Dict, Generic, List, Optional, Protocol, Type, TypeVar

from . import SCHEMA_VERSION, __version__
from .models import CredentialProfile, StoredSecret

logger = logging.getLogger(__name__)

R = TypeVar("R", CredentialProfile, StoredSecret)


class StoreError(Exception):
    """Base exception for store-related errors."""

    pass


class StoreCorruptedError(StoreError):
    """Raised when a store file exists but is unreadable."""

    pass


class RecordStore(Protocol[R]):
    """CRUD + query surface the engine relies on."""

    def get(self, record_id: str) -> Optional[R]: ...

    def list(self) -> List[R]: ...

    def search(self, query: str) -> List[R]: ...

    def insert(self, record: R) -> str: ...

    def update(self, record: R) -> bool: ...

    def delete(self, record_id: str) -> bool: ...


class MemoryRecordStore(Generic[R]):
    """In-memory store. Listing order is most-recently-updated first."""

    def __init__(self, records: Optional[List[R]] = None):
        self._records: Dict[str, R] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self.insert(record)

    def _persist(self) -> None:
        """Hook for subclasses that write through to disk."""

    def get(self, record_id: str) -> Optional[R]:
        return self._records.get(record_id)

    def list(self) -> List[R]:
        """All records, most recently updated first."""
        return sorted(self._records.values(), key=lambda r: r.updated_at, reverse=True)

    def search(self, query: str) -> List[R]:
        """Records whose title, website or username contains ``query``."""
        query_lower = query.lower()
        return [
            r
            for r in self.list()
            if query_lower in r.title.lower()
            or query_lower in (r.website or "").lower()
            or query_lower in (r.username or "").lower()
        ]

    def by_category(self, category: str) -> List[R]:
        return [r for r in self.list() if r.category == category]

    def categories(self) -> List[str]:
        return sorted({r.category for r in self._records.values()})

    def insert(self, record: R) -> str:
        """Add a record, assigning an id when it has none.

        Raises:
            StoreError: If a record with the same id already exists.
        """
        with self._lock:
            record_id = record.id or uuid.uuid4().hex
            if record_id in self._records:
                raise StoreError(f"Record '{record_id}' already exists")
            self._records[record_id] = replace(record, id=record_id)
            self._persist()
        return record_id

    def update(self, record: R) -> bool:
        with self._lock:
            if record.id is None or record.id not in self._records:
                return False
            self._records[record.id] = record
            self._persist()
        return True

    def delete(self, record_id: str) -> bool:
        with self._lock:
            if self._records.pop(record_id, None) is None:
                return False
            self._persist()
        return True

    def clear(self) -> int:
        """Remove every record; returns how many were removed."""
        with self._lock:
            removed = len(self._records)
            self._records.clear()
            self._persist()
        return removed

    def count(self) -> int:
        return len(self._records)


class JsonRecordStore(MemoryRecordStore[R]):
    """Record store persisted as a JSON file with atomic writes."""

    def __init__(self, file_path: str, record_type: Type[R]):
        self.file_path = file_path
        self.record_type = record_type
        self.created_with: Optional[str] = None
        super().__init__()
        self._load()

    def _load(self) -> None:
        """Load records from disk, if the file exists."""
        if not os.path.exists(self.file_path):
            return

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                content = f.read().strip()
        except (OSError, UnicodeDecodeError) as e:
            raise StoreCorruptedError(f"Failed to read store file: {e}") from e

        if not content:
            return

        try:
            data = json.loads(content)
            self.created_with = data.get("created_with")
            from_dict: Callable[[dict], R] = self.record_type.from_dict
            for item in data.get("records", []):
                record = from_dict(item)
                self._records[record.id] = record
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise StoreCorruptedError(
                f"Store file is corrupted or invalid: {e}"
            ) from e

        logger.debug("Loaded %d records from %s", len(self._records), self.file_path)

    def _persist(self) -> None:
        """Write all records to disk via temp file + atomic replace."""
        store_dir = os.path.dirname(self.file_path) or "."
        os.makedirs(store_dir, exist_ok=True)

        if self.created_with is None:
            self.created_with = __version__

        payload = {
            "schema_version": SCHEMA_VERSION,
            "created_with": self.created_with,
            "last_modified_with": __version__,
            "records": [r.to_dict() for r in self._records.values()],
        }

        temp_fd, temp_path = tempfile.mkstemp(
            dir=store_dir, prefix=".store_tmp_", suffix=".json"
        )
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.chmod(temp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(temp_path, self.file_path)
        except OSError as e:
            self._cleanup_temp(temp_path)
            raise StoreError(f"Failed to save store: {e}") from e

        logger.debug("Saved %d records to %s", len(self._records), self.file_path)

    def _cleanup_temp(self, temp_path: str) -> None:
        try:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
        except OSError:
            pass
