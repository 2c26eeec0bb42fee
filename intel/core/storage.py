"""
Durable key-value storage.

The pipeline persists three JSON-serializable structures (alert rules,
deduplication statistics, anomaly baselines) under versioned keys. Every
backend returns values wrapped with the time they were written.

Backends:
- MemoryStore: process-local dict, used in tests and ephemeral runs.
- JsonFileStore: one JSON file per key under a data directory.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError

from .config import StorageConfig
from .exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class StoredValue(BaseModel):
    """
    Value read back from a store.

    Fields:
    - data: the JSON-compatible payload that was written
    - timestamp: write time (UTC)
    """

    data: Any
    timestamp: datetime


class KeyValueStore(ABC):
    """
    Abstract durable key-value store.

    Implementations raise StorageError on failure; callers decide whether
    the failure is fatal (it never is inside the pipeline services).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[StoredValue]:
        """Return the stored value for key, or None if absent."""

    @abstractmethod
    def set(self, key: str, data: Any) -> None:
        """Store JSON-compatible data under key."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key, returning whether anything was removed."""


class MemoryStore(KeyValueStore):
    """
    In-memory store.

    Payloads are round-tripped through JSON on write so that the same
    serialization errors surface here as in JsonFileStore.
    """

    def __init__(self) -> None:
        self._values: Dict[str, StoredValue] = {}

    def get(self, key: str) -> Optional[StoredValue]:
        value = self._values.get(key)
        if value is None:
            return None
        return StoredValue(data=json.loads(json.dumps(value.data)), timestamp=value.timestamp)

    def set(self, key: str, data: Any) -> None:
        try:
            payload = json.loads(json.dumps(data))
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for {key!r} is not JSON-serializable: {exc}") from exc
        self._values[key] = StoredValue(data=payload, timestamp=datetime.now(timezone.utc))

    def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._values)


class JsonFileStore(KeyValueStore):
    """
    File-backed store writing ``<data_dir>/<key>.json``.

    Writes go to a temporary file that is then renamed over the target, so a
    crash mid-write leaves the previous value intact.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create data directory {self.data_dir}: {exc}") from exc

    def _path(self, key: str) -> Path:
        if not key:
            raise StorageError("Storage key cannot be empty")
        return self.data_dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[StoredValue]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return StoredValue.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def set(self, key: str, data: Any) -> None:
        path = self._path(key)
        record = {"data": data, "timestamp": datetime.now(timezone.utc).isoformat()}
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            try:
                tmp_path.write_text(json.dumps(record, indent=2), encoding="utf-8")
                tmp_path.replace(path)
            except (OSError, TypeError, ValueError) as exc:
                raise StorageError(f"Failed to write {path}: {exc}") from exc

    def delete(self, key: str) -> bool:
        path = self._path(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StorageError(f"Failed to delete {path}: {exc}") from exc
        return True


def create_store(storage_config: StorageConfig) -> KeyValueStore:
    """
    Factory for the configured storage backend.
    """

    if storage_config.backend == "memory":
        return MemoryStore()
    if storage_config.backend == "file":
        return JsonFileStore(storage_config.data_dir)
    raise ConfigurationError(f"Unknown storage backend: {storage_config.backend}")
