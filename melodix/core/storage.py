"""
Durable key-value storage for persisted service state

Services keep their state under a fixed key as JSON-compatible data. The
JSON file backend writes the whole document atomically (temp file + replace)
so a crash mid-write never leaves a truncated file behind; MemoryStore is the
drop-in fake used by tests.
"""

import copy
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .exceptions import StorageError
from ..utils.logger import get_logger


class KeyValueStore(ABC):
    """Abstract key-value store holding JSON-compatible values"""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Read the value stored under key

        Raises:
            StorageError: If the backend cannot be read
        """

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """
        Store value under key, replacing any previous value

        Raises:
            StorageError: If the backend cannot be written
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present"""


class MemoryStore(KeyValueStore):
    """In-memory store; values are deep-copied in and out like a real backend"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self.writes = 0

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def put(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.writes += 1

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Key-value store backed by a single JSON document on disk

    The document is read on every get() so that external edits and other
    processes are picked up; writes are serialized with a lock.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Initialize the store

        Args:
            path: Location of the JSON document (created on first write)
        """
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self.logger = get_logger(__name__)

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(
                f"Failed to read state file {self.path}: {e}",
                details={'file_path': str(self.path), 'original_error': str(e)}
            )
        if not isinstance(data, dict):
            raise StorageError(
                f"State file {self.path} does not contain a JSON object",
                details={'file_path': str(self.path)}
            )
        return data

    def _write_document(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(
                f"Failed to write state file {self.path}: {e}",
                details={'file_path': str(self.path), 'original_error': str(e)}
            )

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read_document().get(key, default)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            try:
                data = self._read_document()
            except StorageError as e:
                # Never let one corrupt document block new writes
                self.logger.warning(f"Overwriting unreadable state file: {e}")
                data = {}
            data[key] = value
            self._write_document(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_document()
            if key in data:
                del data[key]
                self._write_document(data)
