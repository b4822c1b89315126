"""
Persistence adapter: durable key-value slots for serialized state.

Every failure is logged and treated as "no persisted state"; the chat
never stops working because the disk is unhappy.
"""

import json
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

from chat_logger import get_logger

logger = get_logger("chatdeck")

SCHEMA_VERSION = 1


# ═══════════════════════════════════════════
# STORAGE BACKENDS
# ═══════════════════════════════════════════

class MemoryStorage:
    """In-process key-value storage. Values are kept as JSON text."""

    def __init__(self):
        self._slots: Dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._slots.get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            self._slots[key] = value


class JsonFileStorage:
    """One ``<key>.json`` file per namespace key inside *directory*."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a half-written record
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


# ═══════════════════════════════════════════
# ADAPTER
# ═══════════════════════════════════════════

class PersistenceAdapter:
    """
    load()/save() of one serialized record under a fixed namespace key.

    With ``background=True`` writes are queued on a single worker thread so
    callers never wait on the disk; the single worker keeps writes in order.
    """

    def __init__(self, storage, key: str, background: bool = False):
        self.storage = storage
        self.key = key
        self._executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"persist-{key}")
            if background else None
        )

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored record, or None when absent or unreadable."""
        try:
            raw = self.storage.read(self.key)
            if raw is None:
                return None
            record = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning(f"Persisted state unreadable, starting fresh | key={self.key} | error={e}")
            return None

        if not isinstance(record, dict):
            logger.warning(f"Persisted state has unexpected shape | key={self.key} | type={type(record).__name__}")
            return None

        version = record.get("version", SCHEMA_VERSION)
        if not isinstance(version, int) or version > SCHEMA_VERSION:
            logger.warning(f"Persisted state from a newer schema ignored | key={self.key} | version={version!r}")
            return None
        return record

    def save(self, record: Dict[str, Any]) -> None:
        """Persist *record*. Never raises."""
        record = dict(record, version=SCHEMA_VERSION)
        if self._executor is None:
            self._write(record)
            return
        try:
            self._executor.submit(self._write, record)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning(f"Dropped state write after shutdown | key={self.key} | error={e}")

    def _write(self, record: Dict[str, Any]) -> None:
        try:
            self.storage.write(self.key, json.dumps(record, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to persist state | key={self.key} | error={e}")

    def flush(self) -> None:
        """Block until every queued write has been attempted."""
        if self._executor is None:
            return
        try:
            self._executor.submit(lambda: None).result()
        except RuntimeError:
            pass  # shut down; shutdown(wait=True) already drained the queue

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
