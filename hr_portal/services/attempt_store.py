"""
services/attempt_store.py

Persistence for in-progress exam attempts.

Public API:
  - progress_key(user_id, exam_id) -> str
  - AttemptStore                      : load / save / delete protocol
  - MemoryAttemptStore                : lock-guarded dict, one per browser session
  - FileAttemptStore                  : one JSON file per key on disk

Exactly one controller writes a given key. No cross-tab coordination: two
controllers on the same key are last-write-wins.
"""

import json
import logging
import os
import threading
from typing import Dict, Optional, Protocol

from pydantic import ValidationError

from hr_portal.models.session_state import AttemptSnapshot

logger = logging.getLogger(__name__)


def progress_key(user_id: int, exam_id: str) -> str:
    return f"exam-progress-{user_id}-{exam_id}"


class AttemptStore(Protocol):
    def load(self, key: str) -> Optional[AttemptSnapshot]: ...

    def save(self, key: str, snapshot: AttemptSnapshot) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryAttemptStore:
    """
    Session-scoped store. Records are kept as serialized dicts so a snapshot
    handed out by load() is never shared with the writer.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, dict] = {}

    def load(self, key: str) -> Optional[AttemptSnapshot]:
        with self._lock:
            record = self._records.get(key)
        if record is None:
            return None
        return AttemptSnapshot.model_validate(record)

    def save(self, key: str, snapshot: AttemptSnapshot) -> None:
        with self._lock:
            self._records[key] = snapshot.to_record()

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def clear(self, prefix: str = "") -> None:
        with self._lock:
            for key in [k for k in self._records if k.startswith(prefix)]:
                del self._records[key]


class FileAttemptStore:
    """Disk store: <directory>/<key>.json. Unreadable records count as absent."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        os.makedirs(directory, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> str:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return os.path.join(self.directory, f"{safe}.json")

    def load(self, key: str) -> Optional[AttemptSnapshot]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                return None
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Unreadable progress record {path}: {e}")
                return None
        try:
            return AttemptSnapshot.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid progress record {path}: {e}")
            return None

    def save(self, key: str, snapshot: AttemptSnapshot) -> None:
        path = self._path(key)
        tmp_path = path + ".tmp"
        with self._lock:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_record(), f)
            os.replace(tmp_path, path)

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                os.remove(self._path(key))
            except FileNotFoundError:
                pass

    def clear(self, prefix: str = "") -> None:
        safe_prefix = os.path.basename(self._path(prefix))[: -len(".json")]
        with self._lock:
            for name in os.listdir(self.directory):
                if name.endswith(".json") and name.startswith(safe_prefix):
                    os.remove(os.path.join(self.directory, name))
