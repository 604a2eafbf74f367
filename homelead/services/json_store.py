# homelead/services/json_store.py
from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger("homelead.json_store")


class JsonDocument:
    """
    One JSON document on disk, held in memory behind a single-writer lock.

    - load() / save() for whole-document access
    - transaction() for read-modify-write: the block mutates a working copy,
      which replaces the live document and is flushed only if the block exits
      cleanly.
    """

    def __init__(self, path: str, default: Callable[[], Any]):
        self.path = path
        self._default = default
        self._lock = threading.RLock()
        self._data = self._read()

    def _ensure_dir(self) -> None:
        d = os.path.dirname(self.path)
        if d and not os.path.exists(d):
            os.makedirs(d, exist_ok=True)

    def _read(self) -> Any:
        if not os.path.exists(self.path):
            logger.info("json_store: no file, starting empty path=%s", self.path)
            return self._default()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("json_store: load error path=%s: %s (falling back to empty)", self.path, e)
            return self._default()
        if not isinstance(data, type(self._default())):
            logger.error("json_store: unexpected document type path=%s (falling back to empty)", self.path)
            return self._default()
        return data

    def _flush(self) -> None:
        self._ensure_dir()
        fd, tmp = tempfile.mkstemp(dir=os.path.dirname(self.path) or ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def reload(self) -> None:
        with self._lock:
            self._data = self._read()

    def load(self) -> Any:
        with self._lock:
            return copy.deepcopy(self._data)

    def save(self, data: Any) -> None:
        with self._lock:
            self._data = copy.deepcopy(data)
            self._flush()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        with self._lock:
            working = copy.deepcopy(self._data)
            yield working
            self._data = working
            self._flush()


class CustomerStore(JsonDocument):
    """Customer records keyed by token."""

    def __init__(self, path: str):
        super().__init__(path, dict)

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            rec = self._data.get(token)
            return copy.deepcopy(rec) if rec is not None else None

    def put(self, token: str, record: Dict[str, Any]) -> None:
        with self.transaction() as db:
            db[token] = record

    def delete(self, token: str) -> bool:
        with self.transaction() as db:
            return db.pop(token, None) is not None

    def items(self) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [(t, copy.deepcopy(r)) for t, r in self._data.items()]

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return token in self._data

    def stats(self) -> dict:
        with self._lock:
            return {"path": self.path, "customers": len(self._data)}


class TagCatalog(JsonDocument):
    def __init__(self, path: str):
        super().__init__(path, lambda: {"tags": []})

    def list(self) -> List[Dict[str, Any]]:
        return self.load().get("tags", [])


class BroadcastLog(JsonDocument):
    def __init__(self, path: str):
        super().__init__(path, lambda: {"broadcasts": []})

    def append(self, entry: Dict[str, Any]) -> None:
        with self.transaction() as doc:
            doc.setdefault("broadcasts", []).append(entry)

    def newest_first(self) -> List[Dict[str, Any]]:
        return list(reversed(self.load().get("broadcasts", [])))


class SettingsStore(JsonDocument):
    """Owns the admin shared secret."""

    def __init__(self, path: str, seed_admin_password: str = ""):
        super().__init__(path, dict)
        if not self._data.get("adminPassword") and seed_admin_password:
            # seed stays in memory; settings.json is written on the first change
            self._data["adminPassword"] = seed_admin_password

    @property
    def admin_password(self) -> str:
        with self._lock:
            return self._data.get("adminPassword") or ""

    def set_admin_password(self, new_password: str) -> None:
        with self.transaction() as doc:
            doc["adminPassword"] = new_password


class Stores:
    """The four documents that make up the application state."""

    def __init__(self, data_dir: str, seed_admin_password: str = ""):
        self.data_dir = data_dir
        self.customers = CustomerStore(os.path.join(data_dir, "customers.json"))
        self.tags = TagCatalog(os.path.join(data_dir, "tags.json"))
        self.broadcasts = BroadcastLog(os.path.join(data_dir, "broadcasts.json"))
        self.settings = SettingsStore(os.path.join(data_dir, "settings.json"), seed_admin_password)
