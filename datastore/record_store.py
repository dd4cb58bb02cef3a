from __future__ import annotations

import copy
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

from models.records import NormalizedRecord
from services.errors import StoreError
from settings import get_settings

logger = logging.getLogger(__name__)

StoredRecord = Dict[str, Any]


class RecordStore(Protocol):
    """The only persistence operation the ingest pipeline depends on."""

    def insert(self, store_name: str, record: NormalizedRecord) -> StoredRecord:
        ...


def _parse_instant(value: str) -> datetime:
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    parsed = datetime.fromisoformat(candidate)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class MockRecordStore:
    """In-memory collections of readings with optional JSON persistence."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._collections: Dict[str, List[StoredRecord]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert(self, store_name: str, record: NormalizedRecord) -> StoredRecord:
        stored = copy.deepcopy(dict(record))
        stored["id"] = uuid4().hex
        stored["created_at"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            collection = self._collections.setdefault(store_name, [])
            collection.append(stored)
            try:
                self._persist()
            except (OSError, TypeError, ValueError) as exc:
                collection.pop()
                raise StoreError(f"Failed to persist record in {store_name!r}: {exc}") from exc
        return copy.deepcopy(stored)

    def get(self, store_name: str, record_id: str) -> Optional[StoredRecord]:
        with self._lock:
            for item in self._collections.get(store_name, []):
                if item["id"] == record_id:
                    return copy.deepcopy(item)
        return None

    def query(
        self,
        store_name: str,
        device_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[StoredRecord], int]:
        """Return one page of readings, newest first, and the total match count."""

        with self._lock:
            matches = [
                item
                for item in reversed(self._collections.get(store_name, []))
                if device_id is None or item.get("device_id") == device_id
            ]
            page = [copy.deepcopy(item) for item in matches[offset : offset + limit]]
        return page, len(matches)

    def latest_per_device(self, store_name: str) -> List[StoredRecord]:
        latest: Dict[str, StoredRecord] = {}
        with self._lock:
            for item in reversed(self._collections.get(store_name, [])):
                device = item.get("device_id")
                if device is not None and device not in latest:
                    latest[device] = copy.deepcopy(item)
        return sorted(latest.values(), key=lambda item: str(item["device_id"]))

    def distinct_devices(self, store_name: str) -> List[str]:
        with self._lock:
            devices = {
                str(item["device_id"])
                for item in self._collections.get(store_name, [])
                if item.get("device_id") is not None
            }
        return sorted(devices)

    def delete(self, store_name: str, record_id: str) -> bool:
        with self._lock:
            collection = self._collections.get(store_name, [])
            kept = [item for item in collection if item["id"] != record_id]
            if len(kept) == len(collection):
                return False
            self._replace_collection(store_name, kept)
        return True

    def delete_where(
        self,
        store_name: str,
        device_id: Optional[str] = None,
        before: Optional[datetime] = None,
    ) -> int:
        """Delete readings matching every given filter; return how many went."""

        if device_id is None and before is None:
            raise ValueError("At least one filter is required for bulk deletion.")
        cutoff: Optional[datetime] = None
        if before is not None:
            if before.tzinfo is None:
                before = before.replace(tzinfo=timezone.utc)
            cutoff = before.astimezone(timezone.utc)

        def matches(item: StoredRecord) -> bool:
            if device_id is not None and item.get("device_id") != device_id:
                return False
            if cutoff is not None and _parse_instant(item["created_at"]) >= cutoff:
                return False
            return True

        with self._lock:
            collection = self._collections.get(store_name, [])
            kept = [item for item in collection if not matches(item)]
            removed = len(collection) - len(kept)
            if removed:
                self._replace_collection(store_name, kept)
        return removed

    def _replace_collection(self, store_name: str, items: List[StoredRecord]) -> None:
        """Swap in ``items``; the previous list is restored if persisting fails."""
        previous = self._collections.get(store_name)
        self._collections[store_name] = items
        try:
            self._persist()
        except (OSError, TypeError, ValueError) as exc:
            if previous is None:
                self._collections.pop(store_name, None)
            else:
                self._collections[store_name] = previous
            raise StoreError(f"Failed to persist changes to {store_name!r}: {exc}") from exc

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = json.dumps(self._collections, indent=2, sort_keys=True)
        self.persistence_path.write_text(payload)

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable store file %s", self.persistence_path,
                extra={"reason": "corrupt persistence file"},
            )
            data = {}

        for store_name, items in data.items():
            self._collections[store_name] = [dict(item) for item in items]


@lru_cache
def build_default_store(path: Optional[str] = None) -> MockRecordStore:
    settings = get_settings()
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return MockRecordStore(persistence_path=persistence)
