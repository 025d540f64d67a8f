import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import List, Optional

from ..errors import StoreError
from .base import BACKUP_KEY, PAIR_COLLECTIONS, GradeStore, deduplicate_pairs


logger = logging.getLogger(__name__)

KEY_PREFIX = "kampos_xestion_"


class LocalGradeStore(GradeStore):
    """
    Keeps every collection as a JSON array in its own file under ``directory``
    (``kampos_xestion_<collection>.json``). Files are rewritten whole on each
    change through a temporary file, so a crash never leaves half a file.
    """

    backend_name = "local"

    def __init__(self, directory):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._last_id = 0

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _load(self, collection: str) -> List[dict]:
        path = self._path(KEY_PREFIX + collection)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Could not read %s: %s", path, exc)
            raise StoreError("unknown-error", f"Could not read {path.name}") from exc
        return data if isinstance(data, list) else []

    def _write(self, key: str, payload) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as exc:
            logger.error("Could not write %s: %s", path, exc)
            raise StoreError("unknown-error", f"Could not write {path.name}") from exc

    def _save(self, collection: str, records: List[dict]) -> None:
        if collection in PAIR_COLLECTIONS:
            records = deduplicate_pairs(records, PAIR_COLLECTIONS[collection])
        self._write(KEY_PREFIX + collection, records)

    def _new_id(self) -> str:
        # millisecond timestamps, bumped when two records land in the same ms
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    # primitives

    def _find(self, collection: str, **filters) -> List[dict]:
        with self._lock:
            records = self._load(collection)
        return [r for r in records if all(r.get(k) == v for k, v in filters.items())]

    def _get(self, collection: str, record_id: str) -> Optional[dict]:
        matches = self._find(collection, id=record_id)
        return matches[0] if matches else None

    def _insert(self, collection: str, data: dict) -> str:
        with self._lock:
            records = self._load(collection)
            record_id = self._new_id()
            records.append({**data, "id": record_id})
            self._save(collection, records)
        return record_id

    def _replace(self, collection: str, record_id: str, data: dict) -> bool:
        with self._lock:
            records = self._load(collection)
            for index, record in enumerate(records):
                if record.get("id") == record_id:
                    records[index] = {**data, "id": record_id}
                    self._save(collection, records)
                    return True
        return False

    def _delete(self, collection: str, record_id: str) -> bool:
        return self._delete_where(collection, id=record_id) > 0

    def _delete_where(self, collection: str, **filters) -> int:
        with self._lock:
            records = self._load(collection)
            kept = [r for r in records if not all(r.get(k) == v for k, v in filters.items())]
            removed = len(records) - len(kept)
            if removed:
                self._save(collection, kept)
        return removed

    def _replace_all(self, collection: str, records: List[dict]) -> None:
        with self._lock:
            self._save(collection, list(records))

    def save_backup(self, snapshot: dict) -> None:
        with self._lock:
            self._write(BACKUP_KEY, snapshot)
        logger.info("Backup written to %s", self._path(BACKUP_KEY))

    def load_backup(self) -> Optional[dict]:
        path = self._path(BACKUP_KEY)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Could not read backup %s: %s", path, exc)
            raise StoreError("unknown-error", f"Could not read {path.name}") from exc
