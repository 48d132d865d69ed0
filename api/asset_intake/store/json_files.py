# asset_intake/store/json_files.py
"""
JSON-file document store (used when USE_POSTGRES is off, and in tests).

One file per collection under <ASSET_DATA_ROOT>/store/<name>.json, rewritten
atomically (tmp + os.replace). A per-collection asyncio.Lock serializes
writes, so unique-field checks and inserts are atomic within one process.
"""
from __future__ import annotations
import asyncio
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from asset_intake.errors import NotFoundError, PersistenceIOError, UniqueViolation
from asset_intake.store.base import COLLECTIONS, UNIQUE_FIELDS, Collection, DocumentStore, Record

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _atomic_write(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    os.replace(tmp, path)


class JsonFileCollection(Collection):
    def __init__(self, root: Path, name: str):
        self.name = name
        self.path = Path(root) / f"{name}.json"
        self.unique_fields = UNIQUE_FIELDS.get(name, ())
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ io

    def _read(self) -> List[Record]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {self.path}: {e}")
            raise PersistenceIOError(f"read {self.name}", e) from e
        return list(data.get("records") or [])

    def _write(self, records: List[Record]) -> None:
        try:
            _atomic_write(self.path, {"records": records})
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            raise PersistenceIOError(f"write {self.name}", e) from e

    def _check_unique(self, records: List[Record], fields: Record, exclude_id: Optional[str] = None) -> None:
        for field in self.unique_fields:
            value = fields.get(field)
            if value is None:
                continue
            for rec in records:
                if rec.get("id") != exclude_id and rec.get(field) == value:
                    raise UniqueViolation(self.name, field, value)

    # ----------------------------------------------------------- contract

    async def create(self, fields: Record) -> str:
        async with self._lock:
            records = self._read()
            self._check_unique(records, fields)
            now = _now_iso()
            record_id = uuid.uuid4().hex
            records.append({**fields, "id": record_id, "created_at": now, "updated_at": now})
            self._write(records)
            return record_id

    async def get_all(self) -> List[Record]:
        # stored in insertion order
        return list(reversed(self._read()))

    async def get_by_id(self, record_id: str) -> Optional[Record]:
        for rec in self._read():
            if rec.get("id") == record_id:
                return rec
        return None

    async def update(self, record_id: str, fields: Record) -> None:
        async with self._lock:
            records = self._read()
            for i, rec in enumerate(records):
                if rec.get("id") == record_id:
                    self._check_unique(records, fields, exclude_id=record_id)
                    patch = {k: v for k, v in fields.items() if k not in ("id", "created_at")}
                    records[i] = {**rec, **patch, "updated_at": _now_iso()}
                    self._write(records)
                    return
        raise NotFoundError(self.name, record_id)

    async def delete(self, record_id: str) -> None:
        async with self._lock:
            records = self._read()
            kept = [r for r in records if r.get("id") != record_id]
            if len(kept) == len(records):
                raise NotFoundError(self.name, record_id)
            self._write(kept)

    async def query_by_field(self, field: str, value: Any) -> List[Record]:
        return [r for r in reversed(self._read()) if r.get(field) == value]

    async def increment(self, record_id: str, field: str, by: int) -> int:
        async with self._lock:
            records = self._read()
            for rec in records:
                if rec.get("id") == record_id:
                    rec[field] = max(0, int(rec.get(field) or 0) + by)
                    rec["updated_at"] = _now_iso()
                    self._write(records)
                    return rec[field]
        raise NotFoundError(self.name, record_id)


class JsonFileStore(DocumentStore):
    def __init__(self, root: Path):
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)
        self._collections: Dict[str, JsonFileCollection] = {
            name: JsonFileCollection(self.root, name) for name in COLLECTIONS
        }

    def collection(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}") from None
