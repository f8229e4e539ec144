"""
JSON file storage for the organization directory and collected records.

Data lives in two plain JSON arrays under the data directory:
`directory.json` and `records.json`. Writes go through a temporary file and an
atomic rename. Intended for single-machine installs; no external database required.
"""

import asyncio
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from voice_intake.config.constants import LOGGER_NAME
from voice_intake.errors import PersistenceFault
from voice_intake.models.records import (
    DirectoryEntry,
    DirectoryEntryCreate,
    DirectoryEntryData,
    RecordData,
    StructuredRecord,
)

logger = logging.getLogger(LOGGER_NAME)

DIRECTORY_FILE = "directory.json"
RECORDS_FILE = "records.json"


def load_json_list(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else []


def atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.flush()
    tmp.replace(path)


class _JsonListStore:
    """Serialized async access to one JSON array file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read(self) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(load_json_list, self.path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return []

    async def _read_for_update(self) -> List[Dict[str, Any]]:
        # Unlike _read, never treat an unreadable file as empty before rewriting it
        try:
            return await asyncio.to_thread(load_json_list, self.path)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFault(f"Could not read {self.path}: {e}") from e

    async def _write(self, items: List[Dict[str, Any]]) -> None:
        try:
            await asyncio.to_thread(atomic_write_json, self.path, items)
        except OSError as e:
            raise PersistenceFault(f"Could not write {self.path}: {e}") from e


class DirectoryStore(_JsonListStore):
    """Reference directory of organizations and their locations."""

    @classmethod
    def in_dir(cls, data_dir: Path) -> "DirectoryStore":
        return cls(Path(data_dir) / DIRECTORY_FILE)

    async def list_entries(self) -> List[DirectoryEntry]:
        """Read the current directory snapshot."""
        entries = []
        for item in await self._read():
            try:
                entries.append(DirectoryEntry(**item))
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid directory entry {item!r}: {e}")
        return entries

    async def get(self, entry_id: str) -> Optional[DirectoryEntry]:
        for entry in await self.list_entries():
            if entry.id == entry_id:
                return entry
        return None

    async def create(self, data: DirectoryEntryCreate) -> DirectoryEntry:
        """Add an entry at the top of the directory."""
        fields = data.model_dump(exclude_none=True)
        entry = DirectoryEntry(**fields)
        async with self._lock:
            items = await self._read_for_update()
            items.insert(0, entry.model_dump())
            await self._write(items)
        logger.info(f"Directory entry created: {entry.id}")
        return entry

    async def update(self, entry_id: str, data: DirectoryEntryData) -> Optional[DirectoryEntry]:
        async with self._lock:
            items = await self._read_for_update()
            for index, item in enumerate(items):
                if item.get("id") == entry_id:
                    updated = DirectoryEntry(id=entry_id, **data.model_dump())
                    items[index] = updated.model_dump()
                    await self._write(items)
                    logger.info(f"Directory entry updated: {entry_id}")
                    return updated
        return None

    async def delete(self, entry_id: str) -> bool:
        async with self._lock:
            items = await self._read_for_update()
            remaining = [item for item in items if item.get("id") != entry_id]
            if len(remaining) == len(items):
                return False
            await self._write(remaining)
        logger.info(f"Directory entry deleted: {entry_id}")
        return True


class RecordStore(_JsonListStore):
    """Append-only log of collected records; only the status is ever updated."""

    @classmethod
    def in_dir(cls, data_dir: Path) -> "RecordStore":
        return cls(Path(data_dir) / RECORDS_FILE)

    async def list_records(self, organization_id: Optional[str] = None) -> List[StructuredRecord]:
        records = []
        for item in await self._read():
            try:
                record = StructuredRecord(**item)
            except (TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid record {item!r}: {e}")
                continue
            if organization_id is None or record.organizationId == organization_id:
                records.append(record)
        return records

    async def save(self, record: StructuredRecord) -> StructuredRecord:
        """
        Append a record.

        Raises:
            PersistenceFault: The records file could not be read or written
        """
        async with self._lock:
            items = await self._read_for_update()
            items.append(record.model_dump())
            await self._write(items)
        logger.info(f"Record saved: {record.id} for organization {record.organizationId}")
        return record

    async def create(self, data: RecordData) -> StructuredRecord:
        return await self.save(StructuredRecord(**data.model_dump()))

    async def update_status(self, record_id: str, status: str) -> Optional[StructuredRecord]:
        async with self._lock:
            items = await self._read_for_update()
            for index, item in enumerate(items):
                if item.get("id") == record_id:
                    updated = StructuredRecord(**{**item, "status": status})
                    items[index] = updated.model_dump()
                    await self._write(items)
                    logger.info(f"Record {record_id} status set to {status}")
                    return updated
        return None

    async def count_by_organization(self) -> Dict[str, int]:
        return dict(Counter(record.organizationId for record in await self.list_records()))
