"""Table-of-records store backed by one JSON file per table.

Each table is a list of dict records with a string ``id``. With no base
directory the store is memory-only.
"""

import copy
import json
import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


class RecordStore:
    """Simple get/insert/update/delete/filter store for dict records."""

    def __init__(self, base_dir: Path | None = None):
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._tables: dict[str, list[dict]] = {}

    @property
    def persistent(self) -> bool:
        return self._base_dir is not None

    def table_path(self, table: str) -> Path | None:
        if self._base_dir is None:
            return None
        return self._base_dir / f"{table}.json"

    def _load(self, table: str) -> list[dict]:
        if table in self._tables:
            return self._tables[table]

        records: list[dict] = []
        path = self.table_path(table)
        if path is not None and path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(data, list):
                    records = [r for r in data if isinstance(r, dict)]
                else:
                    logger.warning("Table file %s is not a list, starting empty", path)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to read table %s: %s", path, e)

        self._tables[table] = records
        return records

    def _flush(self, table: str) -> None:
        path = self.table_path(table)
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(self._tables[table], indent=2), encoding="utf-8")
            tmp.replace(path)
            logger.debug("Saved table %s (%d records)", path, len(self._tables[table]))
        except OSError as e:
            logger.error("Failed to write table %s: %s", path, e)

    def all(self, table: str) -> list[dict]:
        return copy.deepcopy(self._load(table))

    def get(self, table: str, record_id: str) -> dict | None:
        for record in self._load(table):
            if record.get("id") == record_id:
                return copy.deepcopy(record)
        return None

    def get_by(self, table: str, field: str, value) -> dict | None:
        for record in self._load(table):
            if record.get(field) == value:
                return copy.deepcopy(record)
        return None

    def filter_by(self, table: str, field: str, value) -> list[dict]:
        return [copy.deepcopy(r) for r in self._load(table) if r.get(field) == value]

    def insert(self, table: str, record: dict) -> dict:
        records = self._load(table)
        stored = copy.deepcopy(record)
        stored.setdefault("id", str(uuid.uuid4()))
        if any(r.get("id") == stored["id"] for r in records):
            raise ValueError(f"duplicate id '{stored['id']}' in table '{table}'")
        records.append(stored)
        self._flush(table)
        return copy.deepcopy(stored)

    def insert_many(self, table: str, new_records: list[dict]) -> int:
        records = self._load(table)
        existing = {r.get("id") for r in records}
        count = 0
        for record in new_records:
            stored = copy.deepcopy(record)
            stored.setdefault("id", str(uuid.uuid4()))
            if stored["id"] in existing:
                raise ValueError(f"duplicate id '{stored['id']}' in table '{table}'")
            existing.add(stored["id"])
            records.append(stored)
            count += 1
        self._flush(table)
        return count

    def update(self, table: str, record_id: str, changes: dict) -> dict | None:
        for record in self._load(table):
            if record.get("id") == record_id:
                record.update(copy.deepcopy(changes))
                record["id"] = record_id
                self._flush(table)
                return copy.deepcopy(record)
        return None

    def delete(self, table: str, record_id: str) -> bool:
        records = self._load(table)
        remaining = [r for r in records if r.get("id") != record_id]
        if len(remaining) == len(records):
            return False
        self._tables[table] = remaining
        self._flush(table)
        return True

    def delete_where(self, table: str, field: str, value) -> int:
        records = self._load(table)
        remaining = [r for r in records if r.get(field) != value]
        removed = len(records) - len(remaining)
        if removed:
            self._tables[table] = remaining
            self._flush(table)
        return removed

    def replace_all(self, table: str, records: list[dict]) -> None:
        self._tables[table] = [copy.deepcopy(r) for r in records]
        for record in self._tables[table]:
            record.setdefault("id", str(uuid.uuid4()))
        self._flush(table)

    def count(self, table: str) -> int:
        return len(self._load(table))
