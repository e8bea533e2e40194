"""In-process stand-in for the hosted database: named tables of JSON rows."""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from settings import get_settings

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

TABLES = (
    "restaurants",
    "dishes",
    "fastfood_logs",
    "fastfood_log_dishes",
    "profiles",
    "admin_users",
    "brand_suggestions",
)


class BackendError(RuntimeError):
    """Raised when a query cannot be served (unknown table, bad payload)."""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MockBackend:

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._tables: Dict[str, Dict[str, Row]] = {name: {} for name in TABLES}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def select(
        self,
        table: str,
        where: Optional[Mapping[str, Any]] = None,
        predicate: Optional[Callable[[Row], bool]] = None,
    ) -> List[Row]:
        """Return deep copies of rows matching every ``where`` equality and ``predicate``."""
        with self._lock:
            rows = self._table(table).values()
            return [copy.deepcopy(row) for row in rows if _matches(row, where, predicate)]

    def select_one(self, table: str, where: Mapping[str, Any]) -> Optional[Row]:
        rows = self.select(table, where)
        return rows[0] if rows else None

    def exists(self, table: str, where: Mapping[str, Any]) -> bool:
        with self._lock:
            return any(_matches(row, where, None) for row in self._table(table).values())

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        if not isinstance(row, Mapping):
            raise BackendError(f"Row for table {table!r} must be a mapping.")
        record = dict(row)
        record.setdefault("id", str(uuid4()))
        record.setdefault("created_at", utc_now_iso())
        with self._lock:
            rows = self._table(table)
            if record["id"] in rows:
                raise BackendError(f"Duplicate id {record['id']!r} in table {table!r}.")
            rows[record["id"]] = copy.deepcopy(record)
            self._persist()
        logger.debug("Inserted row", extra={"table": table})
        return record

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> Row:
        with self._lock:
            rows = self._table(table)
            current = rows.get(row_id)
            if current is None:
                raise KeyError(f"Row {row_id!r} not found in table {table!r}.")
            current.update(copy.deepcopy(dict(values)))
            current["id"] = row_id
            self._persist()
            return copy.deepcopy(current)

    def delete(self, table: str, where: Mapping[str, Any]) -> int:
        with self._lock:
            rows = self._table(table)
            doomed = [row_id for row_id, row in rows.items() if _matches(row, where, None)]
            for row_id in doomed:
                del rows[row_id]
            if doomed:
                self._persist()
            return len(doomed)

    def reset(self) -> None:
        with self._lock:
            for rows in self._tables.values():
                rows.clear()
            self._persist()

    def _table(self, name: str) -> Dict[str, Row]:
        try:
            return self._tables[name]
        except KeyError as exc:
            raise BackendError(f"Unknown table {name!r}.") from exc

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._tables, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable backend snapshot",
                extra={"reason": str(self.persistence_path)},
            )
            data = {}

        for name, rows in data.items():
            if name in self._tables and isinstance(rows, dict):
                self._tables[name] = rows


def _matches(
    row: Row,
    where: Optional[Mapping[str, Any]],
    predicate: Optional[Callable[[Row], bool]],
) -> bool:
    if where and any(row.get(key) != value for key, value in where.items()):
        return False
    return predicate is None or predicate(row)


def order_rows(rows: Iterable[Row], key: str, descending: bool = False) -> List[Row]:
    """Sort rows on ``key`` keeping rows where it is missing or null last."""
    rows = list(rows)
    present = [row for row in rows if row.get(key) is not None]
    missing = [row for row in rows if row.get(key) is None]
    return sorted(present, key=lambda row: row[key], reverse=descending) + missing


@lru_cache
def build_default_backend(path: Optional[str] = None) -> MockBackend:
    settings = get_settings()
    backend_path = settings.backend_persistence_path if path is None else path
    persistence = Path(backend_path) if backend_path else None
    return MockBackend(persistence_path=persistence)
