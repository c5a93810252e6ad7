"""In-memory record store for the current session.

The store is the single source of truth for the Pokemon rows, the custom column
schema and request lifecycle flags (busy, last error, progress). Every mutation
runs under one lock, so each operation is a single atomic step.

Lifecycle: created empty, replaced wholesale by a successful fetch or import,
mutated by edits and column operations, emptied by clear() or close_store().
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from app.errors import BusyError
from app.models.pokemon import FIELD_ATTRS, CustomColumn, Pokemon, is_base_field


class PokemonStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._pokemon: List[Pokemon] = []
        self._columns: List[CustomColumn] = []
        self._busy: Optional[str] = None
        self._error: Optional[str] = None
        self._progress: Tuple[int, int] = (0, 0)

    # --- reads ---

    def records(self) -> List[Pokemon]:
        with self._lock:
            return list(self._pokemon)

    def columns(self) -> List[CustomColumn]:
        with self._lock:
            return list(self._columns)

    def get(self, pokemon_id: int) -> Optional[Pokemon]:
        with self._lock:
            for p in self._pokemon:
                if p.id == pokemon_id:
                    return p
        return None

    def __len__(self) -> int:
        return len(self._pokemon)

    @property
    def is_busy(self) -> bool:
        return self._busy is not None

    @property
    def error(self) -> Optional[str]:
        return self._error

    def status(self) -> Dict[str, Any]:
        with self._lock:
            current, total = self._progress
            return {
                "count": len(self._pokemon),
                "columns": len(self._columns),
                "busy": self._busy is not None,
                "operation": self._busy,
                "error": self._error,
                "progress": {"current": current, "total": total},
            }

    def query(
        self,
        *,
        sort_by: Optional[str] = None,
        descending: bool = False,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Sorted, paginated view of the records.

        None values sort last regardless of direction; mixed types compare by
        their string form.
        """
        with self._lock:
            items = list(self._pokemon)
        if sort_by:
            present = [p for p in items if p.get_field(sort_by) is not None]
            missing = [p for p in items if p.get_field(sort_by) is None]
            try:
                present.sort(key=lambda p: _sort_key(p.get_field(sort_by)), reverse=descending)
            except TypeError:
                present.sort(key=lambda p: str(p.get_field(sort_by)), reverse=descending)
            items = present + missing
        page = max(1, int(page))
        page_size = max(1, int(page_size))
        start = (page - 1) * page_size
        return {
            "total": len(items),
            "page": page,
            "page_size": page_size,
            "items": items[start:start + page_size],
        }

    # --- record mutations ---

    def replace_all(self, records: Iterable[Pokemon], columns: Sequence[CustomColumn] = ()) -> None:
        """Discard the current rows and clear the error flag.

        `columns` are appended to the schema in the same step; if any of them
        is rejected nothing changes. Incoming rows missing a schema column get
        that column's default, and keys outside the schema are dropped.
        """
        new_rows = list(records)
        with self._lock:
            schema = list(self._columns)
            for column in columns:
                self._check_new_column(column, schema)
                schema.append(column)
            self._columns = schema
            for p in new_rows:
                self._conform(p)
            self._pokemon = new_rows
            self._error = None

    def insert(self, record: Pokemon) -> Pokemon:
        """Append a row; duplicate ids are accepted.

        Raises ValueError when the row carries a custom value outside the schema.
        """
        with self._lock:
            self._check_keys(record.extra)
            self._backfill(record)
            self._pokemon.append(record)
        return record

    def update(self, pokemon_id: int, fields: Dict[str, Any]) -> Optional[Pokemon]:
        with self._lock:
            self._check_keys(fields)
            for p in self._pokemon:
                if p.id == pokemon_id:
                    p.merge(fields)
                    return p
        return None

    def remove(self, pokemon_id: int) -> int:
        with self._lock:
            before = len(self._pokemon)
            self._pokemon = [p for p in self._pokemon if p.id != pokemon_id]
            return before - len(self._pokemon)

    def bulk_update(self, predicate: Callable[[Pokemon], bool], fields: Dict[str, Any]) -> int:
        updated = 0
        with self._lock:
            self._check_keys(fields)
            for p in self._pokemon:
                if predicate(p):
                    p.merge(fields)
                    updated += 1
        return updated

    def clear(self) -> None:
        with self._lock:
            self._pokemon = []
            self._columns = []
            self._error = None
            self._progress = (0, 0)

    # --- schema mutations ---

    def get_column(self, column_id: str) -> Optional[CustomColumn]:
        with self._lock:
            for c in self._columns:
                if c.id == column_id:
                    return c
        return None

    def add_column(self, column: CustomColumn) -> CustomColumn:
        """Append a column and back-fill its default onto every record.

        Raises ValueError when a column with the same id already exists.
        """
        with self._lock:
            self._check_new_column(column, self._columns)
            self._columns.append(column)
            for p in self._pokemon:
                if column.id not in p.extra:
                    p.extra[column.id] = column.default_value
        return column

    def remove_column(self, column_id: str) -> bool:
        with self._lock:
            before = len(self._columns)
            self._columns = [c for c in self._columns if c.id != column_id]
            if len(self._columns) == before:
                return False
            for p in self._pokemon:
                p.extra.pop(column_id, None)
            return True

    # --- lifecycle flags ---

    def set_busy(self, operation: Optional[str]) -> None:
        with self._lock:
            self._busy = operation or None

    def set_error(self, message: Optional[str]) -> None:
        with self._lock:
            self._error = message

    def set_progress(self, current: int, total: int) -> None:
        with self._lock:
            self._progress = (int(current), int(total))

    @contextmanager
    def begin(self, operation: str) -> Iterator["PokemonStore"]:
        """Mark the store busy for a fetch/import; reject a second concurrent start."""
        with self._lock:
            if self._busy is not None:
                raise BusyError(self._busy)
            self._busy = operation
            self._error = None
            self._progress = (0, 0)
        try:
            yield self
        finally:
            self.set_busy(None)

    def _backfill(self, record: Pokemon) -> None:
        for c in self._columns:
            if c.id not in record.extra:
                record.extra[c.id] = c.default_value

    def _conform(self, record: Pokemon) -> None:
        known = {c.id for c in self._columns}
        for key in [k for k in record.extra if k not in known]:
            del record.extra[key]
        self._backfill(record)

    def _check_keys(self, fields: Iterable[str]) -> None:
        known = {c.id for c in self._columns}
        unknown = [k for k in fields if not is_base_field(k) and k not in known]
        if unknown:
            raise ValueError(f"Unknown field: {', '.join(unknown)}")

    @staticmethod
    def _check_new_column(column: CustomColumn, schema: Sequence[CustomColumn]) -> None:
        if any(c.id == column.id for c in schema):
            raise ValueError(f"Column already exists: {column.id}")
        if column.id in FIELD_ATTRS or column.id == "extra":
            raise ValueError(f"Column id clashes with a base field: {column.id}")


def _sort_key(value: Any) -> Any:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value


_store: Optional[PokemonStore] = None


def get_store() -> PokemonStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        _store = PokemonStore()
    return _store


def close_store() -> None:
    global _store
    if _store is not None:
        _store.clear()
        _store = None
