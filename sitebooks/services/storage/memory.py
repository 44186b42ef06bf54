"""
In-Memory Storage Implementation

Same contract as the Google Sheets backend, held in process memory.
Used by the test suite and by local development (STORAGE_BACKEND=memory).

Values are normalized to strings on the way in, exactly as a sheet would
hold them, so filters and compare-and-swap behave the same on both backends.
Empty strings read back as None.
"""

from typing import Any, Optional
from uuid import UUID

from sitebooks.models.audit import AuditEvent
from sitebooks.services.storage.interface import (
    TABLES,
    AuditStorageInterface,
    ConflictError,
    DuplicateError,
    NotFoundError,
    StorageError,
    TableStoreInterface,
    normalize_value,
)


def _to_cells(row: dict) -> dict[str, str]:
    return {key: normalize_value(value) for key, value in row.items()}


def _from_cells(cells: dict[str, str]) -> dict[str, Optional[str]]:
    return {key: (value if value != "" else None) for key, value in cells.items()}


class InMemoryTableStore(TableStoreInterface):
    """
    Dict-of-lists table store.

    Tables keep insertion order, like rows appended to a worksheet.
    """

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None):
        self._tables: dict[str, list[dict[str, str]]] = {name: [] for name in TABLES}
        for name, rows in (tables or {}).items():
            self.seed(name, rows)

    def seed(self, table: str, rows: list[dict]) -> None:
        """Append rows without duplicate checks (fixtures, local development)."""
        self._table(table).extend(_to_cells(row) for row in rows)

    def _table(self, table: str) -> list[dict[str, str]]:
        try:
            return self._tables[table]
        except KeyError:
            raise StorageError(f"Unknown table: {table}")

    def _find(self, table: str, row_id: UUID) -> Optional[dict[str, str]]:
        key = str(row_id)
        for cells in self._table(table):
            if cells.get("id") == key:
                return cells
        return None

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict]:
        wanted = _to_cells(filters or {})
        rows = [
            cells for cells in self._table(table)
            if all(cells.get(col, "") == value for col, value in wanted.items())
        ]
        if order_by:
            rows = sorted(rows, key=lambda cells: cells.get(order_by, ""), reverse=descending)
        return [_from_cells(cells) for cells in rows]

    async def get(self, table: str, row_id: UUID) -> Optional[dict]:
        cells = self._find(table, row_id)
        return _from_cells(cells) if cells is not None else None

    async def insert(self, table: str, row: dict) -> dict:
        if "id" not in row or row["id"] is None:
            raise StorageError(f"Row for {table} has no id")
        if self._find(table, row["id"]) is not None:
            raise DuplicateError(f"Row already exists in {table}: {row['id']}")
        cells = _to_cells(row)
        self._table(table).append(cells)
        return _from_cells(cells)

    async def update(
        self,
        table: str,
        row_id: UUID,
        changes: dict,
        expected: Optional[dict] = None,
    ) -> dict:
        cells = self._find(table, row_id)
        if cells is None:
            raise NotFoundError(f"Row not found in {table}: {row_id}")
        for col, value in _to_cells(expected or {}).items():
            if cells.get(col, "") != value:
                raise ConflictError(
                    f"{table}.{col} for {row_id} is {cells.get(col)!r}, expected {value!r}"
                )
        cells.update(_to_cells(changes))
        return _from_cells(cells)

    async def delete(self, table: str, row_id: UUID) -> bool:
        rows = self._table(table)
        key = str(row_id)
        for idx, cells in enumerate(rows):
            if cells.get("id") == key:
                del rows[idx]
                return True
        return False


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
