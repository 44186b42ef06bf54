"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the initial storage backend because:
1. The office can view and export the books directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for one business's books)
- No transactions: compare-and-swap is a read-check-write, and multi-step
  writes are made consistent by the ledger's compensation logic
- Limited query capabilities (we filter in Python)

Each logical table lives in its own worksheet. Row 1 holds the column
names; values are written RAW so amounts keep their exact decimal text.
"""

from typing import Any, Optional
from uuid import UUID

import gspread
from gspread.utils import rowcol_to_a1
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from sitebooks.config import get_settings
from sitebooks.models.audit import AUDIT_COLUMNS, AuditEvent
from sitebooks.services.storage.interface import (
    BANK_ACCOUNTS,
    CREDITS,
    EXPENSES,
    FUND_TRANSFERS,
    PROFILES,
    SITES,
    AuditStorageInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    TableStoreInterface,
    normalize_value,
)


logger = structlog.get_logger(__name__)


# Column layout used when a worksheet has to be created
TABLE_COLUMNS = {
    SITES: ["id", "site_name"],
    EXPENSES: ["id", "site_id", "amount", "payment_method", "bank_account_id", "date", "description"],
    CREDITS: ["id", "site_id", "amount", "payment_method", "bank_account_id", "date", "description"],
    BANK_ACCOUNTS: ["id", "account_name", "balance"],
    FUND_TRANSFERS: [
        "id",
        "from_account_id",
        "to_account_id",
        "amount",
        "date",
        "description",
        "created_by",
        "created_at",
    ],
    PROFILES: ["id", "role"],
}


def _status_code(exc: Exception) -> Optional[int]:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


def _is_transient(exc: BaseException) -> bool:
    """Rate limits and server errors are worth another attempt."""
    code = _status_code(exc)
    return code == 429 or (code is not None and code >= 500)


def _translate(exc: Exception, action: str) -> StorageError:
    code = _status_code(exc)
    if code in (401, 403):
        return PermissionDeniedError(f"Permission denied while trying to {action}: {exc}")
    return StorageError(f"Failed to {action}: {exc}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a logical table."""
        if table not in TABLE_COLUMNS:
            raise StorageError(f"Unknown table: {table}")
        return self._get_or_create_sheet(
            self._settings.sheet_name_for(table),
            TABLE_COLUMNS[table],
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTableStore(TableStoreInterface):
    """
    Google Sheets implementation of the table store.

    Reads are retried on rate limits and server errors. Writes are not:
    a retried append could land twice.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_sheet(self, table: str) -> tuple[gspread.Worksheet, list[str], list[list[str]]]:
        sheet = self._client.get_table_sheet(table)
        values = sheet.get_all_values()
        if not values:
            return sheet, list(TABLE_COLUMNS[table]), []
        return sheet, values[0], values[1:]

    def _load(self, table: str, action: str) -> tuple[gspread.Worksheet, list[str], list[list[str]]]:
        try:
            return self._read_sheet(table)
        except StorageError:
            raise
        except Exception as e:
            raise _translate(e, action) from e

    @staticmethod
    def _row_to_dict(header: list[str], row: list[str]) -> dict:
        """Map cells onto column names; missing trailing cells read as None."""
        result = {}
        for idx, column in enumerate(header):
            value = row[idx] if idx < len(row) else ""
            result[column] = value if value != "" else None
        return result

    @staticmethod
    def _find_index(rows: list[list[str]], row_id: UUID) -> Optional[int]:
        """1-based sheet row number of row_id (row 1 is the header)."""
        key = str(row_id)
        for idx, row in enumerate(rows, start=2):
            if row and row[0] == key:
                return idx
        return None

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict]:
        _, header, rows = self._load(table, f"read {table}")
        wanted = {col: normalize_value(value) for col, value in (filters or {}).items()}

        results = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            record = self._row_to_dict(header, row)
            if all(normalize_value(record.get(col)) == value for col, value in wanted.items()):
                results.append(record)

        if order_by:
            results.sort(key=lambda r: normalize_value(r.get(order_by)), reverse=descending)
        return results

    async def get(self, table: str, row_id: UUID) -> Optional[dict]:
        _, header, rows = self._load(table, f"read {table}")
        idx = self._find_index(rows, row_id)
        if idx is None:
            return None
        return self._row_to_dict(header, rows[idx - 2])

    async def insert(self, table: str, row: dict) -> dict:
        if row.get("id") is None:
            raise StorageError(f"Row for {table} has no id")
        sheet, header, rows = self._load(table, f"insert into {table}")
        unknown = set(row) - set(header)
        if unknown:
            raise StorageError(f"Unknown columns for {table}: {sorted(unknown)}")
        if self._find_index(rows, row.get("id")) is not None:
            raise DuplicateError(f"Row already exists in {table}: {row.get('id')}")

        cells = [normalize_value(row.get(col)) for col in header]
        try:
            sheet.append_row(cells, value_input_option="RAW")
        except Exception as e:
            raise _translate(e, f"insert into {table}") from e

        logger.debug("row_inserted", table=table, row_id=str(row.get("id")))
        return self._row_to_dict(header, cells)

    async def update(
        self,
        table: str,
        row_id: UUID,
        changes: dict,
        expected: Optional[dict] = None,
    ) -> dict:
        sheet, header, rows = self._load(table, f"update {table}")
        idx = self._find_index(rows, row_id)
        if idx is None:
            raise NotFoundError(f"Row not found in {table}: {row_id}")
        unknown = set(changes) - set(header)
        if unknown:
            raise StorageError(f"Unknown columns for {table}: {sorted(unknown)}")

        current = self._row_to_dict(header, rows[idx - 2])
        for col, value in (expected or {}).items():
            if normalize_value(current.get(col)) != normalize_value(value):
                raise ConflictError(
                    f"{table}.{col} for {row_id} is {current.get(col)!r}, expected {value!r}"
                )

        cells = [
            {
                "range": rowcol_to_a1(idx, header.index(col) + 1),
                "values": [[normalize_value(value)]],
            }
            for col, value in changes.items()
        ]
        try:
            # update_cell would send USER_ENTERED and let Sheets reparse amounts
            sheet.batch_update(cells, value_input_option="RAW")
        except Exception as e:
            raise _translate(e, f"update {table}") from e

        for col, value in changes.items():
            current[col] = normalize_value(value) or None
        return current

    async def delete(self, table: str, row_id: UUID) -> bool:
        sheet, _, rows = self._load(table, f"delete from {table}")
        idx = self._find_index(rows, row_id)
        if idx is None:
            return False
        try:
            sheet.delete_rows(idx)
        except Exception as e:
            raise _translate(e, f"delete from {table}") from e
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except ValueError:
                # Hand-edited rows in the sheet are not fatal for reads
                logger.warning("audit_row_unreadable", event_id=row[0])
        return events

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append(event)
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
