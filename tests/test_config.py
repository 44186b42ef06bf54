"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from sitebooks.config import AppSettings, GoogleSheetsSettings, validate_all_settings
from sitebooks.services.storage import TABLES


def test_memory_backend_needs_no_sheets_credentials(monkeypatch):
    """Test the in-memory backend validates without Google settings."""
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
    assert validate_all_settings() == {"app": True}


def test_missing_sheets_settings_reported(monkeypatch):
    """Test the Sheets backend reports missing credentials instead of raising."""
    monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
    monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
    monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)

    results = validate_all_settings()
    assert results["google_sheets"] is False
    assert "google_sheets_error" in results


def test_invalid_backend_rejected(monkeypatch):
    """Test an unknown storage backend fails app validation."""
    monkeypatch.setenv("STORAGE_BACKEND", "postgres")
    results = validate_all_settings()
    assert results["app"] is False


def test_every_table_has_a_worksheet(tmp_path):
    """Test each logical table maps to a configured worksheet name."""
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    settings = GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="sheet-123",
    )
    names = {table: settings.sheet_name_for(table) for table in TABLES}
    assert names["bank_accounts"] == "BankAccounts"
    assert names["fund_transfers"] == "FundTransfers"
    assert len(set(names.values())) == len(TABLES)


@pytest.mark.parametrize("level", ["debug", "VERBOSE"])
def test_log_level_must_be_known(monkeypatch, level):
    """Test log levels are checked against the standard names."""
    monkeypatch.setenv("LOG_LEVEL", level)
    with pytest.raises(ValidationError):
        AppSettings()


def test_debug_mode_forces_debug_logging(monkeypatch):
    """Test debug mode overrides the configured log level."""
    monkeypatch.delenv("DEBUG_MODE", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    assert AppSettings().effective_log_level == "WARNING"

    monkeypatch.setenv("DEBUG_MODE", "true")
    assert AppSettings().effective_log_level == "DEBUG"
