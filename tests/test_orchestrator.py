"""Tests for TransferFlow and the component factory."""

import pytest
from decimal import Decimal
from uuid import uuid4

from sitebooks.models.audit import AuditEventType
from sitebooks.orchestrator import DashboardFlow, TransferFlow, create_app_components
from sitebooks.services import SessionService
from sitebooks.services.storage import BANK_ACCOUNTS, FUND_TRANSFERS, PermissionDeniedError


@pytest.fixture
def flow(ledger, audit_logger):
    return TransferFlow(ledger, audit_logger)


class TestSubmitTransfer:
    """Recording transfers from form input."""

    @pytest.mark.asyncio
    async def test_success_refreshes_listing(self, flow, admin, bank_a_id, bank_b_id):
        """Test a recorded transfer comes back with the refreshed history."""
        result = await flow.submit_transfer(admin, str(bank_a_id), str(bank_b_id), "300")

        assert result.success
        assert result.message == "Fund transfer recorded successfully"
        assert len(result.transfers) == 1
        balances = {a.account_name: a.balance for a in result.bank_accounts}
        assert balances == {"Bank-A": Decimal("700.00"), "Bank-B": Decimal("800.00")}

    @pytest.mark.asyncio
    async def test_same_account_is_invalid(self, flow, store, admin, bank_a_id, audit_storage):
        """Test validation failures touch nothing and are audited."""
        result = await flow.submit_transfer(admin, bank_a_id, bank_a_id, "100")

        assert not result.success
        assert result.error_kind == "validation"
        assert result.title == "Invalid Transfer"
        assert store.calls == []
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSFER_REJECTED

    @pytest.mark.asyncio
    async def test_missing_amount_lists_issue(self, flow, admin, bank_a_id, bank_b_id):
        """Test each bad field is reported."""
        result = await flow.submit_transfer(admin, bank_a_id, bank_b_id, None)
        assert result.error_kind == "validation"
        assert any(issue.startswith("amount") for issue in result.issues)

    @pytest.mark.asyncio
    async def test_out_of_range_amount_is_invalid(self, flow, store, admin, bank_a_id, bank_b_id):
        """Test an amount too large for cent precision is a validation result."""
        result = await flow.submit_transfer(admin, bank_a_id, bank_b_id, "1e30")

        assert result.error_kind == "validation"
        assert any("out of range" in issue for issue in result.issues)
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_anonymous_user(self, flow, store, bank_a_id, bank_b_id):
        """Test a request without a user is rejected up front."""
        result = await flow.submit_transfer(None, bank_a_id, bank_b_id, "10")
        assert result.error_kind == "validation"
        assert result.message == "Not authenticated"
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, flow, store, admin, bank_a_id, bank_b_id, audit_storage):
        """Test a refused insert becomes a permission result."""
        store.fail("insert", FUND_TRANSFERS, error=PermissionDeniedError("row level security"))

        result = await flow.submit_transfer(admin, bank_a_id, bank_b_id, "10")

        assert not result.success
        assert result.error_kind == "permission"
        assert result.transfers == []
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSFER_FAILED

    @pytest.mark.asyncio
    async def test_consistency_failure_is_distinct(
        self, flow, store, admin, bank_a_id, bank_b_id, audit_storage
    ):
        """Test a failed compensation is reported as its own kind."""
        store.fail("update", BANK_ACCOUNTS, when=lambda kw: kw["row_id"] == str(bank_b_id))
        store.fail("delete", FUND_TRANSFERS)

        result = await flow.submit_transfer(admin, bank_a_id, bank_b_id, "10")

        assert result.error_kind == "consistency"
        assert result.title == "Balances Need Attention"
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.details["failed_steps"] == ["remove ledger row"]


class TestDeleteTransfer:
    """Deleting transfers."""

    @pytest.mark.asyncio
    async def test_admin_deletes(self, flow, admin, bank_a_id, bank_b_id):
        """Test an admin delete restores balances and empties the history."""
        created = await flow.submit_transfer(admin, bank_a_id, bank_b_id, "300")
        result = await flow.delete_transfer(admin, created.transfer.id)

        assert result.success
        assert result.message == "Fund transfer deleted successfully"
        assert result.transfers == []
        balances = {a.account_name: a.balance for a in result.bank_accounts}
        assert balances == {"Bank-A": Decimal("1000.00"), "Bank-B": Decimal("500.00")}

    @pytest.mark.asyncio
    async def test_non_admin_is_refused_before_store(
        self, flow, store, admin, staff, bank_a_id, bank_b_id, audit_storage
    ):
        """Test users without the admin role cannot delete."""
        created = await flow.submit_transfer(admin, bank_a_id, bank_b_id, "300")
        writes_before = list(store.writes)

        result = await flow.delete_transfer(staff, created.transfer.id)

        assert result.error_kind == "permission"
        assert result.message == "Only administrators can delete fund transfers."
        assert store.writes == writes_before
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSFER_DELETE_DENIED

    @pytest.mark.asyncio
    async def test_unknown_transfer(self, flow, admin):
        """Test deleting a missing transfer reports not found."""
        result = await flow.delete_transfer(admin, uuid4())
        assert result.error_kind == "not_found"

    @pytest.mark.asyncio
    async def test_store_refusal_keeps_transfer(self, flow, store, admin, bank_a_id, bank_b_id):
        """Test a refused row delete leaves the transfer listed."""
        created = await flow.submit_transfer(admin, bank_a_id, bank_b_id, "300")
        store.fail("delete", FUND_TRANSFERS, error=PermissionDeniedError("admins only"))

        result = await flow.delete_transfer(admin, created.transfer.id)

        assert result.error_kind == "permission"
        assert len(result.transfers) == 1


class TestLoad:
    """Transfer page load."""

    @pytest.mark.asyncio
    async def test_load(self, flow):
        """Test the page loads accounts and an empty history."""
        result = await flow.load()
        assert result.success
        assert [a.account_name for a in result.bank_accounts] == ["Bank-A", "Bank-B"]
        assert result.transfers == []

    @pytest.mark.asyncio
    async def test_load_failure(self, flow, store, audit_storage):
        """Test a failed fetch is reported, not raised."""
        store.fail("select", BANK_ACCOUNTS)
        result = await flow.load()
        assert not result.success
        assert result.error_kind == "store"
        assert audit_storage.events[-1].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR


class TestCreateAppComponents:
    """Factory wiring."""

    def test_in_memory_components(self, monkeypatch):
        """Test the factory builds working components without Google credentials."""
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        dashboard_flow, transfer_flow, session_service, sheets_client = create_app_components(
            use_storage=False,
        )
        assert isinstance(dashboard_flow, DashboardFlow)
        assert isinstance(transfer_flow, TransferFlow)
        assert isinstance(session_service, SessionService)
        assert sheets_client is None

    def test_memory_backend_setting(self, monkeypatch):
        """Test STORAGE_BACKEND=memory selects the in-memory store."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        *_, sheets_client = create_app_components()
        assert sheets_client is None

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, monkeypatch):
        """Test a fresh in-memory dashboard has just the cash row."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        dashboard_flow, *_ = create_app_components()
        summary, ok, _ = await dashboard_flow.load()
        assert ok
        assert [a.account_name for a in summary.account_summaries] == ["Cash"]
