"""
Tests for the Warranty Ledger MCP tools.
"""

import pytest
from datetime import datetime, timedelta, timezone
from dateutil.relativedelta import relativedelta

from repair_ledger.compute.warranty import utc_today
from repair_ledger.db import LedgerRepository
from repair_ledger.models import ProductCreateRequest, RepairCreateRequest, RepairStatus
from repair_ledger.servers import mcp_server
from repair_ledger.servers.mcp_server import (
    get_repair_summary,
    get_warranty_status,
    list_expiring_products,
)


@pytest.fixture
def ledger(database, evaluator):
    """Bind the MCP tools to the test database."""
    mcp_server.configure(database, evaluator)
    yield database
    mcp_server._database = None
    mcp_server._evaluator = None


def add_product(database, serial: str, purchase_date, warranty_months: int = 24, repair: dict = None) -> int:
    with database.session_scope() as session:
        repository = LedgerRepository(session)
        product = repository.add_product(
            ProductCreateRequest(name=f"Product {serial}", serial=serial, purchase_date=purchase_date, warranty_months=warranty_months),
            24
        )
        if repair:
            created = repository.add_repair(
                RepairCreateRequest(product_id=product.id, consumer_opted_for_repair=repair["opted"]),
                repair["closed_at"] - timedelta(days=7)
            )
            created.status = RepairStatus.FIXED
            created.closed_at = repair["closed_at"]
        return product.id


class TestWarrantyStatusTool:
    """Tests for get_warranty_status."""

    def test_unknown_serial(self, ledger):
        result = get_warranty_status("SN-NOPE")

        assert result["status"] == "error"
        assert result["error_code"] == "PRODUCT_NOT_FOUND"

    def test_active_warranty(self, ledger):
        purchase_date = utc_today() - relativedelta(months=3)
        add_product(ledger, "SN-ACTIVE", purchase_date, 12)

        result = get_warranty_status("SN-ACTIVE")

        assert result["status"] == "ok"
        data = result["data"]
        assert data["warranty_active"] is True
        assert data["warranty_expiry"] == (purchase_date + relativedelta(months=12)).isoformat()
        assert data["extended_by_repair"] is False

    def test_extended_by_repair(self, ledger):
        """Test a consumer-opted repair shows as an extension."""
        closed_at = datetime.now(timezone.utc) - timedelta(days=5)
        add_product(
            ledger,
            "SN-EXT",
            utc_today() - relativedelta(months=30),
            repair={"opted": True, "closed_at": closed_at}
        )

        data = get_warranty_status("SN-EXT")["data"]

        assert data["warranty_active"] is True
        assert data["extended_by_repair"] is True
        assert data["warranty_expiry"] == (closed_at.date() + relativedelta(months=12)).isoformat()


class TestExpiringTool:
    """Tests for list_expiring_products."""

    def test_lists_expiring(self, ledger):
        add_product(ledger, "SN-SOON", utc_today() + timedelta(days=7) - relativedelta(months=24))
        add_product(ledger, "SN-LATER", utc_today())

        result = list_expiring_products(days=30)

        assert result["status"] == "ok"
        serials = [entry["product"]["serial"] for entry in result["data"]["products"]]
        assert serials == ["SN-SOON"]

    def test_rejects_non_positive_days(self, ledger):
        result = list_expiring_products(days=0)

        assert result["status"] == "error"
        assert result["error_code"] == "INVALID_DAYS"


class TestSummaryTool:
    """Tests for get_repair_summary."""

    def test_summary(self, ledger):
        add_product(
            ledger,
            "SN-FIXED",
            utc_today() - relativedelta(months=30),
            repair={"opted": False, "closed_at": datetime.now(timezone.utc) - timedelta(days=1)}
        )

        result = get_repair_summary()

        assert result["status"] == "ok"
        assert result["data"]["counts_by_status"]["Fixed"] == 1
        assert result["data"]["average_days_open"] == pytest.approx(7.0)
