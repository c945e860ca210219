"""Warranty Ledger MCP Server - FastMCP HTTP

Exposes warranty lookups over the ledger database as MCP tools.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import FastMCP

from repair_ledger.config import config
from repair_ledger.compute.reports import build_summary, find_expiring
from repair_ledger.compute.warranty import WarrantyEvaluator
from repair_ledger.db import LedgerDatabase, LedgerRepository
from repair_ledger.models import RepairResponse

logger = logging.getLogger(__name__)

mcp = FastMCP("warranty-ledger")

_database: Optional[LedgerDatabase] = None
_evaluator: Optional[WarrantyEvaluator] = None


def configure(database: LedgerDatabase, evaluator: Optional[WarrantyEvaluator] = None) -> None:
    """Bind the tools to a database and evaluator."""
    global _database, _evaluator
    _database = database
    _evaluator = evaluator or WarrantyEvaluator(config.warranty)


def _ledger() -> LedgerDatabase:
    global _database
    if _database is None:
        logger.info("Initializing ledger database for MCP tools...")
        _database = LedgerDatabase(config.database_url)
        _database.create_schema()
    return _database


def _warranty_evaluator() -> WarrantyEvaluator:
    global _evaluator
    if _evaluator is None:
        _evaluator = WarrantyEvaluator(config.warranty)
    return _evaluator


def get_warranty_status(serial_number: str) -> dict:
    """Get warranty coverage for a product serial number.

    Returns product details, the expiration date (including any right-to-repair
    extension from consumer-opted repairs) and whether the product is covered today.
    """
    evaluator = _warranty_evaluator()

    with _ledger().session_scope() as session:
        repository = LedgerRepository(session)
        product = repository.get_product_by_serial(serial_number)
        if product is None:
            return {
                "status": "error",
                "error_code": "PRODUCT_NOT_FOUND",
                "message": f"Product with serial number {serial_number} not found."
            }
        history = repository.history(product)

    today = evaluator.today()
    window = evaluator.evaluate(history.product, history.repairs, today)
    base_expiry = evaluator.expiration(history.product)

    return {
        "status": "ok",
        "data": {
            "product_id": history.product.id,
            "serial_number": history.product.serial,
            "product_name": history.product.name,
            "purchase_date": history.product.purchase_date.isoformat(),
            "warranty_months": history.product.warranty_months,
            "warranty_expiry": window.expires_on.isoformat(),
            "warranty_active": window.in_warranty,
            "extended_by_repair": window.expires_on > base_expiry,
            "description": window.reason,
            "reference_date": today.isoformat()
        }
    }


def list_expiring_products(days: int = 30) -> dict:
    """List products whose warranty ends within the given number of days."""
    if days <= 0:
        return {
            "status": "error",
            "error_code": "INVALID_DAYS",
            "message": "Days must be greater than zero."
        }

    evaluator = _warranty_evaluator()
    with _ledger().session_scope() as session:
        histories = LedgerRepository(session).product_histories()

    expiring = find_expiring(histories, days, evaluator.today(), evaluator)
    return {
        "status": "ok",
        "data": {
            "days": days,
            "products": [entry.model_dump(mode="json") for entry in expiring]
        }
    }


def get_repair_summary() -> dict:
    """Summarize repairs by status, average days open and products expiring soon."""
    evaluator = _warranty_evaluator()
    with _ledger().session_scope() as session:
        repository = LedgerRepository(session)
        histories = repository.product_histories()
        repairs = [RepairResponse.model_validate(repair) for repair in repository.list_repairs()]

    summary = build_summary(
        histories,
        repairs,
        datetime.now(timezone.utc),
        evaluator,
        config.expiring_window_days
    )
    return {"status": "ok", "data": summary.model_dump(mode="json")}


mcp.tool(get_warranty_status)
mcp.tool(list_expiring_products)
mcp.tool(get_repair_summary)


if __name__ == "__main__":
    mcp.run(transport="http", host=config.host, port=config.mcp_port)
