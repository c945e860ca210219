"""
Warranty Repair Ledger - Main Entry Point

Runs the ledger HTTP API (default), the warranty MCP server, or seeds the
configured database with demo products and repairs.
"""

import sys
import logging
from datetime import date, datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

from repair_ledger.config import config

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)
logger = logging.getLogger(__name__)


# =============================================================================
# DEMO DATA - Seeded with --seed
# =============================================================================

def demo_products(today: date) -> list:
    """Products at different points of their warranty window."""
    return [
        {
            "name": "ProLine XE Heat Pump Water Heater",
            "brand": "ProLine",
            "serial": "HPWH-DEMO-0001",
            "purchase_date": today - relativedelta(months=6),
            "warranty_months": 36,
            "retailer": "Home Depot",
            "price": 1899.00
        },
        {
            "name": "Water Softener Pro 5600",
            "brand": "EcoWater",
            "serial": "WS-DEMO-0002",
            "purchase_date": today - relativedelta(months=23),
            "warranty_months": 24,
            "retailer": "Lowe's",
            "price": 649.00
        },
        {
            # Expired, but kept covered by a consumer-opted repair
            "name": "Voltex Hybrid Electric Heat Pump",
            "brand": "AO Smith",
            "serial": "HPWH-DEMO-0003",
            "purchase_date": today - relativedelta(months=30),
            "warranty_months": 24,
            "retailer": "Costco",
            "price": 1499.00,
            "repair": {"notes": "Compressor replaced", "consumer_opted_for_repair": True, "cost": 0.0}
        },
    ]


def seed_demo_data() -> None:
    """Insert demo products and repairs, skipping serials already present."""
    from repair_ledger.compute.repair_status import transition
    from repair_ledger.db import LedgerDatabase, LedgerRepository
    from repair_ledger.models import ProductCreateRequest, RepairCreateRequest, RepairStatus

    database = LedgerDatabase(config.database_url)
    database.create_schema()
    now = datetime.now(timezone.utc)

    with database.session_scope() as session:
        repository = LedgerRepository(session)
        for data in demo_products(now.date()):
            repair_data = data.pop("repair", None)
            if repository.serial_exists(data["serial"]):
                logger.info(f"Skipping existing product - serial={data['serial']}")
                continue

            product = repository.add_product(ProductCreateRequest(**data), config.warranty.default_months)
            logger.info(f"Seeded product - id={product.id}, serial={product.serial}")

            if repair_data:
                repair = repository.add_repair(
                    RepairCreateRequest(product_id=product.id, **repair_data),
                    now - timedelta(days=15)
                )
                closed_at = now - timedelta(days=5)
                for status in (RepairStatus.IN_PROGRESS, RepairStatus.FIXED):
                    result = transition(repair.status, status, closed_at, repair.closed_at)
                    repair.status = result.status
                    repair.closed_at = result.closed_at
                logger.info(f"Seeded repair - id={repair.id}, status={repair.status.value}")


def run_api() -> None:
    import uvicorn
    from repair_ledger.servers.api import create_app

    uvicorn.run(create_app(), host=config.host, port=config.port)


def run_mcp() -> None:
    from repair_ledger.servers.mcp_server import mcp

    mcp.run(transport="http", host=config.host, port=config.mcp_port)


def main():
    """Main entry point."""
    if len(sys.argv) > 1:
        if sys.argv[1] == "--mcp":
            run_mcp()
        elif sys.argv[1] == "--seed":
            seed_demo_data()
        elif sys.argv[1] == "--help":
            print("Usage:")
            print("  python main.py          - Run the ledger HTTP API")
            print("  python main.py --mcp    - Run the warranty MCP server")
            print("  python main.py --seed   - Seed the database with demo data")
            print("  python main.py --help   - Show this help")
        else:
            print(f"Unknown argument: {sys.argv[1]}")
            print("Use --help for usage information")
    else:
        run_api()


if __name__ == "__main__":
    main()
