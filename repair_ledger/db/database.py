"""
Ledger Database Integration
===========================
Connection handling and queries for products and repairs.

This module handles:
- Engine and session lifecycle (commit on success, rollback on error)
- Product intake and lookup
- Repair creation and listing
- Snapshots of products with their repair history
"""

import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, event, or_, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from repair_ledger.models import (
    ProductCreateRequest,
    ProductHistory,
    ProductResponse,
    RepairCreateRequest,
    RepairResponse,
    RepairStatus,
)
from repair_ledger.compute.warranty import as_utc
from .tables import Base, Product, Repair

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite file databases get their directory created; in-memory SQLite
    shares a single connection so every session sees the same data.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(database_url)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    else:
        directory = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(directory, exist_ok=True)

    engine = create_engine(database_url, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class LedgerDatabase:
    """Owns the engine and hands out sessions."""

    def __init__(self, database_url: str):
        """
        Initialize database connection.

        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        self.engine = build_engine(database_url)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )

    def create_schema(self) -> None:
        """Create tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Database schema ready - url={self.engine.url.render_as_string(hide_password=True)}")

    def get_session(self) -> Session:
        """Get a new database session."""
        session = self.SessionLocal()
        logger.debug(f"Created new session: {id(session)}")
        return session

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session that commits when the block succeeds and rolls back otherwise."""
        session = self.get_session()
        try:
            yield session
            logger.debug("Committing session")
            session.commit()
        except Exception:
            logger.debug("Rolling back session")
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


class LedgerRepository:
    """Queries over one session."""

    def __init__(self, session: Session):
        self.session = session

    # Products

    def serial_exists(self, serial: str) -> bool:
        stmt = select(Product.id).where(Product.serial == serial).limit(1)
        return self.session.execute(stmt).first() is not None

    def add_product(self, request: ProductCreateRequest, default_months: int) -> Product:
        """Insert a product; a missing warranty length takes the configured default."""
        product = Product(
            name=request.name,
            brand=request.brand,
            serial=request.serial,
            purchase_date=request.purchase_date,
            warranty_months=request.warranty_months or default_months,
            retailer=request.retailer,
            price=request.price
        )
        self.session.add(product)
        self.session.flush()
        return product

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def get_product_by_serial(self, serial: str) -> Optional[Product]:
        stmt = select(Product).where(Product.serial == serial.strip())
        return self.session.execute(stmt).scalar_one_or_none()

    def find_products(self, query: Optional[str] = None) -> List[Product]:
        """Products ordered by name, optionally filtered by a name or serial substring."""
        stmt = select(Product).order_by(Product.name)
        if query and query.strip():
            like = f"%{query.strip()}%"
            stmt = stmt.where(or_(Product.name.ilike(like), Product.serial.ilike(like)))
        return list(self.session.execute(stmt).scalars())

    def delete_product(self, product: Product) -> None:
        self.session.delete(product)
        self.session.flush()

    # Repairs

    def add_repair(self, request: RepairCreateRequest, opened_at: datetime) -> Repair:
        """Insert a repair in the Open state."""
        repair = Repair(
            product_id=request.product_id,
            status=RepairStatus.OPEN,
            opened_at=as_utc(request.opened_at or opened_at),
            cost=request.cost,
            notes=request.notes,
            consumer_opted_for_repair=request.consumer_opted_for_repair
        )
        self.session.add(repair)
        self.session.flush()
        return repair

    def get_repair(self, repair_id: int) -> Optional[Repair]:
        return self.session.get(Repair, repair_id)

    def list_repairs(self, status: Optional[RepairStatus] = None, product_id: Optional[int] = None) -> List[Repair]:
        """Repairs, newest opened first."""
        stmt = select(Repair).order_by(Repair.opened_at.desc(), Repair.id.desc())
        if status is not None:
            stmt = stmt.where(Repair.status == status)
        if product_id is not None:
            stmt = stmt.where(Repair.product_id == product_id)
        return list(self.session.execute(stmt).scalars())

    # Snapshots

    def history(self, product: Product) -> ProductHistory:
        return ProductHistory(
            product=ProductResponse.model_validate(product),
            repairs=[RepairResponse.model_validate(repair) for repair in product.repairs]
        )

    def product_histories(self) -> List[ProductHistory]:
        """Every product with its repairs, loaded in two queries."""
        stmt = select(Product).options(selectinload(Product.repairs)).order_by(Product.name)
        return [self.history(product) for product in self.session.execute(stmt).scalars()]
