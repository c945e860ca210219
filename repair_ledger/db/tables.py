"""SQLAlchemy table definitions for products and repairs."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

from repair_ledger.models import RepairStatus

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores datetimes as UTC and always returns them timezone-aware."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Product(Base):
    """Product model."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    brand = Column(String(150))
    serial = Column(String(100), nullable=False, unique=True, index=True)
    purchase_date = Column(Date, nullable=False)
    warranty_months = Column(Integer, nullable=False, default=24)
    retailer = Column(String(150))
    price = Column(Numeric(12, 2, asdecimal=False))

    repairs = relationship(
        "Repair",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Repair.opened_at.desc()",
    )

    def __repr__(self):
        return f'<Product(id={self.id}, serial="{self.serial}", name="{self.name}")>'


class Repair(Base):
    """Repair model."""

    __tablename__ = "repairs"
    __table_args__ = (
        Index("ix_repairs_product_status", "product_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum(
            RepairStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=RepairStatus.OPEN,
    )
    opened_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    closed_at = Column(UTCDateTime)
    cost = Column(Numeric(12, 2, asdecimal=False))
    notes = Column(Text)
    # Consumer chose repair under the legal guarantee, unlocking the right-to-repair extension
    consumer_opted_for_repair = Column(Boolean, nullable=False, default=False)

    product = relationship("Product", back_populates="repairs")

    def __repr__(self):
        return f'<Repair(id={self.id}, product_id={self.product_id}, status="{self.status}")>'
