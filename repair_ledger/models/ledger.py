"""
Ledger Models

Pydantic models for products, repairs and the payloads exchanged with the
API and tool servers.
"""

from datetime import date, datetime
from typing import Optional, List, Dict
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class RepairStatus(str, Enum):
    """Repair lifecycle states."""
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    FIXED = "Fixed"
    REJECTED = "Rejected"


def _strip_optional(value):
    if isinstance(value, str):
        return value.strip()
    return value


class ProductCreateRequest(BaseModel):
    """Product intake payload."""
    name: str = Field(max_length=200)
    serial: str = Field(max_length=100)
    purchase_date: date
    warranty_months: Optional[int] = Field(default=None, gt=0)
    brand: Optional[str] = Field(default=None, max_length=150)
    retailer: Optional[str] = Field(default=None, max_length=150)
    price: Optional[float] = Field(default=None, ge=0)

    @field_validator("name", "serial", "brand", "retailer", mode="before")
    @classmethod
    def _trim(cls, value):
        return _strip_optional(value)

    @field_validator("name", "serial")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be blank")
        return value


class ProductResponse(BaseModel):
    """Product as returned to callers."""
    id: int
    name: str
    brand: Optional[str] = None
    serial: str
    purchase_date: date
    warranty_months: int = 24
    retailer: Optional[str] = None
    price: Optional[float] = None

    class Config:
        from_attributes = True


class RepairCreateRequest(BaseModel):
    """Repair intake payload. Status may be omitted; only Open is accepted."""
    product_id: int = Field(ge=1)
    opened_at: Optional[datetime] = None
    status: Optional[RepairStatus] = None
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    consumer_opted_for_repair: bool = False

    @field_validator("notes", mode="before")
    @classmethod
    def _trim(cls, value):
        return _strip_optional(value)


class RepairStatusUpdateRequest(BaseModel):
    """Requested status transition."""
    status: RepairStatus


class RepairResponse(BaseModel):
    """Repair as returned to callers."""
    id: int
    product_id: int
    status: RepairStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None
    cost: Optional[float] = None
    notes: Optional[str] = None
    consumer_opted_for_repair: bool = False

    class Config:
        from_attributes = True


class WarrantyWindow(BaseModel):
    """Outcome of a warranty evaluation."""
    in_warranty: bool
    expires_on: date
    reason: str


class ExpiringProductResponse(BaseModel):
    """A product whose coverage ends soon."""
    product: ProductResponse
    days_remaining: int


class SummaryReportResponse(BaseModel):
    """Repair and warranty summary."""
    counts_by_status: Dict[str, int] = Field(default_factory=dict)
    average_days_open: Optional[float] = None
    expiring_products: int = 0


class ProductHistory(BaseModel):
    """Snapshot of a product together with its repairs."""
    product: ProductResponse
    repairs: List[RepairResponse] = Field(default_factory=list)
