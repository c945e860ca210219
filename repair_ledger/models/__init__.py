"""Models Package - Data models for the repair ledger."""

from .ledger import (
    RepairStatus,
    ProductCreateRequest,
    ProductResponse,
    RepairCreateRequest,
    RepairStatusUpdateRequest,
    RepairResponse,
    WarrantyWindow,
    ExpiringProductResponse,
    SummaryReportResponse,
    ProductHistory,
)

__all__ = [
    "RepairStatus",
    "ProductCreateRequest",
    "ProductResponse",
    "RepairCreateRequest",
    "RepairStatusUpdateRequest",
    "RepairResponse",
    "WarrantyWindow",
    "ExpiringProductResponse",
    "SummaryReportResponse",
    "ProductHistory",
]
