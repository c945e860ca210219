"""Compute Package - Deterministic warranty and repair calculations."""

from .warranty import (
    WarrantyEvaluator,
    compute_expiration,
    evaluate,
    is_expiring_within,
    get_warranty_evaluator,
)
from .repair_status import TransitionResult, transition, validate_initial_status

__all__ = [
    "WarrantyEvaluator",
    "compute_expiration",
    "evaluate",
    "is_expiring_within",
    "get_warranty_evaluator",
    "TransitionResult",
    "transition",
    "validate_initial_status",
]
