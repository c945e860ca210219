"""
Report calculations over product and repair snapshots.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from repair_ledger.compute.warranty import WarrantyEvaluator, as_utc, days_remaining
from repair_ledger.models import (
    ExpiringProductResponse,
    ProductHistory,
    RepairResponse,
    RepairStatus,
    SummaryReportResponse,
)

SECONDS_PER_DAY = 86400.0


def find_expiring(
    histories: Iterable[ProductHistory],
    days: int,
    reference_date: date,
    evaluator: WarrantyEvaluator
) -> List[ExpiringProductResponse]:
    """
    Products whose coverage ends within `days` of the reference date.

    Sorted by days remaining, then product name.
    """
    expiring: List[Tuple[int, str, ExpiringProductResponse]] = []

    for history in histories:
        if not evaluator.is_expiring_within(history.product, days, history.repairs, reference_date):
            continue
        expires_on = evaluator.expiration(history.product, history.repairs)
        remaining = days_remaining(expires_on, reference_date)
        entry = ExpiringProductResponse(product=history.product, days_remaining=remaining)
        expiring.append((remaining, history.product.name, entry))

    expiring.sort(key=lambda item: (item[0], item[1]))
    return [entry for _, _, entry in expiring]


def average_days_open(repairs: Iterable[RepairResponse], now: datetime) -> Optional[float]:
    """Mean time repairs have been open, in days. Open repairs count up to now."""
    durations = [
        (as_utc(repair.closed_at or now) - as_utc(repair.opened_at)).total_seconds() / SECONDS_PER_DAY
        for repair in repairs
    ]
    if not durations:
        return None
    return sum(durations) / len(durations)


def build_summary(
    histories: Iterable[ProductHistory],
    repairs: Iterable[RepairResponse],
    now: datetime,
    evaluator: WarrantyEvaluator,
    window_days: int = 30
) -> SummaryReportResponse:
    """
    Counts repairs by status, averages their time open and counts products
    expiring within the window.
    """
    repairs = list(repairs)
    counts = {status.value: 0 for status in RepairStatus}
    for repair in repairs:
        counts[RepairStatus(repair.status).value] += 1

    today = as_utc(now).date()
    expiring = sum(
        1
        for history in histories
        if evaluator.is_expiring_within(history.product, window_days, history.repairs, today)
    )

    return SummaryReportResponse(
        counts_by_status=counts,
        average_days_open=average_days_open(repairs, now),
        expiring_products=expiring
    )
