"""
Warranty Evaluator

Deterministic warranty calculations:
- Expiration date from purchase date and warranty length
- Right-to-repair extension earned by consumer-opted repairs
- In-warranty status and "expiring soon" checks

All calculations are deterministic: same input → same output. The pure
functions never read the clock; the reference date is always passed in.
"""

from datetime import date, datetime, timezone
from dateutil.relativedelta import relativedelta
from typing import Any, Iterable, Optional

from repair_ledger.config import WarrantyOptions, config
from repair_ledger.models import RepairStatus, WarrantyWindow


def as_utc(moment: datetime) -> datetime:
    """Return a timezone-aware UTC datetime. Naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_today() -> date:
    """Current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


def effective_months(warranty_months: Optional[int], default_months: int) -> int:
    """Warranty length to apply; non-positive or missing lengths fall back to the default."""
    if warranty_months is not None and warranty_months > 0:
        return warranty_months
    return default_months


def extension_candidate(repair: Any, extension_months: int) -> Optional[date]:
    """
    Expiration granted by a single repair, or None when it does not qualify.

    A repair qualifies when the consumer opted for repair, it ended Fixed and
    it has a closed timestamp.
    """
    if not repair.consumer_opted_for_repair:
        return None
    if RepairStatus(repair.status) != RepairStatus.FIXED or repair.closed_at is None:
        return None

    closed_on = as_utc(repair.closed_at).date()
    return closed_on + relativedelta(months=extension_months)


def compute_expiration(
    product: Any,
    repairs: Iterable[Any],
    default_months: int = 24,
    extension_months: int = 12
) -> date:
    """
    Calculate the date warranty coverage ends.

    Args:
        product: Object exposing purchase_date and warranty_months
        repairs: Snapshot of the product's repairs
        default_months: Length used when warranty_months is not positive
        extension_months: Coverage granted from a qualifying repair's closure

    Returns:
        The later of the base expiration and every repair extension
    """
    months = effective_months(product.warranty_months, default_months)
    expires_on = product.purchase_date + relativedelta(months=months)

    for repair in repairs or ():
        candidate = extension_candidate(repair, extension_months)
        if candidate is not None and candidate > expires_on:
            expires_on = candidate

    return expires_on


def describe(in_warranty: bool, expires_on: date) -> str:
    if in_warranty:
        return f"Warranty valid until {expires_on.isoformat()}"
    return f"Warranty expired on {expires_on.isoformat()}"


def evaluate(
    product: Any,
    repairs: Iterable[Any],
    reference_date: date,
    default_months: int = 24,
    extension_months: int = 12
) -> WarrantyWindow:
    """
    Determine whether a product is covered on the reference date.

    The expiration day itself still counts as covered.
    """
    expires_on = compute_expiration(product, repairs, default_months, extension_months)
    in_warranty = reference_date <= expires_on

    return WarrantyWindow(
        in_warranty=in_warranty,
        expires_on=expires_on,
        reason=describe(in_warranty, expires_on)
    )


def remaining_days(expires_on: date, reference_date: date) -> int:
    """Signed number of days between the reference date and expiration."""
    return (expires_on - reference_date).days


def days_remaining(expires_on: date, reference_date: date) -> int:
    """Days of coverage left, never negative."""
    return max(0, remaining_days(expires_on, reference_date))


def is_expiring_within(
    product: Any,
    repairs: Iterable[Any],
    days: int,
    reference_date: date,
    default_months: int = 24,
    extension_months: int = 12
) -> bool:
    """True when coverage ends between the reference date and `days` later. Expired products are excluded."""
    expires_on = compute_expiration(product, repairs, default_months, extension_months)
    remaining = remaining_days(expires_on, reference_date)
    return 0 <= remaining <= days


class WarrantyEvaluator:
    """
    Service class binding the configured warranty options.

    Callers may omit the reference date, in which case the current UTC date
    is used.
    """

    def __init__(self, options: Optional[WarrantyOptions] = None):
        self.options = options or WarrantyOptions()

    @property
    def default_months(self) -> int:
        return self.options.default_months

    @property
    def extension_months(self) -> int:
        return self.options.repair_extension_months

    def today(self) -> date:
        return utc_today()

    def expiration(self, product: Any, repairs: Iterable[Any] = ()) -> date:
        return compute_expiration(product, repairs, self.default_months, self.extension_months)

    def evaluate(
        self,
        product: Any,
        repairs: Iterable[Any] = (),
        reference_date: Optional[date] = None
    ) -> WarrantyWindow:
        return evaluate(
            product,
            repairs,
            reference_date or self.today(),
            self.default_months,
            self.extension_months
        )

    def is_expiring_within(
        self,
        product: Any,
        days: int,
        repairs: Iterable[Any] = (),
        reference_date: Optional[date] = None
    ) -> bool:
        return is_expiring_within(
            product,
            repairs,
            days,
            reference_date or self.today(),
            self.default_months,
            self.extension_months
        )


# Factory function for service discovery
def get_warranty_evaluator(options: Optional[WarrantyOptions] = None) -> WarrantyEvaluator:
    """Factory function to create a WarrantyEvaluator from the global configuration."""
    return WarrantyEvaluator(options or config.warranty)
