"""
Overage billing.

Overage is charged per km driven beyond the contract allowance, at the
customer's tier rate, less the tier discount. All amounts are Decimal.
"""

from decimal import Decimal
from typing import Optional

from ..config import DEFAULT_OVERAGE_RATE
from ..exceptions import InvalidInputError
from ..models.customer import CustomerRentalFacts
from ..models.results import OverageResult
from ..models.tier import DEFAULT_TIER_TABLE, TierTable
from .common import money, require_int, to_decimal
from .tier_service import resolve_tier


def compute_km_overage(km_driven: int, total_km_allowed: int) -> int:
    """Km beyond the allowance, never below zero."""
    require_int(km_driven, "km_driven")
    require_int(total_km_allowed, "total_km_allowed", minimum=0)
    return max(0, km_driven - total_km_allowed)


def calculate_overage_rate(
        customer,
        base_rate=None,
        table: TierTable = DEFAULT_TIER_TABLE,
        default_rate: Decimal = DEFAULT_OVERAGE_RATE,
) -> Decimal:
    """
    Per-km overage rate for a customer.

    - customer opted out of tier pricing: ``base_rate`` when given (zero
      included), else ``default_rate``
    - otherwise: a non-zero ``base_rate``, else the tier's rate
    """
    facts = CustomerRentalFacts.from_record(customer)
    rate = None
    if base_rate is not None:
        rate = to_decimal(base_rate, "base_rate")
        if rate < 0:
            raise InvalidInputError(f"base_rate must not be negative, got {base_rate}")

    if not facts.apply_tier_discount:
        return rate if rate is not None else to_decimal(default_rate, "default_rate")
    if rate:
        return rate
    return resolve_tier(facts.total_rentals, table).overage_rate_per_km


def calculate_overage_charges(
        km_overage: int,
        overage_rate_per_km,
        total_rentals: int,
        *,
        apply_tier_discount: bool = True,
        table: TierTable = DEFAULT_TIER_TABLE,
) -> OverageResult:
    """
    Overage charge breakdown.

    ``discount_amount`` is rounded half-up to cents and
    ``final = base - discount``, so base == discount + final holds exactly.
    No overage gives an all-zero result.
    """
    require_int(km_overage, "km_overage", minimum=0)
    rate = to_decimal(overage_rate_per_km, "overage_rate_per_km")
    if rate < 0:
        raise InvalidInputError(f"overage_rate_per_km must not be negative, got {overage_rate_per_km}")
    tier = resolve_tier(total_rentals, table)

    if km_overage == 0:
        return OverageResult.none()

    base = money(km_overage * rate)
    pct = tier.discount_percentage if apply_tier_discount else 0
    discount = money(base * pct / 100)

    return OverageResult(
        km_overage=km_overage,
        overage_rate_per_km=rate,
        base_overage_charges=base,
        discount_percentage=pct,
        discount_amount=discount,
        final_overage_charges=base - discount,
        tier=tier.key,
        tier_name=tier.name,
    )


def estimate_charges(km_overage: int, rate: Optional[Decimal]) -> Decimal:
    """Undiscounted charge for an in-progress overage, used in alerts."""
    if not rate:
        return money(Decimal("0"))
    return money(km_overage * to_decimal(rate, "rate"))
