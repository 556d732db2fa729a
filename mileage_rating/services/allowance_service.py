"""Kilometre allowances: base daily limit plus tier bonus, and usage against it."""

from decimal import ROUND_HALF_UP, Decimal

from ..config import KM_CRITICAL_THRESHOLD, KM_WARNING_THRESHOLD
from ..models.results import AllowanceResult, KmUsage
from ..models.tier import DEFAULT_TIER_TABLE, TierTable
from ..utils.constants import UsageLevel
from .common import require_int
from .tier_service import resolve_tier


def calculate_allowed_km(
        daily_km_limit: int,
        total_days: int,
        total_rentals: int,
        *,
        apply_tier_bonus: bool = True,
        table: TierTable = DEFAULT_TIER_TABLE,
) -> AllowanceResult:
    """
    Total km a contract permits: ``(daily_km_limit + bonus) * total_days``.

    The tier bonus is dropped entirely when ``apply_tier_bonus`` is False,
    whatever tier the customer is in.
    """
    require_int(daily_km_limit, "daily_km_limit", minimum=1)
    require_int(total_days, "total_days", minimum=1)
    tier = resolve_tier(total_rentals, table)

    bonus = tier.km_bonus_per_day if apply_tier_bonus else 0
    total_daily = daily_km_limit + bonus

    return AllowanceResult(
        base_daily_limit=daily_km_limit,
        bonus_km_per_day=bonus,
        total_daily_limit=total_daily,
        total_days=total_days,
        total_km_allowed=total_daily * total_days,
        tier=tier.key,
        tier_name=tier.name,
    )


def assess_km_usage(
        km_driven: int,
        km_allowed: int,
        warning_at: Decimal = KM_WARNING_THRESHOLD,
        critical_at: Decimal = KM_CRITICAL_THRESHOLD,
) -> KmUsage:
    """Percentage of the allowance used and the alert level it falls in."""
    require_int(km_driven, "km_driven", minimum=0)
    require_int(km_allowed, "km_allowed", minimum=1)

    pct = Decimal(100) * km_driven / km_allowed
    if km_driven >= km_allowed:
        level = UsageLevel.EXCEEDED
    elif pct >= critical_at:
        level = UsageLevel.CRITICAL
    elif pct >= warning_at:
        level = UsageLevel.WARNING
    else:
        level = UsageLevel.OK

    return KmUsage(
        km_driven=km_driven,
        km_allowed=km_allowed,
        km_remaining=km_allowed - km_driven,
        percentage_used=pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        level=level,
    )
