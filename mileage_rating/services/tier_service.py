"""
Customer loyalty tiers.

A customer's tier depends only on their number of completed rentals; the
tier then decides the daily km bonus, the overage rate and the overage
discount.
"""

from decimal import ROUND_HALF_UP, Decimal

from ..models.customer import CustomerRentalFacts
from ..models.results import TierInfo, TierProgress
from ..models.tier import DEFAULT_TIER_TABLE, Tier, TierTable
from .common import require_int

HUNDRED = Decimal("100")


def resolve_tier(total_rentals: int, table: TierTable = DEFAULT_TIER_TABLE) -> Tier:
    """
    Map a rental count to its tier.

    Negative counts are rejected with InvalidInputError rather than clamped.
    """
    require_int(total_rentals, "total_rentals", minimum=0)
    return table.resolve(total_rentals)


def get_tier_progress(total_rentals: int, table: TierTable = DEFAULT_TIER_TABLE) -> TierProgress:
    """How far a customer is from the next tier."""
    current = resolve_tier(total_rentals, table)
    nxt = table.next_tier(current)

    if nxt is None:
        return TierProgress(
            current_tier=current.key,
            current_tier_name=current.name,
            current_rentals=total_rentals,
            next_tier=None,
            next_tier_name=None,
            rentals_to_next_tier=0,
            progress_percentage=HUNDRED,
            is_max_tier=True,
        )

    span = nxt.min_rentals - current.min_rentals
    pct = HUNDRED * (total_rentals - current.min_rentals) / span
    pct = min(HUNDRED, max(Decimal("0"), pct)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return TierProgress(
        current_tier=current.key,
        current_tier_name=current.name,
        current_rentals=total_rentals,
        next_tier=nxt.key,
        next_tier_name=nxt.name,
        rentals_to_next_tier=nxt.min_rentals - total_rentals,
        progress_percentage=pct,
        is_max_tier=False,
    )


def get_customer_tier_info(customer, table: TierTable = DEFAULT_TIER_TABLE) -> TierInfo:
    """Tier, benefits and progress for a customer record (dict, object or CustomerRentalFacts)."""
    facts = CustomerRentalFacts.from_record(customer)
    return TierInfo(
        customer_id=facts.customer_id,
        customer_name=facts.full_name,
        total_rentals=facts.total_rentals,
        lifetime_value=facts.lifetime_value,
        apply_tier_discount=facts.apply_tier_discount,
        tier=resolve_tier(facts.total_rentals, table),
        progress=get_tier_progress(facts.total_rentals, table),
    )
