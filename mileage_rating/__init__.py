from .config import RatingConfig
from .exceptions import InvalidInputError
from .models.tier import DEFAULT_TIER_TABLE, TierTable
from .services.allowance_service import assess_km_usage, calculate_allowed_km
from .services.common import rental_days
from .services.engine import RatingEngine
from .services.overage_service import calculate_overage_charges, calculate_overage_rate, compute_km_overage
from .services.tier_service import get_customer_tier_info, get_tier_progress, resolve_tier


def create_engine(config: RatingConfig | None = None, tiers: TierTable | None = None) -> RatingEngine:
    """Build a rating engine; settings come from the environment unless given."""
    return RatingEngine(tiers=tiers or DEFAULT_TIER_TABLE, config=config or RatingConfig.from_env())


__all__ = [
    "InvalidInputError",
    "RatingConfig",
    "RatingEngine",
    "TierTable",
    "assess_km_usage",
    "calculate_allowed_km",
    "calculate_overage_charges",
    "calculate_overage_rate",
    "compute_km_overage",
    "create_engine",
    "get_customer_tier_info",
    "get_tier_progress",
    "rental_days",
    "resolve_tier",
]
