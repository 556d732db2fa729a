from __future__ import annotations

import logging
import threading
from typing import Optional

from ..config import RatingConfig
from ..exceptions import InvalidInputError
from ..models.customer import CustomerRentalFacts
from ..models.results import AllowanceResult, KmUsage, MileageAssessment, OverageResult, TierInfo, TierProgress
from ..models.tier import DEFAULT_TIER_TABLE, Tier, TierTable
from . import allowance_service, overage_service, tier_service

logger = logging.getLogger(__name__)


class RatingEngine:
    """
    One tier table plus one config, with every rating operation bound to them.

    Holds no mutable state, so a single instance can be shared across threads.
    """

    _default = None
    _default_lock = threading.Lock()

    def __init__(self, tiers: Optional[TierTable] = None, config: Optional[RatingConfig] = None):
        self.tiers = tiers or DEFAULT_TIER_TABLE
        self.config = config or RatingConfig()

    @classmethod
    def default(cls) -> "RatingEngine":
        """Process-wide engine built from environment settings on first use."""
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls(config=RatingConfig.from_env())
                logger.info("Rating engine configured with %d tiers", len(cls._default.tiers))
        return cls._default

    # --------------- Tiers ---------------
    def resolve_tier(self, total_rentals: int) -> Tier:
        return tier_service.resolve_tier(total_rentals, self.tiers)

    def get_tier_progress(self, total_rentals: int) -> TierProgress:
        return tier_service.get_tier_progress(total_rentals, self.tiers)

    def get_customer_tier_info(self, customer) -> TierInfo:
        return tier_service.get_customer_tier_info(customer, self.tiers)

    # --------------- Allowance ---------------
    def calculate_allowed_km(self, daily_km_limit: int, total_days: int, total_rentals: int,
                             apply_tier_bonus: bool = True) -> AllowanceResult:
        return allowance_service.calculate_allowed_km(
            daily_km_limit, total_days, total_rentals,
            apply_tier_bonus=apply_tier_bonus, table=self.tiers)

    def assess_km_usage(self, km_driven: int, km_allowed: int) -> KmUsage:
        return allowance_service.assess_km_usage(
            km_driven, km_allowed,
            warning_at=self.config.km_warning_threshold,
            critical_at=self.config.km_critical_threshold)

    # --------------- Overage ---------------
    def calculate_overage_rate(self, customer, base_rate=None):
        return overage_service.calculate_overage_rate(
            customer, base_rate=base_rate, table=self.tiers,
            default_rate=self.config.default_overage_rate)

    def calculate_overage_charges(self, km_overage: int, overage_rate_per_km, total_rentals: int,
                                  apply_tier_discount: bool = True) -> OverageResult:
        return overage_service.calculate_overage_charges(
            km_overage, overage_rate_per_km, total_rentals,
            apply_tier_discount=apply_tier_discount, table=self.tiers)

    # --------------- Full pass ---------------
    def assess_mileage(self, customer, km_driven: int, daily_km_limit: Optional[int],
                       total_days: int) -> MileageAssessment:
        """
        Rate one contract's mileage: tier info, allowance, overage km, rate,
        then charges. The customer's tier opt-out switch governs both the km
        bonus and the overage discount.
        """
        if isinstance(km_driven, bool) or not isinstance(km_driven, int) or km_driven < 0:
            raise InvalidInputError(f"km_driven must be a non-negative integer, got {km_driven!r}")

        facts = CustomerRentalFacts.from_record(customer)
        tier_info = self.get_customer_tier_info(facts)
        allowance = self.calculate_allowed_km(
            daily_km_limit or self.config.default_daily_km_limit,
            total_days,
            facts.total_rentals,
            apply_tier_bonus=facts.apply_tier_discount,
        )
        km_overage = overage_service.compute_km_overage(km_driven, allowance.total_km_allowed)
        rate = self.calculate_overage_rate(facts)
        overage = self.calculate_overage_charges(
            km_overage, rate, facts.total_rentals,
            apply_tier_discount=facts.apply_tier_discount)

        return MileageAssessment(
            tier_info=tier_info,
            allowance=allowance,
            km_driven=km_driven,
            km_overage=km_overage,
            overage_rate_per_km=rate,
            overage=overage,
        )
