from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .tier import Tier

ZERO = Decimal("0")


@dataclass(frozen=True)
class TierProgress:
    current_tier: str
    current_tier_name: str
    current_rentals: int
    next_tier: Optional[str]
    next_tier_name: Optional[str]
    rentals_to_next_tier: int
    progress_percentage: Decimal
    is_max_tier: bool

    def to_dict(self) -> dict:
        return {
            "current_tier": self.current_tier,
            "current_tier_name": self.current_tier_name,
            "current_rentals": self.current_rentals,
            "next_tier": self.next_tier,
            "next_tier_name": self.next_tier_name,
            "rentals_to_next_tier": self.rentals_to_next_tier,
            "progress_percentage": self.progress_percentage,
            "is_max_tier": self.is_max_tier,
        }


@dataclass(frozen=True)
class TierInfo:
    """Customer tier, its benefits, and progress towards the next tier."""
    customer_id: Optional[str]
    customer_name: Optional[str]
    total_rentals: int
    lifetime_value: Decimal
    apply_tier_discount: bool
    tier: Tier
    progress: TierProgress

    @property
    def tier_key(self) -> str:
        return self.tier.key

    @property
    def tier_name(self) -> str:
        return self.tier.name

    def to_dict(self) -> dict:
        out = {
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "total_rentals": self.total_rentals,
            "lifetime_value": self.lifetime_value,
            "apply_tier_discount": self.apply_tier_discount,
        }
        out.update(self.tier.to_dict())
        out["progress"] = self.progress.to_dict()
        return out


@dataclass(frozen=True)
class AllowanceResult:
    base_daily_limit: int
    bonus_km_per_day: int
    total_daily_limit: int
    total_days: int
    total_km_allowed: int
    tier: str
    tier_name: str

    @property
    def bonus_km_total(self) -> int:
        return self.bonus_km_per_day * self.total_days

    @property
    def base_km_allowed(self) -> int:
        return self.base_daily_limit * self.total_days

    def to_dict(self) -> dict:
        return {
            "base_daily_limit": self.base_daily_limit,
            "bonus_km_per_day": self.bonus_km_per_day,
            "total_daily_limit": self.total_daily_limit,
            "total_days": self.total_days,
            "total_km_allowed": self.total_km_allowed,
            "tier": self.tier,
            "tier_name": self.tier_name,
        }


@dataclass(frozen=True)
class OverageResult:
    """
    Overage billing breakdown. ``tier``/``tier_name`` are None when there is
    no overage, since no tier discount was involved.
    """
    km_overage: int
    overage_rate_per_km: Decimal
    base_overage_charges: Decimal
    discount_percentage: int
    discount_amount: Decimal
    final_overage_charges: Decimal
    tier: Optional[str] = None
    tier_name: Optional[str] = None

    @property
    def savings(self) -> Decimal:
        return self.discount_amount

    @property
    def within_limit(self) -> bool:
        return self.km_overage == 0

    @classmethod
    def none(cls) -> "OverageResult":
        return cls(
            km_overage=0,
            overage_rate_per_km=ZERO,
            base_overage_charges=ZERO,
            discount_percentage=0,
            discount_amount=ZERO,
            final_overage_charges=ZERO,
        )

    def to_dict(self) -> dict:
        return {
            "km_overage": self.km_overage,
            "overage_rate": self.overage_rate_per_km,
            "base_overage_charges": self.base_overage_charges,
            "discount_percentage": self.discount_percentage,
            "discount_amount": self.discount_amount,
            "final_overage_charges": self.final_overage_charges,
            "tier": self.tier,
            "tier_name": self.tier_name,
            "savings": self.savings,
            "within_limit": self.within_limit,
        }


@dataclass(frozen=True)
class KmUsage:
    km_driven: int
    km_allowed: int
    km_remaining: int
    percentage_used: Decimal
    level: str

    def to_dict(self) -> dict:
        return {
            "km_driven": self.km_driven,
            "km_allowed": self.km_allowed,
            "km_remaining": self.km_remaining,
            "percentage_used": self.percentage_used,
            "level": self.level,
        }


@dataclass(frozen=True)
class MileageAssessment:
    """Everything the contract-completion flow needs from one rating pass."""
    tier_info: TierInfo
    allowance: AllowanceResult
    km_driven: int
    km_overage: int
    overage_rate_per_km: Decimal
    overage: OverageResult

    @property
    def within_limit(self) -> bool:
        return self.km_overage == 0

    def to_dict(self) -> dict:
        return {
            "km_driven": self.km_driven,
            "km_overage": self.km_overage,
            "overage_rate_per_km": self.overage_rate_per_km,
            "within_limit": self.within_limit,
            "allowed_km": self.allowance.to_dict(),
            "overage": self.overage.to_dict(),
            "customer_tier": self.tier_info.to_dict(),
        }
