from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Tuple

from ..exceptions import ConfigurationError, InvalidInputError
from ..utils.constants import TierKey


@dataclass(frozen=True)
class Tier:
    """
    A loyalty tier. A customer belongs to it while
    ``min_rentals <= total_rentals < max_rentals``; ``max_rentals=None``
    marks the open-ended top tier.
    """
    key: str
    name: str
    min_rentals: int
    max_rentals: Optional[int]
    km_bonus_per_day: int = 0
    overage_rate_per_km: Decimal = Decimal("0")
    discount_percentage: int = 0
    benefits: Tuple[str, ...] = ()

    @property
    def is_unbounded(self) -> bool:
        return self.max_rentals is None

    def contains(self, total_rentals: int) -> bool:
        if total_rentals < self.min_rentals:
            return False
        return self.max_rentals is None or total_rentals < self.max_rentals

    def to_dict(self) -> dict:
        return {
            "tier": self.key,
            "name": self.name,
            "min_rentals": self.min_rentals,
            "max_rentals": self.max_rentals,
            "km_bonus": self.km_bonus_per_day,
            "overage_rate": self.overage_rate_per_km,
            "discount_percentage": self.discount_percentage,
            "benefits": list(self.benefits),
        }


class TierTable:
    """
    Ordered, immutable set of tiers that partitions ``[0, inf)``.

    The table is validated once at construction; after that every
    non-negative rental count resolves to exactly one tier.
    """

    def __init__(self, tiers: Iterable[Tier]):
        ordered = tuple(sorted(tiers, key=lambda t: t.min_rentals))
        self._validate(ordered)
        self._tiers = ordered

    @staticmethod
    def _validate(tiers: Tuple[Tier, ...]) -> None:
        if not tiers:
            raise ConfigurationError("Tier table must contain at least one tier")

        keys = [t.key for t in tiers]
        if len(set(keys)) != len(keys):
            raise ConfigurationError(f"Duplicate tier keys: {keys}")

        if tiers[0].min_rentals != 0:
            raise ConfigurationError(
                f"First tier {tiers[0].key} must start at 0 rentals, not {tiers[0].min_rentals}")

        for i, tier in enumerate(tiers):
            if tier.km_bonus_per_day < 0:
                raise ConfigurationError(f"{tier.key}: km bonus must not be negative")
            if tier.overage_rate_per_km < 0:
                raise ConfigurationError(f"{tier.key}: overage rate must not be negative")
            if not (0 <= tier.discount_percentage <= 100):
                raise ConfigurationError(f"{tier.key}: discount percentage must be within [0, 100]")

            is_last = i == len(tiers) - 1
            if is_last:
                if tier.max_rentals is not None:
                    raise ConfigurationError(f"Last tier {tier.key} must be unbounded")
                continue

            if tier.max_rentals is None:
                raise ConfigurationError(f"Only the last tier may be unbounded, not {tier.key}")
            if tier.max_rentals <= tier.min_rentals:
                raise ConfigurationError(f"{tier.key}: max_rentals must be greater than min_rentals")
            nxt = tiers[i + 1]
            if tier.max_rentals != nxt.min_rentals:
                kind = "gap" if tier.max_rentals < nxt.min_rentals else "overlap"
                raise ConfigurationError(
                    f"Tier {kind} between {tier.key} (max {tier.max_rentals}) "
                    f"and {nxt.key} (min {nxt.min_rentals})")

    # ---------- Collection ----------
    @property
    def tiers(self) -> Tuple[Tier, ...]:
        return self._tiers

    @property
    def first(self) -> Tier:
        return self._tiers[0]

    @property
    def last(self) -> Tier:
        return self._tiers[-1]

    def __iter__(self) -> Iterator[Tier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def get(self, key: str) -> Optional[Tier]:
        for tier in self._tiers:
            if tier.key == key:
                return tier
        return None

    def index(self, tier: Tier) -> int:
        return self._tiers.index(tier)

    # ---------- Lookups ----------
    def resolve(self, total_rentals: int) -> Tier:
        """Return the tier whose range contains ``total_rentals``."""
        if total_rentals < 0:
            raise InvalidInputError(f"total_rentals must not be negative, got {total_rentals}")
        for tier in self._tiers:
            if tier.contains(total_rentals):
                return tier
        # unreachable for a validated table
        raise ConfigurationError(f"No tier matches {total_rentals} rentals")

    def next_tier(self, tier: Tier) -> Optional[Tier]:
        i = self.index(tier)
        if i + 1 < len(self._tiers):
            return self._tiers[i + 1]
        return None


DEFAULT_TIERS = (
    Tier(
        key=TierKey.NEW,
        name="New Customer",
        min_rentals=0,
        max_rentals=5,
        km_bonus_per_day=0,
        overage_rate_per_km=Decimal("20"),
        discount_percentage=0,
        benefits=(),
    ),
    Tier(
        key=TierKey.BRONZE,
        name="Bronze",
        min_rentals=5,
        max_rentals=15,
        km_bonus_per_day=0,
        overage_rate_per_km=Decimal("18"),
        discount_percentage=5,
        benefits=(
            "5% discount on overage charges",
            "Priority customer support",
        ),
    ),
    Tier(
        key=TierKey.SILVER,
        name="Silver",
        min_rentals=15,
        max_rentals=30,
        km_bonus_per_day=50,
        overage_rate_per_km=Decimal("15"),
        discount_percentage=10,
        benefits=(
            "10% discount on overage charges",
            "Free vehicle upgrade (subject to availability)",
            "Priority booking",
            "Extended daily km limit (+50km)",
        ),
    ),
    Tier(
        key=TierKey.GOLD,
        name="Gold",
        min_rentals=30,
        max_rentals=60,
        km_bonus_per_day=100,
        overage_rate_per_km=Decimal("12"),
        discount_percentage=15,
        benefits=(
            "15% discount on overage charges",
            "Free premium vehicle upgrade",
            "Priority booking & support",
            "Extended daily km limit (+100km)",
            "Waived deposit on select vehicles",
        ),
    ),
    Tier(
        key=TierKey.PLATINUM,
        name="Platinum",
        min_rentals=60,
        max_rentals=None,
        km_bonus_per_day=150,
        overage_rate_per_km=Decimal("10"),
        discount_percentage=20,
        benefits=(
            "20% discount on overage charges",
            "Complimentary luxury upgrades",
            "VIP priority service",
            "Extended daily km limit (+150km)",
            "Free insurance upgrades",
            "Dedicated account manager",
            "Special corporate rates",
        ),
    ),
)

DEFAULT_TIER_TABLE = TierTable(DEFAULT_TIERS)
