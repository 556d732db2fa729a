from .customer import CustomerRentalFacts
from .results import (
    AllowanceResult,
    KmUsage,
    MileageAssessment,
    OverageResult,
    TierInfo,
    TierProgress,
)
from .tier import DEFAULT_TIER_TABLE, DEFAULT_TIERS, Tier, TierTable

__all__ = [
    "AllowanceResult",
    "CustomerRentalFacts",
    "DEFAULT_TIERS",
    "DEFAULT_TIER_TABLE",
    "KmUsage",
    "MileageAssessment",
    "OverageResult",
    "Tier",
    "TierInfo",
    "TierProgress",
    "TierTable",
]
