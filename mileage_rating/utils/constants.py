# mileage_rating/utils/constants.py

"""
Global constants for tier keys, statuses and notification kinds.
These constants are imported by both models and services.
"""


class TierKey:
    NEW = "NEW"
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class ContractStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VehicleStatus:
    AVAILABLE = "available"
    RENTED = "rented"


class NotificationType:
    CONTRACT_OVERAGE = "contract_overage"
    KM_LIMIT_WARNING = "km_limit_warning"
    KM_LIMIT_CRITICAL = "km_limit_critical"
    KM_LIMIT_EXCEEDED = "km_limit_exceeded"


class Priority:
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UsageLevel:
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"
