"""
Engine settings.

The values below are the defaults used by the rental backend. Each one can be
overridden per process through a ``RATING_*`` environment variable (field
name upper-cased, e.g. ``RATING_TAX_RATE``).
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

import pydantic
import pytz
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

# Base km per day when a contract does not set its own limit.
DEFAULT_DAILY_KM_LIMIT = 300

# Per-km overage rate charged when a customer declines the tier discount.
# Same as the NEW tier rate.
DEFAULT_OVERAGE_RATE = Decimal("20")

TAX_RATE = Decimal("0.19")

BUSINESS_TIMEZONE = "Africa/Algiers"

# Only used in human-readable contract notes and notification messages.
CURRENCY_LABEL = "DA"

# Percent of the allowance used before a km alert is raised.
KM_WARNING_THRESHOLD = Decimal("75")
KM_CRITICAL_THRESHOLD = Decimal("90")

# Overage above this many km raises a high-priority notification.
HIGH_PRIORITY_OVERAGE_KM = 100


class RatingConfig(BaseSettings):
    default_daily_km_limit: int = Field(DEFAULT_DAILY_KM_LIMIT, gt=0)
    default_overage_rate: Decimal = Field(DEFAULT_OVERAGE_RATE, ge=0, allow_inf_nan=False)
    tax_rate: Decimal = Field(TAX_RATE, ge=0, allow_inf_nan=False)
    timezone: str = BUSINESS_TIMEZONE
    currency_label: str = CURRENCY_LABEL
    km_warning_threshold: Decimal = Field(KM_WARNING_THRESHOLD, gt=0, le=100, allow_inf_nan=False)
    km_critical_threshold: Decimal = Field(KM_CRITICAL_THRESHOLD, gt=0, le=100, allow_inf_nan=False)
    high_priority_overage_km: int = Field(HIGH_PRIORITY_OVERAGE_KM, ge=0)
    data_path: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="RATING_",
        env_ignore_empty=True,
        frozen=True,
        extra="ignore",
    )

    def __init__(self, **values):
        try:
            super().__init__(**values)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}" for err in e.errors())
            raise ConfigurationError(f"Invalid rating settings: {problems}") from e

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {value!r}")
        return value

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "RatingConfig":
        if self.km_warning_threshold > self.km_critical_threshold:
            raise ValueError("km alert thresholds must satisfy warning <= critical")
        return self

    @property
    def tz(self):
        """The business timezone as a pytz tzinfo."""
        return pytz.timezone(self.timezone)

    @classmethod
    def from_env(cls) -> "RatingConfig":
        """Settings from ``RATING_*`` variables, module defaults for anything unset or empty."""
        return cls()
