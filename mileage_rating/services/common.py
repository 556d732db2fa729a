"""Shared service helpers: store access, number coercion and date math."""

import math
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

import pytz

from ..exceptions import InvalidInputError
from ..models.store import Store

CENTS = Decimal("0.01")
ONE_DAY = timedelta(days=1)


def _store() -> Store:
    """Get the singleton store instance."""
    return Store.instance()


# -------- number helpers --------
def require_int(value, name: str, minimum: Optional[int] = None) -> int:
    """Return ``value`` if it is a real integer (not a bool) and >= ``minimum``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise InvalidInputError(f"{name} must be >= {minimum}, got {value}")
    return value


def to_decimal(value, name: str = "value") -> Decimal:
    """
    Coerce int/str/float/Decimal to a finite Decimal; floats go through
    ``str`` to avoid binary noise. NaN and infinities are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidInputError(f"{name} must be a finite number, got {value!r}")
    return result


def money(value: Decimal) -> Decimal:
    """Round to cents, half-up, the way DECIMAL(10,2) columns store amounts."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# -------- date helpers --------
def as_datetime(x, tz=None):
    """
    Coerce a date-like value to something subtractable.

    - ``date`` stays a ``date``
    - ``datetime`` / ISO strings with a time part become aware datetimes:
      naive values are taken to be in ``tz`` (UTC when omitted)
    """
    if isinstance(x, str):
        s = x.strip()
        if not s:
            raise InvalidInputError("Empty date")
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            if "T" not in s and " " not in s:
                return date.fromisoformat(s)
            x = datetime.fromisoformat(s)
        except ValueError:
            raise InvalidInputError(f"Invalid date: {x!r}")

    if isinstance(x, datetime):
        if x.tzinfo is None:
            x = (tz or pytz.utc).localize(x)
        return x.astimezone(pytz.utc)
    if isinstance(x, date):
        return x
    raise InvalidInputError(f"Unsupported date: {x!r}")


def rental_days(start, end, tz=None) -> int:
    """
    Number of billable rental days, counting both the start and the end day:
    ``ceil((end - start) / 1 day) + 1``. A contract running 2030-01-01 to
    2030-01-02 is two days; same-day start and end is one.
    """
    s = as_datetime(start, tz)
    e = as_datetime(end, tz)

    # Mixing a plain date with a datetime: compare at midnight in tz
    if isinstance(s, datetime) != isinstance(e, datetime):
        zone = tz or pytz.utc
        if not isinstance(s, datetime):
            s = zone.localize(datetime.combine(s, datetime.min.time())).astimezone(pytz.utc)
        else:
            e = zone.localize(datetime.combine(e, datetime.min.time())).astimezone(pytz.utc)

    delta = e - s
    if delta < timedelta(0):
        raise InvalidInputError(f"End date {end!r} is before start date {start!r}")
    return math.ceil(delta / ONE_DAY) + 1
