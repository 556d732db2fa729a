from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..exceptions import InvalidInputError


def _field(record, name, default=None):
    """Read ``name`` from a mapping or an attribute-style record."""
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


@dataclass(frozen=True)
class CustomerRentalFacts:
    """
    The customer data the rating engine depends on.

    ``apply_tier_discount`` is the customer-level opt-out: when False the
    customer gets neither the tier km bonus nor the tier overage discount.
    """
    total_rentals: int
    apply_tier_discount: bool = True
    customer_id: Optional[str] = None
    full_name: Optional[str] = None
    lifetime_value: Decimal = Decimal("0")

    def __post_init__(self):
        if isinstance(self.total_rentals, bool) or not isinstance(self.total_rentals, int):
            raise InvalidInputError(f"total_rentals must be an integer, got {self.total_rentals!r}")
        if self.total_rentals < 0:
            raise InvalidInputError(f"total_rentals must not be negative, got {self.total_rentals}")

    @classmethod
    def from_record(cls, record) -> "CustomerRentalFacts":
        """Map a stored customer dict (or ORM-like object) to rental facts."""
        if isinstance(record, cls):
            return record
        if record is None:
            raise InvalidInputError("Customer facts are required")

        total_rentals = _field(record, "total_rentals")
        if total_rentals is None:
            raise InvalidInputError("Customer facts are missing total_rentals")

        lifetime_raw = _field(record, "lifetime_value") or 0
        try:
            lifetime_value = Decimal(str(lifetime_raw))
        except ArithmeticError:
            raise InvalidInputError(f"Invalid lifetime_value: {lifetime_raw!r}")
        if not lifetime_value.is_finite():
            raise InvalidInputError(f"Invalid lifetime_value: {lifetime_raw!r}")

        return cls(
            total_rentals=total_rentals,
            # Only an explicit False opts out
            apply_tier_discount=_field(record, "apply_tier_discount") is not False,
            customer_id=_field(record, "customer_id") or _field(record, "id"),
            full_name=_field(record, "full_name"),
            lifetime_value=lifetime_value,
        )
