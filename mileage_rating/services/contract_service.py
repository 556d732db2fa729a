"""Contract mileage workflows built on top of the rating engine."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from ..exceptions import (
    ContractNotFoundError,
    ContractStateError,
    CustomerNotFoundError,
    InvalidInputError,
    ValidationError,
    VehicleNotFoundError,
)
from ..models.customer import CustomerRentalFacts
from ..models.results import TierInfo
from ..models.store import Store
from ..utils.constants import ContractStatus, NotificationType, Priority, VehicleStatus
from .common import _store, as_datetime, money, rental_days, to_decimal
from .engine import RatingEngine

logger = logging.getLogger(__name__)


def _resolve(store: Optional[Store], engine: Optional[RatingEngine]):
    return (store if store is not None else _store()), (engine or RatingEngine.default())


def _load_contract(st, contract_id, company_id=None) -> dict:
    """Fetch a contract, hiding contracts that belong to another company."""
    c = st.get_contract(contract_id)
    if not c or (company_id is not None and c.get("company_id") != company_id):
        raise ContractNotFoundError("Contract not found")
    return c


def _load_customer(st, customer_id, company_id=None) -> dict:
    cust = st.get_customer(customer_id)
    if not cust or (company_id is not None and cust.get("company_id") != company_id):
        raise CustomerNotFoundError("Customer not found")
    return cust


def _parse_mileage(value, name: str) -> int:
    """Accept ints or digit strings (query parameters); reject everything else."""
    if isinstance(value, bool):
        raise ValidationError(f"Valid {name} required")
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdecimal()):
            raise ValidationError(f"Valid {name} required")
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise ValidationError(f"Valid {name} required")
    return value


def _contract_days(contract: dict, engine: RatingEngine) -> int:
    days = contract.get("total_days")
    if days:
        return days
    return rental_days(contract["start_date"], contract["end_date"], engine.config.tz)


class ContractService:
    """
    Open, estimate and complete rental contracts.
    Pricing comes from RatingEngine; this class only sequences and persists.
    """

    @staticmethod
    def contract_km_limits(contract_data: dict, customer, engine: Optional[RatingEngine] = None) -> dict:
        """
        Km allowance and overage rate to store on a new contract.
        ``daily_km_limit`` falls back to the configured default (300).
        """
        eng = engine or RatingEngine.default()
        daily_km_limit = contract_data.get("daily_km_limit") or eng.config.default_daily_km_limit
        total_days = rental_days(contract_data["start_date"], contract_data["end_date"], eng.config.tz)

        facts = CustomerRentalFacts.from_record(customer)

        allowed = eng.calculate_allowed_km(daily_km_limit, total_days, facts.total_rentals,
                                           apply_tier_bonus=facts.apply_tier_discount)
        rate = eng.calculate_overage_rate(facts)

        return {
            "daily_km_limit": daily_km_limit,
            "total_days": total_days,
            "total_km_allowed": allowed.total_km_allowed,
            "overage_rate_per_km": rate,
            "tier_info": {
                "tier": allowed.tier,
                "tier_name": allowed.tier_name,
                "base_daily_limit": allowed.base_daily_limit,
                "bonus_km_per_day": allowed.bonus_km_per_day,
                "total_daily_limit": allowed.total_daily_limit,
            },
        }

    @staticmethod
    def open_contract(
            customer_id: str,
            vehicle_id: str,
            start_date: str,
            end_date: str,
            base_amount=0,
            daily_km_limit: Optional[int] = None,
            company_id: Optional[str] = None,
            store: Optional[Store] = None,
            engine: Optional[RatingEngine] = None,
    ) -> str:
        """
        Create an active contract with its km limits filled in and the
        vehicle's current mileage recorded as the start mileage.
        Returns the new contract id.
        """
        st, eng = _resolve(store, engine)
        customer = _load_customer(st, customer_id, company_id)
        vehicle = st.get_vehicle(vehicle_id)
        if not vehicle:
            raise VehicleNotFoundError("Vehicle not found")
        if vehicle.get("status") != VehicleStatus.AVAILABLE:
            raise ContractStateError(f"Vehicle is {vehicle.get('status')}")

        try:
            limits = ContractService.contract_km_limits(
                {"start_date": start_date, "end_date": end_date, "daily_km_limit": daily_km_limit},
                customer, engine=eng)
            base = to_decimal(base_amount, "base_amount")
        except InvalidInputError as e:
            raise ValidationError(e.message)

        with st.transaction():
            cid = st.create_contract({
                "company_id": company_id if company_id is not None else customer.get("company_id"),
                "customer_id": customer["customer_id"],
                "vehicle_id": vehicle["vehicle_id"],
                "start_date": start_date,
                "end_date": end_date,
                "total_days": limits["total_days"],
                "start_mileage": vehicle.get("mileage", 0),
                "daily_km_limit": limits["daily_km_limit"],
                "total_km_allowed": limits["total_km_allowed"],
                "overage_rate_per_km": limits["overage_rate_per_km"],
                "base_amount": base,
                "discount_amount": Decimal("0"),
                "additional_charges": Decimal("0"),
                "status": ContractStatus.ACTIVE,
                "created_at": datetime.now(timezone.utc),
            })
            st.update_vehicle(vehicle["vehicle_id"], status=VehicleStatus.RENTED)

        logger.info("Contract opened: %s (%s km allowed)", cid, limits["total_km_allowed"])
        return cid

    @staticmethod
    def customer_tier_info(customer_id: str, company_id: Optional[str] = None,
                           store: Optional[Store] = None,
                           engine: Optional[RatingEngine] = None) -> TierInfo:
        st, eng = _resolve(store, engine)
        return eng.get_customer_tier_info(_load_customer(st, customer_id, company_id))

    @staticmethod
    def estimate_overage(contract_id: str, estimated_end_mileage, company_id: Optional[str] = None,
                         store: Optional[Store] = None, engine: Optional[RatingEngine] = None) -> dict:
        """Preview the overage a return at ``estimated_end_mileage`` would cost. Nothing is saved."""
        if estimated_end_mileage is None or estimated_end_mileage == "":
            raise ValidationError("estimated_end_mileage is required")
        estimated = _parse_mileage(estimated_end_mileage, "estimated_end_mileage")

        st, eng = _resolve(store, engine)
        contract = _load_contract(st, contract_id, company_id)
        customer = _load_customer(st, contract["customer_id"])

        start_mileage = contract.get("start_mileage") or 0
        if estimated < start_mileage:
            raise ValidationError(
                f"Estimated end mileage ({estimated}) cannot be less than start mileage ({start_mileage})")

        assessment = eng.assess_mileage(customer, estimated - start_mileage,
                                        contract.get("daily_km_limit"), _contract_days(contract, eng))
        overage = assessment.overage
        warning = None
        if assessment.km_overage > 0:
            warning = (f"Customer will be charged {overage.final_overage_charges} {eng.config.currency_label} "
                       f"for {assessment.km_overage}km overage")

        return {
            "contract_id": contract["contract_id"],
            "contract_number": contract.get("contract_number"),
            "start_mileage": start_mileage,
            "estimated_end_mileage": estimated,
            "estimated_km_driven": assessment.km_driven,
            "allowed_km": assessment.allowance.to_dict(),
            "estimated_overage": overage.to_dict(),
            "customer_tier": assessment.tier_info.tier_name,
            "within_limit": assessment.within_limit,
            "warning": warning,
        }

    @staticmethod
    def complete_with_mileage(
            contract_id: str,
            end_mileage: int,
            actual_return_date,
            additional_charges=None,
            notes: Optional[str] = None,
            company_id: Optional[str] = None,
            store: Optional[Store] = None,
            engine: Optional[RatingEngine] = None,
    ) -> dict:
        """
        Close an active contract at the given odometer reading.

        Rates the mileage, recomputes billing (tax on the subtotal), then
        updates the contract, frees the vehicle and records an overage
        notification in a single store transaction.
        """
        end_mileage = _parse_mileage(end_mileage, "end mileage")
        st, eng = _resolve(store, engine)
        try:
            returned_at = as_datetime(actual_return_date, eng.config.tz)
        except InvalidInputError:
            raise ValidationError("Valid return date required")

        extra = Decimal("0")
        if additional_charges not in (None, ""):
            try:
                extra = to_decimal(additional_charges, "additional_charges")
            except InvalidInputError as e:
                raise ValidationError(e.message)
            if extra < 0:
                raise ValidationError("additional_charges must not be negative")

        contract = _load_contract(st, contract_id, company_id)
        status = contract.get("status")
        if status != ContractStatus.ACTIVE:
            raise ContractStateError(f"Cannot complete {status} contract")

        start_mileage = contract.get("start_mileage") or 0
        if end_mileage < start_mileage:
            raise ValidationError(
                f"End mileage ({end_mileage}) cannot be less than start mileage ({start_mileage})")

        customer = _load_customer(st, contract["customer_id"])
        vehicle = st.get_vehicle(contract["vehicle_id"])
        if not vehicle:
            raise VehicleNotFoundError("Vehicle not found")

        total_days = _contract_days(contract, eng)
        assessment = eng.assess_mileage(customer, end_mileage - start_mileage,
                                        contract.get("daily_km_limit"), total_days)
        allowance = assessment.allowance
        overage = assessment.overage
        tier = assessment.tier_info.tier
        km_overage = assessment.km_overage
        currency = eng.config.currency_label

        # --- billing ---
        total_additional = money(
            to_decimal(contract.get("additional_charges") or 0) + extra + overage.final_overage_charges)
        base_amount = to_decimal(contract.get("base_amount") or 0)
        discount_amount = to_decimal(contract.get("discount_amount") or 0)
        subtotal = base_amount + total_additional - discount_amount
        tax_amount = money(subtotal * eng.config.tax_rate)
        total_amount = subtotal + tax_amount

        updates = {
            "status": ContractStatus.COMPLETED,
            "actual_return_date": returned_at.isoformat(),
            "end_mileage": end_mileage,
            "actual_km_driven": assessment.km_driven,
            "total_days": total_days,
            "total_km_allowed": allowance.total_km_allowed,
            "km_overage": km_overage,
            "overage_rate_per_km": assessment.overage_rate_per_km,
            "overage_charges": overage.final_overage_charges,
            "additional_charges": total_additional,
            "tax_amount": tax_amount,
            "total_amount": total_amount,
            "deposit_returned": True,
        }

        if km_overage > 0:
            overage_note = (
                f"\nKM Overage: {km_overage}km driven beyond {allowance.total_km_allowed}km limit. "
                f"Base charge: {overage.base_overage_charges} {currency}, "
                f"Tier discount ({tier.key} - {overage.discount_percentage}%): "
                f"-{overage.discount_amount} {currency}, "
                f"Final overage charge: {overage.final_overage_charges} {currency}."
            )
            updates["notes"] = (notes or contract.get("notes") or "") + overage_note
        elif notes:
            updates["notes"] = notes

        with st.transaction():
            st.update_contract(contract["contract_id"], updates)
            st.update_vehicle(vehicle["vehicle_id"], mileage=end_mileage, status=VehicleStatus.AVAILABLE)
            if km_overage > 0:
                data = {
                    "contract_id": contract["contract_id"],
                    "contract_number": contract.get("contract_number"),
                    "customer_id": contract["customer_id"],
                    "vehicle_id": contract["vehicle_id"],
                    "customer_tier": tier.key,
                }
                data.update(overage.to_dict())
                st.create_notification({
                    "company_id": contract.get("company_id"),
                    "type": NotificationType.CONTRACT_OVERAGE,
                    "priority": Priority.HIGH if km_overage > eng.config.high_priority_overage_km
                    else Priority.MEDIUM,
                    "title": f"KM Overage: {contract.get('contract_number')}",
                    "message": (
                        f"Customer {customer.get('full_name')} exceeded limit by {km_overage}km. "
                        f"Additional charge: {overage.final_overage_charges} {currency} "
                        f"({tier.name} tier discount applied)."),
                    "data": data,
                    "action_url": f"/contracts/{contract['contract_id']}",
                })

        logger.info("Contract completed: %s, km driven %d (allowed %d)",
                    contract.get("contract_number"), assessment.km_driven, allowance.total_km_allowed)
        if km_overage > 0:
            logger.info("Overage: %dkm x %s = %s, tier discount -%s (%s), final %s",
                        km_overage, assessment.overage_rate_per_km, overage.base_overage_charges,
                        overage.discount_amount, tier.name, overage.final_overage_charges)

        return {
            "contract": st.get_contract(contract["contract_id"]),
            "mileage_summary": {
                "start_mileage": start_mileage,
                "end_mileage": end_mileage,
                "km_driven": assessment.km_driven,
                "daily_limit": allowance.base_daily_limit,
                "total_days": total_days,
                "base_km_allowed": allowance.base_km_allowed,
                "tier_bonus_km": allowance.bonus_km_total,
                "total_km_allowed": allowance.total_km_allowed,
                "km_overage": km_overage,
                "within_limit": km_overage == 0,
            },
            "overage_details": None if km_overage == 0 else dict(
                overage.to_dict(),
                customer_tier=tier.name,
                tier_benefits_applied=overage.discount_percentage > 0,
            ),
            "customer_tier": {
                "tier": tier.key,
                "tier_name": tier.name,
                "benefits": list(tier.benefits),
                "overage_rate": tier.overage_rate_per_km,
            },
            "billing": {
                "base_amount": base_amount,
                "overage_charges": overage.final_overage_charges,
                "other_charges": extra,
                "total_additional_charges": total_additional,
                "discount": discount_amount,
                "subtotal": subtotal,
                "tax": tax_amount,
                "total": total_amount,
            },
        }
