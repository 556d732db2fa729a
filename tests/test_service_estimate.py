"""
Overage preview, customer tier lookup and opening contracts.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from conftest import seed_customer, seed_vehicle
from mileage_rating.exceptions import (
    ContractNotFoundError,
    ContractStateError,
    CustomerNotFoundError,
    ValidationError,
    VehicleNotFoundError,
)
from mileage_rating.services.contract_service import ContractService


# -------- estimate_overage --------
def test_estimate_within_limit(store, engine, active_contract):
    out = ContractService.estimate_overage(active_contract, 11400, store=store, engine=engine)
    assert out["contract_number"] == "CTR-K1"
    assert out["estimated_km_driven"] == 1400
    assert out["allowed_km"]["total_km_allowed"] == 1500
    assert out["estimated_overage"]["final_overage_charges"] == 0
    assert out["customer_tier"] == "New"
    assert out["within_limit"] is True
    assert out["warning"] is None


def test_estimate_over_limit_warns(store, engine, active_contract):
    out = ContractService.estimate_overage(active_contract, "11700", store=store, engine=engine)
    assert out["estimated_end_mileage"] == 11700
    assert out["estimated_overage"]["km_overage"] == 200
    assert out["estimated_overage"]["final_overage_charges"] == Decimal("4000")
    assert out["within_limit"] is False
    assert out["warning"] == "Customer will be charged 4000.00 DA for 200km overage"


def test_estimate_saves_nothing(store, engine, active_contract):
    before = dict(store.get_contract(active_contract))
    ContractService.estimate_overage(active_contract, 12000, store=store, engine=engine)
    assert store.get_contract(active_contract) == before
    assert store.notifications == {}


@pytest.mark.parametrize("value,msg", [
    (None, "estimated_end_mileage is required"),
    ("", "estimated_end_mileage is required"),
    ("12k", "Valid estimated_end_mileage required"),
    ("²", "Valid estimated_end_mileage required"),
    ("١٢٠٠٠", "Valid estimated_end_mileage required"),
    ("1e4", "Valid estimated_end_mileage required"),
    (9000, "cannot be less than start mileage"),
])
def test_estimate_rejects_bad_mileage(store, engine, active_contract, value, msg):
    with pytest.raises(ValidationError) as exc:
        ContractService.estimate_overage(active_contract, value, store=store, engine=engine)
    assert msg in exc.value.message
    assert exc.value.status_code == 422


def test_estimate_scoped_to_company(store, engine, active_contract):
    with pytest.raises(ContractNotFoundError):
        ContractService.estimate_overage(active_contract, 11000, company_id="co2", store=store, engine=engine)


# -------- customer_tier_info --------
def test_customer_tier_info(store, engine):
    seed_customer(store, total_rentals=16)
    info = ContractService.customer_tier_info("c1", company_id="co1", store=store, engine=engine)
    assert info.tier_key == "SILVER"
    assert info.lifetime_value == Decimal("12500.50")
    assert info.progress.rentals_to_next_tier == 14


def test_customer_tier_info_unknown(store, engine):
    with pytest.raises(CustomerNotFoundError):
        ContractService.customer_tier_info("ghost", store=store, engine=engine)


# -------- contract_km_limits / open_contract --------
def test_km_limits_for_gold_customer(engine):
    limits = ContractService.contract_km_limits(
        {"start_date": "2030-06-01", "end_date": "2030-06-03"},
        {"total_rentals": 35}, engine=engine)
    assert limits["daily_km_limit"] == 300
    assert limits["total_days"] == 3
    assert limits["total_km_allowed"] == 1200
    assert limits["overage_rate_per_km"] == Decimal("12")
    assert limits["tier_info"]["bonus_km_per_day"] == 100


def test_km_limits_opted_out(engine):
    limits = ContractService.contract_km_limits(
        {"start_date": "2030-06-01", "end_date": "2030-06-03", "daily_km_limit": 200},
        {"total_rentals": 35, "apply_tier_discount": False}, engine=engine)
    assert limits["total_km_allowed"] == 600
    assert limits["overage_rate_per_km"] == Decimal("20")


def test_open_contract_records_limits_and_rents_vehicle(store, engine):
    seed_customer(store, total_rentals=7)
    seed_vehicle(store, mileage=20000, status="available")
    cid = ContractService.open_contract("c1", "v1", "2030-04-10", "2030-04-13",
                                        base_amount="18000", store=store, engine=engine)

    contract = store.get_contract(cid)
    assert contract["status"] == "active"
    assert contract["company_id"] == "co1"
    assert contract["start_mileage"] == 20000
    assert contract["total_days"] == 4
    # BRONZE has no km bonus
    assert contract["total_km_allowed"] == 1200
    assert contract["overage_rate_per_km"] == Decimal("18")
    assert contract["base_amount"] == Decimal("18000")
    assert store.get_vehicle("v1")["status"] == "rented"
    assert isinstance(contract["created_at"], datetime)
    assert contract["created_at"].tzinfo is not None


def test_open_contract_vehicle_busy(store, engine):
    seed_customer(store)
    seed_vehicle(store, status="active")
    with pytest.raises(ContractStateError):
        ContractService.open_contract("c1", "v1", "2030-04-10", "2030-04-13", store=store, engine=engine)


def test_open_contract_unknown_vehicle(store, engine):
    seed_customer(store)
    with pytest.raises(VehicleNotFoundError):
        ContractService.open_contract("c1", "v9", "2030-04-10", "2030-04-13", store=store, engine=engine)


@pytest.mark.parametrize("start,end,base", [
    ("2030-04-13", "2030-04-10", 0),
    ("not-a-date", "2030-04-10", 0),
    ("2030-04-10", "2030-04-13", "lots"),
])
def test_open_contract_bad_input(store, engine, start, end, base):
    seed_customer(store)
    seed_vehicle(store, status="available")
    with pytest.raises(ValidationError):
        ContractService.open_contract("c1", "v1", start, end, base_amount=base, store=store, engine=engine)
    assert store.contracts == {}
    assert store.get_vehicle("v1")["status"] == "available"
