"""
Contract completion with mileage: validation order, billing, atomic
persistence and the overage notification.
"""
from decimal import Decimal

import pytest

from conftest import seed_contract, seed_customer, seed_vehicle
from mileage_rating.exceptions import (
    ContractNotFoundError,
    ContractStateError,
    ValidationError,
)
from mileage_rating.services.contract_service import ContractService
from mileage_rating.utils.responses import send_error


def test_complete_within_limit(store, engine, active_contract):
    out = ContractService.complete_with_mileage(
        active_contract, end_mileage=11200, actual_return_date="2030-03-05",
        store=store, engine=engine)

    summary = out["mileage_summary"]
    assert summary["km_driven"] == 1200
    assert summary["total_km_allowed"] == 1500
    assert summary["km_overage"] == 0
    assert summary["within_limit"] is True
    assert out["overage_details"] is None

    contract = store.get_contract(active_contract)
    assert contract["status"] == "completed"
    assert contract["km_overage"] == 0
    assert contract["overage_charges"] == 0
    assert store.get_vehicle("v1")["mileage"] == 11200
    assert store.get_vehicle("v1")["status"] == "available"
    assert store.notifications == {}


def test_complete_with_overage_bills_and_notifies(store, engine, active_contract):
    # NEW tier: 1500 km allowed, 20/km, no discount
    out = ContractService.complete_with_mileage(
        active_contract, end_mileage=11650, actual_return_date="2030-03-05",
        additional_charges="500", notes="Returned late evening",
        store=store, engine=engine)

    assert out["mileage_summary"]["km_overage"] == 150
    assert out["overage_details"]["final_overage_charges"] == Decimal("3000")
    assert out["overage_details"]["tier_benefits_applied"] is False

    billing = out["billing"]
    assert billing["total_additional_charges"] == Decimal("3500")
    assert billing["subtotal"] == Decimal("28500")
    assert billing["tax"] == Decimal("5415.00")
    assert billing["total"] == Decimal("33915.00")

    contract = store.get_contract(active_contract)
    assert contract["km_overage"] == 150
    assert contract["overage_rate_per_km"] == Decimal("20")
    assert contract["notes"].startswith("Returned late evening\nKM Overage: 150km")

    (note,) = store.notifications.values()
    assert note["type"] == "contract_overage"
    assert note["priority"] == "high"
    assert note["data"]["contract_id"] == active_contract
    assert note["data"]["km_overage"] == 150


def test_small_overage_is_medium_priority(store, engine, active_contract):
    ContractService.complete_with_mileage(active_contract, 11540, "2030-03-05", store=store, engine=engine)
    (note,) = store.notifications.values()
    assert note["priority"] == "medium"


def test_tier_discount_applied_on_completion(store, engine):
    seed_customer(store, total_rentals=60)
    seed_vehicle(store)
    cid = seed_contract(store)
    # PLATINUM: (300 + 150) * 5 = 2250 allowed, 10/km, 20% off
    out = ContractService.complete_with_mileage(cid, 12350, "2030-03-05", store=store, engine=engine)
    details = out["overage_details"]
    assert details["km_overage"] == 100
    assert details["base_overage_charges"] == Decimal("1000")
    assert details["discount_amount"] == Decimal("200")
    assert details["final_overage_charges"] == Decimal("800")
    assert out["customer_tier"]["tier"] == "PLATINUM"
    assert out["mileage_summary"]["tier_bonus_km"] == 750


def test_opted_out_customer_pays_default_rate(store, engine):
    seed_customer(store, total_rentals=60, apply_tier_discount=False)
    seed_vehicle(store)
    cid = seed_contract(store)
    out = ContractService.complete_with_mileage(cid, 11600, "2030-03-05", store=store, engine=engine)
    details = out["overage_details"]
    assert details["km_overage"] == 100
    assert details["overage_rate"] == Decimal("20")
    assert details["final_overage_charges"] == Decimal("2000")


def test_end_mileage_below_start_rejected(store, engine, active_contract):
    with pytest.raises(ValidationError) as exc:
        ContractService.complete_with_mileage(active_contract, 9999, "2030-03-05", store=store, engine=engine)
    assert "cannot be less than start mileage" in exc.value.message
    assert store.get_contract(active_contract)["status"] == "active"


@pytest.mark.parametrize("end_mileage,return_date,extra", [
    (-1, "2030-03-05", None),
    ("abc", "2030-03-05", None),
    (11000, "yesterday", None),
    (11000, "2030-03-05", "-10"),
    (11000, "2030-03-05", "NaN"),
    (11000, "2030-03-05", "Infinity"),
    (11000, "2030-03-05", "-Infinity"),
    (11000, "2030-03-05", float("nan")),
    ("³", "2030-03-05", None),
])
def test_bad_input_rejected(store, engine, active_contract, end_mileage, return_date, extra):
    with pytest.raises(ValidationError):
        ContractService.complete_with_mileage(active_contract, end_mileage, return_date,
                                              additional_charges=extra, store=store, engine=engine)


def test_unknown_contract(store, engine):
    with pytest.raises(ContractNotFoundError):
        ContractService.complete_with_mileage("nope", 100, "2030-03-05", store=store, engine=engine)


def test_other_company_cannot_see_contract(store, engine, active_contract):
    with pytest.raises(ContractNotFoundError):
        ContractService.complete_with_mileage(active_contract, 11000, "2030-03-05",
                                              company_id="someone-else", store=store, engine=engine)


def test_completed_contract_conflicts(store, engine, active_contract):
    ContractService.complete_with_mileage(active_contract, 11000, "2030-03-05", store=store, engine=engine)
    with pytest.raises(ContractStateError) as exc:
        ContractService.complete_with_mileage(active_contract, 11100, "2030-03-06", store=store, engine=engine)
    assert exc.value.status_code == 409


def test_failure_mid_write_rolls_everything_back(store, engine, active_contract, monkeypatch):
    def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(store, "create_notification", broken)
    with pytest.raises(OSError):
        ContractService.complete_with_mileage(active_contract, 11700, "2030-03-05", store=store, engine=engine)

    assert store.get_contract(active_contract)["status"] == "active"
    assert store.get_vehicle("v1")["mileage"] == 10000


def test_total_days_derived_when_missing(store, engine):
    seed_customer(store)
    seed_vehicle(store)
    cid = seed_contract(store, total_days=None, start_date="2030-03-01", end_date="2030-03-02")
    out = ContractService.complete_with_mileage(cid, 10500, "2030-03-02", store=store, engine=engine)
    # 2 inclusive days * 300
    assert out["mileage_summary"]["total_days"] == 2
    assert out["mileage_summary"]["total_km_allowed"] == 600


def test_uses_singletons_when_not_injected(store, active_contract):
    out = ContractService.complete_with_mileage(active_contract, 10100, "2030-03-05")
    assert out["mileage_summary"]["within_limit"] is True
    assert store.get_contract(active_contract)["status"] == "completed"


def test_non_finite_charges_reported_as_client_error(store, engine, active_contract):
    with pytest.raises(ValidationError) as exc:
        ContractService.complete_with_mileage(active_contract, 11000, "2030-03-05",
                                              additional_charges="NaN", store=store, engine=engine)
    body, code = send_error(exc.value)
    assert code == 422
    assert body["success"] is False
    assert store.get_contract(active_contract)["status"] == "active"
