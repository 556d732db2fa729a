import sys, os, pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")

from decimal import Decimal

import pytest

from mileage_rating.config import RatingConfig
from mileage_rating.models.store import Store
from mileage_rating.services.engine import RatingEngine


@pytest.fixture(autouse=True)
def clean_rating_env(monkeypatch):
    """Drop RATING_* overrides from the outer shell so settings start at their defaults."""
    for name in list(os.environ):
        if name.upper().startswith("RATING_"):
            monkeypatch.delenv(name)


@pytest.fixture
def store(tmp_path):
    """A fresh pickle-backed store in a temp dir, never the real data.pkl."""
    return Store(tmp_path / "data.pkl")


@pytest.fixture
def engine(clean_rating_env):
    """Engine with the built-in tier table and default settings."""
    return RatingEngine(config=RatingConfig())


@pytest.fixture(autouse=True)
def isolated_singletons(monkeypatch, store, engine):
    """
    Make Store.instance() and RatingEngine.default() hand out the per-test
    objects so services called without explicit store/engine stay isolated.
    """
    monkeypatch.setattr(Store, "_inst", store)
    monkeypatch.setattr(RatingEngine, "_default", engine)
    yield


def seed_customer(store, cid="c1", total_rentals=0, apply_tier_discount=True, company_id="co1"):
    return store.create_customer({
        "customer_id": cid,
        "company_id": company_id,
        "full_name": f"Customer {cid}",
        "total_rentals": total_rentals,
        "lifetime_value": "12500.50",
        "apply_tier_discount": apply_tier_discount,
    })


def seed_vehicle(store, vid="v1", mileage=10000, status="active"):
    return store.create_vehicle({
        "vehicle_id": vid,
        "company_id": "co1",
        "brand": "Toyota",
        "model": "Corolla",
        "registration_number": "12345-116-16",
        "mileage": mileage,
        "status": "rented" if status == "active" else "available",
    })


def seed_contract(store, cid="k1", customer_id="c1", vehicle_id="v1", start_mileage=10000,
                  daily_km_limit=300, total_days=5, status="active", **extra):
    data = {
        "contract_id": cid,
        "contract_number": f"CTR-{cid.upper()}",
        "company_id": "co1",
        "customer_id": customer_id,
        "vehicle_id": vehicle_id,
        "start_date": "2030-03-01",
        "end_date": "2030-03-05",
        "total_days": total_days,
        "start_mileage": start_mileage,
        "daily_km_limit": daily_km_limit,
        "overage_rate_per_km": Decimal("20"),
        "base_amount": Decimal("25000"),
        "discount_amount": Decimal("0"),
        "additional_charges": Decimal("0"),
        "status": status,
    }
    data.update(extra)
    return store.create_contract(data)


@pytest.fixture
def active_contract(store):
    """Customer c1 (NEW tier), vehicle v1 at 10000 km, 5-day contract k1 at 300 km/day."""
    seed_customer(store)
    seed_vehicle(store)
    return seed_contract(store)
