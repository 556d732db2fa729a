"""
seeds.py
--------
Populate the local data.pkl with demo customers (one per tier), vehicles and
active contracts so the estimate / completion / monitoring flows have
something to work on.

Usage:
    $ python seeds.py
"""

import logging
from datetime import date, timedelta

from mileage_rating import create_engine
from mileage_rating.models.store import Store
from mileage_rating.services.contract_service import ContractService

logger = logging.getLogger(__name__)

DEMO_COMPANY = "demo-company"

DEMO_CUSTOMERS = [
    {"customer_id": "cust-new", "full_name": "Amine Benali", "total_rentals": 0},
    {"customer_id": "cust-bronze", "full_name": "Sara Khelifi", "total_rentals": 7},
    {"customer_id": "cust-silver", "full_name": "Yacine Haddad", "total_rentals": 18},
    {"customer_id": "cust-gold", "full_name": "Nadia Mansouri", "total_rentals": 42},
    {"customer_id": "cust-platinum", "full_name": "Karim Zeroual", "total_rentals": 75},
    {"customer_id": "cust-optout", "full_name": "Lina Ferhat", "total_rentals": 75,
     "apply_tier_discount": False},
]

DEMO_VEHICLES = [
    {"vehicle_id": "veh-corolla", "brand": "Toyota", "model": "Corolla",
     "registration_number": "12345-116-16", "mileage": 42000},
    {"vehicle_id": "veh-clio", "brand": "Renault", "model": "Clio",
     "registration_number": "23456-118-16", "mileage": 15500},
    {"vehicle_id": "veh-tucson", "brand": "Hyundai", "model": "Tucson",
     "registration_number": "34567-120-31", "mileage": 8800},
]


def ensure_customer(store: Store, data: dict) -> str:
    """Create the customer if it does not exist yet (idempotent)."""
    if store.get_customer(data["customer_id"]):
        return data["customer_id"]
    return store.create_customer(dict(data, company_id=DEMO_COMPANY))


def seed(store: Store, engine=None, today: date | None = None) -> dict:
    """Seed demo data into ``store`` and return the ids that were created."""
    engine = engine or create_engine()
    today = today or date.today()

    customer_ids = [ensure_customer(store, c) for c in DEMO_CUSTOMERS]

    contract_ids = []
    if not store.vehicles:
        for v in DEMO_VEHICLES:
            store.create_vehicle(dict(v, company_id=DEMO_COMPANY))

        # One active contract per vehicle, for a spread of tiers
        pairs = zip(("cust-new", "cust-gold", "cust-optout"), DEMO_VEHICLES)
        for i, (cust_id, v) in enumerate(pairs):
            start = today - timedelta(days=2)
            end = today + timedelta(days=i + 1)
            contract_ids.append(ContractService.open_contract(
                cust_id, v["vehicle_id"], start.isoformat(), end.isoformat(),
                base_amount=4500 * (i + 3), company_id=DEMO_COMPANY,
                store=store, engine=engine,
            ))

    store.save()
    return {"customers": customer_ids, "contracts": contract_ids}


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    engine = create_engine()
    store = Store.instance(engine.config.data_path)
    created = seed(store, engine)

    logger.info("Seed complete: %d customers, %d new contracts",
                len(created["customers"]), len(created["contracts"]))


if __name__ == "__main__":
    main()
