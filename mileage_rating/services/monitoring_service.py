"""Km limit alerts for contracts that are still on the road."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..exceptions import RatingError
from ..models.store import Store
from ..utils.constants import ContractStatus, NotificationType, Priority, UsageLevel
from .common import _store
from .contract_service import _contract_days
from .engine import RatingEngine
from .overage_service import estimate_charges

logger = logging.getLogger(__name__)

# Usage level -> (notification type, priority, quiet period before re-alerting)
ALERT_RULES = {
    UsageLevel.WARNING: (NotificationType.KM_LIMIT_WARNING, Priority.MEDIUM, timedelta(hours=24)),
    UsageLevel.CRITICAL: (NotificationType.KM_LIMIT_CRITICAL, Priority.HIGH, timedelta(hours=12)),
    UsageLevel.EXCEEDED: (NotificationType.KM_LIMIT_EXCEEDED, Priority.CRITICAL, timedelta(hours=6)),
}


class KmMonitoringService:
    """
    One pass over active contracts comparing the vehicle odometer with the
    contract allowance. Scheduling the pass is left to the caller.
    """

    @staticmethod
    def check_km_limit_alerts(store: Optional[Store] = None, engine: Optional[RatingEngine] = None,
                              now: Optional[datetime] = None) -> int:
        """Create any due km alerts and return how many were created."""
        st = store if store is not None else _store()
        eng = engine or RatingEngine.default()
        now = now or datetime.now(timezone.utc)

        active = [c for c in st.contracts.values()
                  if c.get("status") == ContractStatus.ACTIVE and c.get("start_mileage") is not None]
        logger.info("Checking %d active contracts for km limits", len(active))

        created = 0
        for contract in active:
            try:
                if KmMonitoringService._check_contract(st, eng, contract, now):
                    created += 1
            except RatingError as e:
                # One bad contract must not stop the sweep
                logger.warning("Skipping contract %s: %s", contract.get("contract_number"), e)

        logger.info("KM limit check completed - %d alerts created", created)
        return created

    @staticmethod
    def _check_contract(st: Store, eng: RatingEngine, contract: dict, now: datetime) -> bool:
        vehicle = st.get_vehicle(contract.get("vehicle_id"))
        customer = st.get_customer(contract.get("customer_id"))
        if not vehicle or not customer:
            logger.warning("Contract %s has no vehicle or customer", contract.get("contract_number"))
            return False

        km_driven = (vehicle.get("mileage") or 0) - contract["start_mileage"]
        if km_driven < 0:
            logger.warning("Contract %s: odometer below start mileage", contract.get("contract_number"))
            return False

        assessment = eng.assess_mileage(customer, km_driven, contract.get("daily_km_limit"),
                                        _contract_days(contract, eng))
        allowance = assessment.allowance
        usage = eng.assess_km_usage(km_driven, allowance.total_km_allowed)
        if usage.level not in ALERT_RULES:
            return False

        type_, priority, quiet = ALERT_RULES[usage.level]
        if st.find_notifications(type_, contract["contract_id"], since=now - quiet):
            return False

        number = contract.get("contract_number")
        vehicle_label = f"{vehicle.get('brand', '')} {vehicle.get('model', '')}".strip()
        data = {
            "contract_id": contract["contract_id"],
            "contract_number": number,
            "customer_id": contract.get("customer_id"),
            "vehicle_id": contract.get("vehicle_id"),
            "km_driven": km_driven,
            "km_remaining": usage.km_remaining,
            "percentage_used": usage.percentage_used,
            "total_allowed": allowance.total_km_allowed,
            "tier": allowance.tier_name,
            "alert_type": usage.level,
        }

        if usage.level == UsageLevel.EXCEEDED:
            km_over = -usage.km_remaining
            rate = contract.get("overage_rate_per_km") or assessment.overage_rate_per_km
            data.update(km_exceeded=km_over, overage_rate=rate,
                        estimated_charges=estimate_charges(km_over, rate))
            title = f"KM Limit EXCEEDED: {number}"
            message = (f"Customer {customer.get('full_name')} has exceeded km limit by {km_over}km! "
                       f"Current overage charges will apply.")
        elif usage.level == UsageLevel.CRITICAL:
            title = "URGENT: KM Limit Almost Reached"
            message = (f"Contract {number}: Only {usage.km_remaining}km remaining! "
                       f"Customer {customer.get('full_name')} should be notified immediately.")
        else:
            title = f"KM Limit Warning: {number}"
            message = (f"Vehicle {vehicle_label} has {usage.km_remaining}km remaining "
                       f"({usage.percentage_used:.0f}% used). Customer: {customer.get('full_name')}")

        st.create_notification({
            "company_id": contract.get("company_id"),
            "type": type_,
            "priority": priority,
            "title": title,
            "message": message,
            "data": data,
            "action_url": f"/contracts/{contract['contract_id']}",
            "created_at": now,
        })
        logger.info("%s: %s", type_, number)
        return True
