import atexit
import copy
import logging
import os
import pickle
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- Paths ----
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATA_PATH = BASE_DIR / "data.pkl"

COLLECTIONS = ("customers", "vehicles", "contracts", "notifications")


class Store:
    _inst = None
    _inst_lock = threading.Lock()
    _atexit_registered = False

    def __init__(self, path: str | os.PathLike | None = None):
        self.path = str(path or os.getenv("RATING_DATA_PATH") or DEFAULT_DATA_PATH)
        self.customers: dict[str, dict] = {}
        self.vehicles: dict[str, dict] = {}
        self.contracts: dict[str, dict] = {}
        self.notifications: dict[str, dict] = {}
        self._rw = threading.RLock()
        self._tx_depth = 0

        logger.info("[Store] Using file: %s", self.path)
        self._load()

        # Automatically save on exit (skipped in test environments)
        if not Store._atexit_registered and os.getenv("APP_ENV") != "test":
            atexit.register(self.save)
            Store._atexit_registered = True

    # ---------- Singleton ----------
    @classmethod
    def instance(cls, path: str | os.PathLike | None = None):
        """Return the global singleton instance of Store."""
        with cls._inst_lock:
            if cls._inst is None:
                cls._inst = Store(path)
        return cls._inst

    # ---------- Persistence ----------
    def _payload(self) -> dict:
        return {name: getattr(self, name) for name in COLLECTIONS}

    def _load(self):
        """Load data from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            logger.warning("[Store] Load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict):
            for name in COLLECTIONS:
                setattr(self, name, data.get(name, {}) or {})
            logger.info(
                "[Store] Loaded: customers=%d, vehicles=%d, contracts=%d, notifications=%d",
                len(self.customers), len(self.vehicles), len(self.contracts), len(self.notifications))
        else:
            # Handle incompatible data format: backup the old file and start empty
            bak = self.path + ".bak"
            try:
                os.replace(self.path, bak)
                logger.warning("[Store] Incompatible store (%s); backed up to %s. Starting empty.",
                               type(data).__name__, bak)
            except OSError as e:
                logger.error("[Store] Backup failed: %s", e)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        if self._tx_depth:
            # Written once when the outermost transaction commits
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "wb") as f:
            pickle.dump(self._payload(), f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            logger.debug("[Store] Saving to %s ...", self.path)
            self._dump()

    @contextmanager
    def transaction(self):
        """
        Group several writes so they either all apply or none do.

        On error every collection is restored from a snapshot taken on entry
        and the exception is re-raised. Nothing is written to disk until the
        outermost transaction exits cleanly.
        """
        with self._rw:
            snapshot = copy.deepcopy(self._payload())
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                for name in COLLECTIONS:
                    setattr(self, name, snapshot[name])
                logger.warning("[Store] Transaction rolled back")
                raise
            finally:
                self._tx_depth -= 1
            self._dump()

    # ---------- Customers ----------
    def create_customer(self, data: dict) -> str:
        """Create a new customer record and return its ID."""
        with self._rw:
            cid = str(data.get("customer_id") or uuid.uuid4())
            self.customers[cid] = {
                "customer_id": cid,
                "company_id": data.get("company_id"),
                "full_name": data.get("full_name", ""),
                "email": data.get("email"),
                "phone": data.get("phone"),
                "total_rentals": int(data.get("total_rentals") or 0),
                "lifetime_value": data.get("lifetime_value", 0),
                "apply_tier_discount": data.get("apply_tier_discount", True) is not False,
            }
            self._dump()
            return cid

    def get_customer(self, customer_id: str) -> dict | None:
        return self.customers.get(str(customer_id))

    # ---------- Vehicles ----------
    def create_vehicle(self, data: dict) -> str:
        """Create a new vehicle record and return its ID."""
        with self._rw:
            vid = str(data.get("vehicle_id") or uuid.uuid4())
            self.vehicles[vid] = {
                "vehicle_id": vid,
                "company_id": data.get("company_id"),
                "brand": data.get("brand", ""),
                "model": data.get("model", ""),
                "registration_number": data.get("registration_number", ""),
                "mileage": int(data.get("mileage") or 0),
                "status": data.get("status", "available"),
            }
            self._dump()
            return vid

    def get_vehicle(self, vehicle_id: str) -> dict | None:
        """Get vehicle information by ID."""
        return self.vehicles.get(str(vehicle_id))

    def update_vehicle(self, vehicle_id: str, **updates) -> bool:
        """Update vehicle attributes; return True if updated successfully."""
        with self._rw:
            vid = str(vehicle_id)
            if vid not in self.vehicles:
                return False
            self.vehicles[vid].update({k: v for k, v in updates.items() if v is not None})
            self._dump()
            return True

    # ---------- Contracts ----------
    def create_contract(self, c: dict) -> str:
        """Create a new contract record."""
        with self._rw:
            cid = str(c.get("contract_id") or uuid.uuid4())
            c = dict(c)
            c["contract_id"] = cid
            c.setdefault("contract_number", f"CTR-{cid[:8].upper()}")
            c.setdefault("status", "active")
            self.contracts[cid] = c
            self._dump()
            return cid

    def get_contract(self, contract_id: str) -> dict | None:
        return self.contracts.get(str(contract_id))

    def update_contract(self, contract_id: str, updates: dict) -> bool:
        """Update an existing contract by ID."""
        with self._rw:
            cid = str(contract_id)
            if cid in self.contracts:
                self.contracts[cid].update(updates)
                self._dump()
                return True
            return False

    # ---------- Notifications ----------
    def create_notification(self, n: dict) -> str:
        with self._rw:
            nid = str(uuid.uuid4())
            n = dict(n)
            n["notification_id"] = nid
            n.setdefault("created_at", datetime.now(timezone.utc))
            self.notifications[nid] = n
            self._dump()
            return nid

    def find_notifications(self, type_: str, contract_id: str, since: datetime | None = None) -> list[dict]:
        """Notifications of one type about one contract, optionally created at or after ``since``."""
        out = []
        for n in self.notifications.values():
            if n.get("type") != type_:
                continue
            if (n.get("data") or {}).get("contract_id") != contract_id:
                continue
            if since is not None and n.get("created_at") < since:
                continue
            out.append(n)
        return out
