"""
System wiring and caller identity dependencies
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request

from ..storage import StorageInterface, InMemoryStorage, SQLiteStorage
from ..audit import AuditTrail
from ..ledger import LedgerStore
from ..access import AccessFilter
from ..payments import PaymentEngine
from ..deposits import DepositEngine
from ..reporting import ReportingEngine
from ..models import CallerIdentity
from ..seed import seed_demo_data
from ..config import BrokerageConfig, get_config
from ..logging_config import get_logger


class BrokerageSystem:
    """Ledger core with all components initialized over one storage backend"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[BrokerageConfig] = None):
        self.config = config or get_config()

        if storage is None:
            if self.config.storage_backend == "memory":
                storage = InMemoryStorage()
            else:
                storage = SQLiteStorage(self.config.sqlite_path)
        self.storage = storage

        self.audit_trail = AuditTrail(self.storage) if self.config.enable_audit_logging else None
        self.store = LedgerStore(self.storage, self.audit_trail)
        self.access_filter = AccessFilter(self.store)
        self.payment_engine = PaymentEngine(self.store, self.audit_trail)
        self.deposit_engine = DepositEngine(
            self.store, self.audit_trail, cap_ratio=self.config.deposit_cap_ratio
        )
        self.reporting_engine = ReportingEngine(
            self.store, default_limit=self.config.best_clients_default_limit
        )

        if self.config.seed_demo_data and self.storage.count("profiles") == 0:
            seed_demo_data(self.store)


_brokerage_system: Optional[BrokerageSystem] = None


def get_brokerage_system() -> BrokerageSystem:
    """Dependency returning the process-wide system, built on first use"""
    global _brokerage_system
    if _brokerage_system is None:
        _brokerage_system = BrokerageSystem()
    return _brokerage_system


def get_caller(
    request: Request,
    system: BrokerageSystem = Depends(get_brokerage_system)
) -> CallerIdentity:
    """
    Resolve the calling profile from the identity header.

    The header value is trusted as already authenticated. A missing,
    malformed or unknown id is rejected before any core operation runs.
    """
    raw_id = request.headers.get(system.config.profile_header)
    if not raw_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        profile_id = int(raw_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid profile id")

    profile = system.store.get_profile(profile_id)
    if not profile:
        get_logger("brokerage.api").warning(f"Rejected request for unknown profile {profile_id}")
        raise HTTPException(status_code=401, detail="Unknown profile")

    return CallerIdentity.from_profile(profile)
