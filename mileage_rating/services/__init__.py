from .contract_service import ContractService
from .engine import RatingEngine
from .monitoring_service import KmMonitoringService

__all__ = [
    "ContractService",
    "KmMonitoringService",
    "RatingEngine",
]
