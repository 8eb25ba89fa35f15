from .attempts import CancelToken, PendingPersist
from .coordinator import SettlementCoordinator
from .pass_status import check_pass_status

__all__ = ["CancelToken", "PendingPersist", "SettlementCoordinator", "check_pass_status"]
