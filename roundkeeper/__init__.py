from .round_client import RoundStoreClient
from .scheduler import RoundScheduler, RoundStoreProtocol
from .types import CycleResult, RoundSnapshot

__all__ = [
    "CycleResult",
    "RoundScheduler",
    "RoundSnapshot",
    "RoundStoreClient",
    "RoundStoreProtocol",
]
