from .boards import PRICE_TABLE, BoardService, price_for
from .ledger import Ledger
from .players import PlayerRepository
from .rounds import RoundLifecycle
from .winning import is_winning

__all__ = [
    "PRICE_TABLE",
    "BoardService",
    "Ledger",
    "PlayerRepository",
    "RoundLifecycle",
    "is_winning",
    "price_for",
]
