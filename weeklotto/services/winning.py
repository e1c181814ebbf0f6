from __future__ import annotations

from typing import Iterable


def is_winning(board_numbers: Iterable[int], drawn: Iterable[int]) -> bool:
    """A board wins when it contains every drawn number, in any order.

    Repeated drawn numbers collapse, so ``(3, 3, 9)`` only needs 3 and 9 on
    the board.
    """
    return set(drawn).issubset(board_numbers)
