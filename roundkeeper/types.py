from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import List, Optional

from weeklotto.models import RoundStatus


@dataclass(frozen=True)
class RoundSnapshot:
    round_id: str
    status: RoundStatus
    week_start: dt.date
    draw_deadline: dt.datetime
    created_at: dt.datetime


@dataclass
class CycleResult:
    """What one scheduler cycle changed, and the round left open."""

    closed_round_ids: List[str] = field(default_factory=list)
    repaired_round_ids: List[str] = field(default_factory=list)
    created_round_id: Optional[str] = None
    open_round: Optional[RoundSnapshot] = None
