from __future__ import annotations

import datetime as dt
import os
import shutil
import tempfile
import unittest
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from weeklotto import db
from weeklotto.config import load_settings
from weeklotto.models import Round, RoundStatus
from weeklotto.routes.common import reset_services
from weeklotto.services import Ledger, PlayerRepository

MEMORY_URL = "sqlite:///:memory:"


class FrozenClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **delta) -> dt.datetime:
        self.now += dt.timedelta(**delta)
        return self.now


class DatabaseTestCase(unittest.TestCase):
    """Fresh database per test; subclasses may point ``database_url`` at a file."""

    database_url = MEMORY_URL

    def setUp(self) -> None:
        os.environ["DATABASE_URL"] = self.database_url
        load_settings.cache_clear()
        reset_services()
        db.configure_engine(self.database_url)
        db.init_db()
        self.players = PlayerRepository()

    def tearDown(self) -> None:
        db.SessionLocal.remove()
        db.get_engine().dispose()
        load_settings.cache_clear()
        reset_services()

    def make_player(self, name: str = "Test Player", active: bool = True):
        return self.players.create_player(
            full_name=name,
            email=f"{uuid.uuid4().hex[:8]}@example.test",
            phone_number="+4512345678",
            is_active=active,
        )

    def fund(self, player_id: str, amount, ledger: Ledger = None) -> None:
        ledger = ledger or Ledger()
        deposit = ledger.record_deposit(player_id, Decimal(str(amount)), f"MP-{uuid.uuid4().hex[:10]}")
        ledger.approve_deposit(deposit.id)

    def insert_round(
        self,
        draw_deadline: dt.datetime,
        status: RoundStatus = RoundStatus.OPEN,
        created_at: dt.datetime = None,
    ) -> str:
        """Insert a round directly, bypassing the one-open-round check."""
        round_id = str(uuid.uuid4())
        with db.session_scope() as session:
            session.add(
                Round(
                    id=round_id,
                    week_start=(draw_deadline - dt.timedelta(days=7)).date(),
                    draw_deadline=draw_deadline,
                    status=status.value,
                    created_at=created_at or draw_deadline - dt.timedelta(days=7),
                )
            )
        return round_id


class FileDatabaseTestCase(DatabaseTestCase):
    """Database in a temporary file, so separate connections see each other's commits."""

    def setUp(self) -> None:
        self._tmpdir = tempfile.mkdtemp()
        self.database_url = "sqlite:///" + os.path.join(self._tmpdir, "lottery.db")
        super().setUp()

    def tearDown(self) -> None:
        super().tearDown()
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def other_session(self) -> Session:
        """A session on its own connection, outside the thread's scoped session."""
        return Session(bind=db.get_engine())
