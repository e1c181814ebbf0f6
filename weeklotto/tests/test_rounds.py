import datetime as dt
import unittest
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from weeklotto import locks
from weeklotto.errors import (
    AlreadySettled,
    DrawWindowExpired,
    NumberOutOfRange,
    NumbersAlreadyDrawn,
    RefundWindowNotYetOpen,
    RoundAlreadyOpen,
    RoundNotClosed,
    RoundNotFound,
    RoundNotOpen,
    RoundNotSettled,
)
from weeklotto.models import Round, RoundStatus, WinningNumbers
from weeklotto.services import BoardService, Ledger, RoundLifecycle

from .support import DatabaseTestCase, FileDatabaseTestCase, FrozenClock

DEADLINE = dt.datetime(2025, 1, 18, 16, 0)
WEEK_START = dt.date(2025, 1, 11)


class RoundLifecycleTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.clock = FrozenClock(DEADLINE - dt.timedelta(days=1))
        self.rounds = RoundLifecycle(clock=self.clock)
        self.boards = BoardService(clock=self.clock)
        self.ledger = Ledger(clock=self.clock)
        self.player = self.make_player()

    def _closed_round_with_boards(self):
        round_ = self.rounds.create_round(WEEK_START, DEADLINE)
        self.fund(self.player.id, 100, ledger=self.ledger)
        winner = self.boards.purchase(self.player.id, round_.id, 5, [1, 2, 5, 7, 8])
        loser = self.boards.purchase(self.player.id, round_.id, 6, [1, 2, 3, 4, 6, 9])
        self.clock.now = DEADLINE
        self.assertEqual(self.rounds.close_expired_rounds(), [round_.id])
        return round_.id, winner, loser

    def test_only_one_round_is_open_at_a_time(self) -> None:
        first = self.rounds.create_round(WEEK_START, DEADLINE)
        with self.assertRaises(RoundAlreadyOpen):
            self.rounds.create_round(WEEK_START + dt.timedelta(days=7), DEADLINE + dt.timedelta(days=7))

        current = self.rounds.current_open_round()
        self.assertEqual(current["round_id"], first.id)
        self.assertEqual(current["status"], "open")
        self.assertEqual(current["display_status"], "Open")
        self.assertEqual(current["board_count"], 0)
        self.assertIsNone(current["winning_numbers"])

        self.rounds.close_round(first.id)
        self.assertIsNone(self.rounds.current_open_round())
        second = self.rounds.create_round(WEEK_START + dt.timedelta(days=7), DEADLINE + dt.timedelta(days=7))
        self.assertEqual(self.rounds.current_open_round()["round_id"], second.id)

    def test_close_round_requires_open_round(self) -> None:
        round_ = self.rounds.create_round(WEEK_START, DEADLINE)
        closed = self.rounds.close_round(round_.id)
        self.assertEqual(closed.round_status, RoundStatus.CLOSED)
        self.assertEqual(closed.closed_at, self.clock.now)
        with self.assertRaises(RoundNotOpen):
            self.rounds.close_round(round_.id)
        with self.assertRaises(RoundNotFound):
            self.rounds.close_round("missing")

    def test_close_expired_rounds_only_touches_past_deadlines(self) -> None:
        round_ = self.rounds.create_round(WEEK_START, DEADLINE)
        self.assertEqual(self.rounds.close_expired_rounds(), [])
        self.assertEqual(self.rounds.close_expired_rounds(DEADLINE), [round_.id])
        self.assertEqual(self.rounds.close_expired_rounds(DEADLINE), [])
        self.assertEqual(self.rounds.get_round(round_.id)["display_status"], "Closed-PendingNumbers")

    def test_draw_requires_closed_round(self) -> None:
        round_ = self.rounds.create_round(WEEK_START, DEADLINE)
        with self.assertRaises(RoundNotClosed) as ctx:
            self.rounds.draw_numbers(round_.id, 1, 2, 3)
        self.assertEqual(ctx.exception.details["status"], "open")
        with self.assertRaises(RoundNotFound):
            self.rounds.draw_numbers("missing", 1, 2, 3)

    def test_drawn_numbers_must_be_in_range(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        with self.assertRaises(NumberOutOfRange):
            self.rounds.draw_numbers(round_id, 0, 2, 3)
        with self.assertRaises(NumberOutOfRange):
            self.rounds.draw_numbers(round_id, 1, 2, 17)
        self.assertEqual(self.rounds.get_round(round_id)["status"], "closed")

    def test_draw_marks_winning_boards(self) -> None:
        round_id, winner, loser = self._closed_round_with_boards()
        self.clock.advance(hours=23, minutes=59)

        result = self.rounds.draw_numbers(round_id, 7, 1, 5)

        self.assertEqual(result["winning_numbers"], [7, 1, 5])
        self.assertEqual(result["total_boards"], 2)
        self.assertEqual(result["winning_board_count"], 1)
        self.assertEqual([b.id for b in self.rounds.winning_boards(round_id)], [winner.id])
        self.assertFalse(self.boards.get_board(loser.id).is_winning)

        summary = self.rounds.get_round(round_id)
        self.assertEqual(summary["status"], "settled")
        self.assertEqual(summary["display_status"], "Completed")
        self.assertEqual(summary["winning_numbers"]["numbers"], [7, 1, 5])
        self.assertEqual(summary["winning_board_count"], 1)
        # Winnings are paid outside the system; the balance only reflects the purchases.
        self.assertEqual(self.ledger.balance(self.player.id), Decimal("40.00"))

    def test_numbers_are_drawn_once(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        self.rounds.draw_numbers(round_id, 1, 2, 5)

        with self.assertRaises(NumbersAlreadyDrawn):
            self.rounds.draw_numbers(round_id, 3, 4, 6)
        self.assertEqual(self.rounds.get_round(round_id)["winning_numbers"]["numbers"], [1, 2, 5])

    def test_repeated_drawn_numbers_are_accepted(self) -> None:
        round_id, winner, _ = self._closed_round_with_boards()
        result = self.rounds.draw_numbers(round_id, 8, 8, 8)
        self.assertEqual(result["winning_board_count"], 1)
        self.assertEqual([b.id for b in self.rounds.winning_boards(round_id)], [winner.id])

    def test_draw_window_boundary(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        self.clock.now = DEADLINE + dt.timedelta(hours=24)
        result = self.rounds.draw_numbers(round_id, 1, 2, 3)
        self.assertEqual(result["round_id"], round_id)

    def test_draw_after_window_is_rejected(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        self.clock.now = DEADLINE + dt.timedelta(hours=24, minutes=1)

        with self.assertRaises(DrawWindowExpired) as ctx:
            self.rounds.draw_numbers(round_id, 1, 2, 5)

        self.assertEqual(ctx.exception.kind, "TimingViolation")
        self.assertEqual(ctx.exception.window_closed_at, DEADLINE + dt.timedelta(hours=24))
        self.assertEqual(self.rounds.get_round(round_id)["status"], "closed")

    def test_refund_waits_for_the_draw_window(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        self.clock.advance(hours=23)

        with self.assertRaises(RefundWindowNotYetOpen) as ctx:
            self.rounds.refund(round_id)

        self.assertAlmostEqual(ctx.exception.hours_remaining, 1.0)
        self.assertIn("1.0 hours remaining", str(ctx.exception))

        self.clock.now = DEADLINE + dt.timedelta(hours=24)
        with self.assertRaises(RefundWindowNotYetOpen):
            self.rounds.refund(round_id)

    def test_refund_voids_round_and_restores_balance(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        self.assertEqual(self.ledger.balance(self.player.id), Decimal("40.00"))
        self.clock.now = DEADLINE + dt.timedelta(hours=25)

        result = self.rounds.refund(round_id)

        self.assertEqual(result, {"round_id": round_id, "refunded_board_count": 2})
        self.assertEqual(self.ledger.balance(self.player.id), Decimal("100.00"))
        self.assertEqual(self.boards.list_round_boards(round_id), [])
        summary = self.rounds.get_round(round_id)
        self.assertEqual(summary["status"], "voided")
        self.assertEqual(summary["display_status"], "Refunded")
        self.assertEqual(summary["board_count"], 0)

        with self.assertRaises(RoundNotClosed):
            self.rounds.refund(round_id)
        with self.assertRaises(RoundNotClosed):
            self.rounds.draw_numbers(round_id, 1, 2, 3)

    def test_settled_round_cannot_be_refunded(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        self.rounds.draw_numbers(round_id, 1, 2, 5)
        self.clock.now = DEADLINE + dt.timedelta(hours=30)

        with self.assertRaises(AlreadySettled):
            self.rounds.refund(round_id)
        self.assertEqual(self.ledger.balance(self.player.id), Decimal("40.00"))

    def test_open_round_cannot_be_refunded(self) -> None:
        round_ = self.rounds.create_round(WEEK_START, DEADLINE)
        self.clock.now = DEADLINE + dt.timedelta(days=3)
        with self.assertRaises(RoundNotClosed):
            self.rounds.refund(round_.id)

    def test_winning_boards_need_a_draw(self) -> None:
        round_id, _, _ = self._closed_round_with_boards()
        with self.assertRaises(RoundNotSettled):
            self.rounds.winning_boards(round_id)
        with self.assertRaises(RoundNotFound):
            self.rounds.winning_boards("missing")

    def test_rounds_are_listed_newest_week_first(self) -> None:
        older = self.insert_round(DEADLINE - dt.timedelta(days=7), status=RoundStatus.VOIDED)
        oldest = self.insert_round(DEADLINE - dt.timedelta(days=14), status=RoundStatus.SETTLED)
        current = self.rounds.create_round(WEEK_START, DEADLINE)

        listed = self.rounds.list_rounds()

        self.assertEqual([r["round_id"] for r in listed], [current.id, older, oldest])
        self.assertEqual(
            [r["display_status"] for r in listed], ["Open", "Refunded", "Completed"]
        )

    def test_open_rounds_newest_first(self) -> None:
        older = self.insert_round(DEADLINE, created_at=dt.datetime(2025, 1, 11, 16, 0))
        newer = self.insert_round(DEADLINE, created_at=dt.datetime(2025, 1, 11, 17, 0))
        self.assertEqual([r.id for r in self.rounds.open_rounds()], [newer, older])

    def test_get_unknown_round(self) -> None:
        with self.assertRaises(RoundNotFound):
            self.rounds.get_round("missing")


class InterleavedLifecycle(RoundLifecycle):
    """Runs ``interleave`` once, after the guard checks and before the status update."""

    def __init__(self, interleave, **kwargs) -> None:
        super().__init__(**kwargs)
        self._interleave = interleave

    def _transition(self, session, round_id, source, target, **columns):
        interleave, self._interleave = self._interleave, None
        if interleave is not None:
            interleave(round_id)
        return super()._transition(session, round_id, source, target, **columns)


class SettlementRaceTests(FileDatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.clock = FrozenClock(DEADLINE - dt.timedelta(hours=2))
        self.player = self.make_player()
        self.fund(self.player.id, 100)
        self.round_id = self.insert_round(DEADLINE)
        self.board = BoardService(clock=self.clock).purchase(
            self.player.id, self.round_id, 5, [1, 2, 5, 7, 8]
        )
        RoundLifecycle(clock=self.clock).close_round(self.round_id)

    def _lifecycle(self, interleave, at: dt.datetime) -> RoundLifecycle:
        self.clock.now = at
        return InterleavedLifecycle(interleave, clock=self.clock)

    def _store_elsewhere(self, status=None, numbers=None):
        def interleave(round_id: str) -> None:
            with self.other_session() as other:
                if status is not None:
                    other.query(Round).filter(Round.id == round_id).update(
                        {Round.status: status.value}, synchronize_session=False
                    )
                if numbers is not None:
                    n1, n2, n3 = numbers
                    other.add(
                        WinningNumbers(
                            round_id=round_id, number1=n1, number2=n2, number3=n3,
                            drawn_at=self.clock.now,
                        )
                    )
                other.commit()

        return interleave

    def _stored_numbers(self):
        return RoundLifecycle().get_round(self.round_id)["winning_numbers"]["numbers"]

    def test_draw_losing_to_another_draw(self) -> None:
        lifecycle = self._lifecycle(
            self._store_elsewhere(RoundStatus.SETTLED, (3, 4, 6)), DEADLINE + dt.timedelta(hours=1)
        )

        with self.assertRaises(NumbersAlreadyDrawn):
            lifecycle.draw_numbers(self.round_id, 1, 2, 5)

        self.assertEqual(self._stored_numbers(), [3, 4, 6])
        self.assertFalse(BoardService().get_board(self.board.id).is_winning)

    def test_second_winning_row_is_rejected_by_the_key(self) -> None:
        lifecycle = self._lifecycle(
            self._store_elsewhere(numbers=(3, 4, 6)), DEADLINE + dt.timedelta(hours=1)
        )

        with self.assertRaises(NumbersAlreadyDrawn):
            lifecycle.draw_numbers(self.round_id, 1, 2, 5)

        self.assertEqual(self._stored_numbers(), [3, 4, 6])
        self.assertFalse(BoardService().get_board(self.board.id).is_winning)

    def test_draw_losing_to_a_refund(self) -> None:
        lifecycle = self._lifecycle(
            self._store_elsewhere(RoundStatus.VOIDED), DEADLINE + dt.timedelta(hours=1)
        )

        with self.assertRaises(RoundNotClosed) as ctx:
            lifecycle.draw_numbers(self.round_id, 1, 2, 5)

        self.assertEqual(ctx.exception.details["status"], "voided")
        self.assertIsNone(RoundLifecycle().get_round(self.round_id)["winning_numbers"])

    def test_refund_losing_to_a_draw(self) -> None:
        lifecycle = self._lifecycle(
            self._store_elsewhere(RoundStatus.SETTLED, (1, 2, 5)), DEADLINE + dt.timedelta(hours=30)
        )

        with self.assertRaises(AlreadySettled):
            lifecycle.refund(self.round_id)

        self.assertEqual(self._stored_numbers(), [1, 2, 5])
        self.assertEqual(len(BoardService().list_round_boards(self.round_id)), 1)
        self.assertEqual(Ledger().balance(self.player.id), Decimal("80.00"))

    def test_parallel_draws_settle_once(self) -> None:
        self.clock.now = DEADLINE + dt.timedelta(hours=1)
        lifecycle = RoundLifecycle(clock=self.clock)
        draws = [(1, 2, 5), (3, 4, 6), (7, 8, 9), (10, 11, 12)]

        def attempt(numbers):
            try:
                lifecycle.draw_numbers(self.round_id, *numbers)
                return numbers
            except NumbersAlreadyDrawn:
                return None

        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = [result for result in pool.map(attempt, draws) if result is not None]

        self.assertEqual(len(outcomes), 1)
        self.assertEqual(self._stored_numbers(), list(outcomes[0]))
        self.assertEqual(locks.registry_size(), 0)


if __name__ == "__main__":
    unittest.main()
