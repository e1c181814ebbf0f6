from __future__ import annotations

import datetime as dt
import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional

from sqlalchemy import func

from ..db import session_scope
from ..errors import AlreadyApproved, DepositNotFound, InvalidAmount, InvalidReference
from ..models import CENT, Board, Deposit, money, utcnow
from .players import load_player

MAX_DEPOSIT_AMOUNT = Decimal("100000.00")
MAX_REFERENCE_LENGTH = 50

logger = logging.getLogger("weeklotto.ledger")


def _validate_amount(raw: Any) -> Decimal:
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"Amount {raw!r} is not a number") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount("Amount must be greater than zero")
    if amount != amount.quantize(CENT):
        raise InvalidAmount("Amount cannot have more than two decimal places")
    if amount > MAX_DEPOSIT_AMOUNT:
        raise InvalidAmount(f"Amount cannot exceed {MAX_DEPOSIT_AMOUNT}")
    return amount.quantize(CENT)


def _validate_reference(raw: Optional[str]) -> str:
    reference = (raw or "").strip()
    if not reference:
        raise InvalidReference("External payment reference is required")
    if len(reference) > MAX_REFERENCE_LENGTH:
        raise InvalidReference(
            f"External payment reference must be at most {MAX_REFERENCE_LENGTH} characters"
        )
    return reference


def compute_balance(session, player_id: str) -> Decimal:
    """Approved deposits minus the price of every live board, never below zero."""
    credited = (
        session.query(func.coalesce(func.sum(Deposit.amount), 0))
        .filter(
            Deposit.player_id == player_id,
            Deposit.is_approved.is_(True),
            Deposit.is_deleted.is_(False),
        )
        .scalar()
    )
    charged = (
        session.query(func.coalesce(func.sum(Board.price), 0))
        .filter(Board.player_id == player_id, Board.is_deleted.is_(False))
        .scalar()
    )
    return max(money(0), money(credited) - money(charged))


class Ledger:
    def __init__(self, clock: Callable[[], dt.datetime] = utcnow) -> None:
        self._clock = clock

    def balance(self, player_id: str) -> Decimal:
        with session_scope() as session:
            load_player(session, player_id)
            return compute_balance(session, player_id)

    def record_deposit(self, player_id: str, amount: Any, external_ref: str) -> Deposit:
        value = _validate_amount(amount)
        reference = _validate_reference(external_ref)
        with session_scope() as session:
            load_player(session, player_id)
            deposit = Deposit(
                id=str(uuid.uuid4()),
                player_id=player_id,
                amount=value,
                external_ref=reference,
                is_approved=False,
                created_at=self._clock(),
            )
            session.add(deposit)
            session.flush()
            session.refresh(deposit)
            session.expunge(deposit)
        logger.info("Deposit %s of %s recorded for player %s", deposit.id, value, player_id)
        return deposit

    def _load_deposit(self, session, deposit_id: str) -> Deposit:
        deposit = (
            session.query(Deposit)
            .filter(Deposit.id == deposit_id, Deposit.is_deleted.is_(False))
            .first()
        )
        if deposit is None:
            raise DepositNotFound(deposit_id)
        return deposit

    def _pending(self, session, deposit_id: str):
        return session.query(Deposit).filter(
            Deposit.id == deposit_id,
            Deposit.is_approved.is_(False),
            Deposit.is_deleted.is_(False),
        )

    def _raise_lost_update(self, session, deposit_id: str) -> None:
        """Another writer changed the deposit after it was read; report what it became."""
        session.expire_all()
        current = session.get(Deposit, deposit_id)
        if current is None or current.is_deleted:
            raise DepositNotFound(deposit_id)
        raise AlreadyApproved(deposit_id)

    def get_deposit(self, deposit_id: str) -> Deposit:
        with session_scope() as session:
            deposit = self._load_deposit(session, deposit_id)
            session.expunge(deposit)
            return deposit

    def approve_deposit(self, deposit_id: str, override_amount: Any = None) -> Deposit:
        corrected = _validate_amount(override_amount) if override_amount is not None else None
        with session_scope() as session:
            deposit = self._load_deposit(session, deposit_id)
            if deposit.is_approved:
                raise AlreadyApproved(deposit_id)

            values = {Deposit.is_approved: True, Deposit.approved_at: self._clock()}
            if corrected is not None:
                values[Deposit.amount] = corrected
            # Conditional update: only one approver can flip a pending deposit.
            updated = self._pending(session, deposit_id).update(values, synchronize_session=False)
            if updated != 1:
                self._raise_lost_update(session, deposit_id)

            session.refresh(deposit)
            session.expunge(deposit)
        logger.info("Deposit %s approved for %s", deposit.id, money(deposit.amount))
        return deposit

    def dismiss_deposit(self, deposit_id: str) -> Deposit:
        with session_scope() as session:
            deposit = self._load_deposit(session, deposit_id)
            if deposit.is_approved:
                raise AlreadyApproved(deposit_id)

            updated = self._pending(session, deposit_id).update(
                {Deposit.is_deleted: True, Deposit.deleted_at: self._clock()},
                synchronize_session=False,
            )
            if updated != 1:
                self._raise_lost_update(session, deposit_id)

            session.refresh(deposit)
            session.expunge(deposit)
        logger.info("Deposit %s dismissed", deposit.id)
        return deposit

    def list_pending_deposits(self) -> List[Deposit]:
        with session_scope() as session:
            deposits = (
                session.query(Deposit)
                .filter(Deposit.is_approved.is_(False), Deposit.is_deleted.is_(False))
                .order_by(Deposit.created_at)
                .all()
            )
            for deposit in deposits:
                session.expunge(deposit)
            return deposits

    def list_player_deposits(self, player_id: str) -> List[Deposit]:
        with session_scope() as session:
            load_player(session, player_id)
            deposits = (
                session.query(Deposit)
                .filter(Deposit.player_id == player_id, Deposit.is_deleted.is_(False))
                .order_by(Deposit.created_at.desc())
                .all()
            )
            for deposit in deposits:
                session.expunge(deposit)
            return deposits
