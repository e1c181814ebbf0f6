from __future__ import annotations

import uuid
from typing import List

from ..db import session_scope
from ..errors import PlayerNotFound, ValidationError
from ..models import Player, utcnow


def load_player(session, player_id: str) -> Player:
    player = (
        session.query(Player)
        .filter(Player.id == player_id, Player.is_deleted.is_(False))
        .first()
    )
    if player is None:
        raise PlayerNotFound(player_id)
    return player


class PlayerRepository:
    def create_player(
        self, full_name: str, email: str, phone_number: str, is_active: bool = False
    ) -> Player:
        full_name = (full_name or "").strip()
        if not 3 <= len(full_name) <= 100:
            raise ValidationError("Full name must be between 3 and 100 characters")
        if "@" not in (email or ""):
            raise ValidationError("Invalid email address")
        if not phone_number:
            raise ValidationError("Phone number is required")

        with session_scope() as session:
            player = Player(
                id=str(uuid.uuid4()),
                full_name=full_name,
                email=email,
                phone_number=phone_number,
                is_active=is_active,
                created_at=utcnow(),
            )
            session.add(player)
            session.flush()
            session.refresh(player)
            session.expunge(player)
            return player

    def get_player(self, player_id: str) -> Player:
        with session_scope() as session:
            player = load_player(session, player_id)
            session.expunge(player)
            return player

    def list_players(self) -> List[Player]:
        with session_scope() as session:
            players = (
                session.query(Player)
                .filter(Player.is_deleted.is_(False))
                .order_by(Player.created_at)
                .all()
            )
            for player in players:
                session.expunge(player)
            return players

    def set_active(self, player_id: str, is_active: bool) -> Player:
        with session_scope() as session:
            player = load_player(session, player_id)
            player.is_active = is_active
            session.flush()
            session.refresh(player)
            session.expunge(player)
            return player
