"""
Serialization helpers for balance and round mutations.

Two layers are used together:

- an in-process lock per key, so threads of one worker never interleave a
  read-check-write sequence on the same player or round;
- ``SELECT ... FOR UPDATE`` on the row, so separate processes sharing a
  database that supports row locks are serialized too (SQLite ignores it).
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple

from sqlalchemy.orm import Query, Session

from .models import Player, Round

_registry_lock = threading.Lock()
# key -> [lock, number of threads holding or waiting on it]
_locks: Dict[Tuple[str, str], List] = {}


def _checkout(namespace: str, key: str) -> threading.Lock:
    with _registry_lock:
        entry = _locks.get((namespace, key))
        if entry is None:
            entry = [threading.Lock(), 0]
            _locks[(namespace, key)] = entry
        entry[1] += 1
        return entry[0]


def _release(namespace: str, key: str) -> None:
    with _registry_lock:
        entry = _locks[(namespace, key)]
        entry[1] -= 1
        if entry[1] == 0:
            del _locks[(namespace, key)]


def registry_size() -> int:
    with _registry_lock:
        return len(_locks)


@contextmanager
def keyed_lock(namespace: str, key: str) -> Iterator[None]:
    """Hold the lock for ``key``; the entry is dropped once nobody uses it."""
    lock = _checkout(namespace, key)
    try:
        with lock:
            yield
    finally:
        _release(namespace, key)


def player_lock(player_id: str):
    return keyed_lock("player", player_id)


def round_lock(round_id: str):
    return keyed_lock("round", round_id)


def with_player_lock(player_id: str, session: Session) -> Query:
    """Row-locking query for a player; call ``.first()`` inside a transaction."""
    return session.query(Player).filter(
        Player.id == player_id, Player.is_deleted.is_(False)
    ).with_for_update(nowait=False)


def with_round_lock(round_id: str, session: Session) -> Query:
    return session.query(Round).filter(Round.id == round_id).with_for_update(nowait=False)
