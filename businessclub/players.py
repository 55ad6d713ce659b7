"""Server-side players and a thread-safe, key-ordered player registry."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from businessclub.game import STOCK_SLOTS, Card


@dataclass(eq=False)
class ServerPlayer:
    """A player in a running lobby: connection, readiness and holdings."""

    conn: Any
    key: str
    name: str = ""
    cash: int = 0
    stocks: list[int] = field(default_factory=lambda: [0] * STOCK_SLOTS)
    hand: list[Card] = field(default_factory=list)
    ready: bool = False

    def add_cash(self, delta: int) -> None:
        self.cash += delta

    def add_stocks(self, index: int, delta: int) -> None:
        """Change a stock holding; an index outside 0-3 is ignored."""
        if 0 <= index < STOCK_SLOTS:
            self.stocks[index] += delta


class PlayerMap:
    """Players by reconnect key, kept in sorted key order."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._players: dict[str, ServerPlayer] = {}
        self._order: list[str] = []

    def add(self, key: str, player: ServerPlayer) -> None:
        with self._lock:
            self._players[key] = player
            self._order = sorted(self._players)

    def remove(self, key: str) -> None:
        with self._lock:
            self._players.pop(key, None)
            self._order = sorted(self._players)

    def keys(self) -> list[str]:
        """A copy of the keys in sorted order."""
        with self._lock:
            return list(self._order)

    def get(self, key: str) -> ServerPlayer | None:
        with self._lock:
            return self._players.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)

    def __iter__(self) -> Iterator[ServerPlayer]:
        with self._lock:
            snapshot = [self._players[k] for k in self._order]
        return iter(snapshot)