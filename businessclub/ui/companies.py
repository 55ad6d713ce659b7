"""Company names and colours, player lists, input validation and card rendering."""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable

from businessclub.game import Card

COLORS = ("blue", "orange", "yellow", "red")

_INTEGER = re.compile(r"[+-]?\d+")


class CompanyProvider:
    """Knows the names and display colours of the companies."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._companies: list[str] = []

    def set_companies(self, companies: Iterable[str]) -> None:
        with self._lock:
            self._companies = list(companies)

    @property
    def companies(self) -> list[str]:
        with self._lock:
            return list(self._companies)

    def company_by_index(self, index: int) -> str:
        """Company name, or an empty string for an unknown index."""
        with self._lock:
            if 0 <= index < len(self._companies):
                return self._companies[index]
            return ""

    def color_by_index(self, index: int) -> str:
        """Company colour, or an empty string for an unknown index."""
        with self._lock:
            if 0 <= index < len(self._companies):
                return COLORS[index]
            return ""


class PlayerProvider:
    """Holds the player names of a game."""

    def __init__(self, players: Iterable[str]) -> None:
        self.players = list(players)

    def opponents_of(self, player: str) -> list[str]:
        return [p for p in self.players if p != player]


def positive_integer_validator(maximum: int) -> Callable[[str], bool]:
    """Return a check that text is an integer between 1 and maximum."""

    def validate(text: str) -> bool:
        if not _INTEGER.fullmatch(text):
            return False
        return 1 <= int(text) <= maximum

    return validate


_MOD_COLORS = {"+": "green", "-": "red", "*": "yellow", "=": "blue"}


def card_to_string(provider: CompanyProvider, card: Card) -> str:
    """Render a card's modifiers as one coloured line."""
    parts = []
    for position, modifier in enumerate(card.mods):
        if modifier.company > -1:
            name = provider.company_by_index(modifier.company)
            company = f"[{provider.color_by_index(modifier.company)}]{name:<12}"
        else:
            company = f"[fuchsia]{'???':<12}"

        text = ""
        mod = modifier.mod
        if mod is not None and mod.op in _MOD_COLORS:
            text = f"[{_MOD_COLORS[mod.op]}]{mod.op} {mod.value:<3d}"

        parts.append(f"{company} {text}")
        if position == 0:
            parts.append("   ")
    return "".join(parts)