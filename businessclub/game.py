"""Core game data: cards, price modifiers, assets and player wealth levels."""

from __future__ import annotations

import json
import random
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

MAX_PLAYERS = 4
MAX_TURNS = 15
STARTING_CASH = 100
STARTING_PRICE = 150
MAX_PRICE = 400
WILDCARD_COMPANY = -1
STOCK_SLOTS = 4

VERSION = "0.0.0-dev"

MOD_OPERATORS = ("+", "-", "*", "=")

_INTEGER = re.compile(r"[+-]?\d+")


class TurnPhase(IntEnum):
    """Phase of a player's turn."""

    ACTION = 0
    TRADE = 1


def _field(data: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Look a key up exactly first, then ignoring case."""
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return default


def _parse_int(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(text)
    return int(text)


def _four(values: Any) -> list[int]:
    """Fit a sequence into exactly four integer slots."""
    slots = [int(v) for v in (values or [])][:STOCK_SLOTS]
    return slots + [0] * (STOCK_SLOTS - len(slots))


@dataclass(frozen=True)
class Mod:
    """A stock price modifier: an operator and its operand."""

    op: str
    value: int

    def calculate(self, price: int) -> int:
        """Apply the modifier to a price."""
        if self.op == "+":
            return price + self.value
        if self.op == "-":
            return price - self.value
        if self.op == "*":
            return price * self.value
        if self.op == "=":
            return self.value
        return 0

    def __str__(self) -> str:
        return f"{self.op} {self.value}"


def parse_mod(text: Any) -> Mod:
    """Parse a modifier written as "<op> <value>", e.g. "+ 100"."""
    if not isinstance(text, str):
        raise ValueError(f"mod must consist of two parts separated by one space: {text!r}")
    parts = text.strip('"').split(" ")
    if len(parts) != 2:
        raise ValueError(f"mod must consist of two parts separated by one space: {text}")
    op, raw_value = parts
    try:
        value = _parse_int(raw_value)
    except ValueError:
        raise ValueError(f"mod value must be an integer: {raw_value}") from None
    if op not in MOD_OPERATORS:
        raise ValueError(f"invalid mod definition: {text}")
    return Mod(op, value)


@dataclass
class Modifier:
    """A price modifier bound to a company (or the wildcard company)."""

    company: int
    mod: Mod | None

    def to_dict(self) -> dict[str, Any]:
        return {"company": self.company, "mod": None if self.mod is None else str(self.mod)}


def modifier_from_dict(data: Mapping[str, Any]) -> Modifier:
    """Build a Modifier from its JSON object form."""
    raw_mod = _field(data, "mod")
    return Modifier(
        company=int(_field(data, "company", 0)),
        mod=None if raw_mod is None else parse_mod(raw_mod),
    )


@dataclass
class Card:
    """A player or bank action card."""

    id: int
    mods: list[Modifier] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "mods": [m.to_dict() for m in self.mods]}


def card_from_dict(data: Mapping[str, Any]) -> Card:
    """Build a Card from its JSON object form."""
    return Card(
        id=int(_field(data, "id", 0)),
        mods=[modifier_from_dict(m) for m in (_field(data, "mods") or [])],
    )


@dataclass
class Assets:
    """Company names and the two card decks a game is played with."""

    companies: list[str] = field(default_factory=list)
    player_deck: list[Card] = field(default_factory=list)
    bank_deck: list[Card] = field(default_factory=list)

    def shuffle_player_deck(self) -> None:
        random.shuffle(self.player_deck)

    def shuffle_bank_deck(self) -> None:
        random.shuffle(self.bank_deck)


def load_assets(data: str | bytes | Mapping[str, Any]) -> Assets:
    """Load assets from a JSON document or an already decoded mapping."""
    if isinstance(data, (str, bytes, bytearray)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError(f"corrupted assets: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ValueError("assets must be a JSON object")
    return Assets(
        companies=[str(c) for c in (_field(data, "companies") or [])],
        player_deck=[card_from_dict(c) for c in (_field(data, "playerDeck") or [])],
        bank_deck=[card_from_dict(c) for c in (_field(data, "bankDeck") or [])],
    )


@dataclass
class Player:
    """A snapshot of a player's holdings."""

    name: str = ""
    cash: int = 0
    stocks: list[int] = field(default_factory=lambda: [0] * STOCK_SLOTS)
    hand: list[Card] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Cash": self.cash,
            "Stocks": list(self.stocks),
            "Hand": [c.to_dict() for c in self.hand],
        }


def player_from_dict(data: Mapping[str, Any]) -> Player:
    """Build a Player from its JSON object form."""
    return Player(
        name=str(_field(data, "Name", "")),
        cash=int(_field(data, "Cash", 0)),
        stocks=_four(_field(data, "Stocks")),
        hand=[card_from_dict(c) for c in (_field(data, "Hand") or [])],
    )


def cash_level(cash: int) -> int:
    """Coarse wealth level (0-5) shown for an opponent's cash."""
    if cash < 1:
        return 0
    if cash < 1_001:
        return 1
    if cash < 10_001:
        return 2
    if cash < 100_001:
        return 3
    if cash < 1_000_001:
        return 4
    return 5


def stock_level(amount: int) -> int:
    """Coarse level (0-5) shown for an opponent's stock holding."""
    if amount < 1:
        return 0
    if amount < 11:
        return 1
    if amount < 101:
        return 2
    if amount < 1_001:
        return 3
    if amount < 10_001:
        return 4
    return 5