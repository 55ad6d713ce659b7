"""Messages exchanged between the game server and its clients, and their wire format."""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, ClassVar

from businessclub.game import (
    STOCK_SLOTS,
    Modifier,
    Player,
    TurnPhase,
    modifier_from_dict,
    player_from_dict,
)

SEPARATOR = ":"
KEY_EXCHANGE_TIMEOUT = 10.0

_INTEGER = re.compile(r"[+-]?[0-9]+")


class MessageError(ValueError):
    """A message could not be built from its encoded form."""


class Kind(str, Enum):
    """Type of a message."""

    UNKNOWN = "Unknown"
    ACK = "Ack"
    ERROR = "Error"
    KEY_EXCHANGE = "KeyExchange"
    STATE_UPDATE = "StateUpdate"
    VOTE_TO_START = "VoteToStart"
    START_TURN = "StartTurn"
    END_TURN = "EndTurn"
    PLAY_CARD = "PlayCard"
    TRADE_STOCK = "TradeStock"
    JOURNAL_ACTION = "JournalAction"
    JOURNAL_TRADE = "JournalTrade"

    def __str__(self) -> str:
        return self.value


def parse_kind(value: Any) -> Kind:
    """Decode a kind name; names that are not known map to UNKNOWN."""
    if value is None:
        return Kind.UNKNOWN
    if not isinstance(value, str):
        raise MessageError(f"cannot parse kind: {value!r}")
    try:
        return Kind(value)
    except ValueError:
        return Kind.UNKNOWN


class ActorType(IntEnum):
    """Who performed a journalled action."""

    PLAYER = 0
    BANK = 1


class TradeType(IntEnum):
    """Direction of a stock trade."""

    BUY = 0
    SELL = 1

    def as_string(self) -> str:
        return {TradeType.BUY: "Buy", TradeType.SELL: "Sell"}.get(self, "-")


# ---------------------------------------------------------------- decoding helpers


def _field(data: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Look a key up exactly first, then ignoring case."""
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return default


def _int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {value!r}")
    return value


def _bool(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"expected a boolean, got {value!r}")
    return value


def _str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


def _list(value: Any) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected an array, got {value!r}")
    return value


def _mapping(value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"expected an object, got {value!r}")
    return value


def _four(value: Any) -> list[int]:
    slots = [_int(v) for v in _list(value)][:STOCK_SLOTS]
    return slots + [0] * (STOCK_SLOTS - len(slots))


def _text(data: bytes | None) -> str:
    return "" if not data else bytes(data).decode("utf-8", "replace")


def _atoi(text: str, context: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise MessageError(f"{context}: {text}")
    return int(text)


def _load_json(data: bytes | None, what: str) -> Any:
    if not data:
        raise MessageError(f"unmarshal {what}: unexpected end of JSON input")
    try:
        return json.loads(bytes(data))
    except ValueError as exc:
        raise MessageError(f"unmarshal {what}: {exc}") from exc


# ---------------------------------------------------------------- payload types


@dataclass
class Readiness:
    """A player's readiness in the lobby."""

    name: str = ""
    ready: bool = False


@dataclass
class GameState:
    """The state of the game as one player sees it."""

    started: bool = False
    ended: bool = False
    readiness: list[Readiness] = field(default_factory=list)
    turn: int = 0
    player_order: list[str] = field(default_factory=list)
    current_player: int = 0
    companies: list[str] = field(default_factory=list)
    stock_prices: list[int] = field(default_factory=lambda: [0] * STOCK_SLOTS)
    player: Player = field(default_factory=Player)
    opponents: list[Player] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Started": self.started,
            "Ended": self.ended,
            "Readiness": [{"Name": r.name, "Ready": r.ready} for r in self.readiness],
            "Turn": self.turn,
            "PlayerOrder": list(self.player_order),
            "CurrentPlayer": self.current_player,
            "Companies": list(self.companies),
            "StockPrices": list(self.stock_prices),
            "Player": self.player.to_dict(),
            "Opponents": [o.to_dict() for o in self.opponents],
        }


def game_state_from_dict(data: Any) -> GameState:
    """Build a GameState from its JSON object form."""
    try:
        obj = _mapping(data)
        readiness = [
            Readiness(name=_str(_field(r, "Name")), ready=_bool(_field(r, "Ready")))
            for r in map(_mapping, _list(_field(obj, "Readiness")))
        ]
        raw_player = _field(obj, "Player")
        return GameState(
            started=_bool(_field(obj, "Started")),
            ended=_bool(_field(obj, "Ended")),
            readiness=readiness,
            turn=_int(_field(obj, "Turn")),
            player_order=[_str(p) for p in _list(_field(obj, "PlayerOrder"))],
            current_player=_int(_field(obj, "CurrentPlayer")),
            companies=[_str(c) for c in _list(_field(obj, "Companies"))],
            stock_prices=_four(_field(obj, "StockPrices")),
            player=Player() if raw_player is None else player_from_dict(_mapping(raw_player)),
            opponents=[
                player_from_dict(_mapping(o)) for o in _list(_field(obj, "Opponents"))
            ],
        )
    except (TypeError, ValueError, AttributeError) as exc:
        raise MessageError(f"invalid game state: {exc}") from exc


@dataclass
class Action:
    """A journal entry for a played action card modifier."""

    actor_type: ActorType = ActorType.PLAYER
    name: str = ""
    mod: Modifier | None = None
    company: int = 0
    new_price: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ActorType": int(self.actor_type),
            "Name": self.name,
            "Mod": None if self.mod is None else self.mod.to_dict(),
            "Company": self.company,
            "NewPrice": self.new_price,
        }


def _action_from_dict(data: Any) -> Action:
    obj = _mapping(data)
    raw_mod = _field(obj, "Mod")
    return Action(
        actor_type=ActorType(_int(_field(obj, "ActorType"))),
        name=_str(_field(obj, "Name")),
        mod=None if raw_mod is None else modifier_from_dict(_mapping(raw_mod)),
        company=_int(_field(obj, "Company")),
        new_price=_int(_field(obj, "NewPrice")),
    )


@dataclass
class Trade:
    """A journal entry for a stock trade."""

    name: str = ""
    trade_type: TradeType = TradeType.BUY
    company: int = 0
    amount: int = 0
    price: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "Name": self.name,
            "Type": int(self.trade_type),
            "Company": self.company,
            "Amount": self.amount,
            "Price": self.price,
        }


def _trade_from_dict(data: Any) -> Trade:
    obj = _mapping(data)
    return Trade(
        name=_str(_field(obj, "Name")),
        trade_type=TradeType(_int(_field(obj, "Type"))),
        company=_int(_field(obj, "Company")),
        amount=_int(_field(obj, "Amount")),
        price=_int(_field(obj, "Price")),
    )


# ---------------------------------------------------------------- messages


class Message:
    """Base of all messages: a kind plus a kind-specific payload."""

    kind: ClassVar[Kind] = Kind.UNKNOWN

    @property
    def payload(self) -> Any:
        return None

    def _data(self) -> bytes | None:
        return None

    def to_json(self) -> str:
        """Encode the message as its wire JSON document."""
        data = self._data()
        encoded = None if data is None else base64.b64encode(data).decode("ascii")
        return json.dumps({"Kind": self.kind.value, "Data": encoded}, separators=(",", ":"))


@dataclass(frozen=True)
class UnknownMessage(Message):
    """A message of a kind that is not understood."""

    data: bytes | None = None

    @property
    def payload(self) -> bytes | None:
        return self.data

    def _data(self) -> bytes | None:
        return self.data


@dataclass(frozen=True)
class EndTurnMessage(Message):
    """A player ends their turn."""

    kind: ClassVar[Kind] = Kind.END_TURN


@dataclass(frozen=True)
class ErrorMessage(Message):
    """An error reported by the server."""

    kind: ClassVar[Kind] = Kind.ERROR
    error: str = ""

    @property
    def payload(self) -> str:
        return self.error

    def _data(self) -> bytes:
        return self.error.encode("utf-8")


@dataclass(frozen=True)
class KeyExchangeMessage(Message):
    """Carries a reconnect key and a player name."""

    kind: ClassVar[Kind] = Kind.KEY_EXCHANGE
    key: str = ""
    name: str = ""

    @property
    def payload(self) -> list[str]:
        return [self.key, self.name]

    def _data(self) -> bytes:
        return f"{self.key}{SEPARATOR}{self.name}".encode("utf-8")


EMPTY_KEY_EXCHANGE = KeyExchangeMessage()


@dataclass(frozen=True)
class VoteToStartMessage(Message):
    """A player's readiness vote."""

    kind: ClassVar[Kind] = Kind.VOTE_TO_START
    ready: bool = False

    @property
    def payload(self) -> bool:
        return self.ready

    def _data(self) -> bytes:
        return bytes([1 if self.ready else 0])


@dataclass(frozen=True)
class StartTurnMessage(Message):
    """Tells a player that a phase of their turn has started."""

    kind: ClassVar[Kind] = Kind.START_TURN
    phase: TurnPhase = TurnPhase.ACTION

    @property
    def payload(self) -> TurnPhase:
        return self.phase

    def _data(self) -> bytes:
        return bytes([int(self.phase)])


@dataclass(frozen=True)
class PlayCardMessage(Message):
    """A player plays a card, naming a company for wildcard modifiers."""

    kind: ClassVar[Kind] = Kind.PLAY_CARD
    card_id: int = 0
    company: int = 0

    @property
    def payload(self) -> list[int]:
        return [self.card_id, self.company]

    def _data(self) -> bytes:
        return f"{self.card_id}{SEPARATOR}{self.company}".encode("ascii")


@dataclass(frozen=True)
class TradeStockMessage(Message):
    """A player buys or sells stock."""

    kind: ClassVar[Kind] = Kind.TRADE_STOCK
    trade: TradeType = TradeType.BUY
    company: int = 0
    amount: int = 0

    @property
    def payload(self) -> list[Any]:
        return [self.trade, self.company, self.amount]

    def _data(self) -> bytes:
        return (
            f"{int(self.trade)}{SEPARATOR}{self.company}{SEPARATOR}{self.amount}".encode("ascii")
        )


@dataclass(frozen=True)
class StateUpdateMessage(Message):
    """The current game state sent to a player."""

    kind: ClassVar[Kind] = Kind.STATE_UPDATE
    state: GameState | None = None

    @property
    def payload(self) -> GameState | None:
        return self.state

    def _data(self) -> bytes:
        body = None if self.state is None else self.state.to_dict()
        return json.dumps(body, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class JournalActionMessage(Message):
    """An action journal entry."""

    kind: ClassVar[Kind] = Kind.JOURNAL_ACTION
    action: Action | None = None

    @property
    def payload(self) -> Action | None:
        return self.action

    def _data(self) -> bytes:
        body = None if self.action is None else self.action.to_dict()
        return json.dumps(body, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class JournalTradeMessage(Message):
    """A trade journal entry."""

    kind: ClassVar[Kind] = Kind.JOURNAL_TRADE
    trade: Trade | None = None

    @property
    def payload(self) -> Trade | None:
        return self.trade

    def _data(self) -> bytes:
        body = None if self.trade is None else self.trade.to_dict()
        return json.dumps(body, separators=(",", ":")).encode("utf-8")


# ---------------------------------------------------------------- decoders


def key_exchange_from_bytes(data: bytes | None) -> KeyExchangeMessage:
    """Decode "key:name"; anything without a separator is an empty exchange."""
    text = _text(data)
    if not text or SEPARATOR not in text:
        return EMPTY_KEY_EXCHANGE
    key, name = text.split(SEPARATOR, 1)
    return KeyExchangeMessage(key, name)


def vote_to_start_from_bytes(data: bytes | None) -> VoteToStartMessage:
    if not data:
        raise MessageError("invalid vote to start message: no data")
    return VoteToStartMessage(data[0] == 1)


def start_turn_from_bytes(data: bytes | None) -> StartTurnMessage:
    if not data:
        raise MessageError("invalid start turn message: no data")
    try:
        return StartTurnMessage(TurnPhase(data[0]))
    except ValueError:
        raise MessageError(f"invalid start turn message, unknown phase: {data[0]}") from None


def play_card_from_bytes(data: bytes | None) -> PlayCardMessage:
    text = _text(data)
    parts = text.split(SEPARATOR, 1)
    if len(parts) != 2:
        raise MessageError(f"invalid play card message: {text}")
    card_id = _atoi(parts[0], "invalid play card message, parse card id")
    company = _atoi(parts[1], "invalid play card message, parse company")
    return PlayCardMessage(card_id, company)


def trade_stock_from_bytes(data: bytes | None) -> TradeStockMessage:
    text = _text(data)
    parts = text.split(SEPARATOR, 2)
    if len(parts) != 3:
        raise MessageError(f"invalid trade stock message: {text}")
    trade = _atoi(parts[0], "invalid trade stock message, parse trade type")
    company = _atoi(parts[1], "invalid trade stock message, parse company")
    amount = _atoi(parts[2], "invalid trade stock message, parse amount")
    try:
        trade_type = TradeType(trade)
    except ValueError:
        raise MessageError(f"invalid trade stock message, unknown trade type: {trade}") from None
    return TradeStockMessage(trade_type, company, amount)


def state_update_from_bytes(data: bytes | None) -> StateUpdateMessage:
    body = _load_json(data, "state")
    if body is None:
        return StateUpdateMessage(GameState())
    return StateUpdateMessage(game_state_from_dict(body))


def journal_action_from_bytes(data: bytes | None) -> JournalActionMessage:
    body = _load_json(data, "action")
    if body is None:
        return JournalActionMessage(Action())
    try:
        return JournalActionMessage(_action_from_dict(body))
    except (TypeError, ValueError, AttributeError) as exc:
        raise MessageError(f"unmarshal action: {exc}") from exc


def journal_trade_from_bytes(data: bytes | None) -> JournalTradeMessage:
    body = _load_json(data, "trade")
    if body is None:
        return JournalTradeMessage(Trade())
    try:
        return JournalTradeMessage(_trade_from_dict(body))
    except (TypeError, ValueError, AttributeError) as exc:
        raise MessageError(f"unmarshal trade: {exc}") from exc


_DECODERS: dict[Kind, Callable[[bytes | None], Message]] = {
    Kind.ERROR: lambda data: ErrorMessage(_text(data)),
    Kind.KEY_EXCHANGE: key_exchange_from_bytes,
    Kind.STATE_UPDATE: state_update_from_bytes,
    Kind.VOTE_TO_START: vote_to_start_from_bytes,
    Kind.START_TURN: start_turn_from_bytes,
    Kind.END_TURN: lambda data: EndTurnMessage(),
    Kind.PLAY_CARD: play_card_from_bytes,
    Kind.TRADE_STOCK: trade_stock_from_bytes,
    Kind.JOURNAL_ACTION: journal_action_from_bytes,
    Kind.JOURNAL_TRADE: journal_trade_from_bytes,
}


def _decode_data(value: Any) -> bytes | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MessageError(f"parse raw message: data must be a base64 string, got {value!r}")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MessageError(f"parse raw message: {exc}") from exc


def parse(raw: str | bytes) -> Message:
    """Decode a wire JSON document into a message."""
    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise MessageError(f"parse raw message: {exc}") from exc
    if body is None:
        return UnknownMessage()
    if not isinstance(body, Mapping):
        raise MessageError("parse raw message: expected a JSON object")
    try:
        kind = parse_kind(_field(body, "Kind"))
    except MessageError as exc:
        raise MessageError(f"parse raw message: {exc}") from exc
    data = _decode_data(_field(body, "Data"))
    decoder = _DECODERS.get(kind)
    if decoder is None:
        return UnknownMessage()
    return decoder(data)