"""Text and input logic of the client's smaller screens and panels."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import IntEnum

from businessclub.game import MAX_PLAYERS, VERSION, Card
from businessclub.message import Readiness, TradeType
from businessclub.ui.companies import CompanyProvider, card_to_string

DEFAULT_HOST = "localhost"
DEFAULT_PORT = "8585"
MAX_FIELD_LENGTH = 15
MAX_PORT = 65535

LABEL_READY = "Ready!"
LABEL_NOT_READY = "Cancel"
OPEN_SLOT = "[grey]-- open slot --\n"


class ServerStatus:
    """Status line showing the server, its connection state and the reconnect key."""

    def __init__(self) -> None:
        self.host = ""
        self.connected = False
        self.reconnect_key = ""

    def set_host(self, host: str) -> None:
        self.host = host

    def set_connection(self, connected: bool) -> None:
        self.connected = connected

    def set_reconnect_key(self, key: str) -> None:
        self.reconnect_key = key

    @property
    def text(self) -> str:
        color = "green" if self.connected else "red"
        return (
            f"[white]Server: [{color}]{self.host}   "
            f"[white]Reconnect key: [blue]{self.reconnect_key}"
        )


class LobbyView:
    """The lobby's player list and its ready toggle."""

    def __init__(
        self,
        on_ready: Callable[[bool], None] | None = None,
        on_leave: Callable[[], None] | None = None,
    ) -> None:
        self._on_ready = on_ready
        self.on_leave = on_leave
        self.ready = False
        self.button_label = LABEL_READY
        self.players_text = ""

    def update(self, readiness: Sequence[Readiness] | None) -> None:
        """Show players sorted by name, followed by the open slots."""
        if readiness is None:
            return
        ordered = sorted(readiness, key=lambda r: r.name)
        lines = [f"[{'green' if r.ready else 'red'}]{r.name}\n" for r in ordered]
        lines.extend(OPEN_SLOT for _ in range(MAX_PLAYERS - len(ordered)))
        self.players_text = "".join(lines)

    def toggle_ready(self) -> bool:
        """Flip readiness, relabel the button and report the new state."""
        self.ready = not self.ready
        self.button_label = LABEL_NOT_READY if self.ready else LABEL_READY
        if self._on_ready is not None:
            self._on_ready(self.ready)
        return self.ready

    def reset(self) -> None:
        self.button_label = LABEL_READY
        self.ready = False


@dataclass(frozen=True)
class LoginData:
    """Validated login form input."""

    username: str
    host: str
    port: int
    reconnect_key: str = ""
    tls: bool = False


def _check_length(label: str, value: str) -> None:
    if len(value) > MAX_FIELD_LENGTH:
        raise ValueError(f"{label} must be at most {MAX_FIELD_LENGTH} characters")


def validate_login(
    username: str,
    host: str,
    port: str | int,
    reconnect_key: str = "",
    tls: bool = False,
) -> LoginData:
    """Check the login form and return its data; raise ValueError if it is incomplete."""
    if not username:
        raise ValueError("username is required")
    if not host:
        raise ValueError("host is required")
    _check_length("username", username)
    _check_length("host", host)
    _check_length("reconnect key", reconnect_key)

    port_text = str(port)
    if not port_text.isdigit() or not port_text.isascii():
        raise ValueError(f"invalid port: {port_text}")
    port_number = int(port_text)
    if not 1 <= port_number <= MAX_PORT:
        raise ValueError(f"port out of range: {port_number}")

    return LoginData(username, host, port_number, reconnect_key, bool(tls))


class TradeOption(IntEnum):
    """Choices of the trade menu."""

    BUY = 0
    SELL = 1
    END_TURN = 2


def trade_menu_options() -> list[tuple[TradeOption, str]]:
    """The trade menu entries in display order."""
    return [
        (TradeOption.BUY, "Buy stock"),
        (TradeOption.SELL, "Sell stock"),
        (TradeOption.END_TURN, "End turn"),
    ]


def trade_form_header(provider: CompanyProvider, trade_type: TradeType, company: int) -> str:
    """Title of the trade form."""
    return (
        f" {trade_type.as_string()} [{provider.color_by_index(company)}]"
        f"{provider.company_by_index(company)} [white]stock "
    )


def parse_trade_amount(text: str) -> int:
    """Amount typed into the trade form; anything that is not an integer counts as 0."""
    try:
        return int(text.strip())
    except ValueError:
        return 0


def version_text(version: str = VERSION) -> str:
    return f"The Business Club {version}"


def action_display_text(provider: CompanyProvider, cards: Iterable[Card]) -> str:
    """One line per card in the hand."""
    return "\n".join(card_to_string(provider, card) for card in cards)