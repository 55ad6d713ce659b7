"""Text rendering for the stock price graph and the turn order panel."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

from businessclub.ui.companies import CompanyProvider

COLUMNS = 10
_TOP = 400
_STEP = 20
_LEVELS = range(_TOP, -1, -_STEP)

EMPTY_COLUMN = "[grey]─────────\n" * len(_LEVELS)


def y_axis_text() -> str:
    """Labels of the price axis, top to bottom."""
    return "\n".join(f"{level:3d} " for level in _LEVELS)


def _bar_or_empty(color: str, value: int, level: int) -> str:
    if level == 0:
        return f"[{color}]▀[grey]─" if value > level else "──"
    if value > level:
        return f"[{color}]█[grey]─"
    if value == level:
        return f"[{color}]▄[grey]─"
    return "──"


class GraphPanel:
    """Keeps the last ten distinct price snapshots and renders them as bars."""

    def __init__(self, provider: CompanyProvider) -> None:
        self._provider = provider
        self._data: deque[tuple[int, ...]] = deque(maxlen=COLUMNS)

    def add(self, prices: Sequence[int]) -> None:
        """Record a price snapshot unless it equals the previous one."""
        snapshot = tuple(prices)
        if self._data and self._data[-1] == snapshot:
            return
        self._data.append(snapshot)

    def _row(self, prices: tuple[int, ...], level: int) -> str:
        bars = "".join(
            _bar_or_empty(self._provider.color_by_index(i), value, level)
            for i, value in enumerate(prices[:4])
        )
        return "[grey]─" + bars

    def _column(self, prices: tuple[int, ...]) -> str:
        return "\n".join(self._row(prices, level) for level in _LEVELS)

    def column_texts(self) -> list[str]:
        """Text of each of the ten graph columns, oldest first."""
        rendered = [self._column(prices) for prices in self._data]
        return rendered + [EMPTY_COLUMN] * (COLUMNS - len(rendered))

    def current_prices_text(self) -> str:
        """Line listing the latest price of each company."""
        if not self._data:
            return ""
        current = self._data[-1]
        cells = [""] * 4
        for i, name in enumerate(self._provider.companies[:4]):
            cells[i] = f"[{self._provider.color_by_index(i)}]{name}: [white]{current[i]}"
        return "   ".join(cells)


def render_turn(
    max_turns: int, current_turn: int, player_order: Sequence[str], current_player: int
) -> str:
    """Text of the turn panel: turn counter, player order and the bank."""
    lines = [f"[yellow]Turn: {current_turn}/{max_turns}\n\n"]
    for i, name in enumerate(player_order):
        if i == current_player:
            lines.append(f"[red]» {name}\n")
        else:
            lines.append(f"[white]  {name}\n")
    if current_player >= len(player_order):
        lines.append("[red]» BANK\n")
    else:
        lines.append("[purple]  BANK\n")
    return "".join(lines)