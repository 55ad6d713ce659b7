"""Text rendering of the players' holdings."""

from __future__ import annotations

from collections.abc import Sequence

from businessclub.message import GameState
from businessclub.ui.companies import CompanyProvider

OPPONENT_SLOTS = 3


def breakdown_text(
    provider: CompanyProvider,
    prices: Sequence[int],
    stocks: Sequence[int],
    cash: int,
    show_total: bool,
    show_numbers: bool,
) -> str:
    """Holdings column: stocks per company, cash and optionally the total value."""
    lines = []
    if show_numbers:
        for i in range(4):
            lines.append(f"[{provider.color_by_index(i)}]{stocks[i]:,}\n")
        lines.append(f"[green]{cash:,}\n")
    else:
        for i in range(4):
            lines.append(f"[{provider.color_by_index(i)}]{'♦' * stocks[i] or '-'}\n")
        lines.append(f"[green]{'$' * cash or '-'}\n")

    if show_numbers and show_total:
        total = sum(p * s for p, s in zip(prices[:4], stocks[:4])) + cash
        lines.append(f"[white]{total:,}\n")
    return "".join(lines)


class StandingsPanel:
    """Holds the rendered texts of the standings table."""

    def __init__(self, provider: CompanyProvider) -> None:
        self._provider = provider
        self.company_names_text = ""
        self.player_name_text = ""
        self.opponent_name_texts = [""] * OPPONENT_SLOTS
        self.player_text = ""
        self.opponent_texts = [""] * OPPONENT_SLOTS

    def update(self, state: GameState) -> None:
        self._refresh_company_names()

        names = [""] * OPPONENT_SLOTS
        for i, opponent in enumerate(state.opponents[:OPPONENT_SLOTS]):
            names[i] = opponent.name
            self.opponent_texts[i] = breakdown_text(
                self._provider,
                state.stock_prices,
                opponent.stocks,
                opponent.cash,
                state.ended,
                state.ended,
            )

        self.player_text = breakdown_text(
            self._provider, state.stock_prices, state.player.stocks, state.player.cash, True, True
        )
        self.player_name_text = f"[green]{state.player.name}"
        self.opponent_name_texts = [f"[yellow]{name}" for name in names]

    def _refresh_company_names(self) -> None:
        lines = [
            f"[{self._provider.color_by_index(i)}]{self._provider.company_by_index(i)}[white]: "
            for i in range(4)
        ]
        lines.append("[green]Cash[white]: ")
        lines.append("[white]Total value: ")
        self.company_names_text = "\n".join(lines)