"""Text rendering of the action and trade journal."""

from __future__ import annotations

from collections import deque

from businessclub.game import WILDCARD_COMPANY
from businessclub.message import Action, ActorType, Trade, TradeType
from businessclub.ui.companies import CompanyProvider

MAX_ITEMS = 25

_OP_COLORS = {"+": "green", "-": "red", "*": "yellow", "=": "blue"}


class HistoryPanel:
    """Keeps the most recent journal lines."""

    def __init__(self, provider: CompanyProvider) -> None:
        self._provider = provider
        self._logs: deque[str] = deque(maxlen=MAX_ITEMS)

    @property
    def logs(self) -> list[str]:
        return list(self._logs)

    @property
    def text(self) -> str:
        return "\n".join(self._logs)

    def add_action(self, action: Action) -> None:
        if action.actor_type == ActorType.PLAYER:
            parts = [f"[yellow]{action.name} "]
        else:
            parts = ["[purple]BANK "]

        modifier = action.mod
        company = action.company
        if modifier is not None and modifier.company != WILDCARD_COMPANY:
            company = modifier.company
        parts.append(
            f"[white]action: [{self._provider.color_by_index(company)}]"
            f"{self._provider.company_by_index(company)} "
        )

        mod = None if modifier is None else modifier.mod
        if mod is not None and mod.op in _OP_COLORS:
            parts.append(f"[{_OP_COLORS[mod.op]}]{mod.op}{mod.value} ")

        parts.append(f"[white]--> {action.new_price}")
        self._logs.append("".join(parts))

    def add_trade(self, trade: Trade) -> None:
        direction = "[green]buy " if trade.trade_type == TradeType.BUY else "[red]sell "
        company = self._provider.company_by_index(trade.company)
        color = self._provider.color_by_index(trade.company)
        self._logs.append(
            f"[yellow]{trade.name} [white]trade: {direction}[{color}]{company} "
            f"[white]{trade.amount:,} x {trade.price} = {trade.amount * trade.price:,}"
        )