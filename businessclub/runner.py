"""Turn-by-turn game flow on the server: dealing, actions, trades and state updates."""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from businessclub.game import (
    MAX_PLAYERS,
    MAX_PRICE,
    MAX_TURNS,
    STARTING_CASH,
    STARTING_PRICE,
    STOCK_SLOTS,
    WILDCARD_COMPANY,
    Assets,
    Card,
    Player,
    TurnPhase,
    cash_level,
    stock_level,
)
from businessclub.message import (
    Action,
    ActorType,
    GameState,
    JournalActionMessage,
    JournalTradeMessage,
    Kind,
    Message,
    MessageError,
    StartTurnMessage,
    StateUpdateMessage,
    Trade,
    TradeType,
)
from businessclub.players import PlayerMap, ServerPlayer

RETRY_ATTEMPTS = 5
RETRY_DELAY = 2.0

_log = logging.getLogger(__name__)


async def retry(attempts: int, interval: float, fn: Callable[[], Any]) -> Any:
    """Call fn until it succeeds, sleeping between failures; re-raise the last error."""
    error: Exception | None = None
    for _ in range(attempts):
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:  # any failure is worth another attempt
            error = exc
        await asyncio.sleep(interval)
    if error is not None:
        raise error
    return None


@dataclass(frozen=True)
class SignedMessage:
    """A message tagged with the reconnect key of the player who sent it."""

    key: str
    msg: Message


class GameRunner:
    """Runs one game over the players of a lobby."""

    def __init__(
        self,
        players: PlayerMap,
        assets: Assets,
        logger: logging.Logger | None = None,
        *,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        self.players = players
        self.assets = assets
        self.retry_delay = retry_delay
        self.stock_prices = [0] * STOCK_SLOTS
        self._log = logger or _log

    def init(self) -> None:
        """Reset prices, shuffle both decks and deal cash and cards to every player."""
        self.stock_prices = [STARTING_PRICE] * STOCK_SLOTS
        self.assets.shuffle_player_deck()
        self.assets.shuffle_bank_deck()
        start = 0
        for player in self.players:
            player.add_cash(STARTING_CASH)
            player.hand = list(self.assets.player_deck[start : start + MAX_TURNS])
            start += MAX_TURNS

    async def run(self, inbox: asyncio.Queue[Any]) -> None:
        """Play every turn, reading player messages from the inbox."""
        self.init()

        for turn in range(1, MAX_TURNS + 1):
            order, names = self.shuffle_players()

            for position, key in enumerate(order):
                player = self.players.get(key)
                if player is None:
                    continue

                self.send_state_update(names, turn, position, False)
                await self.send_start_turn(player, TurnPhase.ACTION)

                await self.handle_player_action(inbox, key, player)
                self.send_state_update(names, turn, position, False)

                await self.send_start_turn(player, TurnPhase.TRADE)
                while await self.handle_player_transaction(inbox, key, player):
                    self.send_state_update(names, turn, position, False)
                    await self.send_start_turn(player, TurnPhase.TRADE)

            self.send_state_update(names, turn, MAX_PLAYERS + 1, False)

            self.play_card("", self.assets.bank_deck[turn - 1], WILDCARD_COMPANY)
            self.send_state_update(names, turn, MAX_PLAYERS + 1, False)

        self.send_state_update(None, MAX_TURNS, MAX_PLAYERS + 1, True)

    async def handle_player_action(
        self, inbox: asyncio.Queue[Any], key: str, player: ServerPlayer
    ) -> None:
        """Wait for the player to play a card from their hand, then play it."""
        while True:
            signed = await inbox.get()
            if signed is None or signed.key != key or signed.msg.kind is not Kind.PLAY_CARD:
                continue

            card_id, company = signed.msg.payload
            for index, card in enumerate(player.hand):
                if card.id == card_id:
                    self._log.info(
                        "player action card player=%s card=%s company=%s",
                        player.name,
                        card.id,
                        company,
                    )
                    del player.hand[index]
                    self.play_card(player.name, card, company)
                    return

            # Unknown card: ask for an action again.
            await self.send_start_turn(player, TurnPhase.ACTION)

    def play_card(self, player_name: str, card: Card, company: int) -> None:
        """Apply every modifier of a card and journal each change to all players."""
        actor = ActorType.PLAYER if player_name else ActorType.BANK
        for modifier in card.mods:
            target = modifier.company
            if target <= WILDCARD_COMPANY:
                target = company

            if not 0 <= target < STOCK_SLOTS or modifier.mod is None:
                self._log.error(
                    "asset error: invalid company chosen_company=%s card_company=%s card_id=%s",
                    company,
                    modifier.company,
                    card.id,
                )
                continue

            new_price = min(max(modifier.mod.calculate(self.stock_prices[target]), 0), MAX_PRICE)
            self.stock_prices[target] = new_price

            action = Action(
                actor_type=actor,
                name=player_name,
                mod=modifier,
                company=target,
                new_price=new_price,
            )
            self._broadcast(JournalActionMessage(action), "send journal action")

    async def handle_player_transaction(
        self, inbox: asyncio.Queue[Any], key: str, player: ServerPlayer
    ) -> bool:
        """Handle one trade of the player; False once the player ends the turn."""
        while True:
            signed = await inbox.get()
            if signed is None or signed.key != key:
                continue
            kind = signed.msg.kind
            if kind is Kind.END_TURN:
                return False
            if kind is Kind.TRADE_STOCK:
                trade, company, amount = signed.msg.payload
                if trade == TradeType.BUY:
                    self.buy_stocks(player, company, amount)
                elif trade == TradeType.SELL:
                    self.sell_stocks(player, company, amount)
                return True

    def buy_stocks(self, player: ServerPlayer, company: int, amount: int) -> bool:
        """Buy stock if the player can pay for it; report whether the trade happened."""
        if amount == 0 or not 0 <= company < STOCK_SLOTS:
            return False
        price = self.stock_prices[company]
        cost = price * amount
        if player.cash < cost:
            return False
        player.add_cash(-cost)
        player.add_stocks(company, amount)
        self._journal_trade(player, TradeType.BUY, company, amount, price)
        return True

    def sell_stocks(self, player: ServerPlayer, company: int, amount: int) -> bool:
        """Sell stock the player holds; report whether the trade happened."""
        if amount == 0 or not 0 <= company < STOCK_SLOTS:
            return False
        if player.stocks[company] < amount:
            return False
        price = self.stock_prices[company]
        player.add_cash(price * amount)
        player.add_stocks(company, -amount)
        self._journal_trade(player, TradeType.SELL, company, amount, price)
        return True

    def _journal_trade(
        self, player: ServerPlayer, trade_type: TradeType, company: int, amount: int, price: int
    ) -> None:
        trade = Trade(
            name=player.name, trade_type=trade_type, company=company, amount=amount, price=price
        )
        self._broadcast(JournalTradeMessage(trade), "send journal trade")

    def shuffle_players(self) -> tuple[list[str], list[str]]:
        """A random playing order: reconnect keys and the matching names."""
        order = self.players.keys()
        random.shuffle(order)
        keys: list[str] = []
        names: list[str] = []
        for key in order:
            player = self.players.get(key)
            if player is not None:
                keys.append(key)
                names.append(player.name)
        return keys, names

    async def send_start_turn(self, player: ServerPlayer, phase: TurnPhase) -> None:
        """Tell a player a phase of their turn has started, retrying on failure."""
        conn = player.conn
        if conn is None:
            self._log.error("send start turn: player %s has no connection", player.name)
            return
        try:
            await retry(RETRY_ATTEMPTS, self.retry_delay, lambda: conn.send(StartTurnMessage(phase)))
        except (OSError, MessageError) as exc:
            self._log.error("send start turn: %s remote_addr=%s", exc, conn.remote_address)

    def send_state_update(
        self,
        order: Sequence[str] | None,
        turn: int,
        current_player: int,
        is_final: bool,
    ) -> None:
        """Send every player the game state, hiding the opponents' exact wealth mid-game."""
        keys = self.players.keys()
        snapshots: dict[str, Player] = {}
        for key in keys:
            player = self.players.get(key)
            if player is not None:
                snapshots[key] = Player(
                    name=player.name,
                    cash=player.cash,
                    stocks=list(player.stocks),
                    hand=list(player.hand),
                )

        for key, own in snapshots.items():
            opponents = []
            for other_key, other in snapshots.items():
                if other_key == key:
                    continue
                if is_final:
                    opponents.append(
                        Player(name=other.name, cash=other.cash, stocks=list(other.stocks))
                    )
                else:
                    opponents.append(
                        Player(
                            name=other.name,
                            cash=cash_level(other.cash),
                            stocks=[stock_level(s) for s in other.stocks],
                        )
                    )

            state = GameState(
                started=True,
                ended=is_final,
                turn=turn,
                player_order=list(order or []),
                current_player=current_player,
                companies=list(self.assets.companies),
                stock_prices=list(self.stock_prices),
                player=own,
                opponents=opponents,
            )

            player = self.players.get(key)
            conn = None if player is None else player.conn
            if conn is None or not conn.alive:
                continue
            try:
                conn.send(StateUpdateMessage(state))
            except (OSError, MessageError) as exc:
                self._log.error(
                    "send game state update: %s remote_addr=%s", exc, conn.remote_address
                )

    def _broadcast(self, message: Message, what: str) -> None:
        for player in self.players:
            conn = player.conn
            if conn is None:
                continue
            try:
                conn.send(message)
            except (OSError, MessageError) as exc:
                self._log.error("%s: %s remote_addr=%s", what, exc, conn.remote_address)