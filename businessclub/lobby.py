"""The lobby: admits and reconnects players, collects readiness and starts the game."""

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Any

from businessclub.game import MAX_PLAYERS, Assets
from businessclub.message import (
    KEY_EXCHANGE_TIMEOUT,
    ErrorMessage,
    GameState,
    KeyExchangeMessage,
    Kind,
    Message,
    MessageError,
    Readiness,
    StateUpdateMessage,
)
from businessclub.players import PlayerMap, ServerPlayer
from businessclub.runner import GameRunner, SignedMessage

WATCH_INTERVAL = 1.0

_log = logging.getLogger(__name__)


class Lobby:
    """Manages player connections and runs the game once everyone is ready."""

    def __init__(
        self,
        assets: Assets,
        logger: logging.Logger | None = None,
        *,
        key_exchange_timeout: float = KEY_EXCHANGE_TIMEOUT,
        watch_interval: float = WATCH_INTERVAL,
    ) -> None:
        self.assets = assets
        self.players = PlayerMap()
        self.inbox: asyncio.Queue[SignedMessage | None] = asyncio.Queue()
        self.game_inbox: asyncio.Queue[SignedMessage | None] = asyncio.Queue()
        self.is_game_running = False
        self.key_exchange_timeout = key_exchange_timeout
        self.watch_interval = watch_interval
        self._done = asyncio.Event()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._log = logger or _log

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def join_player(self, connection: Any) -> str | None:
        """Admit a started connection; return the player's key or None if rejected."""
        remote = connection.remote_address
        try:
            key, name = await self.receive_reconnect_key(connection)
        except (TimeoutError, ConnectionError) as exc:
            self._log.error("receive reconnect key: %s remote_addr=%s", exc, remote)
            await self._close(connection)
            return None

        if key:
            player = self.players.get(key)
            if player is None:
                self._log.error("unknown reconnect key %s remote_addr=%s", key, remote)
                await self._reject(connection, "unknown reconnect key")
                return None
            if player.conn is not None and player.conn.alive:
                self._log.error("an alive connection is using reconnect key %s", key)
                await self._reject(connection, "reconnect key is already in use")
                return None
            self._log.info("player reconnected key=%s remote_addr=%s", key, remote)
            player.conn = connection
            player.name = name
            self._spawn(self._fan_in(key, connection))
            self.trigger_state_update()
            return key

        if self.is_game_running:
            self._log.info("game is running, reject client connection remote_addr=%s", remote)
            await self._reject(connection, "game is in progress")
            return None

        if len(self.players) >= MAX_PLAYERS:
            self._log.info("lobby is full, reject client connection remote_addr=%s", remote)
            await self._reject(connection, "lobby is full")
            return None

        key = self._new_key()
        try:
            connection.send(KeyExchangeMessage(key, ""))
        except (OSError, MessageError) as exc:
            self._log.error("send reconnect key: %s remote_addr=%s", exc, remote)
            await self._close(connection)
            return None

        self._log.info("player joined key=%s name=%s", key, name)
        self.players.add(key, ServerPlayer(connection, key, name))
        self._spawn(self._fan_in(key, connection))
        self.trigger_state_update()
        return key

    def _new_key(self) -> str:
        while True:
            key = secrets.token_urlsafe(7)[:9]
            if self.players.get(key) is None:
                return key

    async def _reject(self, connection: Any, reason: str) -> None:
        try:
            connection.send(ErrorMessage(reason))
        except (OSError, MessageError) as exc:
            self._log.error("send error message: %s", exc)
        # Give the delivery a chance to go out before the socket closes.
        await asyncio.sleep(0)
        await self._close(connection)

    async def _close(self, connection: Any) -> None:
        try:
            await connection.close()
        except OSError as exc:
            self._log.error("close connection: %s", exc)

    async def receive_reconnect_key(self, connection: Any) -> list[str]:
        """Wait for the client's key exchange and return [key, name]."""
        while True:
            try:
                message = await asyncio.wait_for(
                    connection.inbox.get(), self.key_exchange_timeout
                )
            except asyncio.TimeoutError:
                raise TimeoutError("timeout") from None
            if message is None:
                raise ConnectionError("connection closed")
            if message.kind is Kind.KEY_EXCHANGE:
                return list(message.payload)

    def remove_player(self, key: str) -> None:
        player = self.players.get(key)
        if player is None:
            return
        self.players.remove(key)
        remote = None if player.conn is None else player.conn.remote_address
        self._log.info("player left key=%s remote_addr=%s", key, remote)
        self.trigger_state_update()

    def trigger_state_update(self) -> None:
        """Ask the receiver to send a state update to every player."""
        self.inbox.put_nowait(SignedMessage("", StateUpdateMessage(None)))

    async def _fan_in(self, key: str, connection: Any) -> None:
        while not self._done.is_set():
            try:
                message = await asyncio.wait_for(connection.inbox.get(), self.watch_interval)
            except asyncio.TimeoutError:
                if not connection.alive and not self.is_game_running:
                    self._remove_if_current(key, connection)
                    return
                continue
            if message is None:
                self._remove_if_current(key, connection)
                return
            self.inbox.put_nowait(SignedMessage(key, message))

    def _remove_if_current(self, key: str, connection: Any) -> None:
        player = self.players.get(key)
        if player is not None and player.conn is connection:
            self.remove_player(key)

    async def start(self) -> None:
        """Dispatch incoming messages until the lobby is stopped."""
        while not self._done.is_set():
            signed = await self.inbox.get()
            if signed is None:
                return
            kind = signed.msg.kind
            if kind is Kind.VOTE_TO_START:
                self.handle_vote_to_start(signed.key, signed.msg)
            elif kind is Kind.STATE_UPDATE:
                if self.is_game_running:
                    self.game_inbox.put_nowait(signed)
                else:
                    self.send_state_update()
            elif self.is_game_running:
                self.game_inbox.put_nowait(signed)

    async def stop(self) -> None:
        """Stop dispatching, close every player connection and cancel background work."""
        self._done.set()
        self.inbox.put_nowait(None)
        for player in self.players:
            if player.conn is None:
                continue
            try:
                await player.conn.close()
            except OSError as exc:
                self._log.error(
                    "close connection: %s remote_addr=%s", exc, player.conn.remote_address
                )
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def handle_vote_to_start(self, key: str, message: Message) -> None:
        """Record a readiness vote; start the game when at least two players are all ready."""
        if self.is_game_running:
            return
        player = self.players.get(key)
        if player is None:
            return
        player.ready = bool(message.payload)

        everyone_ready = all(p.ready for p in self.players)
        if everyone_ready and len(self.players) > 1:
            self.is_game_running = True
            self._spawn(self._run_game())

        self.trigger_state_update()

    async def _run_game(self) -> None:
        self.is_game_running = True
        try:
            runner = GameRunner(self.players, self.assets, self._log)
            await runner.run(self.game_inbox)
        except asyncio.CancelledError:
            raise
        except Exception:  # a broken game must not take the lobby down
            self._log.exception("game runner failed")
        finally:
            self.is_game_running = False

    def send_state_update(self) -> None:
        """Send the lobby's readiness list to every connected player."""
        readiness = [Readiness(name=p.name, ready=p.ready) for p in self.players]
        update = StateUpdateMessage(GameState(readiness=readiness))
        for player in self.players:
            conn = player.conn
            if conn is None or not conn.alive:
                continue
            try:
                conn.send(update)
            except (OSError, MessageError) as exc:
                self._log.error("send readiness: %s remote_addr=%s", exc, conn.remote_address)