"""Reliable message delivery over a WebSocket: wrapping, acknowledgement and retries."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from websockets.exceptions import ConnectionClosed

from businessclub.message import Message, MessageError, parse

PING_INTERVAL = 2.0
RETRY_INTERVAL = 2.0
MESSAGE_BUFFER_SIZE = 100
MISSED_PONGS = 5

_log = logging.getLogger(__name__)


class Side(Enum):
    """Which end of the connection this process is."""

    SERVER = "server"
    CLIENT = "client"


class DeliveryType(str, Enum):
    """Whether a frame carries a message or acknowledges one."""

    WRAPPED = "wrapped"
    ACK = "ack"


@dataclass(frozen=True)
class Wrapped:
    """A message tagged with an id so that its delivery can be acknowledged."""

    id: str
    type: DeliveryType
    msg: str | None = None

    def to_json(self) -> str:
        """Encode as a JSON document with the message embedded as raw JSON."""
        body = None if self.msg is None else json.loads(self.msg)
        return json.dumps(
            {"Id": self.id, "Type": self.type.value, "Msg": body}, separators=(",", ":")
        )


def wrapped_from_json(text: str | bytes) -> Wrapped:
    """Decode a wrapped frame."""
    try:
        body = json.loads(text)
    except ValueError as exc:
        raise MessageError(f"unmarshal wrapped message: {exc}") from exc
    if not isinstance(body, dict):
        raise MessageError("unmarshal wrapped message: expected a JSON object")
    try:
        delivery = DeliveryType(body.get("Type") or "")
    except ValueError:
        raise MessageError(f"unknown delivery type: {body.get('Type')!r}") from None
    ident = body.get("Id")
    if not isinstance(ident, str):
        raise MessageError(f"invalid wrapped message id: {ident!r}")
    raw = body.get("Msg")
    msg = None if raw is None else json.dumps(raw, separators=(",", ":"))
    return Wrapped(ident, delivery, msg)


class Courier:
    """Sends one frame, then resends it at intervals until stopped."""

    def __init__(
        self,
        transport: Any,
        message_id: str,
        payload: str,
        *,
        retry_interval: float = RETRY_INTERVAL,
        logger: logging.Logger | None = None,
    ) -> None:
        self.transport = transport
        self.id = message_id
        self.payload = payload
        self.retry_interval = retry_interval
        self._done = asyncio.Event()
        self._log = logger or _log

    @property
    def stopped(self) -> bool:
        return self._done.is_set()

    def stop(self) -> None:
        self._done.set()

    async def run(self) -> None:
        """Deliver the frame now and again every retry interval until stopped."""
        await self.send()
        while not self._done.is_set():
            try:
                await asyncio.wait_for(self._done.wait(), self.retry_interval)
            except asyncio.TimeoutError:
                await self.send()

    async def send(self) -> None:
        try:
            await self.transport.send(self.payload)
        except (ConnectionClosed, OSError, RuntimeError) as exc:
            self._log.error(
                "write message %s to %s: %s",
                self.id,
                getattr(self.transport, "remote_address", None),
                exc,
            )


class Connection:
    """A WebSocket wrapped with acknowledged delivery and an inbox of parsed messages.

    The inbox yields ``None`` once the connection has been closed.
    """

    def __init__(
        self,
        transport: Any,
        side: Side,
        logger: logging.Logger | None = None,
        *,
        ping_interval: float = PING_INTERVAL,
        retry_interval: float = RETRY_INTERVAL,
        inbox_size: int = MESSAGE_BUFFER_SIZE,
    ) -> None:
        self._transport = transport
        self.side = side
        self.ping_interval = ping_interval
        self.retry_interval = retry_interval
        self.inbox_size = inbox_size
        self.inbox: asyncio.Queue[Message | None] = asyncio.Queue()
        self._log = logger or _log
        self._couriers: dict[str, Courier] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._alive = True
        self._closed = False
        self._transport_closed = False
        self._last_pong: float | None = None

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def remote_address(self) -> Any:
        return getattr(self._transport, "remote_address", None)

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start(self) -> None:
        """Start receiving; the server side also pings the client."""
        self._spawn(self._receive())
        if self.side is Side.SERVER:
            self._spawn(self._pinger())

    def send(self, message: Message) -> str:
        """Queue a message for delivery and return its delivery id."""
        if self._closed:
            raise ConnectionError("connection closed")
        try:
            encoded = message.to_json()
        except (TypeError, ValueError) as exc:
            raise MessageError(f"corrupt message: {exc}") from exc
        message_id = str(uuid.uuid4())
        frame = Wrapped(message_id, DeliveryType.WRAPPED, encoded).to_json()
        self._log.debug(
            "write message type=%s payload=%r id=%s", message.kind, message.payload, message_id
        )
        courier = Courier(
            self._transport, message_id, frame, retry_interval=self.retry_interval, logger=self._log
        )
        self._couriers[message_id] = courier
        self._spawn(courier.run())
        return message_id

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        for courier in self._couriers.values():
            courier.stop()
        self._couriers.clear()
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self.inbox.put_nowait(None)

    async def close(self) -> None:
        """Stop all deliveries and close the socket."""
        self._release()
        if self._transport_closed:
            return
        self._transport_closed = True
        try:
            await self._transport.close()
        except (ConnectionClosed, OSError) as exc:
            raise ConnectionError(f"close connection {self.remote_address}: {exc}") from exc

    async def _receive(self) -> None:
        try:
            async for raw in self._transport:
                if self._closed:
                    return
                await self._handle(raw)
        except ConnectionClosed:
            pass
        except OSError as exc:
            self._log.error("read message: %s", exc)
        self._alive = False
        self._release()

    async def _handle(self, raw: str | bytes) -> None:
        try:
            wrapped = wrapped_from_json(raw)
        except MessageError as exc:
            self._log.error("unmarshal wrapped message: %s", exc)
            return

        if wrapped.type is DeliveryType.ACK:
            self._log.debug("acknowledge message id=%s", wrapped.id)
            courier = self._couriers.pop(wrapped.id, None)
            if courier is not None:
                courier.stop()
            return

        if wrapped.msg is None:
            return
        try:
            message = parse(wrapped.msg)
        except MessageError as exc:
            self._log.error("parse message: %s", exc)
            return
        if self.inbox.qsize() >= self.inbox_size:
            return  # inbox full, drop the message
        self.inbox.put_nowait(message)
        ack = Wrapped(wrapped.id, DeliveryType.ACK).to_json()
        try:
            await self._transport.send(ack)
        except (ConnectionClosed, OSError) as exc:
            self._log.error("write ack message %s to %s: %s", wrapped.id, self.remote_address, exc)

    def _on_pong(self, waiter: asyncio.Future[Any]) -> None:
        if not waiter.cancelled() and waiter.exception() is None:
            self._last_pong = time.monotonic()

    async def _pinger(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.ping_interval)
            if not self._alive:
                return
            if (
                self._last_pong is not None
                and self._last_pong + self.ping_interval * MISSED_PONGS < time.monotonic()
            ):
                self._log.error("ping timeout, connection lost")
                self._alive = False
                return
            try:
                waiter = await self._transport.ping()
            except (ConnectionClosed, OSError) as exc:
                self._log.error("connection lost: %s", exc)
                self._alive = False
                return
            asyncio.ensure_future(waiter).add_done_callback(self._on_pong)