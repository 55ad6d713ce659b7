"""WebSocket game server: accepts connections and hands them to the lobby."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import websockets

from businessclub.game import VERSION, Assets, load_assets
from businessclub.lobby import Lobby
from businessclub.network import Connection, Side

SERVER_PORT = 8585
SHUTDOWN_TIMEOUT = 5.0

_log = logging.getLogger(__name__)


class Server:
    """Serves WebSocket connections and passes each one to the lobby."""

    def __init__(
        self,
        port: int = SERVER_PORT,
        logger: logging.Logger | None = None,
        *,
        host: str | None = None,
    ) -> None:
        self._requested_port = port
        self._host = host
        self._log = logger or _log
        self._ws_server: Any = None
        self._lobby_task: asyncio.Task[Any] | None = None
        self.lobby: Lobby | None = None

    @property
    def port(self) -> int:
        """The port actually listened on once started, else the requested one."""
        sockets = getattr(self._ws_server, "sockets", None) or []
        for sock in sockets:
            return sock.getsockname()[1]
        return self._requested_port

    async def start(self, assets: Assets) -> None:
        """Start the lobby and begin accepting connections."""
        if self._ws_server is not None:
            raise RuntimeError("server is already running")
        self._log.info("The Business Club - server %s", VERSION)

        self._log.info("starting lobby")
        self.lobby = Lobby(assets, self._log)
        self._lobby_task = asyncio.get_running_loop().create_task(self.lobby.start())
        self._log.info("lobby started")

        self._log.info("starting server port=%s", self._requested_port)
        self._ws_server = await websockets.serve(self._handle, self._host, self._requested_port)
        self._log.info("server started port=%s", self.port)

    async def _handle(self, websocket: Any, *_: Any) -> None:
        self._log.info("new connection remote_addr=%s", getattr(websocket, "remote_address", None))
        connection = Connection(websocket, Side.SERVER, self._log)
        connection.start()
        if self.lobby is not None:
            await self.lobby.join_player(connection)
        # The socket stays open for as long as this handler runs.
        await websocket.wait_closed()

    async def stop(self) -> None:
        """Stop accepting connections, then shut the lobby down."""
        if self._ws_server is None or self.lobby is None:
            raise RuntimeError("server is not running")

        self._log.info("stopping server")
        self._ws_server.close()
        try:
            await asyncio.wait_for(self._ws_server.wait_closed(), SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            raise RuntimeError("server shutdown failed: timeout") from None
        self._ws_server = None
        self._log.info("server stopped")

        self._log.info("stopping lobby")
        await self.lobby.stop()
        if self._lobby_task is not None:
            await asyncio.gather(self._lobby_task, return_exceptions=True)
            self._lobby_task = None
        self._log.info("lobby stopped")


class _JsonFormatter(logging.Formatter):
    def __init__(self, app: str) -> None:
        super().__init__()
        self._app = app

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "msg": record.getMessage(),
            "app": self._app,
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _setup_logger() -> logging.Logger:
    logger = logging.getLogger("businessclub")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_JsonFormatter("bc-server"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return logger


async def _serve(assets: Assets, logger: logging.Logger) -> None:
    server = Server(SERVER_PORT, logger)
    await server.start(assets)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for name in ("SIGINT", "SIGTERM", "SIGQUIT"):
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, stop.set)

    try:
        await stop.wait()
    finally:
        await server.stop()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the game server with the assets file named on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("missing assets file argument", file=sys.stderr)
        return 1

    try:
        raw = Path(args[0]).read_bytes()
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        assets = load_assets(raw)
    except ValueError as exc:
        print(f"corrupted assets file: {exc}", file=sys.stderr)
        return 1

    logger = _setup_logger()
    try:
        asyncio.run(_serve(assets, logger))
    except KeyboardInterrupt:
        pass
    except (RuntimeError, OSError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())