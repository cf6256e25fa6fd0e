"""WebSocket transport to the signer."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import SignerTransportError
from .locator import SignerTarget

logger = logging.getLogger(__name__)

ENGINE_PING = "2"
MAX_MESSAGE_BYTES = 4 * 1024 * 1024

MessageHandler = Callable[[Any], None]


class Channel(Protocol):
    """Duplex message channel handed out by a socket transport."""

    def start(self, on_message: MessageHandler, on_close: Callable[["Channel"], None]) -> None:
        ...

    def send(self, message: str) -> None:
        ...

    def close(self) -> None:
        ...


class SocketTransport(Protocol):
    async def open(self, target: SignerTarget) -> Optional[Channel]:
        ...


class WebSocketChannel:
    """Channel over an open ``websockets`` client connection.

    ``send`` never blocks: frames go through an outbox drained by a writer
    task, and raise :class:`SignerTransportError` once the channel is closed.
    Incoming messages are delivered to ``on_message`` by a reader task, and
    ``on_close`` runs exactly once when the connection ends for any reason.
    """

    def __init__(self, websocket: Any, heartbeat_interval: float = 0.0) -> None:
        self._ws = websocket
        self.heartbeat_interval = heartbeat_interval
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []
        self._close_task: asyncio.Task | None = None
        self._on_message: MessageHandler | None = None
        self._on_close: Callable[[Channel], None] | None = None
        self.closed = False
        self._finished = False

    def start(self, on_message: MessageHandler, on_close: Callable[[Channel], None]) -> None:
        self._on_message = on_message
        self._on_close = on_close
        self._tasks.append(asyncio.create_task(self._reader()))
        self._tasks.append(asyncio.create_task(self._writer()))
        if self.heartbeat_interval > 0:
            self._tasks.append(asyncio.create_task(self._heartbeat()))

    def send(self, message: str) -> None:
        if self.closed:
            raise SignerTransportError("Signer channel is closed")
        self._outbox.put_nowait(message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._close_task = asyncio.get_running_loop().create_task(self._ws.close())

    async def _reader(self) -> None:
        try:
            async for message in self._ws:
                if self._on_message is not None:
                    self._on_message(message)
        except ConnectionClosed as exc:
            logger.info("Signer connection closed: %s", exc)
        finally:
            self._finish()

    async def _writer(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self._ws.send(message)
            except ConnectionClosed:
                logger.debug("Dropping outgoing frame on closed connection")
                break

    async def _heartbeat(self) -> None:
        while not self.closed:
            await asyncio.sleep(self.heartbeat_interval)
            if not self.closed:
                self._outbox.put_nowait(ENGINE_PING)

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self.closed = True
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
        if self._on_close is not None:
            self._on_close(self)


class WebSocketTransport:
    """Open WebSocket channels against located signer targets."""

    def __init__(self, open_timeout: float = 5.0, heartbeat_interval: float = 0.0) -> None:
        self.open_timeout = open_timeout
        self.heartbeat_interval = heartbeat_interval

    async def open(self, target: SignerTarget) -> Optional[WebSocketChannel]:
        logger.info("Connecting to %s", target.url)
        try:
            websocket = await websockets.connect(
                target.url,
                open_timeout=self.open_timeout,
                max_size=MAX_MESSAGE_BYTES,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.warning("Could not open signer socket at %s: %s", target.url, exc)
            return None
        return WebSocketChannel(websocket, heartbeat_interval=self.heartbeat_interval)
