"""Connection lifecycle: locate, open, handshake, route frames, reconnect."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

from .codec import Frame, FrameType, decode_frame, encode_connect, encode_frame
from .errors import (
    ConnectionLostError,
    FrameDecodeError,
    SignerError,
    SignerNotFoundError,
    SignerTransportError,
)
from .events import EventRouter
from .locator import TransportLocator
from .pairing import PairingSession
from .registry import RequestRegistry
from .session import Session
from .transport import Channel, SocketTransport

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 1.0


class ConnectionManager:
    """Drive one signer connection and its inbound frame pipeline.

    ``link()`` opens a channel, joins the ``/chainx`` namespace and runs a
    passthrough pairing attempt. When the channel drops without a call to
    ``disconnect()``, outstanding calls are failed and, if auto-reconnect is
    on, ``link()`` is retried every ``reconnect_delay`` seconds until it
    succeeds or the client disconnects.
    """

    def __init__(
        self,
        session: Session,
        locator: TransportLocator,
        transport: SocketTransport,
        pairing: PairingSession,
        registry: RequestRegistry,
        router: EventRouter,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self.session = session
        self.locator = locator
        self.transport = transport
        self.pairing = pairing
        self.registry = registry
        self.router = router
        self.reconnect_delay = reconnect_delay
        self._channel: Optional[Channel] = None
        self._close_handlers: List[Callable[[], Any]] = []
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def channel(self) -> Optional[Channel]:
        return self._channel

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None or (
            self._reconnect_task is not None and not self._reconnect_task.done()
        )

    # Outbound -------------------------------------------------------------

    def send(self, frame_type: FrameType | str, payload: Any = None) -> None:
        """Write one data frame, raising :class:`SignerTransportError` on failure."""

        channel = self._channel
        if channel is None or not self.session.connected:
            raise SignerTransportError("Not connected to the signer")
        try:
            channel.send(encode_frame(frame_type, payload))
        except SignerTransportError:
            raise
        except Exception as exc:
            raise SignerTransportError(f"Could not send {frame_type} frame: {exc}") from exc

    # Lifecycle ------------------------------------------------------------

    async def link(self) -> bool:
        """Connect to the signer and run the passthrough pairing attempt.

        Raises :class:`SignerNotFoundError` when no signer can be located and
        returns ``False`` when the socket could not be opened.
        """

        return await self._link(reconnecting=False)

    async def _link(self, *, reconnecting: bool) -> bool:
        target = await self.locator.locate()
        if target is None:
            raise SignerNotFoundError("No running signer could be found")

        channel = await self.transport.open(target)
        if channel is None:
            return False

        if reconnecting and self.session.manual_disconnect:
            logger.info("Disconnected while reconnecting; dropping new socket")
            channel.close()
            return False

        previous, self._channel = self._channel, channel
        if previous is not None:
            previous.close()

        channel.send(encode_connect())
        self.session.connected = True
        self.session.manual_disconnect = False
        channel.start(self._on_message, self._on_close)
        self.pairing.reset()
        logger.info("Linked to signer at %s:%d", target.host, target.port)

        try:
            await self.pairing.pair(passthrough=True)
        except SignerTransportError as exc:
            logger.warning("Passthrough pairing could not be sent: %s", exc)
        return True

    def disconnect(self) -> bool:
        self.session.manual_disconnect = True
        self._cancel_reconnect()
        channel, self._channel = self._channel, None
        self.session.connected = False
        if channel is not None:
            channel.close()
            self._connection_lost(ConnectionLostError("Disconnected from the signer"))
        return True

    def add_socket_close_handler(self, handler: Callable[[], Any]) -> None:
        self._close_handlers.append(handler)

    def remove_socket_close_handler(self, handler: Callable[[], Any]) -> None:
        try:
            self._close_handlers.remove(handler)
        except ValueError:
            pass

    # Inbound --------------------------------------------------------------

    def _on_message(self, message: Any) -> None:
        try:
            frame = decode_frame(message)
        except FrameDecodeError as exc:
            logger.error("Dropping malformed frame: %s", exc)
            return
        if frame is None:
            return

        if frame.type == FrameType.PONG:
            return
        if frame.type == FrameType.PING:
            try:
                self.send(FrameType.PONG)
            except SignerTransportError as exc:
                logger.debug("Could not answer ping: %s", exc)
            return

        try:
            self.route(frame)
        except Exception:
            logger.exception("Failed to handle %s frame", frame.type)

    def route(self, frame: Frame) -> None:
        if frame.type == FrameType.PAIRED:
            self.pairing.on_paired(frame.payload)
        elif frame.type == FrameType.REKEY:
            self.pairing.on_rekey()
        elif frame.type == FrameType.API:
            self.registry.handle_response(frame.payload)
        elif frame.type == FrameType.EVENT:
            self._on_event(frame.payload)
        elif frame.type == FrameType.CONNECTED:
            logger.info("Received signer connected message")
        else:
            logger.warning("Unknown type message %s", frame.type)

    def _on_event(self, payload: Any) -> None:
        if not isinstance(payload, dict) or "event" not in payload:
            logger.warning("Dropping malformed event frame: %r", payload)
            return
        self.router.dispatch(payload["event"], payload.get("payload"))

    def _on_close(self, channel: Channel) -> None:
        if channel is not self._channel:
            return
        self._channel = None
        self.session.connected = False
        logger.info("Signer connection closed")
        self._connection_lost(ConnectionLostError("Connection to the signer was lost"))

        if self.session.auto_reconnect and not self.session.manual_disconnect:
            self._schedule_reconnect()

    def _connection_lost(self, exc: ConnectionLostError) -> None:
        self.pairing.lost()
        self.registry.fail_all(exc)
        for handler in list(self._close_handlers):
            try:
                handler()
            except Exception:
                logger.exception("Socket close handler failed")

    # Reconnect ------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
        logger.info("Reconnecting to signer in %.1fs", self.reconnect_delay)
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._start_reconnect)

    def _start_reconnect(self) -> None:
        self._reconnect_handle = None
        if self.session.manual_disconnect or not self.session.auto_reconnect:
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> None:
        try:
            linked = await self._link(reconnecting=True)
        except SignerNotFoundError as exc:
            logger.info("Reconnect failed: %s", exc)
            linked = False
        except SignerError as exc:
            logger.warning("Reconnect failed: %s", exc)
            linked = False

        if not linked and self.session.auto_reconnect and not self.session.manual_disconnect:
            self._schedule_reconnect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
