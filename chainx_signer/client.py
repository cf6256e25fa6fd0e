"""Client for a locally running ChainX signer.

:class:`SignerClient` composes the session, pairing, request and event
components behind the call surface used by applications: account, node and
settings queries, extrinsic signing, and push event subscriptions.

Example::

    async with SignerClient.from_config() as signer:
        account = await signer.get_current_account()
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional

from .codec import FrameType
from .config import SignerConfig, load_signer_config
from .connection import DEFAULT_RECONNECT_DELAY, ConnectionManager
from .errors import PairingDeniedError, SignerTransportError
from .events import ACCOUNT_CHANGE, NETWORK_CHANGE, NODE_CHANGE, TX_STATUS, EventHandler, EventRouter
from .keys import AppKeyManager, DigestFunction, EntropySource, FileKeyStore, KeyStore, sha256_hex
from .locator import PortScanLocator, TransportLocator
from .origin import OriginProvider, StaticOriginProvider, resolve_origin
from .pairing import PairingSession
from .registry import RequestRegistry
from .session import Session
from .transport import SocketTransport, WebSocketTransport

logger = logging.getLogger(__name__)

SIGN_METHODS = frozenset({"chainx_sign_send", "chainx_sign", "chainx2_sign_send", "chainx2_sign"})
FINALIZED = "Finalized"

TxStatusCallback = Callable[[Any, Any], Any]


class SignerClient:
    """Paired RPC client for a ChainX signer running on this machine."""

    def __init__(
        self,
        plugin: str,
        *,
        locator: TransportLocator,
        transport: SocketTransport,
        key_store: KeyStore,
        origin_provider: OriginProvider | None = None,
        entropy: EntropySource = os.urandom,
        digest: DigestFunction = sha256_hex,
        auto_reconnect: bool = True,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self.plugin = plugin
        self.origin_provider = origin_provider or StaticOriginProvider()
        self.keys = AppKeyManager(key_store, entropy=entropy, digest=digest)
        self.session = Session(appkey=self.keys.initial(), auto_reconnect=auto_reconnect)
        self.events = EventRouter()
        self.registry = RequestRegistry()
        self.pairing = PairingSession(
            self.session,
            self.keys,
            send=self._send,
            origin=self.get_origin,
            plugin=plugin,
        )
        self.connection = ConnectionManager(
            self.session,
            locator,
            transport,
            self.pairing,
            self.registry,
            self.events,
            reconnect_delay=reconnect_delay,
        )

    @classmethod
    def from_config(cls, config: SignerConfig | None = None) -> "SignerClient":
        """Build a client with the default locator, WebSocket transport and key file."""

        config = config or load_signer_config()
        return cls(
            config.plugin,
            locator=PortScanLocator(config.host, config.ports, timeout=config.probe_timeout),
            transport=WebSocketTransport(
                open_timeout=config.open_timeout,
                heartbeat_interval=config.heartbeat_interval,
            ),
            key_store=FileKeyStore(config.keystore_path),
            origin_provider=StaticOriginProvider(config.origin),
            auto_reconnect=config.auto_reconnect,
            reconnect_delay=config.reconnect_delay,
        )

    async def __aenter__(self) -> "SignerClient":
        await self.link()
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        self.disconnect()

    def _send(self, frame_type: FrameType, payload: Any) -> None:
        self.connection.send(frame_type, payload)

    # Session --------------------------------------------------------------

    @property
    def appkey(self) -> str:
        return self.session.appkey

    def get_origin(self) -> str:
        return resolve_origin(self.origin_provider(), self.plugin)

    origin = property(get_origin)

    async def link(self) -> bool:
        return await self.connection.link()

    def disconnect(self) -> bool:
        return self.connection.disconnect()

    def is_connected(self) -> bool:
        return self.session.connected

    def is_paired(self) -> bool:
        return self.session.paired

    async def pair(self, passthrough: bool = False) -> bool:
        return await self.pairing.pair(passthrough)

    def add_socket_close_handler(self, handler: Callable[[], Any]) -> None:
        self.connection.add_socket_close_handler(handler)

    # Requests -------------------------------------------------------------

    async def send_api_request(
        self,
        payload: Optional[Dict[str, Any]] = None,
        callback: Optional[TxStatusCallback] = None,
    ) -> Any:
        """Send one API call to the signer and return its ``result``.

        Raises :class:`PairingDeniedError` when the signer refuses to pair,
        :class:`SignerTransportError` when the frame cannot be sent or the
        connection drops before the answer, and
        :class:`~chainx_signer.errors.SignerRequestError` when the signer
        answers with an error. For sign methods, ``callback(err, status)``
        receives transaction status events for this call until an error or
        finalization.
        """

        request = dict(payload or {})
        request["id"] = self.keys.new_id()

        if not self.session.paired:
            paired = await self.pairing.pair(passthrough=False)
            if not paired:
                raise PairingDeniedError(
                    "The user did not allow this app to connect to their chainx"
                )

        data = {
            "appkey": self.session.appkey,
            "payload": request,
            "origin": self.get_origin(),
        }
        pending = self.registry.register(request["id"], request)

        status_handler = None
        if request.get("method") in SIGN_METHODS and callable(callback):
            status_handler = self._watch_tx_status(request["id"], callback)

        try:
            self._send(FrameType.API, {"data": data, "plugin": self.plugin})
        except SignerTransportError as exc:
            self.registry.discard(request["id"])
            if status_handler is not None:
                self.events.remove_event_handler(TX_STATUS, status_handler)
            logger.warning("Could not send api request %s: %s", request.get("method"), exc)
            raise SignerTransportError("can not send api request") from exc

        try:
            return await pending.future
        finally:
            self.registry.discard(request["id"])

    def _watch_tx_status(self, request_id: str, callback: TxStatusCallback) -> EventHandler:
        def handler(event: Any) -> None:
            if not isinstance(event, dict) or event.get("id") != request_id:
                return
            err = event.get("err")
            status = event.get("status")
            callback(err, status)
            if err or (isinstance(status, dict) and status.get("status") == FINALIZED):
                self.events.remove_event_handler(TX_STATUS, handler)

        self.events.add_event_handler(TX_STATUS, handler)
        return handler

    async def get_current_account(self) -> Any:
        return await self.send_api_request({"method": "chainx_account", "params": []})

    async def get_current_node(self) -> Any:
        return await self.send_api_request({"method": "chainx_get_node", "params": []})

    async def get_settings(self) -> Any:
        return await self.send_api_request({"method": "get_settings", "params": []})

    async def sign_and_send_extrinsic(
        self, address: str, hex_data: str, callback: Optional[TxStatusCallback] = None
    ) -> Any:
        return await self.send_api_request(
            {"method": "chainx_sign_send", "params": [address, hex_data]}, callback
        )

    async def sign_extrinsic(self, address: str, hex_data: str) -> Any:
        return await self.send_api_request({"method": "chainx_sign", "params": [address, hex_data]})

    async def sign_and_send_chainx2_extrinsic(
        self, address: str, data: Any, callback: Optional[TxStatusCallback] = None
    ) -> Any:
        return await self.send_api_request(
            {"method": "chainx2_sign_send", "params": [address, data]}, callback
        )

    async def sign_chainx2_extrinsic(self, address: str, data: Any) -> Any:
        return await self.send_api_request({"method": "chainx2_sign", "params": [address, data]})

    # Events ---------------------------------------------------------------

    def add_event_handler(self, event: str, handler: EventHandler) -> None:
        self.events.add_event_handler(event, handler)

    def remove_event_handler(self, event: str, handler: EventHandler) -> bool:
        return self.events.remove_event_handler(event, handler)

    def remove_event_listener(self, event: str, handler: EventHandler) -> bool:
        return self.events.remove_event_listener(event, handler)

    def clear_event_handlers(self, event: str) -> None:
        self.events.clear_event_handlers(event)

    def listen_account_change(self, listener: EventHandler) -> None:
        self.add_event_handler(ACCOUNT_CHANGE, listener)

    def remove_account_change_listener(self, listener: EventHandler) -> bool:
        return self.remove_event_handler(ACCOUNT_CHANGE, listener)

    def listen_node_change(self, listener: EventHandler) -> None:
        self.add_event_handler(NODE_CHANGE, listener)

    def remove_node_change_listener(self, listener: EventHandler) -> bool:
        return self.remove_event_handler(NODE_CHANGE, listener)

    def listen_network_change(self, listener: EventHandler) -> None:
        self.add_event_handler(NETWORK_CHANGE, listener)

    def remove_network_change_listener(self, listener: EventHandler) -> bool:
        return self.remove_event_handler(NETWORK_CHANGE, listener)
