"""Discovery of a running signer on the local machine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import requests
from requests import RequestException

logger = logging.getLogger(__name__)

POLLING_PATH = "/socket.io/?EIO=3&transport=polling"
WEBSOCKET_PATH = "/socket.io/?EIO=3&transport=websocket"


@dataclass(frozen=True)
class SignerTarget:
    """Address of a signer endpoint."""

    host: str
    port: int

    @property
    def probe_url(self) -> str:
        return f"http://{self.host}:{self.port}{POLLING_PATH}"

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}{WEBSOCKET_PATH}"


class TransportLocator(Protocol):
    async def locate(self) -> Optional[SignerTarget]:
        ...


class PortScanLocator:
    """Probe a list of localhost ports for a socket.io endpoint.

    Each port gets one HTTP polling handshake request; the first port that
    answers with a 2xx status is the target. The probes are blocking
    ``requests`` calls, so they run in a worker thread.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        ports: Sequence[int] = (),
        timeout: float = 0.5,
        session: requests.Session | None = None,
    ) -> None:
        self.host = host
        self.ports = list(ports)
        self.timeout = timeout
        self._session = session or requests.Session()

    def probe(self, target: SignerTarget) -> bool:
        try:
            response = self._session.get(target.probe_url, timeout=self.timeout)
        except RequestException as exc:
            logger.debug("No signer on port %d: %s", target.port, exc)
            return False
        return response.ok

    def find_target(self) -> Optional[SignerTarget]:
        for port in self.ports:
            target = SignerTarget(self.host, port)
            if self.probe(target):
                logger.info("Found signer at %s:%d", self.host, port)
                return target
        logger.info("No signer answered on %s ports %s", self.host, self.ports)
        return None

    async def locate(self) -> Optional[SignerTarget]:
        return await asyncio.to_thread(self.find_target)
