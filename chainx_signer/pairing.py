"""Pairing handshake with the signer.

The client asks for trust with a ``pair`` frame carrying its appkey and origin;
the signer answers with ``paired`` (true or false) once the user decides, or
immediately for a passthrough attempt by an already trusted key. The signer
may also send ``rekey`` at any time to revoke the current key, which the
client acknowledges with ``rekeyed`` and a brand new ephemeral key.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Any, Callable, Optional

from .codec import FrameType
from .keys import AppKeyManager
from .session import Session

logger = logging.getLogger(__name__)

FrameSender = Callable[[FrameType, Any], None]


class PairingPhase(Enum):
    """Simple state machine for the pairing lifecycle."""

    UNPAIRED = auto()
    PAIRING = auto()
    PAIRED = auto()


class PairingSession:
    """Own the pairing slot and apply pair/paired/rekey frames to a session.

    Only one negotiation is in flight at a time. A ``pair()`` call made while
    another is outstanding waits for the same answer instead of sending a
    second request; an explicit request that finds a passthrough attempt in
    flight asks again only if that attempt was refused.
    """

    def __init__(
        self,
        session: Session,
        keys: AppKeyManager,
        send: FrameSender,
        origin: Callable[[], str],
        plugin: str,
    ) -> None:
        self.session = session
        self.keys = keys
        self._send = send
        self._origin = origin
        self.plugin = plugin
        self.phase = PairingPhase.PAIRED if session.paired else PairingPhase.UNPAIRED
        self._pending: Optional[asyncio.Future] = None
        self._pending_passthrough = False

    @property
    def in_flight(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def pair(self, passthrough: bool = False) -> bool:
        """Request pairing and return whether the signer granted it."""

        while self.in_flight:
            pending, pending_passthrough = self._pending, self._pending_passthrough
            logger.debug("Pairing already in flight; awaiting its result")
            result = await asyncio.shield(pending)
            # A refused passthrough attempt does not answer an explicit request.
            if result or passthrough or not pending_passthrough:
                return result

        future = asyncio.get_running_loop().create_future()
        self._pending = future
        self._pending_passthrough = passthrough
        previous_phase = self.phase
        self.phase = PairingPhase.PAIRING
        data = {
            "appkey": self.session.appkey,
            "origin": self._origin(),
            "passthrough": passthrough,
        }
        try:
            self._send(FrameType.PAIR, {"data": data, "plugin": self.plugin})
        except Exception:
            self._pending = None
            self.phase = previous_phase
            raise
        logger.info("Pairing requested", extra={"passthrough": passthrough})
        return await asyncio.shield(future)

    def on_paired(self, result: Any) -> None:
        paired = bool(result)
        future, self._pending = self._pending, None
        try:
            if paired:
                try:
                    self.session.appkey = self.keys.promote(self.session.appkey)
                except OSError as exc:
                    # The signer trusts the key in use; only persistence failed.
                    logger.error("Could not persist application key: %s", exc)
            self.session.paired = paired
            self.phase = PairingPhase.PAIRED if paired else PairingPhase.UNPAIRED
            logger.info("Signer answered pairing", extra={"paired": paired})
        finally:
            if future is not None and not future.done():
                future.set_result(self.session.paired)
            if self.phase is PairingPhase.PAIRING:
                self.phase = PairingPhase.PAIRED if self.session.paired else PairingPhase.UNPAIRED

    def on_rekey(self) -> None:
        """Replace the appkey with a fresh ephemeral one and acknowledge."""

        self.session.appkey = self.keys.generate()
        self.session.paired = False
        self.phase = PairingPhase.UNPAIRED
        logger.info("Signer requested rekey; generated a new application key")
        data = {"appkey": self.session.appkey, "origin": self._origin()}
        self._send(FrameType.REKEYED, {"data": data, "plugin": self.plugin})

    def reset(self) -> None:
        """Drop any lingering negotiation, answering its waiters with ``False``."""

        future, self._pending = self._pending, None
        if future is not None and not future.done():
            future.set_result(False)
        if self.phase is PairingPhase.PAIRING:
            self.phase = PairingPhase.PAIRED if self.session.paired else PairingPhase.UNPAIRED

    def lost(self) -> None:
        """Forget trust after the channel to the signer went away."""

        self.session.paired = False
        self.phase = PairingPhase.UNPAIRED
        self.reset()
