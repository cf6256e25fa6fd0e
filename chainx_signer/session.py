"""Per-client session state.

One :class:`Session` exists per client instance. It is shared by the pairing,
connection and facade layers of that client and never across clients.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Session:
    """Connection and trust state of a single signer client."""

    appkey: str
    paired: bool = False
    connected: bool = False
    manual_disconnect: bool = False
    auto_reconnect: bool = True
