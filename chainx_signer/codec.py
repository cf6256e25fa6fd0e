"""Wire framing for the signer channel.

The signer speaks socket.io v2 on the ``/chainx`` namespace. Only two packet
shapes matter to the client: the namespace join ``40/chainx`` and event packets
``42/chainx,[type, payload]``. Everything else on the socket (engine.io open
packets, heartbeats, upgrade probes) is transport chatter and decodes to
``None``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .errors import FrameDecodeError

logger = logging.getLogger(__name__)

NAMESPACE = "/chainx"
CONNECT_FRAME = "40" + NAMESPACE
DATA_MARKER = "42" + NAMESPACE
DATA_PREFIX = DATA_MARKER + ","

COMPACT_JSON_SEPARATORS = (",", ":")


class FrameType(str, Enum):
    """Frame types exchanged with the signer."""

    PAIR = "pair"
    PAIRED = "paired"
    REKEY = "rekey"
    REKEYED = "rekeyed"
    API = "api"
    EVENT = "event"
    PING = "ping"
    PONG = "pong"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Frame:
    """A decoded data frame. ``type`` is kept as the raw wire string."""

    type: str
    payload: Any = None


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class DecodeFailed:
    raw: Any
    reason: str


DecodeResult = Union[Parsed, DecodeFailed]


def encode_connect() -> str:
    return CONNECT_FRAME


def encode_frame(frame_type: FrameType | str, payload: Any = None) -> str:
    """Serialize a data frame; a ``None`` payload is omitted from the array."""

    name = frame_type.value if isinstance(frame_type, FrameType) else str(frame_type)
    body: list[Any] = [name] if payload is None else [name, payload]
    return DATA_PREFIX + json.dumps(body, separators=COMPACT_JSON_SEPARATORS)


def decode_frame(message: str | bytes) -> Frame | None:
    """Decode a raw socket message.

    Returns ``None`` for anything that is not a ``/chainx`` data frame and
    raises :class:`FrameDecodeError` when the frame body is not a JSON array
    beginning with a string type.
    """

    if isinstance(message, bytes):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FrameDecodeError("Frame is not valid UTF-8") from exc

    if DATA_MARKER not in message:
        return None

    body = message.replace(DATA_PREFIX, "", 1)
    try:
        decoded = json.loads(body)
    except ValueError as exc:
        raise FrameDecodeError(f"Malformed frame body: {body[:80]!r}") from exc

    if not isinstance(decoded, list) or not decoded or not isinstance(decoded[0], str):
        raise FrameDecodeError(f"Frame body must be a [type, payload] array: {body[:80]!r}")

    payload = decoded[1] if len(decoded) > 1 else None
    return Frame(type=decoded[0], payload=payload)


def decode_json_payload(value: Any) -> DecodeResult:
    """Normalize a payload that may arrive either as JSON text or as an object."""

    if not isinstance(value, (str, bytes)):
        return Parsed(value)
    try:
        return Parsed(json.loads(value))
    except ValueError as exc:
        return DecodeFailed(raw=value, reason=str(exc))
