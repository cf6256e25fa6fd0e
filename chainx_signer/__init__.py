"""Client for pairing with and calling a locally running ChainX signer."""

from .client import SIGN_METHODS, SignerClient
from .codec import Frame, FrameType, decode_frame, encode_connect, encode_frame
from .config import ConfigurationError, SignerConfig, load_signer_config
from .connection import ConnectionManager
from .errors import (
    ConnectionLostError,
    FrameDecodeError,
    PairingDeniedError,
    SignerError,
    SignerNotFoundError,
    SignerRequestError,
    SignerTransportError,
)
from .events import ACCOUNT_CHANGE, NETWORK_CHANGE, NODE_CHANGE, TX_STATUS, EventRouter
from .keys import AppKeyManager, FileKeyStore, MemoryKeyStore, random_id
from .locator import PortScanLocator, SignerTarget
from .origin import StaticOriginProvider, resolve_origin
from .pairing import PairingPhase, PairingSession
from .registry import PendingRequest, RequestRegistry
from .session import Session
from .transport import WebSocketTransport

__all__ = [
    "SignerClient",
    "SIGN_METHODS",
    "Frame",
    "FrameType",
    "decode_frame",
    "encode_connect",
    "encode_frame",
    "ConfigurationError",
    "SignerConfig",
    "load_signer_config",
    "ConnectionManager",
    "ConnectionLostError",
    "FrameDecodeError",
    "PairingDeniedError",
    "SignerError",
    "SignerNotFoundError",
    "SignerRequestError",
    "SignerTransportError",
    "ACCOUNT_CHANGE",
    "NETWORK_CHANGE",
    "NODE_CHANGE",
    "TX_STATUS",
    "EventRouter",
    "AppKeyManager",
    "FileKeyStore",
    "MemoryKeyStore",
    "random_id",
    "PortScanLocator",
    "SignerTarget",
    "StaticOriginProvider",
    "resolve_origin",
    "PairingPhase",
    "PairingSession",
    "PendingRequest",
    "RequestRegistry",
    "Session",
    "WebSocketTransport",
]
