from __future__ import annotations

import asyncio
from typing import Any, Callable, List

import pytest

from chainx_signer.client import SignerClient
from chainx_signer.codec import Frame, decode_frame, encode_frame
from chainx_signer.errors import SignerTransportError
from chainx_signer.keys import MemoryKeyStore
from chainx_signer.locator import SignerTarget
from chainx_signer.origin import StaticOriginProvider


class FakeChannel:
    """In-memory channel recording outgoing frames."""

    def __init__(self) -> None:
        self.sent: List[str] = []
        self.closed = False
        self.fail_sends = False
        self.on_message: Callable[[Any], None] | None = None
        self.on_close: Callable[[Any], None] | None = None

    def start(self, on_message, on_close) -> None:
        self.on_message = on_message
        self.on_close = on_close

    def send(self, message: str) -> None:
        if self.closed or self.fail_sends:
            raise SignerTransportError("channel closed")
        self.sent.append(message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.on_close is not None:
            self.on_close(self)

    def receive(self, frame_type: str, payload: Any = None) -> None:
        assert self.on_message is not None
        self.on_message(encode_frame(frame_type, payload))

    def receive_raw(self, message: Any) -> None:
        assert self.on_message is not None
        self.on_message(message)

    def drop(self) -> None:
        """Simulate the signer going away."""

        self.closed = True
        assert self.on_close is not None
        self.on_close(self)

    def frames(self, frame_type: str | None = None) -> List[Frame]:
        decoded = [decode_frame(message) for message in self.sent]
        frames = [frame for frame in decoded if frame is not None]
        if frame_type is not None:
            frames = [frame for frame in frames if frame.type == frame_type]
        return frames


class FakeTransport:
    def __init__(self) -> None:
        self.opened: List[FakeChannel] = []
        self.targets: List[SignerTarget] = []
        self.fail = False

    async def open(self, target: SignerTarget) -> FakeChannel | None:
        self.targets.append(target)
        if self.fail:
            return None
        channel = FakeChannel()
        self.opened.append(channel)
        return channel


class FakeLocator:
    def __init__(self, target: SignerTarget | None = SignerTarget("127.0.0.1", 10013)) -> None:
        self.target = target
        self.calls = 0

    async def locate(self) -> SignerTarget | None:
        self.calls += 1
        return self.target


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Return a coroutine function that lets queued callbacks run."""

    return _settle


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def locator() -> FakeLocator:
    return FakeLocator()


@pytest.fixture
def key_store() -> MemoryKeyStore:
    return MemoryKeyStore()


@pytest.fixture
def client(transport: FakeTransport, locator: FakeLocator, key_store: MemoryKeyStore) -> SignerClient:
    return SignerClient(
        "test-plugin",
        locator=locator,
        transport=transport,
        key_store=key_store,
        origin_provider=StaticOriginProvider("www.example.com"),
        reconnect_delay=0.01,
    )


@pytest.fixture
def link(client: SignerClient, transport: FakeTransport):
    """Return a coroutine function that links ``client`` and answers its passthrough pairing."""

    async def _link(paired: bool = True) -> FakeChannel:
        task = asyncio.create_task(client.link())
        await _settle()
        channel = transport.opened[-1]
        channel.receive("paired", paired)
        assert await task is True
        return channel

    return _link
