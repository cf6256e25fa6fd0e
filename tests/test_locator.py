import asyncio
from types import SimpleNamespace

from requests import ConnectionError as RequestsConnectionError

from chainx_signer.locator import PortScanLocator, SignerTarget


class StubSession:
    def __init__(self, live_ports: set[int]) -> None:
        self.live_ports = live_ports
        self.requested: list[str] = []

    def get(self, url: str, timeout: float):
        self.requested.append(url)
        port = int(url.split(":")[2].split("/")[0])
        if port not in self.live_ports:
            raise RequestsConnectionError("refused")
        return SimpleNamespace(ok=True)


def test_target_urls() -> None:
    target = SignerTarget("127.0.0.1", 10013)
    assert target.probe_url == "http://127.0.0.1:10013/socket.io/?EIO=3&transport=polling"
    assert target.url == "ws://127.0.0.1:10013/socket.io/?EIO=3&transport=websocket"


def test_first_answering_port_wins() -> None:
    session = StubSession({10014, 10015})
    locator = PortScanLocator("127.0.0.1", [10013, 10014, 10015], session=session)

    target = asyncio.run(locator.locate())

    assert target == SignerTarget("127.0.0.1", 10014)
    assert len(session.requested) == 2


def test_no_target_when_nothing_answers() -> None:
    locator = PortScanLocator("127.0.0.1", [10013], session=StubSession(set()))
    assert locator.find_target() is None


def test_error_status_is_not_a_signer() -> None:
    session = SimpleNamespace(get=lambda url, timeout: SimpleNamespace(ok=False))
    locator = PortScanLocator("127.0.0.1", [10013], session=session)
    assert locator.find_target() is None
