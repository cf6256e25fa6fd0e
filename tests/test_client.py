import asyncio
from pathlib import Path

import pytest

from chainx_signer.client import SignerClient
from chainx_signer.config import SignerConfig
from chainx_signer.errors import PairingDeniedError, SignerRequestError, SignerTransportError
from chainx_signer.events import ACCOUNT_CHANGE, TX_STATUS
from chainx_signer.keys import FileKeyStore, is_ephemeral
from chainx_signer.locator import PortScanLocator
from chainx_signer.transport import WebSocketTransport


def _answer(channel, request_id: str, **fields) -> None:
    channel.receive("api", {"id": request_id, **fields})


def test_api_frame_carries_appkey_origin_and_id(client, link, settle) -> None:
    async def scenario() -> None:
        channel = await link()
        call = asyncio.create_task(client.get_current_account())
        await settle()

        frame = channel.frames("api")[0]
        data = frame.payload["data"]
        assert frame.payload["plugin"] == "test-plugin"
        assert data["appkey"] == client.appkey
        assert data["origin"] == "example.com"
        assert data["payload"]["method"] == "chainx_account"
        assert data["payload"]["params"] == []
        assert data["payload"]["id"].isdigit()

        _answer(channel, data["payload"]["id"], result={"address": "5F"})
        assert await call == {"address": "5F"}

    asyncio.run(scenario())


def test_denied_pairing_rejects_without_sending(client, link, settle) -> None:
    async def scenario() -> None:
        channel = await link(paired=False)
        call = asyncio.create_task(client.send_api_request({"method": "get_settings", "params": []}))
        await settle()

        assert len(channel.frames("pair")) == 2
        assert channel.frames("pair")[1].payload["data"]["passthrough"] is False
        channel.receive("paired", False)

        with pytest.raises(PairingDeniedError) as excinfo:
            await call
        assert excinfo.value.to_dict()["code"] == "not_paired"
        assert channel.frames("api") == []
        assert len(client.registry) == 0

    asyncio.run(scenario())


def test_call_waits_for_pairing_then_sends(client, key_store, link, settle) -> None:
    async def scenario() -> None:
        channel = await link(paired=False)
        ephemeral = client.appkey
        call = asyncio.create_task(client.get_current_node())
        await settle()

        channel.receive("paired", True)
        await settle()

        assert key_store.get() is not None
        assert client.appkey != ephemeral
        frame = channel.frames("api")[0]
        assert frame.payload["data"]["appkey"] == key_store.get()
        _answer(channel, frame.payload["data"]["payload"]["id"], result="wss://node")
        assert await call == "wss://node"

    asyncio.run(scenario())


def test_responses_settle_in_arrival_order(client, link, settle) -> None:
    async def scenario() -> None:
        channel = await link()
        call_a = asyncio.create_task(client.get_settings())
        call_b = asyncio.create_task(client.get_current_node())
        await settle()

        ids = [frame.payload["data"]["payload"]["id"] for frame in channel.frames("api")]
        assert len(set(ids)) == 2

        _answer(channel, ids[1], result="B")
        await settle()
        assert call_b.done() and call_b.result() == "B"
        assert not call_a.done()

        _answer(channel, ids[0], result="A")
        assert await call_a == "A"

    asyncio.run(scenario())


def test_peer_error_is_raised(client, link, settle) -> None:
    async def scenario() -> None:
        channel = await link()
        call = asyncio.create_task(client.sign_extrinsic("5F", "0x00"))
        await settle()

        request_id = channel.frames("api")[0].payload["data"]["payload"]["id"]
        _answer(channel, request_id, error={"code": "user_rejected", "message": "nope"})

        with pytest.raises(SignerRequestError) as excinfo:
            await call
        assert excinfo.value.code == "user_rejected"

    asyncio.run(scenario())


def test_sign_and_send_reports_status_until_finalized(client, link, settle) -> None:
    async def scenario() -> None:
        channel = await link()
        other: list[object] = []
        client.add_event_handler(TX_STATUS, other.append)
        updates: list[tuple[object, object]] = []

        call = asyncio.create_task(
            client.sign_and_send_extrinsic("5F", "0x00", lambda err, status: updates.append((err, status)))
        )
        await settle()
        request_id = channel.frames("api")[0].payload["data"]["payload"]["id"]
        assert len(client.events.handlers(TX_STATUS)) == 2

        def status(**event) -> None:
            channel.receive("event", {"event": TX_STATUS, "payload": event})

        status(id="someone-else", err=None, status={"status": "Ready"})
        status(id=request_id, err=None, status={"status": "Ready"})
        status(id=request_id, err=None, status={"status": "Finalized"})
        status(id=request_id, err=None, status={"status": "Finalized"})

        assert updates == [(None, {"status": "Ready"}), (None, {"status": "Finalized"})]
        assert client.events.handlers(TX_STATUS) == [other.append]
        assert len(other) == 4

        _answer(channel, request_id, result="0xhash")
        assert await call == "0xhash"

    asyncio.run(scenario())


def test_status_error_stops_callbacks(client, link, settle) -> None:
    async def scenario() -> None:
        channel = await link()
        updates: list[object] = []
        asyncio.create_task(
            client.sign_and_send_chainx2_extrinsic("5F", {"call": 1}, lambda err, status: updates.append(err))
        )
        await settle()
        request_id = channel.frames("api")[0].payload["data"]["payload"]["id"]
        assert channel.frames("api")[0].payload["data"]["payload"]["method"] == "chainx2_sign_send"

        channel.receive("event", {"event": TX_STATUS, "payload": {"id": request_id, "err": "Invalid"}})
        channel.receive("event", {"event": TX_STATUS, "payload": {"id": request_id, "err": "Again"}})

        assert updates == ["Invalid"]
        assert client.events.handlers(TX_STATUS) == []

    asyncio.run(scenario())


def test_send_failure_raises_network_error_and_cleans_up(client, link) -> None:
    async def scenario() -> None:
        channel = await link()
        channel.fail_sends = True

        with pytest.raises(SignerTransportError) as excinfo:
            await client.sign_and_send_extrinsic("5F", "0x00", lambda err, status: None)

        assert excinfo.value.code == "network_error"
        assert len(client.registry) == 0
        assert client.events.handlers(TX_STATUS) == []

    asyncio.run(scenario())


def test_call_without_connection_is_network_error(client) -> None:
    async def scenario() -> None:
        with pytest.raises(SignerTransportError):
            await client.get_settings()

    asyncio.run(scenario())


def test_cancelled_call_leaves_no_pending_request(client, link, settle) -> None:
    async def scenario() -> None:
        await link()
        call = asyncio.create_task(client.get_settings())
        await settle()
        assert len(client.registry) == 1

        call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await call
        assert len(client.registry) == 0

    asyncio.run(scenario())


def test_rekey_frame_rotates_appkey(client, link) -> None:
    async def scenario() -> None:
        channel = await link()
        before = client.appkey

        channel.receive("rekey")

        assert client.appkey != before
        assert is_ephemeral(client.appkey)
        assert client.is_paired() is False
        rekeyed = channel.frames("rekeyed")[0]
        assert rekeyed.payload == {
            "data": {"appkey": client.appkey, "origin": "example.com"},
            "plugin": "test-plugin",
        }

    asyncio.run(scenario())


def test_account_change_listeners(client, link) -> None:
    async def scenario() -> None:
        channel = await link()
        calls: list[tuple[str, object]] = []

        def first(payload):
            calls.append(("first", payload))

        def second(payload):
            calls.append(("second", payload))

        client.listen_account_change(first)
        client.listen_account_change(second)
        assert client.remove_account_change_listener(first) is True
        assert client.remove_account_change_listener(first) is False

        channel.receive("event", {"event": ACCOUNT_CHANGE, "payload": "5G"})

        assert calls == [("second", "5G")]

    asyncio.run(scenario())


def test_from_config_builds_default_collaborators(tmp_path: Path) -> None:
    config = SignerConfig(
        plugin="www.my-dapp",
        ports=(12000,),
        keystore_path=tmp_path / "appkey.yaml",
        auto_reconnect=False,
    )

    client = SignerClient.from_config(config)

    assert isinstance(client.connection.locator, PortScanLocator)
    assert client.connection.locator.ports == [12000]
    assert isinstance(client.connection.transport, WebSocketTransport)
    assert isinstance(client.keys.store, FileKeyStore)
    assert client.origin == "my-dapp"
    assert client.session.auto_reconnect is False
    assert is_ephemeral(client.appkey)
