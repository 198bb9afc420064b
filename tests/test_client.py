"""Tests for the public BlocknativeClient API."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from bnc_sdk import BlocknativeClient
from bnc_sdk.errors import (
    BNCCapacityError,
    BNCConnectionError,
    BNCInvalidAddressError,
    BNCValidationError,
)
from bnc_sdk.types import ConnectionState, System

from .conftest import DAPP_ID, FAST_RULE, FakeTransport


def pending_json(client):
    return [json.loads(m) for m in client._queue.pending]


async def open_client(client, transport):
    await client.connect()
    await transport.listener.on_open()


async def drain(client):
    await asyncio.wait_for(client._queue.join(), timeout=1.0)


class TestOptions:
    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"dapp_id": ""}, "dapp_id"),
            ({"network_id": "1"}, "network_id"),
            ({"network_id": True}, "network_id"),
            ({"system": "dogecoin"}, "system must be one of"),
            ({"api_url": "http://example.com"}, "api_url"),
            ({"transaction_handlers": ["nope"]}, "transaction_handlers"),
            ({"on_error": "nope"}, "on_error"),
            ({"listener": object()}, "listener is missing"),
            ({"queue_limit": 0}, "queue_limit"),
        ],
    )
    def test_invalid_options(self, kwargs, match):
        args = {"dapp_id": DAPP_ID, "network_id": 1, "transport": FakeTransport()}
        args.update(kwargs)
        dapp_id = args.pop("dapp_id")
        with pytest.raises(BNCValidationError, match=match):
            BlocknativeClient(dapp_id, **args)

    def test_defaults(self, client):
        opts = client.options
        assert opts.system == System.ETHEREUM
        assert opts.name == "unknown"
        assert opts.api_url == "wss://api.blocknative.com/v0"
        assert opts.queue_limit == 10_000
        assert opts.rate_limit == FAST_RULE

    def test_system_string_coerced(self):
        client = BlocknativeClient(
            DAPP_ID, network_id=2, system="bitcoin", transport=FakeTransport()
        )
        assert client.options.system is System.BITCOIN

    def test_listener_registered_on_transport(self, client, transport):
        assert transport.listener is client._connection


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager(self, transport):
        async with BlocknativeClient(
            DAPP_ID, network_id=1, transport=transport
        ) as client:
            transport.start.assert_awaited_once()
            assert client.state == ConnectionState.DISCONNECTED
        transport.close.assert_awaited_once()
        assert client.destroyed

    @pytest.mark.asyncio
    async def test_open_connects(self, client, transport):
        await open_client(client, transport)
        assert client.is_connected
        assert transport.sent_json[0]["eventCode"] == "checkDappId"
        await client.destroy()

    @pytest.mark.asyncio
    async def test_destroy_is_final(self, client, transport):
        await open_client(client, transport)
        client.account("0xabc")
        await client.destroy()
        await client.destroy()

        transport.close.assert_awaited_once()
        assert client.destroyed
        assert not client.is_connected
        assert client.watched_accounts == ()
        for call in (
            lambda: client.transaction("0x1"),
            lambda: client.account("0x2"),
            lambda: client.event({"categoryCode": "a", "eventCode": "b"}),
            lambda: client.unsubscribe("0x1"),
        ):
            with pytest.raises(BNCConnectionError, match="has been destroyed"):
                call()
        with pytest.raises(BNCConnectionError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_wait_closed_delegates(self, client, transport):
        await client.wait_closed()
        transport.wait_closed.assert_awaited_once()


class TestWatching:
    @pytest.mark.asyncio
    async def test_transaction_sends_watch(self, client, transport):
        await open_client(client, transport)
        sub = client.transaction("0xA")
        await drain(client)

        msg = transport.sent_json[1]
        assert msg["categoryCode"] == "activeTransaction"
        assert msg["eventCode"] == "txSent"
        assert msg["transaction"]["hash"] == "0xA"
        assert msg["transaction"]["id"] == "0xA"
        assert msg["transaction"]["status"] == "sent"
        assert isinstance(msg["transaction"]["startTime"], int)
        assert sub.details["hash"] == "0xA"
        await client.destroy()

    @pytest.mark.asyncio
    async def test_bitcoin_transaction_uses_txid(self):
        transport = FakeTransport()
        client = BlocknativeClient(
            DAPP_ID, network_id=2, system="bitcoin", transport=transport
        )
        client.transaction("abc")
        msg = pending_json(client)[0]
        assert msg["transaction"]["txid"] == "abc"
        assert "hash" not in msg["transaction"]
        assert msg["blockchain"] == {"system": "bitcoin", "network": "testnet"}
        await client.destroy()

    @pytest.mark.asyncio
    async def test_account_normalized(self, client):
        sub = client.account("0xABC")
        msg = pending_json(client)[0]
        assert msg["categoryCode"] == "accountAddress"
        assert msg["eventCode"] == "watch"
        assert msg["account"]["address"] == "0xabc"
        assert sub.details == {"address": "0xabc"}
        await client.destroy()

    @pytest.mark.asyncio
    async def test_empty_identifiers_rejected(self, client):
        with pytest.raises(BNCValidationError):
            client.transaction("")
        with pytest.raises(BNCValidationError):
            client.account("")

    @pytest.mark.asyncio
    async def test_event(self, client):
        client.event({"categoryCode": "activeDapp", "eventCode": "walletConnect"})
        assert pending_json(client)[0]["eventCode"] == "walletConnect"
        with pytest.raises(BNCValidationError, match="categoryCode"):
            client.event({"eventCode": "x"})
        with pytest.raises(BNCValidationError):
            client.event("not a dict")
        await client.destroy()

    @pytest.mark.asyncio
    async def test_capacity(self, transport):
        client = BlocknativeClient(
            DAPP_ID, network_id=1, transport=transport, queue_limit=2
        )
        client.transaction("0x1")
        client.transaction("0x2")
        with pytest.raises(BNCCapacityError, match="Queue limit of 2"):
            client.transaction("0x3")
        assert client.queue_size == 2
        await client.destroy()


class TestUnsubscribe:
    @pytest.mark.asyncio
    async def test_last_listener_sends_unwatch(self, client):
        first = client.account("0xabc")
        second = client.account("0xabc")

        client.unsubscribe(first)
        assert len(pending_json(client)) == 2

        client.unsubscribe(second)
        msg = pending_json(client)[-1]
        assert msg["eventCode"] == "unwatch"
        assert msg["account"]["address"] == "0xabc"
        assert client.watched_accounts == ()
        await client.destroy()

    @pytest.mark.asyncio
    async def test_by_hash(self, client):
        client.transaction("0xA")
        client.unsubscribe("0xA")
        msg = pending_json(client)[-1]
        assert msg["categoryCode"] == "activeTransaction"
        assert msg["eventCode"] == "unwatch"
        assert msg["transaction"] == {"hash": "0xA"}
        await client.destroy()

    @pytest.mark.asyncio
    async def test_unknown_target_is_noop(self, client):
        client.unsubscribe("0xnothing")
        assert client.queue_size == 0

    def test_bad_target(self, client):
        with pytest.raises(BNCValidationError):
            client.unsubscribe(42)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_event_reaches_emitter_and_handlers(self, transport):
        handler = MagicMock()
        client = BlocknativeClient(
            DAPP_ID,
            network_id=1,
            transport=transport,
            transaction_handlers=[handler],
            rate_limit=FAST_RULE,
        )
        await open_client(client, transport)
        sub = client.transaction("0xA")
        sub.emitter.on("txConfirmed", lambda state: f"confirmed {state.hash}")

        transport.listener.on_message(
            json.dumps(
                {
                    "connectionId": "conn-1",
                    "event": {
                        "eventCode": "txConfirmed",
                        "transaction": {"hash": "0xA", "status": "confirmed"},
                    },
                }
            )
        )

        state, result = handler.call_args[0]
        assert state.hash == "0xA"
        assert result == "confirmed 0xA"
        assert client.connection_id == "conn-1"
        await client.destroy()

    @pytest.mark.asyncio
    async def test_server_error_to_on_error(self, client, transport):
        transport.listener.on_message(
            json.dumps(
                {
                    "status": "error",
                    "reason": "invalid address",
                    "event": {"account": {"address": "0xBAD"}},
                }
            )
        )
        err = client.options.on_error.call_args[0][0]
        assert isinstance(err, BNCInvalidAddressError)
        assert err.account == "0xBAD"

    @pytest.mark.asyncio
    async def test_reopen_rewatches_accounts(self, client, transport):
        await open_client(client, transport)
        client.account("0xabc")
        client.transaction("0xT")
        await drain(client)
        transport.sent.clear()

        await transport.listener.on_down(MagicMock())
        await transport.listener.on_reopen()

        msgs = transport.sent_json
        assert [m["categoryCode"] for m in msgs] == ["initialize", "accountAddress"]
        assert client.get_stats()["reconnects"] == 1
        await client.destroy()


class TestStats:
    def test_get_stats(self, client):
        stats = client.get_stats()
        assert stats["state"] == "disconnected"
        assert stats["watched_transactions"] == 0
        assert stats["transaction_key"] == "hash"
        assert stats["queue"]["capacity"] == 10_000
        assert "rate_limit" in stats
