"""Shared fixtures for bnc_sdk unit tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from bnc_sdk.client import BlocknativeClient
from bnc_sdk.outbound_queue import OutboundQueue
from bnc_sdk.protocol import MessageCodec
from bnc_sdk.rate_limiter import RateLimiter
from bnc_sdk.registry import WatchRegistry
from bnc_sdk.router import InboundRouter
from bnc_sdk.session import Session
from bnc_sdk.types import RateLimitRule, System

DAPP_ID = "test-dapp-id"

# Fast enough that draining a handful of messages takes milliseconds
FAST_RULE = RateLimitRule(points=1000, duration=1.0)


class FakeTransport:
    """In-memory transport recording every frame sent."""

    def __init__(self):
        self.listener = None
        self.sent = []
        self.open = True
        self.start = AsyncMock()
        self.close = AsyncMock(side_effect=self._close)
        self.wait_closed = AsyncMock()
        self.terminate = MagicMock()

    def set_listener(self, listener):
        self.listener = listener

    async def send(self, data):
        if not self.open:
            return False
        self.sent.append(data)
        return True

    async def _close(self):
        self.open = False
        if self.listener is not None:
            await self.listener.on_close()

    @property
    def sent_json(self):
        return [json.loads(s) for s in self.sent]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session():
    return Session(DAPP_ID, "test")


@pytest.fixture
def codec():
    return MessageCodec(DAPP_ID, System.ETHEREUM, 1)


@pytest.fixture
def registry():
    return WatchRegistry(System.ETHEREUM)


@pytest.fixture
def rate_limiter():
    return RateLimiter(FAST_RULE)


@pytest.fixture
def queue(session, transport, rate_limiter):
    return OutboundQueue(session, transport, rate_limiter, max_size=100)


@pytest.fixture
def on_error():
    return MagicMock()


@pytest.fixture
def router(session, codec, registry, rate_limiter, queue, on_error):
    return InboundRouter(
        system=System.ETHEREUM,
        session=session,
        codec=codec,
        registry=registry,
        rate_limiter=rate_limiter,
        queue=queue,
        on_error=on_error,
    )


@pytest.fixture
def client(transport):
    return BlocknativeClient(
        DAPP_ID,
        network_id=1,
        transport=transport,
        rate_limit=FAST_RULE,
        on_error=MagicMock(),
    )
