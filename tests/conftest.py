"""
Shared fixtures for the Hyper SDK test suite.
"""

import asyncio
import os

import pytest

from hyper_sdk.core.events import EventDispatcher
from hyper_sdk.core.keys import encode_key
from hyper_sdk.core.topics import discovery_key
from hyper_sdk.p2p.swarm import LocalNetwork


class FakeDNSTransport:
    """DNS transport answering from a dict: record name -> list of data segment lists."""

    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.queries = []

    async def query(self, question, options=None):
        self.queries.append((question, options))
        if self.error is not None:
            raise self.error
        return {
            "answers": [
                {"name": question["name"], "type": "txt", "ttl": 60, "data": data}
                for data in self.records.get(question["name"], [])
            ]
        }


class FakeSession:
    """Discovery session counting destroy() calls."""

    def __init__(self, topic, found=False, flush_result=True):
        self.topic = topic
        self.destroy_calls = 0
        self.flush_calls = 0
        self.found = found
        self.flush_result = flush_result

    async def flushed(self):
        self.flush_calls += 1
        if not self.found:
            # Never finds a peer
            await asyncio.Event().wait()
        return self.flush_result

    async def destroy(self):
        self.destroy_calls += 1


class FakeSwarm:
    """Swarm recording join/leave calls."""

    def __init__(self, found=False, flush_result=True):
        self.found = found
        self.flush_result = flush_result
        self.joined = []
        self.left = []
        self.sessions = []
        self.direct = []

    def join(self, topic, server=True, client=True):
        self.joined.append((topic, {"server": server, "client": client}))
        session = FakeSession(topic, found=self.found, flush_result=self.flush_result)
        self.sessions.append(session)
        return session

    async def leave(self, topic):
        self.left.append(topic)

    def join_peer(self, public_key):
        self.direct.append(("join", public_key))

    def leave_peer(self, public_key):
        self.direct.append(("leave", public_key))


class FakeCore:
    """Core handle with configurable writability and length."""

    def __init__(self, key, writable=False, length=0):
        self.key = key
        self.discovery_key = discovery_key(key)
        self.discovery = None
        self.writable = writable
        self.length = length
        self.events = EventDispatcher()

    @property
    def id(self):
        return encode_key(self.key)

    def once(self, event, listener):
        return self.events.once(event, listener)

    def off(self, event, listener):
        return self.events.off(event, listener)

    async def close(self):
        self.events.emit("close")


@pytest.fixture
def key():
    """A random 32-byte key."""
    return os.urandom(32)


@pytest.fixture
def z32_key(key):
    return encode_key(key)


@pytest.fixture
def dns_transport(z32_key):
    """Transport publishing a DNS-link for example.com."""
    return FakeDNSTransport({
        "_dnslink.example.com": [[b"dnslink=/hyper/" + z32_key.encode("ascii")]],
    })


@pytest.fixture
def network():
    """Isolated in-process network."""
    return LocalNetwork()
