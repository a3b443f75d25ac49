"""
Tests for discovery orchestration and the in-process swarm.
"""

import asyncio
import os

import pytest

from hyper_sdk.core.exceptions import DiscoveryClosedError, PeerTimeoutError
from hyper_sdk.core.topics import derive_topic
from hyper_sdk.p2p.discovery import DiscoveryOrchestrator
from hyper_sdk.p2p.swarm import KeyPair, LocalSwarm

from conftest import FakeCore, FakeSwarm


# ===== FIXTURES =====

@pytest.fixture
def fake_swarm():
    return FakeSwarm()


@pytest.fixture
def orchestrator(fake_swarm):
    return DiscoveryOrchestrator(fake_swarm)


def make_swarm(network) -> LocalSwarm:
    key_pair = KeyPair(public_key=os.urandom(32), secret_key=os.urandom(32))
    return LocalSwarm(key_pair=key_pair, network=network)


# ===== JOIN / LEAVE TESTS =====

@pytest.mark.unit
class TestJoinLeave:
    """Test topic and name handling."""

    def test_join_raw_topic(self, orchestrator, fake_swarm):
        topic = os.urandom(32)
        orchestrator.join(topic)

        assert fake_swarm.joined == [(topic, {"server": True, "client": True})]

    def test_join_name_uses_derived_topic(self, orchestrator, fake_swarm):
        orchestrator.join("chat-room")
        orchestrator.join(derive_topic("chat-room"))

        assert fake_swarm.joined[0] == fake_swarm.joined[1]
        assert fake_swarm.joined[0][0] == derive_topic("chat-room")

    def test_join_options_override_defaults(self, fake_swarm):
        orchestrator = DiscoveryOrchestrator(fake_swarm, {"client": False})
        orchestrator.join("chat-room", {"server": False, "client": True})
        orchestrator.join("chat-room")

        assert fake_swarm.joined[0][1] == {"server": False, "client": True}
        assert fake_swarm.joined[1][1] == {"server": True, "client": False}

    @pytest.mark.asyncio
    async def test_leave_name_and_topic_are_equivalent(self, orchestrator, fake_swarm):
        await orchestrator.leave("chat-room")
        await orchestrator.leave(derive_topic("chat-room"))

        assert fake_swarm.left == [derive_topic("chat-room")] * 2

    def test_direct_peers(self, orchestrator, fake_swarm):
        peer = os.urandom(32)
        orchestrator.join_peer(peer)
        orchestrator.leave_peer(peer)

        assert fake_swarm.direct == [("join", peer), ("leave", peer)]


# ===== AUTO-JOIN TESTS =====

@pytest.mark.unit
class TestAutoJoin:
    """Test auto-join and flush semantics."""

    @pytest.mark.asyncio
    async def test_joins_core_discovery_key(self, orchestrator, fake_swarm, key):
        core = FakeCore(key, writable=True)
        session = await orchestrator.auto_join(core)

        assert core.discovery is session
        assert fake_swarm.joined[0][0] == core.discovery_key
        # Writable cores never wait for peers
        assert session.flush_calls == 0

    @pytest.mark.asyncio
    async def test_read_only_core_with_data_does_not_wait(self, orchestrator, key):
        core = FakeCore(key, writable=False, length=3)
        session = await orchestrator.auto_join(core)

        assert session.flush_calls == 0

    @pytest.mark.asyncio
    async def test_read_only_empty_core_waits_for_peer(self, key):
        swarm = FakeSwarm(found=True)
        orchestrator = DiscoveryOrchestrator(swarm)
        core = FakeCore(key, writable=False, length=0)

        session = await orchestrator.auto_join(core)

        assert session.flush_calls == 1

    @pytest.mark.asyncio
    async def test_existing_session_is_kept(self, orchestrator, fake_swarm, key):
        core = FakeCore(key, writable=True)
        core.discovery = object()

        assert await orchestrator.auto_join(core) is None
        assert fake_swarm.joined == []

    @pytest.mark.asyncio
    async def test_close_destroys_session_once(self, orchestrator, key):
        core = FakeCore(key, writable=True)
        session = await orchestrator.auto_join(core)

        await core.close()
        await core.close()
        await asyncio.sleep(0)

        assert session.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_flush_timeout(self, orchestrator, key):
        core = FakeCore(key, writable=False, length=0)

        with pytest.raises(PeerTimeoutError):
            await orchestrator.auto_join(core, flush_timeout=0.05)

        # Session is torn down and detached
        assert core.discovery is None
        session = orchestrator.swarm.sessions[0]
        assert session.destroy_calls == 1

        # Closing the core later does not destroy it again
        await core.close()
        await asyncio.sleep(0)
        assert session.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_session_closed_before_peer(self, key):
        orchestrator = DiscoveryOrchestrator(FakeSwarm(found=True, flush_result=False))
        core = FakeCore(key, writable=False, length=0)

        with pytest.raises(DiscoveryClosedError):
            await orchestrator.auto_join(core)

        assert core.discovery is None
        session = orchestrator.swarm.sessions[0]
        assert session.destroy_calls == 1

        await core.close()
        await asyncio.sleep(0)
        assert session.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_leave_while_waiting(self, network, key):
        swarm = make_swarm(network)
        await swarm.listen()
        core = FakeCore(key, writable=False, length=0)

        task = asyncio.create_task(DiscoveryOrchestrator(swarm).auto_join(core))
        await asyncio.sleep(0)
        await swarm.leave(core.discovery_key)

        with pytest.raises(DiscoveryClosedError):
            await asyncio.wait_for(task, timeout=1)
        assert core.discovery is None

    @pytest.mark.asyncio
    async def test_reopen_after_close_gets_live_session(self, network, key):
        swarm = make_swarm(network)
        await swarm.listen()
        orchestrator = DiscoveryOrchestrator(swarm)

        first = FakeCore(key, writable=True)
        old_session = await orchestrator.auto_join(first)
        await first.close()

        second = FakeCore(key, writable=True)
        new_session = await orchestrator.auto_join(second)
        await asyncio.sleep(0)

        assert old_session.destroyed
        assert new_session is not old_session
        assert not new_session.destroyed
        assert swarm.sessions[second.discovery_key] is new_session

    @pytest.mark.asyncio
    async def test_wait_blocks_until_peer(self, network, key):
        """An empty read-only core waits until a peer joins the topic."""
        reader = make_swarm(network)
        writer = make_swarm(network)
        await reader.listen()
        await writer.listen()

        core = FakeCore(key, writable=False, length=0)
        task = asyncio.create_task(DiscoveryOrchestrator(reader).auto_join(core))

        await asyncio.sleep(0.05)
        assert not task.done()

        writer.join(core.discovery_key)
        session = await asyncio.wait_for(task, timeout=1)

        assert session.has_peers
        assert writer.public_key in reader.peers


# ===== LOCAL SWARM TESTS =====

@pytest.mark.unit
class TestLocalSwarm:
    """Test the in-process swarm."""

    @pytest.mark.asyncio
    async def test_topic_connects_peers(self, network):
        a, b = make_swarm(network), make_swarm(network)
        connections = []
        a.on("connection", lambda conn, info: connections.append(("a", info.public_key)))
        b.on("connection", lambda conn, info: connections.append(("b", info.public_key)))

        topic = derive_topic("room")
        session_a = a.join(topic)
        session_b = b.join(topic)

        assert await asyncio.wait_for(session_a.flushed(), 1)
        assert await asyncio.wait_for(session_b.flushed(), 1)
        assert sorted(connections) == [("a", b.public_key), ("b", a.public_key)]

    @pytest.mark.asyncio
    async def test_one_connection_per_pair(self, network):
        a, b = make_swarm(network), make_swarm(network)
        a.join(derive_topic("one"))
        b.join(derive_topic("one"))
        a.join(derive_topic("two"))
        b.join(derive_topic("two"))

        assert len(a.connections) == 1
        assert a.peers[b.public_key].topics == {derive_topic("one"), derive_topic("two")}

    @pytest.mark.asyncio
    async def test_server_only_peers_do_not_connect(self, network):
        a, b = make_swarm(network), make_swarm(network)
        a.join(derive_topic("room"), server=True, client=False)
        b.join(derive_topic("room"), server=True, client=False)

        assert a.connections == set()

    @pytest.mark.asyncio
    async def test_leave_stops_discovery(self, network):
        a, b = make_swarm(network), make_swarm(network)
        topic = derive_topic("room")
        a.join(topic)
        await a.leave(topic)
        b.join(topic)

        assert b.connections == set()
        assert topic not in a.sessions

    @pytest.mark.asyncio
    async def test_join_peer_directly(self, network):
        a, b = make_swarm(network), make_swarm(network)
        await b.listen()

        a.join_peer(b.public_key)
        assert b.public_key in a.peers

        a.leave_peer(b.public_key)
        assert a.peers == {}
        assert b.peers == {}

    @pytest.mark.asyncio
    async def test_join_peer_before_listen(self, network):
        a, b = make_swarm(network), make_swarm(network)
        await a.listen()
        a.join_peer(b.public_key)
        assert a.peers == {}

        await b.listen()
        assert b.public_key in a.peers

    @pytest.mark.asyncio
    async def test_connection_close_is_seen_by_both_ends(self, network):
        a, b = make_swarm(network), make_swarm(network)
        closed = []
        b.on("connection", lambda conn, info: conn.once("close", lambda: closed.append("b")))
        a.join(derive_topic("room"))
        b.join(derive_topic("room"))

        next(iter(a.connections)).close()

        assert closed == ["b"]
        assert a.peers == {} and b.peers == {}

    @pytest.mark.asyncio
    async def test_destroy(self, network):
        a, b = make_swarm(network), make_swarm(network)
        session = a.join(derive_topic("room"))
        b.join(derive_topic("room"))

        await a.destroy()

        assert session.destroyed
        assert b.connections == set()
        assert a.public_key not in network.swarms
