"""
In-process swarm.

A loopback implementation of the swarm contract: every LocalSwarm attached
to the same LocalNetwork can discover the others through topics or dial
them by public key. Connections are pairs of LocalConnection objects that
live in memory, so several SDK instances in one process can find each
other and replicate without any sockets.

Features:
- Topic announce (server) and lookup (client) with per-topic sessions
- Direct peer dialing by public key
- One connection per pair of swarms, shared by every topic
- Discovery sessions that flush once a peer is connected
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from hyper_sdk.core.events import EventDispatcher
from hyper_sdk.core.keys import z32_encode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPair:
    """Ed25519 key pair identifying a swarm or a core."""

    public_key: bytes
    secret_key: bytes = field(repr=False)


@dataclass
class PeerInfo:
    """Information about a connected remote peer."""

    public_key: bytes
    client: bool  # True when we dialed the peer
    topics: Set[bytes] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)

    @property
    def id(self) -> str:
        return z32_encode(self.public_key)


class LocalConnection:
    """One end of an in-memory duplex connection."""

    def __init__(self, local_public_key: bytes, remote_public_key: bytes, initiator: bool):
        self.local_public_key = local_public_key
        self.remote_public_key = remote_public_key
        self.initiator = initiator
        self.remote: Optional["LocalConnection"] = None
        self.closed = False
        self.events = EventDispatcher()

        # Corestore attached by replicate(), used by the replicating peer
        self.replicator = None

    @classmethod
    def pair(cls, a: bytes, b: bytes):
        """Create both ends of a connection dialed from `a` to `b`."""
        ours = cls(a, b, initiator=True)
        theirs = cls(b, a, initiator=False)
        ours.remote = theirs
        theirs.remote = ours
        return ours, theirs

    def on(self, event: str, listener):
        return self.events.on(event, listener)

    def once(self, event: str, listener):
        return self.events.once(event, listener)

    def off(self, event: str, listener) -> bool:
        return self.events.off(event, listener)

    def close(self):
        """Close both ends. Each end emits 'close' exactly once."""
        if self.closed:
            return
        self.closed = True
        self.events.emit("close")

        if self.remote is not None:
            self.remote.close()

    def __repr__(self) -> str:
        return f"LocalConnection(remote={z32_encode(self.remote_public_key)[:16]}...)"


class PeerDiscovery:
    """
    Discovery session for one topic.

    flushed() waits until at least one peer is connected on the topic.
    destroy() leaves the topic; it is safe to call more than once.
    """

    def __init__(self, swarm: "LocalSwarm", topic: bytes, server: bool, client: bool):
        self.swarm = swarm
        self.topic = topic
        self.server = server
        self.client = client
        self.destroyed = False
        self._found = asyncio.Event()

    @property
    def has_peers(self) -> bool:
        return self._found.is_set()

    def _peer_found(self):
        self._found.set()

    async def flushed(self) -> bool:
        """
        Wait for the first peer on this topic.

        Returns:
            True once a peer is connected, False if the session was destroyed first
        """
        await self._found.wait()
        return not self.destroyed or self.swarm._topic_has_peer(self.topic)

    async def destroy(self):
        if self.destroyed:
            return
        self.destroyed = True
        await self.swarm._remove_session(self)
        # Release waiters
        self._found.set()

    def __repr__(self) -> str:
        return f"PeerDiscovery(topic={self.topic.hex()[:16]}..., server={self.server}, client={self.client})"


class LocalNetwork:
    """
    Shared registry for LocalSwarm instances.

    Tracks which swarms are listening, which announce a topic (servers)
    and which look a topic up (clients).
    """

    _default: Optional["LocalNetwork"] = None

    def __init__(self):
        self.swarms: Dict[bytes, "LocalSwarm"] = {}
        self.servers: Dict[bytes, Set[bytes]] = {}
        self.clients: Dict[bytes, Set[bytes]] = {}

    @classmethod
    def default(cls) -> "LocalNetwork":
        """Process-wide network, created on first use."""
        if cls._default is None:
            cls._default = cls()
        return cls._default

    def register(self, swarm: "LocalSwarm"):
        self.swarms[swarm.public_key] = swarm

        # Peers that were waiting to dial this key directly
        for other in list(self.swarms.values()):
            if other is not swarm and swarm.public_key in other.explicit_peers:
                other._connect(swarm, topic=None)

    def unregister(self, swarm: "LocalSwarm"):
        self.swarms.pop(swarm.public_key, None)
        for table in (self.servers, self.clients):
            for members in table.values():
                members.discard(swarm.public_key)

    def announce(self, topic: bytes, swarm: "LocalSwarm"):
        self.servers.setdefault(topic, set()).add(swarm.public_key)
        for public_key in list(self.clients.get(topic, ())):
            client = self.swarms.get(public_key)
            if client is not None and client is not swarm:
                client._connect(swarm, topic)

    def lookup(self, topic: bytes, swarm: "LocalSwarm"):
        self.clients.setdefault(topic, set()).add(swarm.public_key)
        for public_key in list(self.servers.get(topic, ())):
            server = self.swarms.get(public_key)
            if server is not None and server is not swarm:
                swarm._connect(server, topic)

    def withdraw(self, topic: bytes, swarm: "LocalSwarm"):
        for table in (self.servers, self.clients):
            members = table.get(topic)
            if members is not None:
                members.discard(swarm.public_key)
                if not members:
                    del table[topic]


class LocalSwarm:
    """
    Swarm over a LocalNetwork.

    Emits 'connection' with (connection, peer_info) for every new
    connection, on both the dialing and the accepting side.
    """

    def __init__(
        self,
        key_pair: KeyPair,
        network: Optional[LocalNetwork] = None,
        max_peers: int = 64,
    ):
        """
        Initialize local swarm.

        Args:
            key_pair: Identity of this swarm
            network: Network to attach to (default: process-wide network)
            max_peers: Maximum number of simultaneous connections
        """
        self.key_pair = key_pair
        self.network = network or LocalNetwork.default()
        self.max_peers = max_peers

        self.events = EventDispatcher()
        self.sessions: Dict[bytes, PeerDiscovery] = {}
        self.explicit_peers: Set[bytes] = set()
        self._connections: Dict[bytes, LocalConnection] = {}
        self._peers: Dict[bytes, PeerInfo] = {}

        self.listening = False
        self.destroyed = False

        logger.info(f"Initialized local swarm: {z32_encode(self.public_key)[:16]}...")

    @property
    def public_key(self) -> bytes:
        return self.key_pair.public_key

    @property
    def connections(self) -> Set[LocalConnection]:
        return set(self._connections.values())

    @property
    def peers(self) -> Dict[bytes, PeerInfo]:
        return dict(self._peers)

    def on(self, event: str, listener):
        return self.events.on(event, listener)

    def once(self, event: str, listener):
        return self.events.once(event, listener)

    def off(self, event: str, listener) -> bool:
        return self.events.off(event, listener)

    async def listen(self):
        """Make this swarm reachable by other swarms on the network."""
        if self.listening:
            return
        self.listening = True
        self.network.register(self)
        logger.info(f"Swarm {z32_encode(self.public_key)[:16]}... listening")

    def join(self, topic: bytes, server: bool = True, client: bool = True) -> PeerDiscovery:
        """
        Join a topic.

        Args:
            topic: 32-byte topic
            server: Announce this swarm on the topic
            client: Look up and connect to servers on the topic

        Returns:
            Discovery session for the topic
        """
        # Joining a topic twice refreshes the existing session
        session = self.sessions.get(topic)
        if session is None:
            session = PeerDiscovery(self, topic, server=server, client=client)
            self.sessions[topic] = session
        else:
            session.server = server
            session.client = client

        if not self.listening:
            self.network.register(self)
            self.listening = True

        if server:
            self.network.announce(topic, self)
        if client:
            self.network.lookup(topic, self)

        if self._topic_has_peer(topic):
            session._peer_found()

        logger.debug(f"Joined topic {topic.hex()[:16]}... (server={server}, client={client})")
        return session

    async def leave(self, topic: bytes):
        """Stop announcing and looking up a topic. Open connections stay up."""
        session = self.sessions.pop(topic, None)
        if session is not None:
            session.destroyed = True
            session._peer_found()
        self.network.withdraw(topic, self)
        logger.debug(f"Left topic {topic.hex()[:16]}...")

    def join_peer(self, public_key: bytes):
        """Keep a direct connection to a peer, bypassing topic discovery."""
        public_key = bytes(public_key)
        self.explicit_peers.add(public_key)

        remote = self.network.swarms.get(public_key)
        if remote is not None and remote is not self:
            self._connect(remote, topic=None)

    def leave_peer(self, public_key: bytes):
        """Forget a direct peer and drop its connection."""
        public_key = bytes(public_key)
        self.explicit_peers.discard(public_key)

        connection = self._connections.get(public_key)
        if connection is not None:
            connection.close()

    async def destroy(self):
        """Leave every topic and close every connection."""
        if self.destroyed:
            return
        self.destroyed = True

        for session in list(self.sessions.values()):
            await session.destroy()

        for connection in list(self._connections.values()):
            connection.close()

        self.network.unregister(self)
        self.listening = False
        logger.info(f"Swarm {z32_encode(self.public_key)[:16]}... destroyed")

    def _topic_has_peer(self, topic: bytes) -> bool:
        return any(topic in peer.topics for peer in self._peers.values())

    async def _remove_session(self, session: PeerDiscovery):
        if self.sessions.get(session.topic) is session:
            await self.leave(session.topic)

    def _connect(self, remote: "LocalSwarm", topic: Optional[bytes]):
        """Dial `remote`, reusing an existing connection to it."""
        if remote.destroyed or self.destroyed:
            return

        if remote.public_key not in self._connections:
            if len(self._connections) >= self.max_peers or len(remote._connections) >= remote.max_peers:
                logger.warning(f"Peer limit reached, not connecting to {z32_encode(remote.public_key)[:16]}...")
                return

            ours, theirs = LocalConnection.pair(self.public_key, remote.public_key)
            self._attach(ours, client=True)
            remote._attach(theirs, client=False)

            self.events.emit("connection", ours, self._peers[remote.public_key])
            remote.events.emit("connection", theirs, remote._peers[self.public_key])

        if topic is not None:
            self._peers[remote.public_key].topics.add(topic)
            remote._peers[self.public_key].topics.add(topic)
            self._notify_topic(topic)
            remote._notify_topic(topic)

    def _attach(self, connection: LocalConnection, client: bool):
        public_key = connection.remote_public_key
        self._connections[public_key] = connection
        self._peers[public_key] = PeerInfo(public_key=public_key, client=client)

        def on_close():
            if self._connections.get(public_key) is connection:
                del self._connections[public_key]
                self._peers.pop(public_key, None)

        connection.once("close", on_close)
        logger.debug(f"Connected to {z32_encode(public_key)[:16]}... (client={client})")

    def _notify_topic(self, topic: bytes):
        session = self.sessions.get(topic)
        if session is not None:
            session._peer_found()
