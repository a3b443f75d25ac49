"""
Hyper SDK facade.

Single entry point for applications: resolves identifiers to cores, opens
them through the corestore and keeps them discoverable on the swarm.

Lifecycle:
    uninitialized -> ready -> closed

Usage:
    >>> sdk = await create(storage=False)
    >>> core = await sdk.get("my-app-data")
    >>> await core.append(b"hello")
    >>> print(to_url(core.key))
    >>> await sdk.close()
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from hyper_sdk.config import SDKConfig, merge_options
from hyper_sdk.core.events import EventDispatcher
from hyper_sdk.core.exceptions import InvalidParameterError, SDKClosedError, SDKNotReadyError
from hyper_sdk.core.keys import encode_key
from hyper_sdk.core.resolver import Identifier, IdentifierResolver, ResolvedTarget
from hyper_sdk.dns.dnslink import DNSLinkResolver
from hyper_sdk.dns.transport import DoHTransport
from hyper_sdk.interfaces import Connection, Core, Corestore, DiscoverySession, DNSTransport, Swarm
from hyper_sdk.p2p.discovery import DiscoveryOrchestrator, TopicOrName
from hyper_sdk.p2p.swarm import LocalNetwork, LocalSwarm
from hyper_sdk.storage.backends import resolve_storage
from hyper_sdk.storage.corestore import MemoryCorestore

logger = logging.getLogger(__name__)


PEER_ADD = "peer-add"
PEER_REMOVE = "peer-remove"

# get() options consumed by the SDK instead of being passed to the corestore
_SDK_GET_OPTIONS = ("auto_join", "flush_timeout", "join", "dns")


class SDKState(Enum):
    """Facade lifecycle states."""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class SDK:
    """
    Facade over a corestore and a swarm.

    Events:
        peer-add(peer_info): a new peer connection was established
        peer-remove(peer_info): that connection closed
    """

    def __init__(
        self,
        swarm: Optional[Swarm] = None,
        corestore: Optional[Corestore] = None,
        config: Optional[SDKConfig] = None,
        dns_transport: Optional[DNSTransport] = None,
    ):
        """
        Initialize the SDK facade.

        Args:
            swarm: Discovery and connection collaborator
            corestore: Storage collaborator
            config: SDK configuration (defaults when omitted)
            dns_transport: Transport for DNS-link lookups (DNS-over-HTTPS by default)
        """
        if swarm is None:
            raise InvalidParameterError("swarm")
        if corestore is None:
            raise InvalidParameterError("corestore")

        self.swarm = swarm
        self.corestore = corestore
        self.config = config or SDKConfig()
        self.state = SDKState.UNINITIALIZED

        self.events = EventDispatcher()

        self.dnslink = DNSLinkResolver(
            dns_transport or DoHTransport(self.config.default_dns_opts),
            prefix=self.config.dns_link_prefix,
            default_options=self.config.default_dns_opts,
        )
        self.resolver = IdentifierResolver(self.dnslink)
        self.discovery = DiscoveryOrchestrator(swarm, self.config.default_join_opts)

        if self.config.do_replicate:
            swarm.on("connection", self._on_connection)

    # ===== EVENTS =====

    def on(self, event: str, listener):
        return self.events.on(event, listener)

    def once(self, event: str, listener):
        return self.events.once(event, listener)

    def off(self, event: str, listener) -> bool:
        return self.events.off(event, listener)

    def _on_connection(self, connection: Connection, peer_info: Any):
        self.events.emit(PEER_ADD, peer_info)
        connection.once("close", lambda: self.events.emit(PEER_REMOVE, peer_info))
        self.replicate(connection)

    # ===== PROPERTIES =====

    @property
    def id(self) -> bytes:
        """Public key identifying this peer on the swarm."""
        return self.swarm.key_pair.public_key

    @property
    def connections(self):
        return self.swarm.connections

    @property
    def peers(self) -> Mapping[bytes, Any]:
        return self.swarm.peers

    @property
    def cores(self) -> Mapping[bytes, Core]:
        return self.corestore.cores

    # ===== LIFECYCLE =====

    def _check_open(self):
        if self.state is SDKState.CLOSED:
            raise SDKClosedError("SDK is closed")
        if self.state is SDKState.UNINITIALIZED:
            raise SDKNotReadyError("Call ready() before using the SDK")

    async def ready(self):
        """Open the corestore and start accepting connections."""
        if self.state is SDKState.CLOSED:
            raise SDKClosedError("SDK is closed")
        if self.state is SDKState.READY:
            return

        await self.corestore.ready()
        await self.swarm.listen()

        self.state = SDKState.READY
        logger.info(f"SDK ready: {encode_key(self.id)[:16]}...")

    async def close(self):
        """Close the corestore and the swarm. Safe to call more than once."""
        if self.state is SDKState.CLOSED:
            return
        self.state = SDKState.CLOSED

        await asyncio.gather(
            self.corestore.close(),
            self.swarm.destroy(),
        )
        logger.info("SDK closed")

    async def __aenter__(self) -> "SDK":
        await self.ready()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ===== RESOLUTION =====

    async def resolve(self, identifier: Identifier, dns: Optional[Dict[str, Any]] = None) -> ResolvedTarget:
        """Resolve an identifier to a key or a name without opening a core."""
        self._check_open()
        return await self.resolver.resolve(identifier, dns)

    async def resolve_dns_to_key(self, domain: str, dns: Optional[Dict[str, Any]] = None) -> str:
        """Resolve a DNS-link domain to the encoded key it publishes."""
        self._check_open()
        return await self.dnslink.resolve(domain, dns)

    # ===== CORES =====

    async def get(self, identifier: Identifier, **options: Any) -> Core:
        """
        Open a core and make it discoverable.

        Args:
            identifier: 32-byte key, encoded key, hyper:// URL or name
            **options: Corestore options, plus
                auto_join: override the configured auto-join
                flush_timeout: bound the wait for a first peer (seconds)
                join: join option overrides for auto-join
                dns: DNS query overrides for domain URLs

        Returns:
            The ready core (with a first peer when it is read-only and empty)
        """
        self._check_open()

        core_opts = merge_options(
            self.config.default_core_opts,
            {"auto_join": self.config.auto_join, "flush_timeout": self.config.flush_timeout},
            options,
        )
        sdk_opts = {name: core_opts.pop(name, None) for name in _SDK_GET_OPTIONS}

        target = await self.resolver.resolve(identifier, sdk_opts["dns"])
        logger.debug(f"Resolved identifier to {target}")

        core = self.corestore.get(**target.as_core_options(), **core_opts)
        await core.ready()

        if sdk_opts["auto_join"] and core.discovery is None:
            await self.discovery.auto_join(
                core,
                sdk_opts["join"],
                flush_timeout=sdk_opts["flush_timeout"],
            )

        return core

    def namespace(self, name: str) -> Corestore:
        """Corestore whose named cores live under `name`."""
        return self.corestore.namespace(name)

    def replicate(self, connection: Connection):
        self.corestore.replicate(connection)

    # ===== DISCOVERY =====

    def join(self, topic_or_name: TopicOrName, **options: Any) -> DiscoverySession:
        """Join a topic given as 32 bytes or as a name."""
        self._check_open()
        return self.discovery.join(topic_or_name, options)

    async def leave(self, topic_or_name: TopicOrName):
        self._check_open()
        return await self.discovery.leave(topic_or_name)

    def join_peer(self, public_key: bytes):
        """Connect to a peer directly, without topic discovery."""
        self._check_open()
        return self.discovery.join_peer(public_key)

    def leave_peer(self, public_key: bytes):
        self._check_open()
        return self.discovery.leave_peer(public_key)

    def __repr__(self) -> str:
        return f"SDK(id={encode_key(self.id)[:16]}..., state={self.state.value})"


async def create(
    config: Optional[SDKConfig] = None,
    *,
    corestore: Optional[Corestore] = None,
    swarm: Optional[Swarm] = None,
    network: Optional[LocalNetwork] = None,
    dns_transport: Optional[DNSTransport] = None,
    **overrides: Any,
) -> SDK:
    """
    Build a ready SDK.

    Without explicit collaborators an in-memory corestore and a local swarm
    on `network` (the process-wide LocalNetwork by default) are used.

    Args:
        config: Base configuration
        corestore: Storage collaborator to use instead of the default
        swarm: Swarm to use instead of the default
        network: LocalNetwork for the default swarm
        dns_transport: DNS transport for DNS-link lookups
        **overrides: SDKConfig fields, e.g. storage=False, auto_join=False

    Returns:
        SDK whose ready() has completed
    """
    config = SDKConfig.build(config, **overrides)

    if corestore is None:
        corestore = MemoryCorestore(resolve_storage(config.storage), **config.corestore_opts)

    if swarm is None:
        key_pair = await corestore.create_key_pair("noise")
        swarm = LocalSwarm(key_pair=key_pair, network=network, **config.swarm_opts)

    sdk = SDK(swarm=swarm, corestore=corestore, config=config, dns_transport=dns_transport)
    await sdk.ready()
    return sdk
