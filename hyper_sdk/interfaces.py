"""
Contracts for the collaborators the SDK drives.

The SDK does not store data or move bytes between peers itself. It relies
on a corestore (storage of replicated cores), a swarm (peer discovery and
connections) and a DNS transport. Any object with the shape described
here can be plugged into the facade; hyper_sdk.storage and hyper_sdk.p2p
ship in-process implementations.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Protocol


class Connection(Protocol):
    """A live connection to a remote peer."""

    remote_public_key: bytes

    def once(self, event: str, listener: Callable) -> Callable: ...

    def close(self) -> None: ...


class DiscoverySession(Protocol):
    """An active join of one topic on the discovery network."""

    topic: bytes

    async def flushed(self) -> bool: ...

    async def destroy(self) -> None: ...


class Core(Protocol):
    """Handle to one replicated data structure."""

    key: bytes
    discovery_key: bytes
    discovery: Optional[DiscoverySession]

    @property
    def id(self) -> str: ...

    @property
    def writable(self) -> bool: ...

    @property
    def length(self) -> int: ...

    async def ready(self) -> None: ...

    async def close(self) -> None: ...

    def once(self, event: str, listener: Callable) -> Callable: ...

    def off(self, event: str, listener: Callable) -> bool: ...


class Corestore(Protocol):
    """Factory and owner of cores."""

    @property
    def cores(self) -> Mapping[bytes, Core]: ...

    def get(self, key: Optional[bytes] = None, name: Optional[str] = None, **options: Any) -> Core: ...

    def namespace(self, name: str) -> "Corestore": ...

    def replicate(self, connection: Connection) -> None: ...

    async def create_key_pair(self, purpose: str) -> Any: ...

    async def ready(self) -> None: ...

    async def close(self) -> None: ...


class Swarm(Protocol):
    """Peer discovery and connection manager."""

    key_pair: Any

    @property
    def connections(self) -> Iterable[Connection]: ...

    @property
    def peers(self) -> Mapping[bytes, Any]: ...

    def on(self, event: str, listener: Callable) -> Callable: ...

    def join(self, topic: bytes, server: bool = True, client: bool = True) -> DiscoverySession: ...

    async def leave(self, topic: bytes) -> None: ...

    def join_peer(self, public_key: bytes) -> None: ...

    def leave_peer(self, public_key: bytes) -> None: ...

    async def listen(self) -> None: ...

    async def destroy(self) -> None: ...


class DNSTransport(Protocol):
    """Resolves one DNS question into answers with raw data segments."""

    def query(
        self,
        question: Dict[str, str],
        options: Optional[Dict[str, Any]] = None,
    ) -> Awaitable[Dict[str, List[Dict[str, Any]]]]: ...
