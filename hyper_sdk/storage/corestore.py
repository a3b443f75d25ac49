"""
In-memory corestore.

Keeps append-only logs (cores) in memory and replicates them over
LocalConnection objects. Each core is identified by an Ed25519 public key:

- cores opened by name derive their key pair from the store's primary key,
  so they are writable by this store
- cores opened by key are writable only if this store holds the key pair

Appended blocks are signed by the core's key pair and every replicated
block is verified against the core's public key before it is stored.
"""

import asyncio
import hashlib
import logging
import secrets
from typing import Dict, List, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from hyper_sdk.core.events import EventDispatcher
from hyper_sdk.core.exceptions import (
    CoreClosedError,
    InvalidKeyError,
    InvalidParameterError,
    ReadOnlyCoreError,
)
from hyper_sdk.core.keys import KEY_LENGTH, is_key, z32_encode
from hyper_sdk.core.topics import discovery_key
from hyper_sdk.p2p.swarm import KeyPair, LocalConnection
from hyper_sdk.storage.backends import StorageBackend, StorageKind, resolve_storage

logger = logging.getLogger(__name__)


NAMESPACE_SEPARATOR = "/"


def derive_key_pair(primary_key: bytes, name: str) -> KeyPair:
    """Deterministic Ed25519 key pair for a name under a primary key."""
    seed = hashlib.blake2b(name.encode("utf-8"), digest_size=32, key=primary_key).digest()
    private_key = ed25519.Ed25519PrivateKey.from_private_bytes(seed)
    public_key = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return KeyPair(public_key=public_key, secret_key=seed)


def _signable(index: int, block: bytes) -> bytes:
    return index.to_bytes(8, "big") + block


class MemoryCore:
    """
    Append-only log held in memory.

    Events:
        append: emitted after new blocks are stored (local or replicated)
        close: emitted once when the core closes
    """

    def __init__(self, store: "MemoryCorestore", key: bytes, key_pair: Optional[KeyPair] = None, **options):
        self.store = store
        self.key = key
        self.key_pair = key_pair
        self.discovery_key = discovery_key(key)
        self.options = options

        # Slot for the discovery session attached by auto-join
        self.discovery = None

        self.events = EventDispatcher()
        self.opened = False
        self.closed = False

        self._blocks: List[bytes] = []
        self._signatures: List[bytes] = []
        self._updated = asyncio.Event()

        self._signer = (
            ed25519.Ed25519PrivateKey.from_private_bytes(key_pair.secret_key)
            if key_pair is not None else None
        )

    @property
    def id(self) -> str:
        return z32_encode(self.key)

    @property
    def writable(self) -> bool:
        return self._signer is not None

    @property
    def length(self) -> int:
        return len(self._blocks)

    def on(self, event: str, listener):
        return self.events.on(event, listener)

    def once(self, event: str, listener):
        return self.events.once(event, listener)

    def off(self, event: str, listener) -> bool:
        return self.events.off(event, listener)

    async def ready(self):
        if self.closed:
            raise CoreClosedError(f"Core {self.id[:16]}... is closed")
        self.opened = True

    async def append(self, *blocks: bytes) -> int:
        """
        Append blocks to the log.

        Returns:
            The new length of the core
        """
        if not self.writable:
            raise ReadOnlyCoreError(f"Core {self.id[:16]}... is not writable")
        if self.closed:
            raise CoreClosedError(f"Core {self.id[:16]}... is closed")

        for block in blocks:
            block = bytes(block)
            index = len(self._blocks)
            self._blocks.append(block)
            self._signatures.append(self._signer.sign(_signable(index, block)))

        self._notify_update()
        self.events.emit("append")
        self.store._broadcast(self)
        return self.length

    async def get(self, index: int, wait: bool = True, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Read one block.

        Args:
            index: Block index
            wait: Wait for the block to be replicated if it is missing
            timeout: Seconds to wait (None: no limit)

        Returns:
            Block bytes, or None when missing and wait is False
        """
        if index < 0:
            raise IndexError("Block index must be non-negative")

        async def wait_for_block():
            while index >= len(self._blocks):
                if self.closed:
                    raise CoreClosedError(f"Core {self.id[:16]}... closed while waiting for block {index}")
                await self._updated.wait()
            return self._blocks[index]

        if index < len(self._blocks):
            return self._blocks[index]
        if not wait:
            return None
        if timeout is None:
            return await wait_for_block()
        return await asyncio.wait_for(wait_for_block(), timeout=timeout)

    async def close(self):
        if self.closed:
            return
        self.closed = True
        self.store._forget(self)
        self._notify_update()
        self.events.emit("close")
        logger.debug(f"Closed core {self.id[:16]}...")

    def _notify_update(self):
        updated, self._updated = self._updated, asyncio.Event()
        updated.set()

    def _export(self, start: int) -> List[Tuple[bytes, bytes]]:
        return list(zip(self._blocks[start:], self._signatures[start:]))

    def _receive(self, start: int, entries: List[Tuple[bytes, bytes]]) -> int:
        """Store replicated blocks that extend this core. Returns blocks added."""
        if self.closed or start != len(self._blocks):
            return 0

        verifier = ed25519.Ed25519PublicKey.from_public_bytes(self.key)
        added = 0
        for offset, (block, signature) in enumerate(entries):
            try:
                verifier.verify(signature, _signable(start + offset, block))
            except InvalidSignature:
                logger.warning(f"Rejected block {start + offset} of {self.id[:16]}...: bad signature")
                break
            self._blocks.append(block)
            self._signatures.append(signature)
            added += 1

        if added:
            self._notify_update()
            self.events.emit("append")
            self.store._broadcast(self)
        return added

    def __repr__(self) -> str:
        return f"MemoryCore(id={self.id[:16]}..., length={self.length}, writable={self.writable})"


class MemoryCorestore:
    """
    Owner of in-memory cores.

    namespace() returns a view sharing the same cores, key pairs and
    replication peers, with names prefixed by the namespace.
    """

    def __init__(
        self,
        storage=False,
        primary_key: Optional[bytes] = None,
        _root: Optional["MemoryCorestore"] = None,
        _prefix: Tuple[str, ...] = (),
    ):
        """
        Initialize in-memory corestore.

        Args:
            storage: Storage option or resolved StorageBackend
            primary_key: 32-byte secret all name-based key pairs derive from
        """
        self._root = _root
        self._prefix = _prefix

        if _root is not None:
            return

        self.backend = storage if isinstance(storage, StorageBackend) else resolve_storage(storage)
        if self.backend.kind is not StorageKind.MEMORY:
            logger.warning(
                f"Storage {self.backend.kind.value} requested; the in-memory corestore "
                "keeps cores in memory only"
            )

        if primary_key is None:
            primary_key = secrets.token_bytes(KEY_LENGTH)
        elif len(primary_key) != KEY_LENGTH:
            raise InvalidKeyError(f"Primary key must be {KEY_LENGTH} bytes")
        self.primary_key = bytes(primary_key)

        self._cores: Dict[bytes, MemoryCore] = {}
        self._key_pairs: Dict[bytes, KeyPair] = {}
        self._peers: Dict[int, Tuple[LocalConnection, "MemoryCorestore"]] = {}
        self.opened = False
        self.closed = False

        logger.info(f"Initialized in-memory corestore ({self.backend.kind.value})")

    @property
    def root(self) -> "MemoryCorestore":
        return self._root if self._root is not None else self

    @property
    def cores(self) -> Dict[bytes, MemoryCore]:
        return dict(self.root._cores)

    def namespace(self, name: str) -> "MemoryCorestore":
        return MemoryCorestore(_root=self.root, _prefix=self._prefix + (name,))

    async def ready(self):
        self.root.opened = True

    async def create_key_pair(self, purpose: str) -> KeyPair:
        """Deterministic key pair for a purpose such as "noise"."""
        return derive_key_pair(self.root.primary_key, f"keypair:{purpose}")

    def get(self, key: Optional[bytes] = None, name: Optional[str] = None, **options) -> MemoryCore:
        """
        Open a core by key or by name.

        Returns the already open core for the same key if there is one.
        """
        root = self.root
        if root.closed:
            raise CoreClosedError("Corestore is closed")

        if name is not None:
            full_name = NAMESPACE_SEPARATOR.join(self._prefix + (name,))
            key_pair = derive_key_pair(root.primary_key, f"core:{full_name}")
            root._key_pairs[key_pair.public_key] = key_pair
            key = key_pair.public_key
        elif key is not None:
            if not is_key(key):
                raise InvalidKeyError(f"Core keys must be {KEY_LENGTH} bytes")
            key = bytes(key)
        else:
            raise InvalidParameterError("key or name")

        core = root._cores.get(key)
        if core is None:
            core = MemoryCore(root, key, key_pair=root._key_pairs.get(key), **options)
            root._cores[key] = core
            logger.debug(f"Opened core {core.id[:16]}... (writable={core.writable})")
            root._sync_core(core)

        return core

    def replicate(self, connection: LocalConnection):
        """Replicate every open core with the store on the other end."""
        root = self.root
        connection.replicator = root

        remote = connection.remote
        if remote is None or remote.replicator is None:
            return

        remote_store = remote.replicator
        root._add_peer(connection, remote_store)
        remote_store._add_peer(remote, root)

        for core in list(root._cores.values()):
            root._sync_core(core)

    async def close(self):
        root = self.root
        if root.closed:
            return
        root.closed = True

        for core in list(root._cores.values()):
            await core.close()
        root._peers.clear()
        logger.info("Corestore closed")

    def _add_peer(self, connection: LocalConnection, remote_store: "MemoryCorestore"):
        self._peers[id(connection)] = (connection, remote_store)

        def on_close():
            self._peers.pop(id(connection), None)

        connection.once("close", on_close)

    def _forget(self, core: MemoryCore):
        if self._cores.get(core.key) is core:
            del self._cores[core.key]

    def _sync_core(self, core: MemoryCore):
        """Exchange missing blocks of one core with every peer store."""
        for connection, remote_store in list(self._peers.values()):
            if connection.closed:
                continue
            remote_core = remote_store._cores.get(core.key)
            if remote_core is None:
                continue

            if remote_core.length > core.length:
                core._receive(core.length, remote_core._export(core.length))
            elif core.length > remote_core.length:
                remote_core._receive(remote_core.length, core._export(remote_core.length))

    def _broadcast(self, core: MemoryCore):
        self._sync_core(core)
