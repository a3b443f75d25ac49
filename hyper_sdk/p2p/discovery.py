"""
Discovery orchestration.

Joins and leaves discovery topics on the swarm on behalf of the SDK.
Topics can be given as raw 32-byte keys or as names; a name is turned
into its derived topic first and then handled like a raw topic, so
join("my-app") and join(derive_topic("my-app")) reach the same topic.

Auto-join attaches a discovery session to a freshly opened core. When the
core is read-only and still empty, the caller waits until a first peer is
connected, so readers of remote data do not get an empty core back just
because nobody was found yet.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union

from hyper_sdk.config import DEFAULT_JOIN_OPTS, merge_options
from hyper_sdk.core.exceptions import DiscoveryClosedError, PeerTimeoutError
from hyper_sdk.core.topics import derive_topic
from hyper_sdk.interfaces import Core, DiscoverySession, Swarm

logger = logging.getLogger(__name__)


TopicOrName = Union[bytes, bytearray, memoryview, str]


class DiscoveryOrchestrator:
    """Manages topic membership on a swarm."""

    def __init__(self, swarm: Swarm, default_join_opts: Optional[Dict[str, Any]] = None):
        """
        Initialize discovery orchestrator.

        Args:
            swarm: Swarm performing the actual discovery
            default_join_opts: Defaults for join (server/client flags)
        """
        self.swarm = swarm
        self.default_join_opts = merge_options(DEFAULT_JOIN_OPTS, default_join_opts)
        # Teardowns scheduled by closed cores, keyed by topic
        self._teardowns: Dict[bytes, asyncio.Future] = {}

    @staticmethod
    def to_topic(topic_or_name: TopicOrName) -> bytes:
        """Return the raw topic for a topic or a name."""
        if isinstance(topic_or_name, str):
            return derive_topic(topic_or_name)
        return bytes(topic_or_name)

    def join(
        self,
        topic_or_name: TopicOrName,
        options: Optional[Dict[str, Any]] = None,
    ) -> DiscoverySession:
        """
        Join a topic.

        Args:
            topic_or_name: 32-byte topic or a name to derive it from
            options: Join overrides, e.g. {"server": False}

        Returns:
            The swarm's discovery session for the topic
        """
        if isinstance(topic_or_name, str):
            return self.join(self.to_topic(topic_or_name), options)

        join_opts = merge_options(self.default_join_opts, options)
        topic = bytes(topic_or_name)

        logger.info(f"Joining topic {topic.hex()[:16]}...")
        return self.swarm.join(topic, **join_opts)

    async def leave(self, topic_or_name: TopicOrName):
        """Leave a topic given as raw bytes or as a name."""
        if isinstance(topic_or_name, str):
            return await self.leave(self.to_topic(topic_or_name))

        topic = bytes(topic_or_name)
        logger.info(f"Leaving topic {topic.hex()[:16]}...")
        return await self.swarm.leave(topic)

    def join_peer(self, public_key: bytes):
        return self.swarm.join_peer(public_key)

    def leave_peer(self, public_key: bytes):
        return self.swarm.leave_peer(public_key)

    async def auto_join(
        self,
        core: Core,
        options: Optional[Dict[str, Any]] = None,
        flush_timeout: Optional[float] = None,
    ) -> Optional[DiscoverySession]:
        """
        Start discovery for a core's own discovery key.

        The session is stored on core.discovery and destroyed exactly once
        when the core closes. A read-only, empty core blocks the caller
        until the first peer is connected.

        Args:
            core: Ready core
            options: Join overrides
            flush_timeout: Seconds to wait for the first peer (None: no limit)

        Returns:
            The attached session, or None if the core already had one

        Raises:
            PeerTimeoutError: No peer connected within flush_timeout
            DiscoveryClosedError: The session was left before a peer connected
        """
        if core.discovery is not None:
            return None

        topic = core.discovery_key

        # A core closed just before must leave the topic before it is rejoined
        pending = self._teardowns.get(topic)
        if pending is not None:
            await pending

        logger.info(f"Auto joining {core.id[:16]}...")
        session = self.join(topic, options)
        core.discovery = session

        destroyed = False

        async def destroy_session():
            nonlocal destroyed
            if destroyed:
                return
            destroyed = True
            await session.destroy()

        def on_close():
            # Close listeners are synchronous, run teardown on the loop
            task = asyncio.ensure_future(destroy_session())
            self._teardowns[topic] = task

            def forget(done):
                if self._teardowns.get(topic) is done:
                    del self._teardowns[topic]

            task.add_done_callback(forget)

        core.once("close", on_close)

        if not core.writable and not core.length:
            logger.debug(f"Waiting for a first peer for {core.id[:16]}...")
            try:
                if flush_timeout is None:
                    found = await session.flushed()
                else:
                    found = await asyncio.wait_for(session.flushed(), timeout=flush_timeout)
            except asyncio.TimeoutError:
                await self._detach(core, on_close, destroy_session)
                raise PeerTimeoutError(
                    f"No peers found for {core.id} within {flush_timeout} seconds"
                ) from None

            if not found:
                await self._detach(core, on_close, destroy_session)
                raise DiscoveryClosedError(
                    f"Discovery for {core.id} was closed before a peer was found"
                )

        return session

    @staticmethod
    async def _detach(core: Core, on_close, destroy_session):
        core.off("close", on_close)
        core.discovery = None
        await destroy_session()
