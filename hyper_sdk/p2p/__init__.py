"""
Hyper SDK P2P Layer

Components:
- Discovery: topic join/leave and auto-join for cores
- Swarm: in-process swarm (LocalNetwork) for local peers and tests
"""

from hyper_sdk.p2p.discovery import DiscoveryOrchestrator
from hyper_sdk.p2p.swarm import KeyPair, LocalConnection, LocalNetwork, LocalSwarm, PeerDiscovery, PeerInfo

__all__ = [
    "DiscoveryOrchestrator",
    "KeyPair",
    "LocalConnection",
    "LocalNetwork",
    "LocalSwarm",
    "PeerDiscovery",
    "PeerInfo",
]
