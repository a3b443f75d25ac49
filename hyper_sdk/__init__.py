"""
Hyper SDK - identifier resolution and discovery for replicated cores

Open any core from a key, an encoded key, a hyper:// URL or a name, and
keep it discoverable by peers.

Quick Start:
    >>> from hyper_sdk import create, to_url
    >>>
    >>> sdk = await create(storage=False)
    >>>
    >>> # Writable core derived from a name
    >>> core = await sdk.get("my-app-data")
    >>> await core.append(b"Hello, peers!")
    >>> url = to_url(core.key)
    >>>
    >>> # Another peer opens it by URL (or by a DNS-link domain)
    >>> remote = await other_sdk.get(url)
    >>> block = await remote.get(0)

Features:
    - z-base-32 and hex key encodings, hyper:// URLs
    - DNS-link resolution over DNS-over-HTTPS or the system resolver
    - Name-derived discovery topics
    - Auto-join with first-peer flushing for read-only cores
    - In-process corestore and swarm for local use and testing
"""

from hyper_sdk.config import SDKConfig
from hyper_sdk.core.exceptions import (
    SDKError,
    InvalidParameterError,
    InvalidIdentifierError,
    InvalidKeyError,
    ResolutionError,
    MalformedKeyError,
    MalformedURLError,
    DNSTransportError,
    DiscoveryClosedError,
    PeerTimeoutError,
    SDKNotReadyError,
    SDKClosedError,
)
from hyper_sdk.core.keys import HYPER_PROTOCOL_SCHEME, decode_key, encode_key, to_url
from hyper_sdk.core.resolver import IdentifierResolver, ResolvedTarget
from hyper_sdk.core.topics import derive_topic
from hyper_sdk.dns.dnslink import DNSLinkResolver
from hyper_sdk.p2p.discovery import DiscoveryOrchestrator
from hyper_sdk.sdk import SDK, SDKState, create

__version__ = "0.1.0"

__all__ = [
    "SDK",
    "SDKConfig",
    "SDKState",
    "create",
    "IdentifierResolver",
    "ResolvedTarget",
    "DNSLinkResolver",
    "DiscoveryOrchestrator",
    "HYPER_PROTOCOL_SCHEME",
    "decode_key",
    "encode_key",
    "to_url",
    "derive_topic",
    "SDKError",
    "InvalidParameterError",
    "InvalidIdentifierError",
    "InvalidKeyError",
    "ResolutionError",
    "MalformedKeyError",
    "MalformedURLError",
    "DNSTransportError",
    "DiscoveryClosedError",
    "PeerTimeoutError",
    "SDKNotReadyError",
    "SDKClosedError",
]
