"""
Hyper SDK Core Module

Decision logic that does not touch the network:
- Key codec (z-base-32 / hex keys, hyper:// URLs)
- Topic derivation from names
- Identifier resolution
- Event dispatch and error types
"""

from hyper_sdk.core.events import EventDispatcher
from hyper_sdk.core.keys import decode_key, encode_key, is_key, to_url
from hyper_sdk.core.resolver import IdentifierResolver, ResolvedTarget
from hyper_sdk.core.topics import derive_topic, discovery_key, namespace

__all__ = [
    "EventDispatcher",
    "decode_key",
    "encode_key",
    "is_key",
    "to_url",
    "IdentifierResolver",
    "ResolvedTarget",
    "derive_topic",
    "discovery_key",
    "namespace",
]
