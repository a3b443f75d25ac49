"""
Discovery topic derivation.

Topics derived from names go through a two-step BLAKE2b derivation: the
name is hashed into a namespace, and each topic is the hash of that
namespace followed by a one-byte index. This keeps name topics independent
from core discovery keys, which are keyed hashes of a public key.
"""

import hashlib
from typing import List, Union

TOPIC_LENGTH = 32
DISCOVERY_KEY_CONTEXT = b"hypercore"


def _blake2b(data: bytes, key: bytes = b"") -> bytes:
    return hashlib.blake2b(data, digest_size=TOPIC_LENGTH, key=key).digest()


def namespace(name: Union[str, bytes], count: int = 1) -> List[bytes]:
    """
    Derive `count` independent 32-byte keys from a name.

    Args:
        name: Seed name (str is UTF-8 encoded)
        count: Number of keys to derive (at most 256)

    Returns:
        List of derived keys, index 0 first
    """
    if not 0 <= count <= 256:
        raise ValueError("count must be between 0 and 256")

    seed = name.encode("utf-8") if isinstance(name, str) else bytes(name)
    ns = _blake2b(seed)

    return [_blake2b(ns + bytes([index])) for index in range(count)]


def derive_topic(name: Union[str, bytes]) -> bytes:
    """Derive the discovery topic for a human-readable name."""
    return namespace(name, 1)[0]


def discovery_key(public_key: bytes) -> bytes:
    """Compute the discovery key announced for a core's public key."""
    return _blake2b(DISCOVERY_KEY_CONTEXT, key=bytes(public_key))
