"""
Key encoding and decoding.

A key is the 32-byte public key of a replicated data structure (a core).
Keys travel as text in one of two fixed-length encodings:

- z-base-32, 52 characters (the canonical form used in URLs)
- hexadecimal, 64 characters

The length of a string alone decides which decoder is tried. Any other
length is never a key, and malformed characters inside the chosen branch
mean "not a key" rather than an error, because an arbitrary name may
happen to be 52 or 64 characters long.
"""

import base64
import binascii
import logging
from typing import Optional, Union

from hyper_sdk.core.exceptions import InvalidKeyError

logger = logging.getLogger(__name__)


HYPER_PROTOCOL_SCHEME = "hyper://"
KEY_LENGTH = 32
Z32_KEY_LENGTH = 52
HEX_KEY_LENGTH = 64

# z-base-32 shares the bit layout of RFC 4648 base32, only the alphabet differs
Z32_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"
RFC4648_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

_TO_Z32 = str.maketrans(RFC4648_ALPHABET, Z32_ALPHABET)
_FROM_Z32 = str.maketrans(Z32_ALPHABET, RFC4648_ALPHABET)
_Z32_CHARS = frozenset(Z32_ALPHABET)

BinaryLike = Union[bytes, bytearray, memoryview]


def is_key(value) -> bool:
    """Return True for a binary value of exactly KEY_LENGTH bytes."""
    return isinstance(value, (bytes, bytearray, memoryview)) and len(value) == KEY_LENGTH


def z32_encode(data: bytes) -> str:
    """Encode bytes as unpadded z-base-32."""
    return base64.b32encode(bytes(data)).decode("ascii").rstrip("=").translate(_TO_Z32)


def z32_decode(text: str) -> bytes:
    """
    Decode unpadded z-base-32 text.

    Raises:
        ValueError: If the text contains characters outside the alphabet
    """
    if not _Z32_CHARS.issuperset(text):
        raise ValueError("Invalid z-base-32 character")

    padding = "=" * (-len(text) % 8)
    try:
        return base64.b32decode(text.translate(_FROM_Z32) + padding)
    except binascii.Error as e:
        raise ValueError(f"Invalid z-base-32 string: {e}") from e


def decode_key(text: str) -> Optional[bytes]:
    """
    Decode an encoded key string.

    Args:
        text: Candidate key string (52 chars z-base-32 or 64 chars hex)

    Returns:
        The 32-byte key, or None if the text is not an encoded key
    """
    if not isinstance(text, str):
        return None

    try:
        if len(text) == Z32_KEY_LENGTH:
            key = z32_decode(text)
        elif len(text) == HEX_KEY_LENGTH:
            key = bytes.fromhex(text)
        else:
            return None
    except ValueError:
        # Not formatted as a key, most likely a name
        logger.debug(f"Key-length string is not an encoded key: {text[:16]}...")
        return None

    # bytes.fromhex skips whitespace, so a 64 char string can decode short
    if len(key) != KEY_LENGTH:
        return None

    return key


def encode_key(key: BinaryLike, encoding: str = "z32") -> str:
    """
    Encode a 32-byte key as text.

    Args:
        key: Binary key
        encoding: "z32" (default) or "hex"

    Returns:
        Encoded key string
    """
    if not is_key(key):
        raise InvalidKeyError(f"Keys must be {KEY_LENGTH} bytes")

    if encoding == "z32":
        return z32_encode(key)
    if encoding == "hex":
        return bytes(key).hex()
    raise ValueError(f"Unsupported key encoding: {encoding}")


def to_url(key_or_id: Union[BinaryLike, str]) -> str:
    """
    Build the canonical hyper:// URL for a core.

    Args:
        key_or_id: The core's binary key, or its encoded id

    Returns:
        URL of the form hyper://<z32 id>/
    """
    if isinstance(key_or_id, str):
        key = decode_key(key_or_id)
        if key is None:
            raise InvalidKeyError(f"Not an encoded key: {key_or_id}")
    else:
        key = key_or_id

    return f"{HYPER_PROTOCOL_SCHEME}{encode_key(key)}/"
