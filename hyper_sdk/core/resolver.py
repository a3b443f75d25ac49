"""
Identifier resolution.

Callers may refer to a core in four ways:

- a raw 32-byte key
- an encoded key string (52 char z-base-32 or 64 char hex)
- a hyper:// URL whose host is an encoded key or a DNS-link domain
- any other string, used as a name for a locally derived core

The resolver turns each of these into a ResolvedTarget holding either a
key or a name. Key detection always runs before the name fallback, and
only bare strings may fall back to a name: a URL must resolve to a key.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import urlsplit

from hyper_sdk.core.exceptions import (
    InvalidIdentifierError,
    MalformedKeyError,
    MalformedURLError,
)
from hyper_sdk.core.keys import HYPER_PROTOCOL_SCHEME, decode_key, encode_key, is_key
from hyper_sdk.dns.dnslink import DNSLinkResolver

logger = logging.getLogger(__name__)


Identifier = Union[bytes, bytearray, memoryview, str]


@dataclass(frozen=True)
class ResolvedTarget:
    """A core reference: exactly one of key or name is set."""

    key: Optional[bytes] = None
    name: Optional[str] = None

    def __post_init__(self):
        if (self.key is None) == (self.name is None):
            raise ValueError("ResolvedTarget needs exactly one of key or name")

    @property
    def is_key(self) -> bool:
        return self.key is not None

    def as_core_options(self) -> Dict[str, Any]:
        """Options selecting this target in a corestore get() call."""
        return {"key": self.key} if self.is_key else {"name": self.name}

    def __str__(self) -> str:
        if self.is_key:
            return f"key {encode_key(self.key)}"
        return f"name {self.name}"


class IdentifierResolver:
    """Resolves loosely-typed identifiers into keys or names."""

    def __init__(self, dnslink: DNSLinkResolver):
        """
        Initialize identifier resolver.

        Args:
            dnslink: Resolver used for hyper:// URLs with a domain host
        """
        self.dnslink = dnslink

    async def resolve(
        self,
        identifier: Identifier,
        options: Optional[Dict[str, Any]] = None,
    ) -> ResolvedTarget:
        """
        Resolve an identifier.

        Args:
            identifier: Key, encoded key, URL or name
            options: DNS query overrides used for domain URLs

        Returns:
            ResolvedTarget with a key, or with a name for bare non-key strings

        Raises:
            MalformedURLError: URL host is neither an encoded key nor a domain
            MalformedKeyError: A DNS-link record does not hold an encoded key
            ResolutionError: A DNS-link domain has no matching record
            InvalidIdentifierError: Identifier is not a key, URL or string
        """
        if not isinstance(identifier, str) and is_key(identifier):
            return ResolvedTarget(key=bytes(identifier))

        if isinstance(identifier, str):
            if identifier.startswith(HYPER_PROTOCOL_SCHEME):
                key = await self.resolve_url(identifier, options)
                return ResolvedTarget(key=key)

            key = decode_key(identifier)
            if key is not None:
                return ResolvedTarget(key=key)

            logger.debug(f"Using {identifier!r} as a core name")
            return ResolvedTarget(name=identifier)

        raise InvalidIdentifierError(
            f"Cannot resolve identifier of type {type(identifier).__name__}: "
            "expected a 32 byte key, an encoded key, a hyper:// URL or a name"
        )

    async def resolve_url(self, url: str, options: Optional[Dict[str, Any]] = None) -> bytes:
        """Resolve a hyper:// URL to the key it points at."""
        try:
            host = urlsplit(url).hostname or ""
        except ValueError as e:
            raise MalformedURLError(f"Invalid hyper:// URL {url!r}: {e}") from e

        # A period in the host means a DNS-link domain
        if "." in host:
            encoded = await self.dnslink.resolve(host, options)
            key = decode_key(encoded)
            if key is None:
                raise MalformedKeyError(
                    f"DNSLink record for {host} does not contain a valid key: {encoded!r}",
                    domain=host,
                )
            return key

        key = decode_key(host)
        if key is None:
            raise MalformedURLError("URLs must have either an encoded key or a valid DNSlink domain")
        return key
