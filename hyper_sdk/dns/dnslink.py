"""
DNS-link resolution.

Binds a human domain to a core key. The site operator publishes

    _dnslink.example.com.  IN  TXT  "dnslink=/hyper/<encoded key>"

and the resolver returns the encoded key found after the prefix.
"""

import logging
from typing import Any, Dict, Optional

from hyper_sdk.config import DNSLINK_TXT_PREFIX, merge_options
from hyper_sdk.core.exceptions import ResolutionError
from hyper_sdk.interfaces import DNSTransport

logger = logging.getLogger(__name__)


DNSLINK_SUBDOMAIN = "_dnslink"


def dnslink_record_name(domain: str) -> str:
    """Name of the TXT record holding the DNS-link for a domain."""
    return f"{DNSLINK_SUBDOMAIN}.{domain}"


class DNSLinkResolver:
    """
    Resolves domains to encoded keys through DNS-link TXT records.

    Answers are inspected in the order the transport delivers them and the
    first record carrying the prefix wins. Results are not cached, every
    call queries DNS again.
    """

    def __init__(
        self,
        transport: DNSTransport,
        prefix: str = DNSLINK_TXT_PREFIX,
        default_options: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize DNS-link resolver.

        Args:
            transport: DNS transport used for TXT queries
            prefix: TXT value prefix that marks a hyper DNS-link
            default_options: Transport options applied to every query
        """
        self.transport = transport
        self.prefix = prefix
        self.default_options = dict(default_options or {})

    async def resolve(self, domain: str, options: Optional[Dict[str, Any]] = None) -> str:
        """
        Resolve a domain to the encoded key it links to.

        Args:
            domain: Domain name, e.g. "example.com"
            options: Per-call transport options (override the defaults)

        Returns:
            The encoded key string published after the prefix

        Raises:
            ResolutionError: If no TXT answer carries the prefix
        """
        name = dnslink_record_name(domain)
        query_options = merge_options(self.default_options, options)

        logger.debug(f"Resolving DNS-link for {domain} via {name}")
        response = await self.transport.query({"type": "txt", "name": name}, query_options)

        for answer in response.get("answers") or []:
            data = answer.get("data")
            if not data:
                continue

            raw = data[0]
            if not raw:
                continue

            try:
                text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else str(raw)
            except UnicodeDecodeError:
                logger.debug(f"Skipping non UTF-8 TXT answer for {name}")
                continue

            if text.startswith(self.prefix):
                encoded = text[len(self.prefix):]
                logger.info(f"Resolved {domain} to {encoded[:16]}...")
                return encoded

        logger.warning(f"No DNS-link record found for {domain}")
        raise ResolutionError(
            f"Unable to resolve DNSLink domain for {domain}. If you are the site "
            f"operator, please add a TXT record pointing at {name} with the value "
            f"{self.prefix}YOUR_KEY_IN_Z32_HERE",
            domain=domain,
        )
