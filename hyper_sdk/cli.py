#!/usr/bin/env python3
"""
Hyper SDK command line tools

Commands:
- resolve: Resolve an identifier to a key or a name
- topic: Print the discovery topic derived from a name
- dnslink: Print the encoded key a domain links to
- url: Print the canonical hyper:// URL for a key
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from hyper_sdk.config import SDKConfig
from hyper_sdk.core.exceptions import SDKError
from hyper_sdk.core.keys import to_url
from hyper_sdk.core.resolver import IdentifierResolver
from hyper_sdk.core.topics import derive_topic
from hyper_sdk.dns.dnslink import DNSLinkResolver
from hyper_sdk.dns.transport import DoHTransport, SystemDNSTransport
from hyper_sdk.interfaces import DNSTransport

logger = logging.getLogger(__name__)


class HyperCLI:
    """CLI for identifier resolution and topic tools."""

    def __init__(self, config: Optional[SDKConfig] = None, transport: Optional[DNSTransport] = None):
        self.config = config or SDKConfig.from_env()
        self.transport = transport

    def _dnslink(self, args) -> DNSLinkResolver:
        transport = self.transport
        if transport is None:
            if args.system_dns:
                transport = SystemDNSTransport(timeout=self.config.default_dns_opts.get("timeout", 10.0))
            else:
                transport = DoHTransport(self.config.default_dns_opts)

        return DNSLinkResolver(
            transport,
            prefix=self.config.dns_link_prefix,
            default_options=self.config.default_dns_opts,
        )

    async def resolve(self, args) -> int:
        resolver = IdentifierResolver(self._dnslink(args))
        target = await resolver.resolve(args.identifier)
        print(target)
        return 0

    async def topic(self, args) -> int:
        print(derive_topic(args.name).hex())
        return 0

    async def dnslink(self, args) -> int:
        print(await self._dnslink(args).resolve(args.domain))
        return 0

    async def url(self, args) -> int:
        print(to_url(args.key))
        return 0

    def create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="hyper-sdk",
            description="Hyper SDK identifier and discovery tools",
        )
        parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
        parser.add_argument(
            "--system-dns",
            action="store_true",
            help="Use the system resolver instead of DNS-over-HTTPS",
        )

        subparsers = parser.add_subparsers(dest="command", help="Command to run")

        resolve_parser = subparsers.add_parser("resolve", help="Resolve an identifier")
        resolve_parser.add_argument("identifier", help="Encoded key, hyper:// URL or name")

        topic_parser = subparsers.add_parser("topic", help="Derive a discovery topic")
        topic_parser.add_argument("name", help="Topic name")

        dnslink_parser = subparsers.add_parser("dnslink", help="Resolve a DNS-link domain")
        dnslink_parser.add_argument("domain", help="Domain, e.g. example.com")

        url_parser = subparsers.add_parser("url", help="Build a hyper:// URL")
        url_parser.add_argument("key", help="Encoded key (z-base-32 or hex)")

        return parser

    async def run_async(self, args) -> int:
        commands = {
            "resolve": self.resolve,
            "topic": self.topic,
            "dnslink": self.dnslink,
            "url": self.url,
        }
        try:
            return await commands[args.command](args)
        except SDKError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    def run(self, argv=None) -> int:
        """Run CLI (entry point)."""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        if not args.command:
            parser.print_help()
            return 1

        return asyncio.run(self.run_async(args))


def main():
    """CLI entry point."""
    sys.exit(HyperCLI().run())


if __name__ == "__main__":
    main()
