"""
DNS transports.

A transport answers one question of the form {"type": "txt", "name": ...}
with {"answers": [...]}, where every answer carries its raw character
strings in "data". Two transports are provided:

- DoHTransport: DNS-over-HTTPS (RFC 8484) against a list of endpoints
- SystemDNSTransport: the host's configured resolver
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import dns.asyncresolver
import dns.exception
import dns.message
import dns.rdatatype
import dns.resolver

from hyper_sdk.config import DEFAULT_DNS_QUERY_OPTS, merge_options
from hyper_sdk.core.exceptions import DNSTransportError

logger = logging.getLogger(__name__)


DOH_CONTENT_TYPE = "application/dns-message"


def _answer_from_rdata(name: str, rdtype: int, ttl: int, rdata) -> Dict[str, Any]:
    """Flatten one resource record into the transport answer shape."""
    if rdtype == dns.rdatatype.TXT:
        data = [bytes(segment) for segment in rdata.strings]
    else:
        data = [rdata.to_text().encode("utf-8")]

    return {
        "name": name,
        "type": dns.rdatatype.to_text(rdtype).lower(),
        "ttl": ttl,
        "data": data,
    }


def answers_from_message(message: dns.message.Message) -> List[Dict[str, Any]]:
    """Extract answers from a DNS response, in the order they were sent."""
    answers = []
    for rrset in message.answer:
        name = rrset.name.to_text(omit_final_dot=True)
        for rdata in rrset:
            answers.append(_answer_from_rdata(name, rrset.rdtype, rrset.ttl, rdata))
    return answers


class DoHTransport:
    """
    DNS-over-HTTPS transport.

    Queries are sent as RFC 8484 POST requests. Endpoints are tried in
    order; a later endpoint is only used when an earlier one fails at the
    HTTP level. A valid DNS response with no answers is final.
    """

    def __init__(self, default_options: Optional[Dict[str, Any]] = None):
        """
        Initialize DoH transport.

        Args:
            default_options: Defaults for "endpoints" and "timeout"
        """
        self.default_options = merge_options(DEFAULT_DNS_QUERY_OPTS, default_options)

    async def query(
        self,
        question: Dict[str, str],
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        opts = merge_options(self.default_options, options)
        endpoints = opts.get("endpoints") or []
        if not endpoints:
            raise DNSTransportError("No DNS-over-HTTPS endpoints configured")

        name = question["name"]
        request = dns.message.make_query(name, question.get("type", "txt").upper())
        # RFC 8484 section 4.1: DNS ID 0 on every request
        request.id = 0
        wire = request.to_wire()

        timeout = aiohttp.ClientTimeout(total=opts.get("timeout"))
        headers = {"content-type": DOH_CONTENT_TYPE, "accept": DOH_CONTENT_TYPE}
        last_error: Optional[BaseException] = None

        async with aiohttp.ClientSession(timeout=timeout) as session:
            for endpoint in endpoints:
                try:
                    logger.debug(f"Querying {endpoint} for {name}")
                    async with session.post(endpoint, data=wire, headers=headers) as response:
                        response.raise_for_status()
                        payload = await response.read()
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.warning(f"DoH endpoint {endpoint} failed for {name}: {e}")
                    last_error = e
                    continue

                try:
                    message = dns.message.from_wire(payload)
                except dns.exception.DNSException as e:
                    logger.warning(f"DoH endpoint {endpoint} sent an invalid response: {e}")
                    last_error = e
                    continue

                return {"answers": answers_from_message(message)}

        raise DNSTransportError(f"All DNS-over-HTTPS endpoints failed for {name}") from last_error


class SystemDNSTransport:
    """Transport backed by the system resolver configuration."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def query(
        self,
        question: Dict[str, str],
        options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        opts = options or {}
        timeout = opts.get("timeout", self.timeout)
        name = question["name"]

        resolver = dns.asyncresolver.Resolver()
        resolver.timeout = timeout
        resolver.lifetime = timeout

        try:
            logger.debug(f"Querying system resolver for {name}")
            result = await resolver.resolve(name, question.get("type", "txt").upper())
        except dns.resolver.NXDOMAIN:
            logger.debug(f"DNS record not found: {name}")
            return {"answers": []}
        except dns.resolver.NoAnswer:
            logger.debug(f"No records of type {question.get('type', 'txt')} for {name}")
            return {"answers": []}
        except dns.exception.DNSException as e:
            raise DNSTransportError(f"DNS error for {name}: {e}") from e

        rrset = result.rrset
        owner = rrset.name.to_text(omit_final_dot=True)
        return {
            "answers": [
                _answer_from_rdata(owner, rrset.rdtype, rrset.ttl, rdata)
                for rdata in rrset
            ]
        }
