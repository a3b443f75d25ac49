"""
DNS-link resolution and DNS transports.
"""

from hyper_sdk.dns.dnslink import DNSLinkResolver, dnslink_record_name
from hyper_sdk.dns.transport import DoHTransport, SystemDNSTransport

__all__ = ["DNSLinkResolver", "dnslink_record_name", "DoHTransport", "SystemDNSTransport"]
