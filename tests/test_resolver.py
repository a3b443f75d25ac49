"""
Tests for identifier resolution.
"""

import pytest

from hyper_sdk.core.exceptions import (
    InvalidIdentifierError,
    MalformedKeyError,
    MalformedURLError,
    ResolutionError,
)
from hyper_sdk.core.keys import encode_key, to_url
from hyper_sdk.core.resolver import IdentifierResolver, ResolvedTarget
from hyper_sdk.dns.dnslink import DNSLinkResolver

from conftest import FakeDNSTransport


# ===== FIXTURES =====

@pytest.fixture
def resolver(dns_transport):
    return IdentifierResolver(DNSLinkResolver(dns_transport))


# ===== RESOLUTION TESTS =====

class TestIdentifierResolver:
    """Test the identifier decision procedure."""

    @pytest.mark.asyncio
    async def test_binary_key_is_identity(self, resolver, key):
        target = await resolver.resolve(key)

        assert target.key == key
        assert target.name is None

    @pytest.mark.asyncio
    async def test_binary_like_keys(self, resolver, key):
        assert (await resolver.resolve(bytearray(key))).key == key
        assert (await resolver.resolve(memoryview(key))).key == key

    @pytest.mark.asyncio
    async def test_z32_string_is_key(self, resolver, key, z32_key):
        assert (await resolver.resolve(z32_key)).key == key

    @pytest.mark.asyncio
    async def test_hex_string_is_key(self, resolver, key):
        assert (await resolver.resolve(encode_key(key, "hex"))).key == key

    @pytest.mark.asyncio
    async def test_plain_string_is_name(self, resolver):
        target = await resolver.resolve("my-app-data")

        assert target == ResolvedTarget(name="my-app-data")
        assert target.as_core_options() == {"name": "my-app-data"}

    @pytest.mark.asyncio
    async def test_key_length_name_falls_back_to_name(self, resolver):
        name = "l" * 52
        assert (await resolver.resolve(name)).name == name

    @pytest.mark.asyncio
    async def test_key_url(self, resolver, key, z32_key):
        target = await resolver.resolve(f"hyper://{z32_key}/")

        assert target.key == key
        assert target.as_core_options() == {"key": key}

    @pytest.mark.asyncio
    async def test_hex_key_url(self, resolver, key):
        assert (await resolver.resolve(f"hyper://{encode_key(key, 'hex')}/")).key == key

    @pytest.mark.asyncio
    async def test_url_helper_round_trip(self, resolver, key):
        assert (await resolver.resolve(to_url(key))).key == key

    @pytest.mark.asyncio
    async def test_domain_url(self, resolver, dns_transport, key, z32_key):
        via_dns = await resolver.resolve("hyper://example.com/")
        direct = await resolver.resolve(z32_key)

        assert via_dns.key == key
        assert via_dns == direct
        assert dns_transport.queries[0][0]["name"] == "_dnslink.example.com"

    @pytest.mark.asyncio
    async def test_domain_url_passes_dns_options(self, resolver, dns_transport):
        await resolver.resolve("hyper://example.com/", {"timeout": 3})

        _, options = dns_transport.queries[0]
        assert options["timeout"] == 3

    @pytest.mark.asyncio
    async def test_domain_url_without_record(self, resolver):
        with pytest.raises(ResolutionError, match="_dnslink.unknown.example"):
            await resolver.resolve("hyper://unknown.example/")

    @pytest.mark.asyncio
    async def test_domain_url_with_malformed_record(self):
        transport = FakeDNSTransport({"_dnslink.example.com": [[b"dnslink=/hyper/not-a-key"]]})
        resolver = IdentifierResolver(DNSLinkResolver(transport))

        with pytest.raises(MalformedKeyError) as exc_info:
            await resolver.resolve("hyper://example.com/")

        assert isinstance(exc_info.value, ResolutionError)
        assert exc_info.value.domain == "example.com"

    @pytest.mark.asyncio
    async def test_bare_url_host_must_be_key(self, resolver, dns_transport):
        with pytest.raises(MalformedURLError, match="encoded key or a valid DNSlink domain"):
            await resolver.resolve("hyper://not-a-key-not-a-domain/")

        # Never treated as a domain or a name
        assert dns_transport.queries == []

    @pytest.mark.asyncio
    async def test_empty_url_host(self, resolver):
        with pytest.raises(MalformedURLError):
            await resolver.resolve("hyper:///")

    @pytest.mark.asyncio
    async def test_unparseable_url_host(self, resolver, dns_transport):
        with pytest.raises(MalformedURLError):
            await resolver.resolve("hyper://[not-a-key/")
        assert dns_transport.queries == []

    @pytest.mark.asyncio
    async def test_wrong_length_binary_is_invalid(self, resolver):
        with pytest.raises(InvalidIdentifierError):
            await resolver.resolve(bytes(31))

    @pytest.mark.asyncio
    async def test_unsupported_type_is_invalid(self, resolver):
        with pytest.raises(InvalidIdentifierError):
            await resolver.resolve(42)
        with pytest.raises(InvalidIdentifierError):
            await resolver.resolve(None)


@pytest.mark.unit
class TestResolvedTarget:
    """Test the resolution result type."""

    def test_requires_exactly_one_field(self, key):
        with pytest.raises(ValueError):
            ResolvedTarget()
        with pytest.raises(ValueError):
            ResolvedTarget(key=key, name="both")

    def test_str(self, key, z32_key):
        assert str(ResolvedTarget(key=key)) == f"key {z32_key}"
        assert str(ResolvedTarget(name="docs")) == "name docs"
