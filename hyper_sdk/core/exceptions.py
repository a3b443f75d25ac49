"""
Error types raised by the Hyper SDK.

Every error derives from SDKError so callers can catch the whole family.
Where a built-in exception describes the same failure (TypeError for bad
arguments, ValueError for bad values, TimeoutError for waits) the SDK error
also inherits from it.
"""


class SDKError(Exception):
    """Base class for all SDK errors."""


class InvalidParameterError(SDKError, TypeError):
    """A required construction parameter is missing."""

    def __init__(self, name: str):
        super().__init__(f"Missing parameter {name}")
        self.parameter = name


class InvalidIdentifierError(SDKError, TypeError):
    """The identifier is not bytes, a key-shaped buffer, or a string."""


class InvalidKeyError(SDKError, ValueError):
    """A binary key does not have the expected length."""


class ResolutionError(SDKError):
    """A DNS-link lookup found no matching TXT record."""

    def __init__(self, message: str, domain: str = ""):
        super().__init__(message)
        self.domain = domain


class MalformedKeyError(ResolutionError):
    """A DNS-link record resolved to a value that is not an encoded key."""


class MalformedURLError(SDKError, ValueError):
    """A hyper:// URL host is neither an encoded key nor a domain."""


class DNSTransportError(SDKError):
    """No DNS transport endpoint produced a response."""


class PeerTimeoutError(SDKError, TimeoutError):
    """No peer was found for a discovery topic within the flush timeout."""


class DiscoveryClosedError(SDKError):
    """A discovery session was left or destroyed before any peer connected."""


class SDKNotReadyError(SDKError):
    """An operation was attempted before ready() completed."""


class SDKClosedError(SDKError):
    """An operation was attempted after close()."""


class ReadOnlyCoreError(SDKError):
    """Append was attempted on a core this process cannot write to."""


class CoreClosedError(SDKError):
    """A read was waiting on a core that has been closed."""
