"""
SDK configuration.

Process-wide defaults live in SDKConfig. Every operation that takes
options merges the caller's overrides onto these defaults, with the
caller's values winning on conflicting keys.
"""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DNSLINK_TXT_PREFIX = "dnslink=/hyper/"

DEFAULT_DOH_ENDPOINTS: List[str] = [
    "https://cloudflare-dns.com/dns-query",
    "https://dns.google/dns-query",
    "https://dns.quad9.net/dns-query",
]

DEFAULT_CORE_OPTS: Dict[str, Any] = {"sparse": True}
DEFAULT_JOIN_OPTS: Dict[str, Any] = {"server": True, "client": True}
DEFAULT_DNS_QUERY_OPTS: Dict[str, Any] = {
    "endpoints": DEFAULT_DOH_ENDPOINTS,
    "timeout": 10.0,
}


def merge_options(*layers: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Merge option dictionaries left to right.

    Later layers win on conflicting keys; None layers are skipped.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class SDKConfig(BaseModel):
    """Hyper SDK configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    storage: Any = Field(
        default="hyper-sdk",
        description=(
            "Storage location: a path (starting with '.', '/' or '\\'), an "
            "application name, an explicit backend, or False for memory"
        ),
    )
    auto_join: bool = Field(default=True, description="Join a core's topic when it is opened")
    do_replicate: bool = Field(default=True, description="Replicate over every new connection")
    dns_link_prefix: str = Field(
        default=DNSLINK_TXT_PREFIX,
        description="TXT value prefix marking a DNS-link record",
    )
    flush_timeout: Optional[float] = Field(
        default=None,
        description="Seconds to wait for a first peer during auto-join (None waits forever)",
    )

    default_core_opts: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_CORE_OPTS))
    default_join_opts: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_JOIN_OPTS))
    default_dns_opts: Dict[str, Any] = Field(
        default_factory=lambda: {
            "endpoints": list(DEFAULT_DOH_ENDPOINTS),
            "timeout": DEFAULT_DNS_QUERY_OPTS["timeout"],
        }
    )
    corestore_opts: Dict[str, Any] = Field(default_factory=dict)
    swarm_opts: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> "SDKConfig":
        """
        Build a configuration from HYPER_SDK_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        values: Dict[str, Any] = {}

        storage = os.getenv("HYPER_SDK_STORAGE")
        if storage is not None:
            values["storage"] = False if storage.strip().lower() in ("false", "memory") else storage

        values["auto_join"] = _env_bool("HYPER_SDK_AUTO_JOIN", True)
        values["do_replicate"] = _env_bool("HYPER_SDK_DO_REPLICATE", True)

        prefix = os.getenv("HYPER_SDK_DNSLINK_PREFIX")
        if prefix:
            values["dns_link_prefix"] = prefix

        endpoints = os.getenv("HYPER_SDK_DOH_ENDPOINTS")
        if endpoints:
            values["default_dns_opts"] = {
                "endpoints": [e.strip() for e in endpoints.split(",") if e.strip()],
                "timeout": DEFAULT_DNS_QUERY_OPTS["timeout"],
            }

        flush_timeout = os.getenv("HYPER_SDK_FLUSH_TIMEOUT")
        if flush_timeout:
            values["flush_timeout"] = float(flush_timeout)

        values.update(overrides)
        return cls(**values)

    @classmethod
    def build(cls, config: Optional["SDKConfig"] = None, **overrides: Any) -> "SDKConfig":
        """Return `config` (or the defaults) with keyword overrides applied."""
        if config is None:
            return cls(**overrides)
        if not overrides:
            return config
        # Rebuilt through validation, unknown keys are rejected
        return cls(**{**dict(config), **overrides})
