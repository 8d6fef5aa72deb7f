"""URL safety checks run before any outbound fetch.

Everything here is pure: no DNS lookups, no network access and no reads of
process-wide settings. Callers pass an explicit :class:`FetchPolicy`.

The IP checks are syntax based. A hostname that merely *resolves* to a
private address is not caught by :func:`validate_url`; the fetcher can
optionally resolve and re-check addresses (``FetchPolicy.resolve_dns``).
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Literal
from urllib.parse import urlsplit


RejectionReason = Literal[
    "malformed URL",
    "unsupported protocol",
    "blocked hostname",
    "blocked IP range",
    "domain not allowlisted",
]

ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})

# Rejected before the allowlist is consulted
BLOCKED_HOSTNAMES: frozenset[str] = frozenset(
    {
        "localhost",
        "metadata.google.internal",
        "169.254.169.254",  # AWS / GCP / Azure metadata
        "100.100.100.200",  # Alibaba Cloud metadata
    }
)

BLOCKED_NETWORKS: tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...] = (
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("224.0.0.0/4"),
    ipaddress.ip_network("240.0.0.0/4"),
    ipaddress.ip_network("255.255.255.255/32"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("fc00::/7"),  # includes fd00::/8
    ipaddress.ip_network("ff00::/8"),
)


def _normalize_patterns(patterns: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    return tuple(p.strip().lower() for p in patterns if p and p.strip())


@dataclass(frozen=True)
class FetchPolicy:
    """Immutable outbound fetch configuration.

    A new policy object is built whenever settings are reloaded; a fetch in
    progress keeps the policy it started with.
    """

    allowed_domains: tuple[str, ...] = ()
    fetch_timeout_ms: int = 10_000
    max_fetch_bytes: int = 1_048_576
    max_redirects: int = 5
    resolve_dns: bool = False
    user_agent: str = "MCP-Learning-Server/1.0"

    def __post_init__(self) -> None:
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(
            self, "allowed_domains", _normalize_patterns(self.allowed_domains)
        )
        if self.fetch_timeout_ms <= 0:
            raise ValueError("fetch_timeout_ms must be positive")
        if self.max_fetch_bytes <= 0:
            raise ValueError("max_fetch_bytes must be positive")
        if self.max_redirects < 0:
            raise ValueError("max_redirects must not be negative")

    @property
    def timeout_seconds(self) -> float:
        return self.fetch_timeout_ms / 1000


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    reason: RejectionReason | None = None
    message: str | None = None
    hostname: str | None = field(default=None, compare=False)


def _reject(reason: RejectionReason, message: str) -> ValidationOutcome:
    return ValidationOutcome(valid=False, reason=reason, message=message)


def _as_ip(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def is_blocked_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address | str) -> bool:
    """Return True if the address falls in a private or reserved range."""
    if isinstance(ip, str):
        parsed = _as_ip(ip)
        if parsed is None:
            raise ValueError(f"Not an IP address: {ip!r}")
        ip = parsed
    elif isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in BLOCKED_NETWORKS)


def matches_allowlist(hostname: str, patterns: tuple[str, ...]) -> bool:
    """Suffix / exact / subdomain matching. Never substring matching."""
    for pattern in patterns:
        if pattern.startswith("."):
            if hostname.endswith(pattern):
                return True
        elif hostname == pattern or hostname.endswith("." + pattern):
            return True
    return False


def validate_url(url: str, policy: FetchPolicy) -> ValidationOutcome:
    """Decide whether ``url`` may be fetched under ``policy``.

    Checks run in order: parse, scheme, hostname blocklist, IP literal
    ranges, domain allowlist. The first failing check determines the
    rejection reason. An empty allowlist rejects every URL.
    """
    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        hostname = parts.hostname
        # Accessing .port validates it (raises ValueError when out of range)
        _ = parts.port
    except (ValueError, AttributeError, TypeError):
        return _reject("malformed URL", "Invalid URL format")

    if not scheme:
        return _reject("malformed URL", "Invalid URL format")
    if scheme not in ALLOWED_SCHEMES:
        return _reject(
            "unsupported protocol", "Only HTTP and HTTPS protocols are allowed"
        )
    if not hostname:
        return _reject("malformed URL", "Invalid URL format")

    hostname = hostname.lower()
    if hostname.endswith("."):
        hostname = hostname[:-1]
    if not hostname:
        return _reject("malformed URL", "Invalid URL format")

    if hostname in BLOCKED_HOSTNAMES:
        return _reject("blocked hostname", f'Hostname "{hostname}" is blocked')

    ip = _as_ip(hostname)
    if ip is not None and is_blocked_ip(ip):
        return _reject(
            "blocked IP range", f'IP address "{hostname}" is in a blocked range'
        )

    if not matches_allowlist(hostname, policy.allowed_domains):
        allowed = ", ".join(policy.allowed_domains) or "(none)"
        return _reject(
            "domain not allowlisted",
            f'Domain "{hostname}" is not in the allowed list. Allowed: {allowed}',
        )

    return ValidationOutcome(valid=True, hostname=hostname)
