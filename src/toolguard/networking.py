"""
Network access types and outbound target validation (SSRF guard).

A URL is only considered safe once every address its host resolves to has
been checked. Callers connect to the address that was checked, never to a
second resolution of the hostname.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable
from urllib.parse import urlsplit, urlunsplit

from toolguard._types import Verdict
from toolguard.log_sanitizer import sanitize_url

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})
DEFAULT_PORTS = {"http": 80, "https": 443}

# DNS gets its own short budget, independent of any request timeout
DNS_TIMEOUT = 5.0

CLOUD_METADATA_ADDRESSES = frozenset({"169.254.169.254", "fd00:ec2::254"})

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[[str, int], Awaitable[list[str]]]


class NetworkMode(Enum):
    """Network access control mode for sandboxed commands."""

    BLOCKED = "blocked"
    """No network access allowed."""

    ALLOWED = "allowed"
    """Full network access allowed."""


BLOCKED_NETWORKS: list[tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, str]] = [
    (ipaddress.ip_network("0.0.0.0/8"), "unspecified address"),
    (ipaddress.ip_network("10.0.0.0/8"), "private network"),
    (ipaddress.ip_network("100.64.0.0/10"), "carrier-grade NAT network"),
    (ipaddress.ip_network("127.0.0.0/8"), "loopback address"),
    (ipaddress.ip_network("169.254.0.0/16"), "link-local address"),
    (ipaddress.ip_network("172.16.0.0/12"), "private network"),
    (ipaddress.ip_network("192.0.0.0/24"), "IETF protocol assignment"),
    (ipaddress.ip_network("192.168.0.0/16"), "private network"),
    (ipaddress.ip_network("198.18.0.0/15"), "benchmarking network"),
    (ipaddress.ip_network("224.0.0.0/4"), "multicast address"),
    (ipaddress.ip_network("240.0.0.0/4"), "reserved address"),
    (ipaddress.ip_network("::/128"), "unspecified address"),
    (ipaddress.ip_network("::1/128"), "loopback address"),
    (ipaddress.ip_network("fc00::/7"), "unique-local address"),
    (ipaddress.ip_network("fe80::/10"), "link-local address"),
    (ipaddress.ip_network("ff00::/8"), "multicast address"),
]


def check_address(address: str | IPAddress) -> str | None:
    """
    Check a single IP address against the blocked ranges.

    Args:
        address: IP address as a string or ipaddress object.

    Returns:
        None if the address is public, otherwise a short description of
        the blocked range it falls in.
    """
    try:
        ip = ipaddress.ip_address(address) if isinstance(address, str) else address
    except ValueError:
        return "unparsable address"

    if isinstance(ip, ipaddress.IPv6Address):
        if ip.scope_id:
            ip = ipaddress.IPv6Address(str(ip).split("%", 1)[0])
        if ip.ipv4_mapped is not None:
            return check_address(ip.ipv4_mapped)

    if str(ip) in CLOUD_METADATA_ADDRESSES:
        return "cloud metadata endpoint"

    for network, label in BLOCKED_NETWORKS:
        if ip.version == network.version and ip in network:
            return label
    return None


@dataclass(frozen=True)
class Target:
    """A URL whose host has been resolved and checked."""

    url: str
    scheme: str
    hostname: str
    port: int
    addresses: tuple[str, ...]
    is_ip_literal: bool

    @property
    def address(self) -> str:
        """The checked address to connect to."""
        return self.addresses[0]

    @property
    def host_header(self) -> str:
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        if self.port != DEFAULT_PORTS[self.scheme]:
            host = f"{host}:{self.port}"
        return host

    def pinned_url(self) -> str:
        """Return the URL with its host replaced by the checked address."""
        parts = urlsplit(self.url)
        ip = self.address.split("%", 1)[0]
        host = f"[{ip}]" if ":" in ip else ip
        if parts.port is not None:
            host = f"{host}:{parts.port}"
        return urlunsplit((parts.scheme, host, parts.path or "/", parts.query, ""))


@dataclass(frozen=True)
class TargetCheck:
    """Result of resolve_target: a verdict plus the target when allowed."""

    verdict: Verdict
    target: Target | None = None
    resolution_failed: bool = False


async def system_resolver(host: str, port: int) -> list[str]:
    """Resolve a hostname with the system resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return list(dict.fromkeys(str(info[4][0]) for info in infos))


def _parse_ip_literal(host: str) -> IPAddress | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


async def resolve_target(
    url: str,
    *,
    resolver: Resolver | None = None,
    timeout: float = DNS_TIMEOUT,
) -> TargetCheck:
    """
    Validate a URL and resolve its host to checked addresses.

    Args:
        url: The URL supplied by the model.
        resolver: Async callable ``(host, port) -> [addresses]``. Defaults
            to the system resolver.
        timeout: Seconds allowed for DNS resolution.

    Returns:
        TargetCheck whose verdict is denied for bad schemes, missing hosts
        and blocked addresses. ``resolution_failed`` is set when the host
        could not be resolved at all.
    """
    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        hostname = (parts.hostname or "").rstrip(".")
        port = parts.port
    except ValueError:
        return TargetCheck(Verdict.deny("URL validation failed: invalid URL"))

    if scheme not in ALLOWED_SCHEMES:
        shown = scheme or "none"
        return TargetCheck(
            Verdict.deny(f"URL validation failed: scheme '{shown}' is not allowed (only http/https)")
        )
    if not hostname:
        return TargetCheck(Verdict.deny("URL validation failed: missing host"))

    port = port or DEFAULT_PORTS[scheme]
    literal = _parse_ip_literal(hostname)

    if literal is not None:
        addresses = [str(literal)]
    else:
        resolve = resolver or system_resolver
        try:
            addresses = await asyncio.wait_for(resolve(hostname, port), timeout=timeout)
        except (OSError, asyncio.TimeoutError, UnicodeError) as e:
            logger.info("DNS resolution failed for %s: %s", hostname, e)
            return TargetCheck(
                Verdict.deny(f"Cannot resolve host '{hostname}'"), resolution_failed=True
            )
        if not addresses:
            return TargetCheck(
                Verdict.deny(f"Cannot resolve host '{hostname}'"), resolution_failed=True
            )

    for address in addresses:
        blocked = check_address(address)
        if blocked:
            logger.warning("Blocked request to %s (%s: %s)", sanitize_url(url), blocked, address)
            return TargetCheck(
                Verdict.deny(f"URL validation failed: access to {blocked} is blocked")
            )

    target = Target(
        url=url.strip(),
        scheme=scheme,
        hostname=hostname.lower(),
        port=port,
        addresses=tuple(addresses),
        is_ip_literal=literal is not None,
    )
    return TargetCheck(Verdict.allow(), target)


async def validate_url(url: str, *, resolver: Resolver | None = None) -> Verdict:
    """Return an allow verdict only for http(s) URLs whose addresses are all public."""
    check = await resolve_target(url, resolver=resolver)
    return check.verdict
