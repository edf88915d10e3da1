"""URL safety guard — SSRF policy applied to every URL and redirect hop.

Rules, in order:

1. scheme must be ``https``;
2. no embedded credentials;
3. no explicit port other than 443;
4. host not on the blocklist and not ``*.local``;
5. literal IPs must be public; hostnames must resolve (A + AAAA, bounded
   by the DNS timeout) to public addresses only.
"""

from __future__ import annotations

import ipaddress
import logging
import time
from typing import Callable
from urllib.parse import urlsplit

import dns.exception
import dns.resolver

from content_ingest.errors import DnsTimeoutError, UrlFetchError, UrlNotAllowedError

logger = logging.getLogger(__name__)

BLOCKED_HOSTS = frozenset({"localhost", "metadata.google.internal", "metadata", "169.254.169.254"})

PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "127.0.0.0/8",
        "0.0.0.0/8",
        "169.254.0.0/16",
        "192.168.0.0/16",
        "172.16.0.0/12",
        "::1/128",
        "fe80::/10",
        "fc00::/7",
    )
)

Resolver = Callable[[str, float], list[str]]


def is_private_ip(address: str) -> bool:
    """Return ``True`` for loopback, private, link-local and unique-local addresses."""
    ip = ipaddress.ip_address(address)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in PRIVATE_NETWORKS)


def _parse_ip(host: str) -> str | None:
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return None


def resolve_host(host: str, timeout: float) -> list[str]:
    """Resolve every A and AAAA record of *host* within *timeout* seconds.

    Raises
    ------
    DnsTimeoutError
        When the lookups exceed *timeout*.
    UrlNotAllowedError
        When the name does not resolve at all.
    UrlFetchError
        When resolution itself fails (no usable nameserver, malformed name).
    """
    deadline = time.monotonic() + timeout
    addresses: list[str] = []
    for rdtype in ("A", "AAAA"):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DnsTimeoutError(host)
        try:
            answer = dns.resolver.resolve(host, rdtype, lifetime=remaining)
        except dns.exception.Timeout:
            raise DnsTimeoutError(host) from None
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            continue
        except dns.exception.DNSException as exc:
            logger.warning("DNS resolution failed", extra={"host": host, "rdtype": rdtype, "error": str(exc)})
            raise UrlFetchError("DNS resolution failed", cause=exc) from exc
        addresses.extend(rdata.to_text() for rdata in answer)
    if not addresses:
        raise UrlNotAllowedError("failed to resolve host")
    return addresses


class UrlGuard:
    """Validate outbound URLs against the SSRF policy.

    Parameters
    ----------
    dns_timeout:
        Total budget in seconds for resolving one hostname.
    resolver:
        ``(host, timeout) -> [address, …]``; defaults to :func:`resolve_host`.
    """

    def __init__(self, dns_timeout: float = 1.5, resolver: Resolver | None = None) -> None:
        self.dns_timeout = dns_timeout
        self._resolve = resolver or resolve_host

    def assert_allowed(self, url: str) -> str:
        """Return *url* unchanged when allowed, else raise :class:`UrlNotAllowedError`."""
        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError:
            raise UrlNotAllowedError("invalid URL") from None

        if parts.scheme.lower() != "https":
            raise UrlNotAllowedError("only https URLs are allowed")
        if parts.username or parts.password:
            raise UrlNotAllowedError("credentials in URL are not allowed")
        if port is not None and port != 443:
            raise UrlNotAllowedError("non-443 ports are not allowed")

        host = (parts.hostname or "").rstrip(".")
        if not host:
            raise UrlNotAllowedError("invalid URL")
        if host in BLOCKED_HOSTS or host.endswith(".local"):
            raise UrlNotAllowedError("host is not allowed")

        literal = _parse_ip(host)
        if literal is not None:
            if is_private_ip(literal):
                raise UrlNotAllowedError("private IPs are not allowed")
            return url

        for address in self._resolve(host, self.dns_timeout):
            if is_private_ip(address):
                logger.warning("Host resolves to a private address", extra={"host": host, "address": address})
                raise UrlNotAllowedError("host resolves to a private IP")
        return url
