"""URL validation against private address space and local hostnames."""

from __future__ import annotations

import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, List, Optional, Type
from urllib.parse import urlsplit

from .addresses import AddressClass, classify, is_ip_literal
from .config import FetchConfig
from .errors import (
    AddressPrivate,
    InvalidURL,
    LocalHostname,
    SchemeNotAllowed,
    UnsafeURL,
)
from .models import Allowed, Rejected, SafetyVerdict

logger = logging.getLogger("mcp_fetch")

ALLOWED_SCHEMES = ("http", "https")
LOCAL_HOSTNAMES = ("localhost",)
LOCAL_SUFFIXES = (".localhost", ".local")

Resolver = Callable[[str], List[str]]

_dns_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="mcp-fetch-dns")

_REJECTIONS: Dict[str, Type[UnsafeURL]] = {
    InvalidURL.reason: InvalidURL,
    SchemeNotAllowed.reason: SchemeNotAllowed,
    "address-private": AddressPrivate,
    "resolves-private": AddressPrivate,
    LocalHostname.reason: LocalHostname,
}


def _getaddrinfo(hostname: str) -> List[str]:
    infos = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    addresses: List[str] = []
    for info in infos:
        address = str(info[4][0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def resolve_all_addresses(hostname: str, timeout: Optional[float] = None) -> List[str]:
    """Return every A/AAAA address for ``hostname``; failures yield an empty list."""
    future = _dns_pool.submit(_getaddrinfo, hostname)
    try:
        addresses = future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("DNS lookup for %s timed out after %.1fs", hostname, timeout)
        return []
    except (OSError, UnicodeError) as exc:
        logger.debug("DNS lookup for %s failed: %s", hostname, exc)
        return []
    logger.debug("Resolved %s -> %s", hostname, ", ".join(addresses) or "(none)")
    return addresses


def _is_local_hostname(hostname: str) -> bool:
    name = hostname.rstrip(".").lower()
    return name in LOCAL_HOSTNAMES or name.endswith(LOCAL_SUFFIXES)


def validate_url(
    url: str,
    config: FetchConfig,
    resolver: Optional[Resolver] = None,
) -> SafetyVerdict:
    """Check a URL before it is requested.

    Steps run in order and stop at the first failure: parse, scheme check, the
    test-only guard switch, literal address check, local hostname check and finally
    resolution of every address of the hostname. No lookup result is cached between
    calls, so a hostname that rebinds is checked again on its next use.
    """
    candidate = url.strip() if isinstance(url, str) else ""
    try:
        parts = urlsplit(candidate)
        parts.port  # raises ValueError on an out-of-range port
    except ValueError as exc:
        return Rejected(InvalidURL.reason, f"Invalid URL: {exc}")
    if not parts.scheme:
        return Rejected(InvalidURL.reason, "Invalid URL")

    if parts.scheme not in ALLOWED_SCHEMES:
        return Rejected(SchemeNotAllowed.reason, "Only http/https schemes are allowed")

    hostname = parts.hostname
    if not hostname:
        return Rejected(InvalidURL.reason, "Missing hostname")

    if config.disable_ssrf_guard:
        return Allowed(candidate)

    if is_ip_literal(hostname):
        if classify(hostname) is AddressClass.PRIVATE:
            return Rejected("address-private", "IP address is private/reserved")
        return Allowed(candidate)

    if _is_local_hostname(hostname):
        return Rejected(LocalHostname.reason, "Local hostnames are not allowed")

    if resolver is None:
        addresses = resolve_all_addresses(hostname, timeout=config.timeout_ms / 1000)
    else:
        addresses = resolver(hostname)
    for address in addresses:
        if classify(address) is AddressClass.PRIVATE:
            return Rejected(
                "resolves-private",
                f"Hostname resolves to private/reserved address {address}",
            )
    return Allowed(candidate)


def ensure_safe_url(
    url: str,
    config: FetchConfig,
    resolver: Optional[Resolver] = None,
) -> str:
    """Validate ``url`` and return it, raising the matching ``UnsafeURL`` otherwise."""
    verdict = validate_url(url, config, resolver)
    if isinstance(verdict, Allowed):
        return verdict.url
    error_cls = _REJECTIONS.get(verdict.reason, UnsafeURL)
    if error_cls is AddressPrivate:
        raise AddressPrivate(
            f"Blocked URL: {verdict.detail}",
            url,
            resolved=verdict.reason == "resolves-private",
        )
    raise error_cls(f"Blocked URL: {verdict.detail}", url)
