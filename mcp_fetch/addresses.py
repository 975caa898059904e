"""Classification of literal IP addresses into private and public space."""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

PRIVATE_IPV4_NETWORKS = (
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("224.0.0.0/4"),  # multicast
    ipaddress.ip_network("240.0.0.0/4"),  # reserved
)

PRIVATE_IPV6_NETWORKS = (
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("ff00::/8"),
)


class AddressClass(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"
    NOT_APPLICABLE = "not-applicable"


def parse_ip(value: str) -> Union[IPAddress, None]:
    """Parse an IP literal, tolerating brackets and IPv6 zone ids."""
    candidate = value.strip().strip("[]")
    if "%" in candidate:
        candidate = candidate.split("%", 1)[0]
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        return None


def classify(ip_literal: str) -> AddressClass:
    """Classify an IP literal; anything that does not parse is not applicable."""
    address = parse_ip(ip_literal)
    if address is None:
        return AddressClass.NOT_APPLICABLE
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    networks = PRIVATE_IPV4_NETWORKS if address.version == 4 else PRIVATE_IPV6_NETWORKS
    if any(address in net for net in networks):
        return AddressClass.PRIVATE
    return AddressClass.PUBLIC


def is_private(ip_literal: str) -> bool:
    return classify(ip_literal) is AddressClass.PRIVATE


def is_ip_literal(host: str) -> bool:
    return parse_ip(host) is not None
