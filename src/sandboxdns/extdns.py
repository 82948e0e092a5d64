from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import List

from . import resolvconf


@dataclass(frozen=True)
class ExternalDNSEntry:
    """Brief: A nameserver the embedded resolver may forward queries to.

    Inputs:
      - ip_str: Nameserver address.
      - host_loopback: True when the address is the host's loopback resolver
        and therefore must be reached from the host namespace.

    Outputs:
      - ExternalDNSEntry instance.
    """

    ip_str: str
    host_loopback: bool = False


def is_ipv4_loopback(ip: str) -> bool:
    """Brief: Return True when ip is an IPv4 (or IPv4-mapped IPv6) 127/8 address."""

    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    if isinstance(addr, ipaddress.IPv6Address):
        mapped = addr.ipv4_mapped
        if mapped is None:
            return False
        addr = mapped
    return addr.packed[0] == 127


def extract_external_resolvers(
    content: bytes, family: int, check_loopback: bool
) -> List[ExternalDNSEntry]:
    """Brief: Collect nameservers of one address family as ExternalDNSEntry values.

    Inputs:
      - content: Raw resolv.conf bytes.
      - family: resolvconf.IP, resolvconf.IPV4 or resolvconf.IPV6.
      - check_loopback: Flag IPv4 loopback addresses as host_loopback.

    Outputs:
      - list[ExternalDNSEntry] in file order; malformed lines are skipped.

    Example:
      >>> extract_external_resolvers(b"nameserver 127.0.0.1\\n", resolvconf.IPV4, True)
      [ExternalDNSEntry(ip_str='127.0.0.1', host_loopback=True)]
    """

    return [
        ExternalDNSEntry(
            ip_str=ip,
            host_loopback=bool(check_loopback and is_ipv4_loopback(ip)),
        )
        for ip in resolvconf.get_nameservers(content, family)
    ]
