"""
Brief: Tests for external resolver extraction.

Inputs:
  - None

Outputs:
  - None
"""

from sandboxdns import resolvconf
from sandboxdns.extdns import (
    ExternalDNSEntry,
    extract_external_resolvers,
    is_ipv4_loopback,
)


def test_loopback_flagged_when_checked():
    """
    Brief: Host loopback nameservers are flagged only when check_loopback is set.

    Inputs:
      - content with 127.0.0.1 and 8.8.8.8

    Outputs:
      - None: asserts two entries and their flags
    """
    content = b"nameserver 127.0.0.1\nnameserver 8.8.8.8\n"
    entries = extract_external_resolvers(content, resolvconf.IPV4, True)
    assert entries == [
        ExternalDNSEntry("127.0.0.1", True),
        ExternalDNSEntry("8.8.8.8", False),
    ]

    unchecked = extract_external_resolvers(content, resolvconf.IPV4, False)
    assert [e.host_loopback for e in unchecked] == [False, False]


def test_family_filter_and_malformed_lines():
    """Brief: Only the requested family is returned; garbage is skipped."""
    content = b"nameserver ::1\nnameserver 1.2.3.4\nnameserver\nnameserver x.y\n"
    assert extract_external_resolvers(content, resolvconf.IPV4, True) == [
        ExternalDNSEntry("1.2.3.4", False)
    ]
    v6 = extract_external_resolvers(content, resolvconf.IPV6, True)
    assert v6 == [ExternalDNSEntry("::1", False)]


def test_is_ipv4_loopback():
    """Brief: 127/8 and IPv4-mapped loopback are loopback; ::1 is not IPv4."""
    assert is_ipv4_loopback("127.0.0.53")
    assert is_ipv4_loopback("::ffff:127.0.0.1")
    assert not is_ipv4_loopback("::1")
    assert not is_ipv4_loopback("10.0.0.1")
    assert not is_ipv4_loopback("bogus")
