"""Resolver configuration (resolv.conf) parsing and building.

Brief:
  Reads nameserver/search/options lines from resolv.conf-style content, builds
  new files from those three lists, and filters nameservers that cannot be used
  from inside a container namespace. Every produced file is paired with a
  fingerprint (content hash) so later readers can tell whether the file was
  edited by someone else.

Inputs:
  - Raw resolv.conf bytes or a path to one.

Outputs:
  - ResolvFile(content, hash) values and plain lists of strings.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .fileutil import FILE_PERM, write_file

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/etc/resolv.conf"
ALTERNATE_PATH = "/run/systemd/resolve/resolv.conf"
SYSTEMD_STUB_ADDR = "127.0.0.53"

# Address family filters for get_nameservers.
IP = 0
IPV4 = 1
IPV6 = 2

DEFAULT_IPV4_DNS = ["8.8.8.8", "8.8.4.4"]
DEFAULT_IPV6_DNS = ["2001:4860:4860::8888", "2001:4860:4860::8844"]

_COMMENT_MARKERS = ("#", ";")

_Addr = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class ResolvFile:
    """Brief: resolv.conf content plus its fingerprint.

    Inputs:
      - content: Raw file bytes.
      - hash: Fingerprint of content as produced by hash_data().

    Outputs:
      - ResolvFile instance.
    """

    content: bytes
    hash: bytes


def hash_data(data: bytes) -> bytes:
    """Brief: Return the fingerprint of data as b"sha256:<hex>"."""

    return b"sha256:" + hashlib.sha256(data).hexdigest().encode("ascii")


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def _lines(content: bytes) -> List[List[str]]:
    """Brief: Split content into whitespace-separated fields, dropping comments.

    Inputs:
      - content: Raw resolv.conf bytes.

    Outputs:
      - list of non-empty field lists, one per meaningful line.
    """

    result: List[List[str]] = []
    for raw in _decode(content or b"").splitlines():
        line = raw.strip()
        if not line or line.startswith(_COMMENT_MARKERS):
            continue
        for marker in _COMMENT_MARKERS:
            line = line.split(marker, 1)[0]
        fields = line.split()
        if fields:
            result.append(fields)
    return result


def _parse_addr(value: str) -> Optional[_Addr]:
    """Brief: Parse an IP address, tolerating an IPv6 zone suffix (fe80::1%eth0)."""

    try:
        return ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return None


def _nameserver_addr(fields: Sequence[str]) -> Optional[_Addr]:
    if len(fields) != 2 or fields[0] != "nameserver":
        return None
    return _parse_addr(fields[1])


def get_nameservers(content: bytes, family: int = IP) -> List[str]:
    """Brief: Return nameserver addresses from content, filtered by family.

    Inputs:
      - content: Raw resolv.conf bytes.
      - family: IP (both), IPV4, or IPV6.

    Outputs:
      - list[str]: Addresses in file order; malformed lines are skipped.

    Example:
      >>> get_nameservers(b"nameserver 1.1.1.1\\nnameserver ::1\\n", IPV4)
      ['1.1.1.1']
    """

    servers: List[str] = []
    for fields in _lines(content):
        addr = _nameserver_addr(fields)
        if addr is None:
            continue
        if family == IPV4 and addr.version != 4:
            continue
        if family == IPV6 and addr.version != 6:
            continue
        servers.append(fields[1])
    return servers


def get_nameservers_as_cidr(content: bytes) -> List[str]:
    """Brief: Return nameservers as single-host CIDR strings (a.b.c.d/32, x::y/128)."""

    out: List[str] = []
    for ns in get_nameservers(content, IP):
        addr = _parse_addr(ns)
        if addr is None:
            continue
        out.append(f"{addr}/{addr.max_prefixlen}")
    return out


def get_search_domains(content: bytes) -> List[str]:
    """Brief: Return the domains on the last "search" line (empty when none)."""

    domains: List[str] = []
    for fields in _lines(content):
        if fields[0] == "search":
            domains = fields[1:]
    return domains


def get_options(content: bytes) -> List[str]:
    """Brief: Return the options on the last "options" line (empty when none)."""

    options: List[str] = []
    for fields in _lines(content):
        if fields[0] == "options":
            options = fields[1:]
    return options


def path() -> str:
    """Brief: Return the host resolv.conf path containers should inherit.

    Inputs:
      - None

    Outputs:
      - str: DEFAULT_PATH, or ALTERNATE_PATH when the host only lists the
        systemd-resolved loopback stub and the upstream file exists.
    """

    try:
        with open(DEFAULT_PATH, "rb") as f:
            content = f.read()
    except OSError:
        return DEFAULT_PATH
    servers = get_nameservers(content, IP)
    if servers == [SYSTEMD_STUB_ADDR] and os.path.exists(ALTERNATE_PATH):
        logger.info(
            "detected %s nameserver, assuming systemd-resolved, so using resolv.conf: %s",
            SYSTEMD_STUB_ADDR,
            ALTERNATE_PATH,
        )
        return ALTERNATE_PATH
    return DEFAULT_PATH


def get_specific(file_path: str) -> ResolvFile:
    """Brief: Read file_path and fingerprint it.

    Inputs:
      - file_path: resolv.conf path; FileNotFoundError propagates when absent.

    Outputs:
      - ResolvFile
    """

    with open(file_path, "rb") as f:
        content = f.read()
    return ResolvFile(content=content, hash=hash_data(content))


def get() -> ResolvFile:
    """Brief: Read and fingerprint the host resolv.conf returned by path()."""

    return get_specific(path())


def _is_localhost(addr: _Addr) -> bool:
    if addr.version == 4:
        return addr.packed[0] == 127
    return addr == ipaddress.IPv6Address("::1")


def filter_resolv_dns(content: bytes, ipv6_enabled: bool) -> ResolvFile:
    """Brief: Drop nameservers unusable inside a container namespace.

    Inputs:
      - content: Raw resolv.conf bytes.
      - ipv6_enabled: When False, IPv6 nameservers are removed too.

    Outputs:
      - ResolvFile: filtered content and its fingerprint. Localhost entries
        (127.0.0.0/8, ::1) are always removed. When no nameserver is left the
        public defaults are appended (IPv6 defaults only with IPv6 enabled).
        Other lines are kept verbatim, so filtering is idempotent.
    """

    kept: List[str] = []
    remaining = 0
    for raw in _decode(content or b"").splitlines(keepends=True):
        line = raw.strip()
        if line and not line.startswith(_COMMENT_MARKERS):
            addr = _nameserver_addr(line.split("#", 1)[0].split(";", 1)[0].split())
            if addr is not None:
                if _is_localhost(addr):
                    continue
                if addr.version == 6 and not ipv6_enabled:
                    continue
                remaining += 1
        kept.append(raw)

    text = "".join(kept)
    if remaining == 0:
        defaults = list(DEFAULT_IPV4_DNS)
        if ipv6_enabled:
            defaults.extend(DEFAULT_IPV6_DNS)
        logger.info("no usable nameservers left, using defaults: %s", defaults)
        if text and not text.endswith("\n"):
            text += "\n"
        text += "".join(f"nameserver {ns}\n" for ns in defaults)

    data = _encode(text)
    return ResolvFile(content=data, hash=hash_data(data))


def build(
    file_path: str,
    dns: Sequence[str],
    dns_search: Sequence[str],
    dns_options: Sequence[str],
) -> ResolvFile:
    """Brief: Write a resolv.conf and its fingerprint file in one step.

    Inputs:
      - file_path: Destination path; the fingerprint goes to file_path + ".hash".
      - dns: Nameserver addresses.
      - dns_search: Search domains; a lone "." means "no search line".
      - dns_options: Resolver options (for example "ndots:0").

    Outputs:
      - ResolvFile for the written content.
    """

    parts: List[str] = []
    if dns_search:
        search = " ".join(dns_search)
        if search.strip() != ".":
            parts.append(f"search {search}\n")
    for ns in dns:
        parts.append(f"nameserver {ns}\n")
    if dns_options:
        parts.append("options " + " ".join(dns_options) + "\n")

    data = _encode("".join(parts))
    digest = hash_data(data)
    write_file(file_path, data, FILE_PERM)
    write_file(file_path + ".hash", digest, FILE_PERM)
    return ResolvFile(content=data, hash=digest)
