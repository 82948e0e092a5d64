"""Line-oriented hosts table (/etc/hosts format) mutations.

Brief:
  build() writes a fresh table with the standard localhost block, add() and
  delete() apply incremental record changes, and update() repoints an existing
  name at a new address. Mutations within one process are serialized by a
  module-level lock; the files themselves are not locked.

Inputs:
  - Hosts file paths and Record values.

Outputs:
  - None; files are rewritten in place.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .fileutil import write_file

logger = logging.getLogger(__name__)

_DEFAULT_CONTENT: Sequence[tuple] = (
    ("127.0.0.1", "localhost"),
    ("::1", "localhost ip6-localhost ip6-loopback"),
    ("fe00::0", "ip6-localnet"),
    ("ff00::0", "ip6-mcastprefix"),
    ("ff02::1", "ip6-allnodes"),
    ("ff02::2", "ip6-allrouters"),
)

_path_lock = threading.Lock()


@dataclass(frozen=True)
class Record:
    """Brief: One hosts line: an address and its space-separated names.

    Inputs:
      - hosts: Names, for example "web1.example.com web1".
      - ip: Address string.

    Outputs:
      - Record instance.
    """

    hosts: str
    ip: str

    def line(self) -> str:
        return f"{self.ip}\t{self.hosts}\n"

    def matches(self, fields: Sequence[str]) -> bool:
        return bool(fields) and fields[0] == self.ip and list(fields[1:]) == self.hosts.split()


def _read_lines(path: str) -> List[str]:
    with open(path, "r", encoding="utf-8") as f:
        return f.readlines()


def _write_lines(path: str, lines: Iterable[str]) -> None:
    write_file(path, "".join(lines).encode("utf-8"))


def build(
    path: str,
    ip: str,
    hostname: str,
    domainname: str,
    extra_content: Sequence[Record],
) -> None:
    """Brief: Write a new hosts file, replacing any previous content.

    Inputs:
      - path: Hosts file path.
      - ip: Sandbox address for the main record; empty means no main record.
      - hostname: Sandbox hostname.
      - domainname: Optional domain appended to hostname for the main record.
      - extra_content: Additional records written after the defaults.

    Outputs:
      - None
    """

    lines = [Record(hosts=h, ip=a).line() for a, h in _DEFAULT_CONTENT]
    if ip:
        if domainname:
            hosts = f"{hostname}.{domainname} {hostname}"
        else:
            hosts = hostname
        lines.append(Record(hosts=hosts, ip=ip).line())
    for rec in extra_content:
        lines.append(rec.line())

    with _path_lock:
        _write_lines(path, lines)


def add(path: str, recs: Sequence[Record]) -> None:
    """Brief: Append records to the hosts file at path.

    Inputs:
      - path: Hosts file path; it must already exist.
      - recs: Records to append; an empty list is a no-op.

    Outputs:
      - None
    """

    if not recs:
        return
    with _path_lock:
        with open(path, "a", encoding="utf-8") as f:
            for rec in recs:
                f.write(rec.line())


def delete(path: str, recs: Sequence[Record]) -> None:
    """Brief: Remove every line matching one of recs from the hosts file.

    Inputs:
      - path: Hosts file path.
      - recs: Records to remove; an empty list is a no-op.

    Outputs:
      - None
    """

    if not recs:
        return
    with _path_lock:
        kept: List[str] = []
        for raw in _read_lines(path):
            fields = raw.split("#", 1)[0].split()
            if any(rec.matches(fields) for rec in recs):
                continue
            kept.append(raw)
        _write_lines(path, kept)


def update(path: str, ip: str, name: str) -> None:
    """Brief: Point every record that lists name at ip instead.

    Inputs:
      - path: Hosts file path.
      - ip: New address.
      - name: Hostname to look for (whole-field match).

    Outputs:
      - None
    """

    with _path_lock:
        out: List[str] = []
        changed = 0
        for raw in _read_lines(path):
            body, sep, comment = raw.partition("#")
            fields = body.split()
            if len(fields) >= 2 and name in fields[1:]:
                newline = "\n" if raw.endswith("\n") else ""
                line = ip + "\t" + " ".join(fields[1:])
                if sep:
                    line += " #" + comment.rstrip("\n")
                out.append(line + newline)
                changed += 1
                continue
            out.append(raw)
        _write_lines(path, out)
    logger.debug("updated %d hosts record(s) for %s in %s", changed, name, path)
