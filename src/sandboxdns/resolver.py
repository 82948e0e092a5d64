"""Embedded DNS resolver installed inside a sandbox namespace.

Brief:
  Resolver is the narrow interface the sandbox depends on. EmbeddedResolver is
  a small forwarding proxy: it answers names known to an optional backend
  (other containers on the same networks) and forwards everything else to the
  external nameservers recorded for the sandbox.

Inputs:
  - Listen address, proxy flag, optional name backend.

Outputs:
  - A running ThreadingUDPServer once setup_func() and start() have run.
"""

from __future__ import annotations

import abc
import logging
import socket
import socketserver
import threading
from typing import Callable, List, Optional, Protocol, Sequence

from dnslib import AAAA, QTYPE, RCODE, RR, A, DNSHeader, DNSRecord

from .extdns import ExternalDNSEntry

logger = logging.getLogger(__name__)

MAX_EXT_DNS = 3
DNS_PORT = 53
DEFAULT_TTL = 600
DEFAULT_RESOLVER_OPTIONS = ["ndots:0"]


class NameBackend(Protocol):
    """Brief: Local name source consulted before forwarding a query."""

    def resolve_name(self, name: str, qtype: int) -> Optional[List[str]]: ...


class Resolver(abc.ABC):
    """Brief: Interface of the per-sandbox embedded resolver."""

    @abc.abstractmethod
    def name_server(self) -> str:
        """Return the address the sandbox resolv.conf should point at."""

    @abc.abstractmethod
    def resolver_options(self) -> List[str]:
        """Return the resolv.conf options this resolver wants."""

    @abc.abstractmethod
    def set_ext_servers(self, servers: Sequence[ExternalDNSEntry]) -> None:
        """Record the upstream servers unresolved queries are forwarded to."""

    @abc.abstractmethod
    def setup_func(self, port: int) -> Callable[[int], None]:
        """Return a callback run inside the sandbox namespace (receives its fd)."""

    @abc.abstractmethod
    def start(self) -> None:
        """Start serving queries."""

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop serving queries and release sockets."""


class UDPForwardError(Exception):
    """
    Brief: Forwarding a query to an external nameserver failed.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


def udp_query(host: str, port: int, query: bytes, *, timeout_ms: int = 2000) -> bytes:
    """
    Brief: Send one wire-format query over UDP and return the raw response.

    Inputs:
    - host: upstream resolver IP
    - port: upstream UDP port
    - query: wire-format DNS query bytes
    - timeout_ms: socket timeout in milliseconds

    Outputs:
    - bytes: wire-format DNS response
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        s = socket.socket(family, socket.SOCK_DGRAM)
        try:
            s.settimeout(timeout_ms / 1000.0)
            s.sendto(query, (host, int(port)))
            data, _ = s.recvfrom(4096)
            return data
        finally:
            s.close()
    except OSError as e:
        raise UDPForwardError(f"UDP error: {e}")


class _ProxyHandler(socketserver.BaseRequestHandler):
    """Handles one UDP query for the EmbeddedResolver owning the server."""

    def handle(self) -> None:
        data, sock = self.request
        resolver: EmbeddedResolver = self.server.resolver  # type: ignore[attr-defined]
        reply = resolver.handle_query(data)
        if reply:
            sock.sendto(reply, self.client_address)


class EmbeddedResolver(Resolver):
    """Brief: Forwarding DNS proxy bound to a sandbox-local address.

    Example:
      >>> r = EmbeddedResolver("127.0.0.11", True)
      >>> r.name_server()
      '127.0.0.11'
    """

    def __init__(
        self,
        address: str,
        proxy_dns: bool = True,
        backend: Optional[NameBackend] = None,
        *,
        timeout_ms: int = 2000,
        ttl: int = DEFAULT_TTL,
    ) -> None:
        self._address = address
        self._proxy_dns = bool(proxy_dns)
        self._backend = backend
        self._timeout_ms = int(timeout_ms)
        self._ttl = int(ttl)
        self._ext_servers: List[ExternalDNSEntry] = []
        self._lock = threading.Lock()
        self._server: Optional[socketserver.ThreadingUDPServer] = None
        self._thread: Optional[threading.Thread] = None

    def name_server(self) -> str:
        return self._address

    def resolver_options(self) -> List[str]:
        return list(DEFAULT_RESOLVER_OPTIONS)

    def set_ext_servers(self, servers: Sequence[ExternalDNSEntry]) -> None:
        servers = list(servers or [])
        if len(servers) > MAX_EXT_DNS:
            logger.debug(
                "keeping first %d of %d external nameservers", MAX_EXT_DNS, len(servers)
            )
        with self._lock:
            self._ext_servers = servers[:MAX_EXT_DNS]

    def ext_servers(self) -> List[ExternalDNSEntry]:
        with self._lock:
            return list(self._ext_servers)

    @property
    def listen_address(self) -> Optional[tuple]:
        """Brief: (host, port) actually bound, or None before setup."""

        if self._server is None:
            return None
        return self._server.server_address

    def setup_func(self, port: int) -> Callable[[int], None]:
        """Brief: Return a callback binding the UDP listener inside a namespace.

        Inputs:
          - port: UDP port to bind; 0 picks an ephemeral port.

        Outputs:
          - Callable taking the namespace fd; sockets it creates belong to the
            namespace the callback runs in.
        """

        def _setup(ns_fd: int) -> None:
            server = socketserver.ThreadingUDPServer(
                (self._address, int(port)), _ProxyHandler
            )
            server.daemon_threads = True
            server.resolver = self  # type: ignore[attr-defined]
            self._server = server
            logger.debug(
                "embedded resolver bound to %s:%d (netns fd %s)",
                server.server_address[0],
                server.server_address[1],
                ns_fd,
            )

        return _setup

    def start(self) -> None:
        if self._server is None:
            raise RuntimeError("resolver setup has not been run")
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"embedded-resolver-{self._address}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        if self._thread is not None:
            server.shutdown()
            self._thread = None
        server.server_close()

    def handle_query(self, data: bytes) -> Optional[bytes]:
        """Brief: Produce the wire-format reply for one query.

        Inputs:
          - data: Raw request bytes.

        Outputs:
          - bytes reply, or None when the request cannot be parsed.
        """

        try:
            request = DNSRecord.parse(data)
        except Exception as exc:
            logger.warning("embedded resolver: parse failure: %s", exc)
            return None

        local = self._resolve_local(request)
        if local is not None:
            return local

        if not self._proxy_dns:
            return self._error_reply(request, RCODE.REFUSED)

        for ext in self.ext_servers():
            try:
                return udp_query(
                    ext.ip_str, DNS_PORT, data, timeout_ms=self._timeout_ms
                )
            except UDPForwardError as exc:
                logger.debug("forward to %s failed: %s", ext.ip_str, exc)
                continue
        return self._error_reply(request, RCODE.SERVFAIL)

    def _resolve_local(self, request: DNSRecord) -> Optional[bytes]:
        if self._backend is None:
            return None
        qtype = request.q.qtype
        if qtype not in (QTYPE.A, QTYPE.AAAA):
            return None
        name = str(request.q.qname).rstrip(".")
        addrs = self._backend.resolve_name(name, qtype)
        if not addrs:
            return None

        reply = DNSRecord(
            DNSHeader(id=request.header.id, qr=1, aa=1, ra=1), q=request.q
        )
        for ip in addrs:
            rdata = A(ip) if qtype == QTYPE.A else AAAA(ip)
            reply.add_answer(
                RR(
                    rname=request.q.qname,
                    rtype=qtype,
                    rclass=1,
                    ttl=self._ttl,
                    rdata=rdata,
                )
            )
        return reply.pack()

    @staticmethod
    def _error_reply(request: DNSRecord, rcode: int) -> bytes:
        reply = request.reply()
        reply.header.rcode = rcode
        return reply.pack()
