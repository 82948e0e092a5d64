"""Sandbox name-resolution state and operations.

Brief:
  SandboxConfig holds the per-sandbox resolution settings (paths, hostname,
  user DNS overrides, extra hosts, parent updates). Sandbox owns one config
  and exposes the hosts, resolv.conf and embedded-resolver operations. Callers
  that share a Sandbox across threads serialize through Sandbox.lock.
"""

from __future__ import annotations

import ipaddress
import logging
import threading
from typing import TYPE_CHECKING, Callable, List, Optional

from dnslib import QTYPE
from pydantic import BaseModel, Field

from .dns_config import DNSConfigMixin
from .extdns import ExternalDNSEntry
from .hosts_sync import HostsSyncMixin
from .lifecycle import ResolverLifecycleMixin, RunOnce
from .namespace import ExecutionContext
from .resolver import DNS_PORT, EmbeddedResolver, Resolver

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .controller import Controller

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/var/lib/docker/network/files"

ResolverFactory = Callable[..., Resolver]


def _ip_version(ip: str) -> Optional[int]:
    try:
        return ipaddress.ip_address(ip).version
    except ValueError:
        return None


class ExtraHost(BaseModel):
    """Brief: One user-supplied hosts entry (name -> ip)."""

    name: str
    ip: str


class ParentUpdate(BaseModel):
    """Brief: Request to repoint name at ip in the sandbox of container cid."""

    cid: str
    ip: str
    name: str


class SandboxConfig(BaseModel):
    """Brief: Per-sandbox name-resolution settings.

    Inputs:
      - hosts_path / resolv_conf_path: Target files; derived from the sandbox
        id on first use when empty.
      - resolv_conf_hash_file: Always resolv_conf_path + ".hash"; set by the
        sandbox, not by callers.
      - host_name / domain_name: Sandbox identity for the hosts table.
      - extra_hosts: User hosts entries.
      - dns_list / dns_search_list / dns_options_list: User DNS overrides; any
        of them makes resolv.conf user-managed.
      - origin_hosts_path / origin_resolv_conf_path: Host files to inherit.
      - use_default_sandbox: True for host-network sandboxes.
      - parent_updates: Hosts updates pushed to dependent sandboxes.

    Outputs:
      - SandboxConfig instance (mutated in place by the owning Sandbox).
    """

    hosts_path: str = ""
    resolv_conf_path: str = ""
    resolv_conf_hash_file: str = ""
    host_name: str = ""
    domain_name: str = ""
    extra_hosts: List[ExtraHost] = Field(default_factory=list)
    dns_list: List[str] = Field(default_factory=list)
    dns_search_list: List[str] = Field(default_factory=list)
    dns_options_list: List[str] = Field(default_factory=list)
    origin_hosts_path: str = ""
    origin_resolv_conf_path: str = ""
    use_default_sandbox: bool = False
    parent_updates: List[ParentUpdate] = Field(default_factory=list)

    class Config:
        extra = "forbid"


class Sandbox(HostsSyncMixin, DNSConfigMixin, ResolverLifecycleMixin):
    """Brief: A network sandbox's resolution files and embedded resolver.

    Inputs:
      - sandbox_id: Sandbox identifier (used for default file paths).
      - config: SandboxConfig; a fresh default config when omitted.
      - container_id: Owning container id (used by parent lookups and logs).
      - controller: Optional Controller for parent lookups and name resolution.
      - exec_ctx: ExecutionContext running callbacks in the sandbox namespace.
      - base_prefix: Root directory for default file paths.
      - resolver_factory: Callable(address, proxy_dns, backend) -> Resolver.
      - resolver_port: UDP port the embedded resolver binds.

    Outputs:
      - Sandbox instance.

    Example:
      >>> sb = Sandbox("abc", SandboxConfig(host_name="web1"), base_prefix="/tmp/x")
      >>> sb.default_path("hosts")
      '/tmp/x/abc/hosts'
    """

    def __init__(
        self,
        sandbox_id: str,
        config: Optional[SandboxConfig] = None,
        *,
        container_id: str = "",
        controller: Optional["Controller"] = None,
        exec_ctx: Optional[ExecutionContext] = None,
        base_prefix: str = DEFAULT_PREFIX,
        resolver_factory: Optional[ResolverFactory] = None,
        resolver_port: int = DNS_PORT,
    ) -> None:
        self.id = sandbox_id
        self.config = config if config is not None else SandboxConfig()
        self._container_id = container_id
        self.controller = controller
        self.exec_ctx = exec_ctx
        self.base_prefix = base_prefix.rstrip("/") or "/"
        self.resolver_port = int(resolver_port)
        self._resolver_factory: ResolverFactory = resolver_factory or EmbeddedResolver

        self.ext_dns: List[ExternalDNSEntry] = []
        self.endpoint_addresses: List[str] = []
        self.resolver: Optional[Resolver] = None
        self.ndots_set = False
        self._resolver_once = RunOnce()
        self.lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Sandbox(id={self.id!r}, container_id={self._container_id!r})"

    def container_id(self) -> str:
        return self._container_id

    def default_path(self, name: str) -> str:
        base = self.base_prefix if self.base_prefix != "/" else ""
        return f"{base}/{self.id}/{name}"

    def new_resolver(self, address: str, proxy_dns: bool) -> Resolver:
        return self._resolver_factory(address, proxy_dns, self)

    def setup_resolution_files(self) -> None:
        """Brief: Build hosts, push parent updates, then set up resolv.conf.

        Inputs:
          - None

        Outputs:
          - None; the first error propagates and later steps are skipped.
        """

        with self.lock:
            self.build_hosts_file()
            self.update_parent_hosts()
            self.setup_dns()

    def names(self) -> List[str]:
        """Brief: Return the names this sandbox answers to (FQDN first)."""

        cfg = self.config
        if not cfg.host_name:
            return []
        names = [cfg.host_name]
        if cfg.domain_name:
            names.insert(0, f"{cfg.host_name}.{cfg.domain_name}")
        return names

    def resolve_name(self, name: str, qtype: int) -> Optional[List[str]]:
        """Brief: Resolve a container name for the embedded resolver.

        Inputs:
          - name: Query name without trailing dot.
          - qtype: QTYPE.A or QTYPE.AAAA.

        Outputs:
          - list[str] of matching addresses, or None when unknown.
        """

        candidates = [self]
        if self.controller is not None:
            candidates = self.controller.sandboxes()
        want = 4 if qtype == QTYPE.A else 6
        lname = name.lower()
        for sb in candidates:
            if lname not in (n.lower() for n in sb.names()):
                continue
            addrs = [ip for ip in sb.endpoint_addresses if _ip_version(ip) == want]
            if addrs:
                return addrs
        return None
