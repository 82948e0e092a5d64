"""sandboxdns package

Brief:
  Keeps a container sandbox's resolv.conf and hosts files consistent with the
  host configuration, user overrides and an optional embedded DNS resolver.
"""

from .controller import Controller
from .dns_config import DNSUpdateOutcome
from .extdns import ExternalDNSEntry, extract_external_resolvers
from .hosts_sync import HostsUpdateResult
from .sandbox import ExtraHost, ParentUpdate, Sandbox, SandboxConfig

__all__ = [
    "Controller",
    "DNSUpdateOutcome",
    "ExternalDNSEntry",
    "ExtraHost",
    "HostsUpdateResult",
    "ParentUpdate",
    "Sandbox",
    "SandboxConfig",
    "extract_external_resolvers",
]
