"""Hosts table synchronization for a sandbox.

Brief:
  Builds the sandbox hosts file at creation, adds/removes records as service
  endpoints join or leave, and pushes the sandbox's own name/address into the
  hosts files of sandboxes that depend on it.
"""

from __future__ import annotations

import ipaddress
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from . import etchosts
from .errors import InternalError
from .fileutil import copy_file, create_base_path

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .sandbox import SandboxConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostsUpdateResult:
    """Brief: Outcome of a best-effort hosts mutation.

    Inputs:
      - ok: True when the mutation was applied.
      - error: The failure that was logged, when ok is False.

    Outputs:
      - HostsUpdateResult instance; callers may ignore it.
    """

    ok: bool
    error: Optional[Exception] = None


class HostsSyncMixin:
    """Hosts-file operations; expects config, id, controller and default_path()."""

    config: "SandboxConfig"
    endpoint_addresses: List[str]

    def build_hosts_file(self) -> None:
        """Brief: Materialize the sandbox hosts file.

        Inputs:
          - None (uses self.config)

        Outputs:
          - None. Host-network sandboxes without extra hosts get a verbatim copy
            of the origin hosts file (a missing origin is ignored); everything
            else gets a freshly built table.
        """

        cfg = self.config
        if not cfg.hosts_path:
            cfg.hosts_path = self.default_path("hosts")

        create_base_path(os.path.dirname(cfg.hosts_path))

        if cfg.use_default_sandbox and not cfg.extra_hosts:
            try:
                copy_file(cfg.origin_hosts_path, cfg.hosts_path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise InternalError(
                    f"could not copy source hosts file {cfg.origin_hosts_path} "
                    f"to {cfg.hosts_path}: {exc}"
                ) from exc
            return

        extra = [etchosts.Record(hosts=h.name, ip=h.ip) for h in cfg.extra_hosts]
        etchosts.build(cfg.hosts_path, "", cfg.host_name, cfg.domain_name, extra)

    def update_hosts_file(self, addresses: Sequence[str]) -> None:
        """Brief: Add records mapping the sandbox name to each interface address.

        Inputs:
          - addresses: Interface IPs of the sandbox.

        Outputs:
          - None. No-op without addresses or when the hosts file was copied from
            an origin file. Both the FQDN and its first label are recorded.

        Example:
          host_name="web1", domain_name="example.com", ["10.0.0.5"] adds
          "10.0.0.5  web1.example.com web1".
        """

        if not addresses:
            return
        cfg = self.config
        if cfg.origin_hosts_path:
            return

        fqdn = cfg.host_name
        if cfg.domain_name:
            fqdn += "." + cfg.domain_name
        hosts = fqdn
        if "." in fqdn:
            hosts += " " + fqdn.split(".", 1)[0]

        recs = [etchosts.Record(hosts=hosts, ip=ip) for ip in addresses]
        for ip in addresses:
            try:
                ipaddress.ip_address(ip)
            except ValueError:
                logger.warning("not answering for invalid endpoint address %r", ip)
                continue
            if ip not in self.endpoint_addresses:
                self.endpoint_addresses.append(ip)
        self.add_hosts_entries(recs)

    def add_hosts_entries(self, recs: Sequence[etchosts.Record]) -> HostsUpdateResult:
        try:
            etchosts.add(self.config.hosts_path, recs)
        except Exception as exc:
            logger.warning(
                "Failed adding service host entries to the running container: %s", exc
            )
            return HostsUpdateResult(ok=False, error=exc)
        return HostsUpdateResult(ok=True)

    def delete_hosts_entries(
        self, recs: Sequence[etchosts.Record]
    ) -> HostsUpdateResult:
        try:
            etchosts.delete(self.config.hosts_path, recs)
        except Exception as exc:
            logger.warning(
                "Failed deleting service host entries to the running container: %s",
                exc,
            )
            return HostsUpdateResult(ok=False, error=exc)

        own = set(self.names())  # type: ignore[attr-defined]
        for rec in recs:
            if rec.ip in self.endpoint_addresses and own & set(rec.hosts.split()):
                self.endpoint_addresses.remove(rec.ip)
        return HostsUpdateResult(ok=True)

    def update_parent_hosts(self) -> None:
        """Brief: Repoint this sandbox's name in each parent sandbox hosts file.

        Inputs:
          - None (uses self.config.parent_updates and the controller lookup)

        Outputs:
          - None. Parents that no longer exist are skipped; the first I/O
            error raised by a hosts update propagates.
        """

        controller = getattr(self, "controller", None)
        for update in self.config.parent_updates:
            parent = controller.find_sandbox(update.cid) if controller else None
            if parent is None:
                logger.debug("parent sandbox for container %s not found", update.cid)
                continue
            etchosts.update(parent.config.hosts_path, update.ip, update.name)
