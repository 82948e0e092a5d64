"""Resolver configuration reconciliation for a sandbox.

Brief:
  Computes the sandbox resolv.conf from the host configuration, user overrides
  or the embedded resolver, and keeps a fingerprint file next to it. The
  fingerprint is how later reconciliations notice that someone edited the file
  by hand; when that happens the file is left alone.

  setup_dns()   initial build at sandbox creation
  update_dns()  re-filter after IPv6 availability changes
  rebuild_dns() switch the sandbox over to the embedded resolver

Known limitation: update_dns() writes the content and then atomically replaces
the fingerprint. A crash between the two leaves a mismatch, which the next
update_dns() treats as a user edit and skips.
"""

from __future__ import annotations

import enum
import logging
import os
from typing import TYPE_CHECKING, List, Optional, Sequence

from . import resolvconf
from .errors import InternalError, InvalidNdotsError
from .extdns import ExternalDNSEntry, extract_external_resolvers
from .fileutil import (
    FILE_PERM,
    atomic_write_file,
    copy_file,
    create_base_path,
    create_file,
    write_file,
)
from .lifecycle import RESOLVER_IP_SANDBOX

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .resolver import Resolver
    from .sandbox import SandboxConfig

logger = logging.getLogger(__name__)


class DNSUpdateOutcome(enum.Enum):
    """Brief: Result of update_dns()."""

    UPDATED = "updated"
    NOT_MANAGED = "not_managed"
    NOTHING_TO_UPDATE = "nothing_to_update"
    SKIPPED_EXTERNAL_EDIT = "skipped_external_edit"


def _user_ndots_set(resolver_options: Sequence[str], options: Sequence[str]) -> bool:
    """Brief: Decide whether a user ndots option overrides the resolver's.

    Inputs:
      - resolver_options: Options wanted by the embedded resolver.
      - options: Options currently in the sandbox resolv.conf.

    Outputs:
      - bool: True when both sides carry ndots and the user value is a valid
        non-negative integer.

    Raises:
      - InvalidNdotsError: the user ndots option is malformed or negative.
    """

    if not any("ndots" in opt for opt in resolver_options):
        return False
    for option in options:
        if "ndots" not in option:
            continue
        parts = option.split(":")
        if len(parts) != 2:
            raise InvalidNdotsError(f"invalid ndots option {option}")
        value = parts[1]
        digits = value[1:] if value[:1] in ("+", "-") else value
        if not (value.isascii() and digits.isdigit()):
            raise InvalidNdotsError(f"invalid number for ndots option: {value}")
        num = int(value)
        if num < 0:
            raise InvalidNdotsError(f"invalid number for ndots option: {num}")
        return True
    return False


class DNSConfigMixin:
    """resolv.conf operations; expects config, id, ext_dns and resolver."""

    id: str
    config: "SandboxConfig"
    ext_dns: List[ExternalDNSEntry]
    resolver: Optional["Resolver"]
    ndots_set: bool

    def _has_dns_overrides(self) -> bool:
        cfg = self.config
        return bool(cfg.dns_list or cfg.dns_search_list or cfg.dns_options_list)

    def _ensure_resolv_conf_path(self) -> None:
        cfg = self.config
        if not cfg.resolv_conf_path:
            cfg.resolv_conf_path = self.default_path("resolv.conf")
        cfg.resolv_conf_hash_file = cfg.resolv_conf_path + ".hash"

    def restore_path(self) -> None:
        """Brief: Fill in default hosts/resolv.conf paths for a restored sandbox."""

        self._ensure_resolv_conf_path()
        if not self.config.hosts_path:
            self.config.hosts_path = self.default_path("hosts")

    def set_external_resolvers(
        self, content: bytes, family: int, check_loopback: bool
    ) -> None:
        # The embedded resolver's own address is never an upstream.
        self.ext_dns.extend(
            entry
            for entry in extract_external_resolvers(content, family, check_loopback)
            if entry.host_loopback or entry.ip_str != RESOLVER_IP_SANDBOX
        )

    def recover_external_resolvers(self) -> None:
        """Brief: Re-derive ext_dns from the sandbox settings when none are recorded.

        Inputs:
          - None (uses self.config)

        Outputs:
          - None. User nameservers win; otherwise the origin resolv.conf is
            read the same way setup_dns() reads it. A missing origin file
            leaves ext_dns empty.
        """

        if self.ext_dns:
            return
        cfg = self.config
        if cfg.dns_list:
            content = "".join(f"nameserver {ns}\n" for ns in cfg.dns_list).encode()
            self.set_external_resolvers(content, resolvconf.IPV4, False)
            return

        origin = cfg.origin_resolv_conf_path or resolvconf.path()
        try:
            with open(origin, "rb") as f:
                origin_rc = f.read()
        except FileNotFoundError:
            logger.info("no resolv.conf found at %s, no external resolvers", origin)
            return
        self.set_external_resolvers(origin_rc, resolvconf.IPV4, True)

    def setup_dns(self) -> None:
        """Brief: Create the sandbox resolv.conf (and fingerprint) at creation.

        Inputs:
          - None (uses self.config)

        Outputs:
          - None. Host-network sandboxes without overrides get a verbatim copy of
            the origin file (empty when absent) and no fingerprint. Otherwise
            the file is built from overrides merged with the origin file, or is
            the filtered origin file, and its fingerprint is written.

        Raises:
          - InternalError / OSError on I/O failures other than a missing origin.
        """

        cfg = self.config
        self._ensure_resolv_conf_path()
        create_base_path(os.path.dirname(cfg.resolv_conf_path))

        if cfg.use_default_sandbox and not self._has_dns_overrides():
            try:
                copy_file(cfg.origin_resolv_conf_path, cfg.resolv_conf_path)
            except FileNotFoundError:
                logger.info(
                    "%s does not exist, we create an empty resolv.conf for container",
                    cfg.origin_resolv_conf_path,
                )
                create_file(cfg.resolv_conf_path)
            except OSError as exc:
                raise InternalError(
                    f"could not copy source resolv.conf file {cfg.origin_resolv_conf_path} "
                    f"to {cfg.resolv_conf_path}: {exc}"
                ) from exc
            return

        origin = cfg.origin_resolv_conf_path or resolvconf.path()
        try:
            with open(origin, "rb") as f:
                curr_rc = f.read()
        except FileNotFoundError:
            logger.info("no resolv.conf found at %s, falling back to defaults", origin)
            curr_rc = b""

        if self._has_dns_overrides():
            dns_list = list(cfg.dns_list) or resolvconf.get_nameservers(
                curr_rc, resolvconf.IP
            )
            dns_search = list(cfg.dns_search_list) or resolvconf.get_search_domains(
                curr_rc
            )
            dns_options = list(cfg.dns_options_list) or resolvconf.get_options(curr_rc)
            new_rc = resolvconf.build(
                cfg.resolv_conf_path, dns_list, dns_search, dns_options
            )
            # --dns 127.0.0.x from the user refers to the container's loopback.
            self.set_external_resolvers(
                new_rc.content, resolvconf.IPV4, not cfg.dns_list
            )
        else:
            # Loopback nameservers here are the host's; record them before
            # they are filtered out.
            self.set_external_resolvers(curr_rc, resolvconf.IPV4, True)
            new_rc = resolvconf.filter_resolv_dns(curr_rc, True)
            try:
                write_file(cfg.resolv_conf_path, new_rc.content, FILE_PERM)
            except OSError as exc:
                raise InternalError(
                    "failed to write filtered resolv.conf file content when setting "
                    f"up dns for sandbox {self.id}: {exc}"
                ) from exc

        try:
            write_file(cfg.resolv_conf_hash_file, new_rc.hash, FILE_PERM)
        except OSError as exc:
            raise InternalError(
                "failed to write resolv.conf hash file when setting up dns for "
                f"sandbox {self.id}: {exc}"
            ) from exc

    def update_dns(self, ipv6_enabled: bool) -> DNSUpdateOutcome:
        """Brief: Re-filter the sandbox resolv.conf for the current IPv6 state.

        Inputs:
          - ipv6_enabled: When False, IPv6 nameservers are stripped.

        Outputs:
          - DNSUpdateOutcome: NOT_MANAGED for host-network sandboxes and user
            overrides, NOTHING_TO_UPDATE when no resolv.conf exists yet,
            SKIPPED_EXTERNAL_EDIT when the fingerprint does not match the file,
            UPDATED after a rewrite.
        """

        cfg = self.config
        if cfg.use_default_sandbox or self._has_dns_overrides():
            return DNSUpdateOutcome.NOT_MANAGED

        hash_file = cfg.resolv_conf_hash_file or cfg.resolv_conf_path + ".hash"
        try:
            curr_rc = resolvconf.get_specific(cfg.resolv_conf_path)
        except FileNotFoundError:
            return DNSUpdateOutcome.NOTHING_TO_UPDATE

        try:
            with open(hash_file, "rb") as f:
                curr_hash = f.read()
        except FileNotFoundError:
            curr_hash = b""

        if curr_hash and curr_hash != curr_rc.hash:
            logger.info(
                "Skipping update of resolv.conf file with ipv6Enabled: %s because "
                "file was touched by user",
                ipv6_enabled,
            )
            return DNSUpdateOutcome.SKIPPED_EXTERNAL_EDIT

        new_rc = resolvconf.filter_resolv_dns(curr_rc.content, ipv6_enabled)
        write_file(cfg.resolv_conf_path, new_rc.content, FILE_PERM)
        atomic_write_file(hash_file, new_rc.hash, FILE_PERM)
        return DNSUpdateOutcome.UPDATED

    def rebuild_dns(self) -> None:
        """Brief: Point the sandbox resolv.conf at the embedded resolver.

        Inputs:
          - None (uses self.resolver and the current resolv.conf)

        Outputs:
          - None. The new file lists the embedded resolver first, followed by
            any IPv6 nameservers (the embedded resolver is IPv4 only). The
            resolver's default options are appended unless the user already
            set ndots. The fingerprint is written by the same build step.

        Raises:
          - InvalidNdotsError: the user ndots option is malformed or negative.
          - OSError: the current resolv.conf cannot be read or written.
        """

        if self.resolver is None:
            raise RuntimeError("embedded resolver is not configured")

        cfg = self.config
        with open(cfg.resolv_conf_path, "rb") as f:
            curr_rc = f.read()

        res_options = self.resolver.resolver_options()
        dns_options = resolvconf.get_options(curr_rc)

        if _user_ndots_set(res_options, dns_options):
            self.ndots_set = True
        if not self.ndots_set:
            # ndots:0 prioritizes service-name resolution
            dns_options.extend(res_options)

        if not self.ext_dns:
            self.set_external_resolvers(curr_rc, resolvconf.IPV4, False)
        # resolv.conf may already point at the embedded resolver only.
        self.recover_external_resolvers()

        dns_list = [self.resolver.name_server()] + resolvconf.get_nameservers(
            curr_rc, resolvconf.IPV6
        )
        dns_search = resolvconf.get_search_domains(curr_rc)
        resolvconf.build(cfg.resolv_conf_path, dns_list, dns_search, dns_options)
