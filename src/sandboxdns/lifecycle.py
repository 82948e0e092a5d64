"""Embedded resolver start-up for a sandbox.

Brief:
  start_resolver() constructs the embedded resolver, points resolv.conf at it,
  hands it the external nameservers, binds it inside the sandbox namespace and
  starts it. The whole sequence runs at most once per sandbox; a failed step
  is logged and leaves the sandbox without a resolver.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, List, Optional

from .extdns import ExternalDNSEntry

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .namespace import ExecutionContext
    from .resolver import Resolver

logger = logging.getLogger(__name__)

RESOLVER_IP_SANDBOX = "127.0.0.11"


class RunOnce:
    """Brief: Run a callable exactly once across threads.

    Every caller of do() returns only after the single execution finished,
    including callers that arrived while it was still running. A raising
    callable still counts as the execution.

    Example:
      >>> once = RunOnce()
      >>> once.do(lambda: print("hi"))
      hi
      >>> once.do(lambda: print("again"))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def do(self, fn: Callable[[], None]) -> None:
        if self._done:
            return
        with self._lock:
            if self._done:
                return
            try:
                fn()
            finally:
                self._done = True


class ResolverLifecycleMixin:
    """Embedded resolver start-up; expects rebuild_dns(), ext_dns and exec_ctx."""

    resolver: Optional["Resolver"]
    ext_dns: List[ExternalDNSEntry]
    exec_ctx: Optional["ExecutionContext"]
    resolver_port: int
    _resolver_once: RunOnce

    def start_resolver(self, restore: bool = False) -> None:
        """Brief: Install and start the embedded resolver (once per sandbox).

        Inputs:
          - restore: True on live restore, when resolv.conf already points at
            the embedded resolver and must not be rebuilt.

        Outputs:
          - None. Failures are logged and self.resolver is reset to None; they
            are not retried for the lifetime of the sandbox.
        """

        self._resolver_once.do(lambda: self._start_resolver(restore))

    def _start_resolver(self, restore: bool) -> None:
        cid = self.container_id()  # type: ignore[attr-defined]
        # proxy_dns is always on, even for internal-only networks; the network
        # driver is responsible for making external connects fail fast.
        try:
            self.resolver = self.new_resolver(RESOLVER_IP_SANDBOX, True)  # type: ignore[attr-defined]
        except Exception as exc:
            logger.error("Resolver creation failed for container %s, %r", cid, exc)
            self.resolver = None
            return

        if not restore:
            try:
                self.rebuild_dns()  # type: ignore[attr-defined]
            except Exception as exc:
                logger.error("Updating resolv.conf failed for container %s, %r", cid, exc)
                self.resolver = None
                return

        try:
            # A restored sandbox in a fresh process has nothing recorded yet.
            self.recover_external_resolvers()  # type: ignore[attr-defined]
            self.resolver.set_ext_servers(self.ext_dns)
        except Exception as exc:
            logger.error(
                "Configuring external resolvers failed for container %s, %r", cid, exc
            )
            self.resolver = None
            return

        try:
            if self.exec_ctx is None:
                raise RuntimeError("sandbox has no execution context")
            self.exec_ctx.invoke_func(self.resolver.setup_func(self.resolver_port))
        except Exception as exc:
            logger.error("Resolver Setup function failed for container %s, %r", cid, exc)
            self.resolver = None
            return

        try:
            self.resolver.start()
        except Exception as exc:
            logger.error("Resolver Start failed for container %s, %r", cid, exc)
            self.resolver = None
            return

        logger.info(
            "embedded resolver %s started for container %s",
            RESOLVER_IP_SANDBOX,
            cid,
        )
