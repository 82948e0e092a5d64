from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from .namespace import ExecutionContext
from .sandbox import DEFAULT_PREFIX, ResolverFactory, Sandbox, SandboxConfig

logger = logging.getLogger(__name__)


class Controller:
    """Brief: Registry of live sandboxes, keyed by sandbox id.

    Inputs:
      - base_prefix: Root directory for default sandbox file paths.
      - resolver_factory: Optional factory passed to every new Sandbox.

    Outputs:
      - Controller instance.

    Example:
      >>> c = Controller(base_prefix="/tmp/files")
      >>> sb = c.new_sandbox("sb1", "cid1", SandboxConfig(host_name="web"))
      >>> c.find_sandbox("cid1") is sb
      True
    """

    def __init__(
        self,
        base_prefix: str = DEFAULT_PREFIX,
        resolver_factory: Optional[ResolverFactory] = None,
    ) -> None:
        self.base_prefix = base_prefix
        self._resolver_factory = resolver_factory
        self._lock = threading.Lock()
        self._sandboxes: Dict[str, Sandbox] = {}

    def new_sandbox(
        self,
        sandbox_id: str,
        container_id: str,
        config: Optional[SandboxConfig] = None,
        *,
        exec_ctx: Optional[ExecutionContext] = None,
        **kwargs,
    ) -> Sandbox:
        kwargs.setdefault("base_prefix", self.base_prefix)
        if self._resolver_factory is not None:
            kwargs.setdefault("resolver_factory", self._resolver_factory)
        sb = Sandbox(
            sandbox_id,
            config,
            container_id=container_id,
            controller=self,
            exec_ctx=exec_ctx,
            **kwargs,
        )
        with self._lock:
            if sandbox_id in self._sandboxes:
                raise ValueError(f"sandbox {sandbox_id} already exists")
            self._sandboxes[sandbox_id] = sb
        logger.debug("registered sandbox %s for container %s", sandbox_id, container_id)
        return sb

    def remove_sandbox(self, sandbox_id: str) -> Optional[Sandbox]:
        with self._lock:
            return self._sandboxes.pop(sandbox_id, None)

    def sandbox(self, sandbox_id: str) -> Optional[Sandbox]:
        with self._lock:
            return self._sandboxes.get(sandbox_id)

    def sandboxes(self) -> List[Sandbox]:
        with self._lock:
            return list(self._sandboxes.values())

    def find_sandbox(self, container_id: str) -> Optional[Sandbox]:
        """Brief: Return the live sandbox owned by container_id, or None."""

        if not container_id:
            return None
        with self._lock:
            for sb in self._sandboxes.values():
                if sb.container_id() == container_id:
                    return sb
        return None
