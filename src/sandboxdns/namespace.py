"""Execution contexts that run callbacks inside a network namespace.

Brief:
  The sandbox does not enter namespaces itself; it submits a callback to an
  ExecutionContext, which invokes it with a file descriptor for the target
  namespace. NetnsContext implements this for a namespace file such as
  /var/run/netns/<name> or /proc/<pid>/ns/net.
"""

from __future__ import annotations

import abc
import logging
import os
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

SELF_NETNS = "/proc/self/ns/net"
CLONE_NEWNET = getattr(os, "CLONE_NEWNET", 0x40000000)


class ExecutionContext(abc.ABC):
    """Brief: Capability to run a callback with access to a namespace fd."""

    @abc.abstractmethod
    def invoke_func(self, fn: Callable[[int], None]) -> None:
        """Run fn(ns_fd) inside the target namespace; errors from fn propagate."""


def _same_file(a: str, b: str) -> bool:
    try:
        sa, sb = os.stat(a), os.stat(b)
    except OSError:
        return False
    return (sa.st_dev, sa.st_ino) == (sb.st_dev, sb.st_ino)


class NetnsContext(ExecutionContext):
    """Brief: ExecutionContext for a namespace identified by a file path.

    Inputs:
      - path: Namespace file; defaults to the caller's own namespace.

    Outputs:
      - NetnsContext instance.
    """

    def __init__(self, path: str = SELF_NETNS) -> None:
        self.path = path

    def invoke_func(self, fn: Callable[[int], None]) -> None:
        fd = os.open(self.path, os.O_RDONLY)
        try:
            if _same_file(self.path, SELF_NETNS):
                fn(fd)
                return
            self._invoke_in_thread(fd, fn)
        finally:
            os.close(fd)

    @staticmethod
    def _invoke_in_thread(fd: int, fn: Callable[[int], None]) -> None:
        # setns() switches only the calling OS thread, so the callback runs on
        # a short-lived thread that never returns to the host namespace.
        setns = getattr(os, "setns", None)
        if setns is None:
            raise NotImplementedError("os.setns is not available on this platform")

        errors: List[Optional[BaseException]] = [None]

        def _run() -> None:
            try:
                setns(fd, CLONE_NEWNET)
                fn(fd)
            except BaseException as exc:
                errors[0] = exc

        t = threading.Thread(target=_run, name="netns-invoke", daemon=True)
        t.start()
        t.join()
        if errors[0] is not None:
            raise errors[0]
