"""
Brief: Global pytest configuration and shared sandbox fixtures.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import sys
from typing import Callable, List, Optional, Sequence

import pytest

# Ensure 'src' is on sys.path so 'sandboxdns' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from sandboxdns.extdns import ExternalDNSEntry  # noqa: E402
from sandboxdns.namespace import ExecutionContext  # noqa: E402
from sandboxdns.resolver import Resolver  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


class FakeResolver(Resolver):
    """Brief: Resolver double recording every lifecycle call."""

    def __init__(self, address="127.0.0.11", proxy_dns=True, backend=None):
        self.address = address
        self.proxy_dns = proxy_dns
        self.backend = backend
        self.options = ["ndots:0"]
        self.ext_servers: List[ExternalDNSEntry] = []
        self.calls: List[str] = []
        self.fail_start = False

    def name_server(self) -> str:
        return self.address

    def resolver_options(self) -> List[str]:
        return list(self.options)

    def set_ext_servers(self, servers: Sequence[ExternalDNSEntry]) -> None:
        self.calls.append("set_ext_servers")
        self.ext_servers = list(servers)

    def setup_func(self, port: int) -> Callable[[int], None]:
        def _setup(fd: int) -> None:
            self.calls.append(f"setup:{port}")

        return _setup

    def start(self) -> None:
        if self.fail_start:
            raise OSError("bind failed")
        self.calls.append("start")

    def stop(self) -> None:
        self.calls.append("stop")


class FakeExecContext(ExecutionContext):
    """Brief: ExecutionContext double calling fn(fd) in-process."""

    def __init__(self, fail: Optional[Exception] = None):
        self.fail = fail
        self.invocations = 0

    def invoke_func(self, fn):
        self.invocations += 1
        if self.fail is not None:
            raise self.fail
        fn(-1)


@pytest.fixture
def base_prefix(tmp_path):
    """
    Brief: Per-test root directory for default sandbox file paths.

    Inputs:
      - tmp_path: pytest temporary directory

    Outputs:
      - str path
    """
    return str(tmp_path / "files")
