"""Error types raised by sandboxdns.

Brief:
  I/O failures that are not "file not found" propagate to callers. Failures
  with extra context are wrapped in InternalError. A user-supplied ndots value
  that cannot be honoured raises InvalidNdotsError.
"""

from __future__ import annotations


class SandboxDNSError(Exception):
    """
    Brief: Base class for sandboxdns errors.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


class InternalError(SandboxDNSError):
    """
    Brief: Sandbox resolution-file I/O failed (copy, write, rename).

    Inputs:
    - message: description including the affected path/sandbox

    Outputs:
    - Exception instance
    """

    pass


class InvalidNdotsError(SandboxDNSError, ValueError):
    """
    Brief: A resolver "ndots" option is malformed or negative.

    Inputs:
    - message: description including the offending option

    Outputs:
    - Exception instance
    """

    pass
