"""Project-specific exception types."""

from __future__ import annotations

from .util import CmdError


class PrlvmError(RuntimeError):
    """Base error for domain-level prlvm failures."""


class ParallelsInstallIncomplete(PrlvmError):
    """Raised when the hypervisor tools are missing or report no usable version."""


class VMNotFoundError(PrlvmError):
    """Raised when an operation needs a VM or template that is not listed."""


class ToolOutputError(CmdError):
    """Raised when structured tool output cannot be parsed and no fallback exists."""
