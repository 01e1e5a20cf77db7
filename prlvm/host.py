"""Host prerequisite checks for the hypervisor command-line tools."""

from __future__ import annotations

from .config import DriverConfig
from .util import which


def required_commands(cfg: DriverConfig) -> list[str]:
    return [cfg.tools.prlctl, cfg.tools.prlsrvctl]


def optional_commands(cfg: DriverConfig) -> list[str]:
    # compact and bridged-interface status need these.
    return [cfg.tools.prl_disk_tool, cfg.tools.ifconfig]


def check_commands(cfg: DriverConfig | None = None) -> tuple[list[str], list[str]]:
    cfg = cfg or DriverConfig()
    missing = [c for c in required_commands(cfg) if which(c) is None]
    missing_opt = [c for c in optional_commands(cfg) if which(c) is None]
    return missing, missing_opt
