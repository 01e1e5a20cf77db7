"""Driver for the Parallels command-line tools (``prlctl``/``prlsrvctl``)."""

from __future__ import annotations

from .config import DriverConfig
from .driver import Driver
from .errors import ParallelsInstallIncomplete, PrlvmError, VMNotFoundError
from .executor import Executor, RetryPolicy
from .models import AdapterKind, AdapterSpec, HostOnlyNetworkSpec, SharedFolder
from .reader import StateReader
from .util import CmdError, CmdResult

__version__ = '0.1.0'

__all__ = [
    'AdapterKind',
    'AdapterSpec',
    'CmdError',
    'CmdResult',
    'Driver',
    'DriverConfig',
    'Executor',
    'HostOnlyNetworkSpec',
    'ParallelsInstallIncomplete',
    'PrlvmError',
    'RetryPolicy',
    'SharedFolder',
    'StateReader',
    'VMNotFoundError',
]
