"""Diagnostic command line: host checks, version, VM listing, and networks."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from .config import DriverConfig, config_path, load
from .driver import Driver
from .host import check_commands

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(None, help='Path to config TOML.')
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _load_cfg(config_opt: str | None) -> DriverConfig:
    path = Path(config_opt) if config_opt else config_path()
    return load(path)


class DoctorCLI(_BaseCommand):
    """Check that the hypervisor command-line tools are installed."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        missing, missing_opt = check_commands(_load_cfg(args.config))
        if missing:
            print('❌ Missing required commands:', ', '.join(missing))
            return 2
        if missing_opt:
            print('➖ Missing optional commands:', ', '.join(missing_opt))
        print('✅ Required host commands are present.')
        return 0


class VersionCLI(_BaseCommand):
    """Print the prlctl version."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        print(Driver(config=_load_cfg(args.config)).version())
        return 0


class ListCLI(_BaseCommand):
    """List VMs and templates as name and identifier."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        vms = Driver(config=_load_cfg(args.config)).read_vms()
        for name, uuid in sorted(vms.items()):
            print(f'{uuid}  {name}')
        return 0


class NetworksCLI(_BaseCommand):
    """Show resolved bridged and host-only interfaces."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        drv = Driver(config=_load_cfg(args.config))
        for br in drv.read_bridged_interfaces():
            print(
                f'bridged   {br.name} ({br.bound_to}) '
                f'{br.ip}/{br.netmask} {br.status}'
            )
        for ho in drv.read_host_only_interfaces():
            dhcp = (
                f' dhcp={ho.dhcp.ip} [{ho.dhcp.lower}-{ho.dhcp.upper}]'
                if ho.dhcp
                else ''
            )
            print(
                f'host-only {ho.name} ({ho.bound_to}) '
                f'{ho.ip}/{ho.netmask} {ho.status}{dhcp}'
            )
        return 0


class StatusCLI(_BaseCommand):
    """Show the state of one VM."""

    uuid = scfg.Value('', help='VM identifier.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        if not args.uuid:
            raise RuntimeError('--uuid is required.')
        drv = Driver(args.uuid, config=_load_cfg(args.config))
        state = drv.read_state()
        if state is None:
            print(f'➖ {args.uuid} is not registered')
            return 1
        print(f'{args.uuid} {state}')
        return 0


class PrlvmModalCLI(scfg.ModalCLI):
    """Inspect the Parallels hypervisor through prlctl/prlsrvctl."""

    doctor = DoctorCLI
    tool_version = VersionCLI
    list = ListCLI
    networks = NetworksCLI
    status = StatusCLI


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    verbosity = 1
    if '--config' in argv:
        try:
            verbosity = _load_cfg(argv[argv.index('--config') + 1]).verbosity
        except (IndexError, OSError, ValueError):
            verbosity = 1
    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = PrlvmModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled prlvm error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
