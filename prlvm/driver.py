"""Mutating operations: lifecycle, transfer, adapters, networks, and shares."""

from __future__ import annotations

import random
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from loguru import logger

from .errors import ParallelsInstallIncomplete, VMNotFoundError
from .models import (
    AdapterKind,
    AdapterSpec,
    HostOnlyInterface,
    HostOnlyNetworkSpec,
    SharedFolder,
)
from .network import deletable_host_only_networks
from .parse import parse_progress, parse_version
from .reader import StateReader
from .util import ChunkCallback

log = logger

ProgressCallback = Callable[[int], None]

# Skipped by the disable pass of enable_adapters. Hardware keys are always
# 'netN', so this name never matches; kept for parity with the Vagrant
# provider's adapter reset.
RESERVED_SHARED_ADAPTER = 'vnet0'


def progress_sink(on_progress: Optional[ProgressCallback]) -> ChunkCallback:
    """Turn raw output chunks into integer percentages for ``on_progress``."""

    def _on_chunk(kind: str, data: str) -> None:
        pct = parse_progress(data)
        if pct is not None and on_progress is not None:
            on_progress(pct)

    return _on_chunk


def unique_clone_name(template_name: str) -> str:
    millis = int(time.time() * 1000.0)
    return f'{template_name}_{millis}_{random.randrange(100000)}'


class Driver(StateReader):
    """Driver for one VM, issuing ``prlctl``/``prlsrvctl`` commands."""

    # Lifecycle

    def start(self) -> None:
        self.executor.execute('start', self._require_uuid())

    def halt(self, force: bool = False) -> None:
        args = ['stop', self._require_uuid()]
        if force:
            args.append('--kill')
        self.executor.execute(*args)

    def suspend(self) -> None:
        self.executor.execute('suspend', self._require_uuid())

    def resume(self) -> None:
        self.executor.execute('resume', self._require_uuid())

    def delete(self) -> None:
        self.executor.execute('delete', self._require_uuid())

    def register(self, pvm_file: str | Path) -> None:
        self.executor.execute('register', str(pvm_file))

    def unregister(self, uuid: str) -> None:
        self.executor.execute('unregister', uuid)

    def execute_command(self, command: Sequence[str]) -> str:
        return self.executor.execute(*command)

    def ssh_port(self, expected_port: int) -> int:
        return expected_port

    def version(self) -> str:
        out = self.executor.execute('--version', retry=True)
        version = parse_version(out)
        if version is None:
            raise ParallelsInstallIncomplete(
                'prlctl did not report a version; the hypervisor installation '
                f'looks incomplete (output: {out.strip()!r}).'
            )
        return version

    def verify(self) -> str:
        return self.version()

    # Transfer

    def export(
        self,
        path: str | Path,
        template_name: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Clone this VM as a template under ``path`` and return its identifier."""
        self.executor.execute(
            'clone',
            self._require_uuid(),
            '--name',
            template_name,
            '--template',
            '--dst',
            str(path),
            on_chunk=progress_sink(on_progress),
        )
        return self._resolve_uuid(template_name)

    def import_template(
        self,
        template_uuid: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Clone a template into a new uniquely-named VM and return its identifier."""
        names = {uuid: name for name, uuid in self.read_vms().items()}
        if template_uuid not in names:
            raise VMNotFoundError(f'Template {template_uuid} is not listed.')
        vm_name = unique_clone_name(names[template_uuid])
        log.info('Cloning template {} into {}', template_uuid, vm_name)
        self.executor.execute(
            'clone',
            template_uuid,
            '--name',
            vm_name,
            on_chunk=progress_sink(on_progress),
        )
        return self._resolve_uuid(vm_name)

    def _resolve_uuid(self, name: str) -> str:
        # clone does not print the new identifier.
        uuid = self.read_vms().get(name)
        if uuid is None:
            raise VMNotFoundError(f'{name!r} did not appear after cloning.')
        return uuid

    def compact(self, on_progress: Optional[ProgressCallback] = None) -> None:
        for hdd in self.read_settings().hdd_devices:
            log.debug('Compacting {} ({})', hdd.name, hdd.image)
            self.executor.execute(
                'compact',
                '--hdd',
                hdd.image,
                tool='prl_disk_tool',
                on_chunk=progress_sink(on_progress),
            )

    # Network adapters

    def enable_adapters(self, adapters: Iterable[AdapterSpec]) -> None:
        uuid = self._require_uuid()
        adapters = list(adapters)
        # Host-only adapters are bridged too, to the 'vnicX' device of the
        # host-only network instead of a physical interface.
        for adapter in adapters:
            if (
                adapter.kind in (AdapterKind.HOSTONLY, AdapterKind.BRIDGED)
                and not adapter.bound_to
            ):
                raise ValueError(
                    f'Adapter {adapter.adapter} ({adapter.kind.value}) '
                    'needs bound_to.'
                )

        existing = [d.name for d in self.read_settings().net_devices]
        for name in existing:
            if name != RESERVED_SHARED_ADAPTER:
                self.executor.execute(
                    'set', uuid, '--device-set', name, '--disable'
                )

        for adapter in adapters:
            device = f'net{adapter.adapter}'
            if device in existing:
                args = ['--device-set', device, '--enable']
            else:
                args = ['--device-add', 'net']

            if adapter.kind in (AdapterKind.HOSTONLY, AdapterKind.BRIDGED):
                args +=['--type', 'bridged', '--iface', adapter.bound_to]
            elif adapter.kind == AdapterKind.SHARED:
                args += ['--type', 'shared']

            if adapter.mac_address:
                args += ['--mac', adapter.mac_address]
            if adapter.nic_type:
                args += ['--adapter-type', str(adapter.nic_type)]

            self.executor.execute('set', uuid, *args)

    def delete_disabled_adapters(self) -> None:
        uuid = self._require_uuid()
        for dev in self.read_settings().net_devices:
            if not dev.enabled:
                self.executor.execute('set', uuid, '--device-del', dev.name)

    def set_mac_address(self, mac: str) -> None:
        self.executor.execute(
            'set',
            self._require_uuid(),
            '--device-set',
            'net0',
            '--type',
            'shared',
            '--mac',
            mac,
        )

    def set_name(self, name: str) -> None:
        self.executor.execute(
            'set', self._require_uuid(), '--name', name, retry=True
        )

    # Virtual networks

    def create_host_only_network(
        self, spec: HostOnlyNetworkSpec
    ) -> HostOnlyInterface:
        self.executor.execute(
            'net', 'add', spec.name, '--type', 'host-only', tool='prlsrvctl'
        )
        args = ['--ip', f'{spec.adapter_ip}/{spec.netmask}']
        if spec.dhcp is not None:
            args += [
                '--dhcp-ip',
                spec.dhcp.ip,
                '--ip-scope-start',
                spec.dhcp.lower,
                '--ip-scope-end',
                spec.dhcp.upper,
            ]
        self.executor.execute('net', 'set', spec.name, *args, tool='prlsrvctl')

        net_info = self.executor.json(
            'net', 'info', spec.name, '--json', tool='prlsrvctl', retry=True
        )
        return HostOnlyInterface(
            name=spec.name,
            bound_to=str(net_info.get('Bound To', '')),
            ip=spec.adapter_ip,
            netmask=spec.netmask,
            dhcp=spec.dhcp,
        )

    def delete_unused_host_only_networks(self) -> list[str]:
        unused = deletable_host_only_networks(
            self.read_virtual_networks(), self.read_vms_info()
        )
        for net in unused:
            log.info('Deleting unused host-only network {}', net.network_id)
            self.executor.execute(
                'net', 'del', net.network_id, tool='prlsrvctl'
            )
        return [net.network_id for net in unused]

    # Shared folders

    def share_folders(self, folders: Iterable[SharedFolder]) -> None:
        uuid = self._require_uuid()
        for folder in folders:
            self.executor.execute(
                'set',
                uuid,
                '--shf-host-add',
                folder.name,
                '--path',
                str(folder.hostpath),
            )

    def clear_shared_folders(self) -> None:
        uuid = self._require_uuid()
        for name in self.read_settings().shared_folders:
            self.executor.execute('set', uuid, '--shf-host-del', name)
