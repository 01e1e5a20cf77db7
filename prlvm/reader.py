"""Read-only queries against the hypervisor, normalized into typed records."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import DriverConfig
from .errors import VMNotFoundError
from .executor import Executor
from .models import (
    BridgedInterface,
    HostOnlyInterface,
    NetworkAdapter,
    VirtualNetwork,
    VMRecord,
    VMSettings,
)
from .network import (
    bridged_candidates,
    network_interfaces,
    resolve_bridged,
    resolve_host_only,
)
from .parse import parse_lease_line

log = logger


def _union_by(items: list[dict], key: str) -> list[dict]:
    seen: set[str] = set()
    out: list[dict] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        ident = item.get(key)
        if ident is None or ident in seen:
            continue
        seen.add(ident)
        out.append(item)
    return out


class StateReader:
    """Queries scoped to one VM identifier; nothing is cached between calls."""

    def __init__(
        self,
        uuid: str | None = None,
        *,
        executor: Executor | None = None,
        config: DriverConfig | None = None,
    ) -> None:
        if executor is None:
            executor = Executor(config or DriverConfig())
        self.uuid = uuid
        self.executor = executor

    @property
    def config(self) -> DriverConfig:
        return self.executor.config

    def _require_uuid(self) -> str:
        if not self.uuid:
            raise VMNotFoundError('Driver is not bound to a VM identifier.')
        return self.uuid

    def _list_all(self, *extra: str) -> list[dict]:
        vms = self.executor.json(
            'list', '--all', *extra, '--json', fallback=[], retry=True
        )
        templates = self.executor.json(
            'list',
            '--all',
            *extra,
            '--json',
            '--template',
            fallback=[],
            retry=True,
        )
        return list(vms or []) + list(templates or [])

    def read_vm_records(self) -> list[VMRecord]:
        merged = _union_by(self._list_all(), 'uuid')
        return [VMRecord.from_json(item) for item in merged]

    def read_vms(self) -> dict[str, str]:
        """Map of VM and template names to their identifiers."""
        return {rec.name: rec.uuid for rec in self.read_vm_records()}

    def read_vms_info(self) -> list[VMSettings]:
        merged = _union_by(self._list_all('--info'), 'ID')
        return [VMSettings.from_json(item) for item in merged]

    def read_vms_paths(self) -> dict[str, str]:
        paths: dict[str, str] = {}
        for vm in self.read_vms_info():
            if vm.home and Path(vm.home).is_dir():
                paths[os.path.realpath(vm.home)] = vm.uuid
        return paths

    def read_settings(self) -> VMSettings:
        uuid = self._require_uuid()
        records = self.executor.json(
            'list', uuid, '--info', '--json', fallback=[], retry=True
        )
        if isinstance(records, dict):
            records = [records]
        if not records:
            raise VMNotFoundError(f'VM {uuid} is not listed by the hypervisor.')
        return VMSettings.from_json(records[-1])

    def read_state(self) -> Optional[str]:
        """Symbolic state of the VM, or None when it is no longer listed."""
        uuid = self._require_uuid()
        records = self.executor.json(
            'list', uuid, '--json', fallback=[], retry=True
        )
        if isinstance(records, dict):
            records = [records]
        if not records:
            return None
        status = records[-1].get('status')
        return str(status) if status is not None else None

    def read_guest_tools_version(self) -> Optional[str]:
        return self.read_settings().guest_tools_version

    def read_mac_address(self) -> Optional[str]:
        dev = self.read_settings().hardware.get('net0')
        mac = getattr(dev, 'mac', '')
        return mac or None

    def read_ip_dhcp(self) -> Optional[str]:
        mac = self.read_mac_address()
        if not mac:
            return None
        leases = Path(self.config.paths.dhcp_leases)
        if not leases.exists():
            log.debug('DHCP lease file not found: {}', leases)
            return None
        with leases.open('r', encoding='utf-8', errors='replace') as f:
            for line in f:
                ip = parse_lease_line(line, mac.lower())
                if ip:
                    return ip
        return None

    def read_network_interfaces(self) -> dict[int, NetworkAdapter]:
        return network_interfaces(self.read_settings())

    def read_virtual_networks(self) -> list[VirtualNetwork]:
        raw = self.executor.json(
            'net', 'list', '--json', tool='prlsrvctl', fallback=[], retry=True
        )
        return [VirtualNetwork.from_json(item) for item in raw or []]

    def read_bridged_interfaces(self) -> list[BridgedInterface]:
        out = []
        for net in bridged_candidates(self.read_virtual_networks()):
            text = self.executor.execute(net.bound_to, tool='ifconfig')
            out.append(resolve_bridged(net, text))
        return out

    def read_host_only_interfaces(self) -> list[HostOnlyInterface]:
        out = []
        for net in self.read_virtual_networks():
            if net.type != 'host-only':
                continue
            info = self.executor.json(
                'net', 'info', net.network_id, '--json', tool='prlsrvctl'
            )
            out.append(resolve_host_only(info))
        return out

    def vm_exists(self, uuid: str) -> bool:
        return self.executor.raw('list', uuid).code == 0

    def registered(self, uuid: str) -> bool:
        return uuid in self.read_vms().values()
