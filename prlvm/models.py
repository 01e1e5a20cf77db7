"""Typed records built from the hypervisor's JSON and text output."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

NET_DEVICE_RE = re.compile(r'^net(\d+)$')


class AdapterKind(str, enum.Enum):
    SHARED = 'shared'
    HOSTONLY = 'hostonly'
    BRIDGED = 'bridged'


@dataclass(frozen=True)
class VMRecord:
    uuid: str
    name: str

    @classmethod
    def from_json(cls, raw: dict) -> 'VMRecord':
        return cls(uuid=str(raw['uuid']), name=str(raw['name']))


@dataclass(frozen=True)
class NetDevice:
    name: str
    index: int
    enabled: bool = True
    type: str = ''
    iface: str = ''
    mac: str = ''
    card: str = ''


@dataclass(frozen=True)
class HddDevice:
    name: str
    enabled: bool = True
    image: str = ''


@dataclass(frozen=True)
class GenericDevice:
    name: str
    enabled: bool = True
    params: dict = field(default_factory=dict)


Device = Union[NetDevice, HddDevice, GenericDevice]


def _as_bool(val: Any, default: bool = True) -> bool:
    if val is None:
        return default
    if isinstance(val, str):
        return val.strip().lower() not in ('false', 'no', '0', 'off')
    return bool(val)


def parse_device(name: str, params: Any) -> Device:
    if not isinstance(params, dict):
        params = {}
    enabled = _as_bool(params.get('enabled'), True)
    m = NET_DEVICE_RE.match(name)
    if m:
        return NetDevice(
            name=name,
            index=int(m.group(1)),
            enabled=enabled,
            type=str(params.get('type', '') or ''),
            iface=str(params.get('iface', '') or ''),
            mac=str(params.get('mac', '') or ''),
            card=str(params.get('card', '') or ''),
        )
    if name.startswith('hdd'):
        return HddDevice(
            name=name, enabled=enabled, image=str(params.get('image', '') or '')
        )
    return GenericDevice(name=name, enabled=enabled, params=dict(params))


@dataclass
class VMSettings:
    """Full ``list --info`` record of one VM or template."""

    uuid: str = ''
    name: str = ''
    state: str = ''
    home: str = ''
    guest_tools_version: Optional[str] = None
    hardware: dict[str, Device] = field(default_factory=dict)
    shared_folders: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, raw: dict) -> 'VMSettings':
        hardware_raw = raw.get('Hardware') or {}
        hardware = {
            str(name): parse_device(str(name), params)
            for name, params in hardware_raw.items()
        }
        tools = raw.get('GuestTools') or {}
        version = tools.get('version') if isinstance(tools, dict) else None
        shf = raw.get('Host Shared Folders') or {}
        folders: list[str] = []
        if isinstance(shf, dict):
            # 'enabled' is a meta-key, not a folder.
            folders = [str(k) for k in shf.keys() if k != 'enabled']
        return cls(
            uuid=str(raw.get('ID', '') or ''),
            name=str(raw.get('Name', '') or ''),
            state=str(raw.get('State', '') or ''),
            home=str(raw.get('Home', '') or ''),
            guest_tools_version=version,
            hardware=hardware,
            shared_folders=folders,
        )

    @property
    def net_devices(self) -> list[NetDevice]:
        return [d for d in self.hardware.values() if isinstance(d, NetDevice)]

    @property
    def hdd_devices(self) -> list[HddDevice]:
        return [d for d in self.hardware.values() if isinstance(d, HddDevice)]


@dataclass(frozen=True)
class NetworkAdapter:
    adapter: int
    kind: AdapterKind
    hostonly: Optional[str] = None
    bridge: Optional[str] = None


@dataclass(frozen=True)
class AdapterSpec:
    """Requested network adapter for :meth:`Driver.enable_adapters`."""

    adapter: int
    kind: AdapterKind
    bound_to: Optional[str] = None
    mac_address: Optional[str] = None
    nic_type: Optional[str] = None


@dataclass(frozen=True)
class DhcpRange:
    ip: str
    lower: str
    upper: str


@dataclass(frozen=True)
class VirtualNetwork:
    network_id: str
    type: str
    bound_to: str = ''

    @classmethod
    def from_json(cls, raw: dict) -> 'VirtualNetwork':
        return cls(
            network_id=str(raw.get('Network ID', '') or ''),
            type=str(raw.get('Type', '') or ''),
            bound_to=str(raw.get('Bound To', '') or ''),
        )


@dataclass(frozen=True)
class BridgedInterface:
    name: str
    bound_to: str
    ip: str = '0.0.0.0'
    netmask: str = '0.0.0.0'
    status: str = 'Down'


@dataclass(frozen=True)
class HostOnlyInterface:
    name: str
    bound_to: str
    ip: str
    netmask: str
    status: str = 'Up'
    dhcp: Optional[DhcpRange] = None


@dataclass(frozen=True)
class HostOnlyNetworkSpec:
    name: str
    adapter_ip: str
    netmask: str
    dhcp: Optional[DhcpRange] = None


@dataclass(frozen=True)
class SharedFolder:
    name: str
    hostpath: str
