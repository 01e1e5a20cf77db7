"""Reconciliation of raw hypervisor network state into the driver's view."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from loguru import logger

from .models import (
    AdapterKind,
    BridgedInterface,
    DhcpRange,
    HostOnlyInterface,
    NetDevice,
    NetworkAdapter,
    VirtualNetwork,
    VMSettings,
)
from .parse import DEFAULT_ADDRESS, parse_ifconfig, same_network

log = logger

VNIC_RE = re.compile(r'^(vnic(.+?))$')
# 'Shared' (vnic0) and 'Host-Only' (vnic1) are created by the hypervisor.
HOSTONLY_BOUND_RE = re.compile(r'^(?:vnic|Parallels Host-Only #)(\d+)$')
RESERVED_HOSTONLY_MAX = 1
DEFAULT_HOSTONLY_IFACE = 'vnic1'
DEFAULT_NETWORK_ID = 'Default'


def classify_adapter(dev: NetDevice) -> Optional[NetworkAdapter]:
    """Map a raw ``{type, iface}`` device to a :class:`NetworkAdapter`.

    A device bridged to a ``vnic*`` interface is a host-only adapter; the
    tool has no separate host-only device type for custom networks.
    """
    if dev.type == 'shared':
        return NetworkAdapter(adapter=dev.index, kind=AdapterKind.SHARED)
    if dev.type == 'host':
        return NetworkAdapter(
            adapter=dev.index,
            kind=AdapterKind.HOSTONLY,
            hostonly=DEFAULT_HOSTONLY_IFACE,
        )
    if dev.type == 'bridged' and dev.iface.startswith('vnic'):
        return NetworkAdapter(
            adapter=dev.index, kind=AdapterKind.HOSTONLY, hostonly=dev.iface
        )
    if dev.type == 'bridged':
        return NetworkAdapter(
            adapter=dev.index, kind=AdapterKind.BRIDGED, bridge=dev.iface
        )
    log.debug('Unrecognized adapter type {!r} on {}', dev.type, dev.name)
    return None


def network_interfaces(settings: VMSettings) -> dict[int, NetworkAdapter]:
    nics: dict[int, NetworkAdapter] = {}
    for dev in settings.net_devices:
        if not dev.enabled:
            continue
        nic = classify_adapter(dev)
        if nic is not None:
            nics[nic.adapter] = nic
    return nics


def bridged_candidates(networks: Iterable[VirtualNetwork]) -> list[VirtualNetwork]:
    return [
        net
        for net in networks
        if net.type == 'bridged'
        and not VNIC_RE.match(net.bound_to)
        and net.network_id != DEFAULT_NETWORK_ID
    ]


def display_name(network_id: str) -> str:
    return re.sub(r'\s\(.*?\)$', '', network_id)


def resolve_bridged(net: VirtualNetwork, ifconfig_text: str) -> BridgedInterface:
    st = parse_ifconfig(ifconfig_text)
    return BridgedInterface(
        name=display_name(net.network_id),
        bound_to=net.bound_to,
        ip=st.ip,
        netmask=st.netmask,
        status=st.status,
    )


def resolve_host_only(net_info: dict) -> HostOnlyInterface:
    adapter = net_info.get('Parallels adapter') or {}
    dhcp_raw = net_info.get('DHCPv4 server') or {}
    reported_ip = adapter.get('IP address')
    reported_mask = adapter.get('Subnet mask')
    ip = reported_ip or DEFAULT_ADDRESS
    netmask = reported_mask or DEFAULT_ADDRESS
    dhcp = None
    # The tool reports placeholder DHCP settings on some networks; only
    # trust them when the server sits in the adapter's subnet. A missing
    # adapter address falls back to 0.0.0.0/0, which matches everything.
    dhcp_ip = dhcp_raw.get('Server address')
    subnet_known = (
        reported_ip not in (None, '', DEFAULT_ADDRESS)
        and reported_mask not in (None, '', DEFAULT_ADDRESS)
    )
    if dhcp_ip and subnet_known and same_network(ip, dhcp_ip, netmask):
        dhcp = DhcpRange(
            ip=dhcp_ip,
            lower=dhcp_raw.get('IP scope start address', ''),
            upper=dhcp_raw.get('IP scope end address', ''),
        )
    return HostOnlyInterface(
        name=str(net_info.get('Network ID', '')),
        bound_to=str(net_info.get('Bound To', '')),
        ip=ip,
        netmask=netmask,
        status='Up',
        dhcp=dhcp,
    )


def _is_reserved_host_only(net: VirtualNetwork) -> bool:
    m = HOSTONLY_BOUND_RE.match(net.bound_to)
    if m is None:
        # Unknown naming: never a cleanup candidate.
        return True
    return int(m.group(1)) <= RESERVED_HOSTONLY_MAX


def deletable_host_only_networks(
    networks: Iterable[VirtualNetwork], vms: Iterable[VMSettings]
) -> list[VirtualNetwork]:
    """Custom host-only networks that no VM or template is bound to."""
    candidates = [
        net
        for net in networks
        if net.type == 'host-only' and not _is_reserved_host_only(net)
    ]
    used = {
        dev.iface for vm in vms for dev in vm.net_devices if dev.iface
    }
    return [net for net in candidates if net.bound_to not in used]
