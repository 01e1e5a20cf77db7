"""Tests for adapter classification and network reconciliation."""

from __future__ import annotations

from prlvm.models import (
    AdapterKind,
    DhcpRange,
    NetDevice,
    VirtualNetwork,
    VMSettings,
)
from prlvm.network import (
    bridged_candidates,
    classify_adapter,
    deletable_host_only_networks,
    display_name,
    network_interfaces,
    resolve_bridged,
    resolve_host_only,
)


def _net_info(ip='10.37.129.2', mask='255.255.255.0', dhcp_ip='10.37.129.1'):
    return {
        'Network ID': 'vagrant-vnet2',
        'Type': 'host-only',
        'Bound To': 'vnic2',
        'Parallels adapter': {'IP address': ip, 'Subnet mask': mask},
        'DHCPv4 server': {
            'Server address': dhcp_ip,
            'IP scope start address': '10.37.129.10',
            'IP scope end address': '10.37.129.200',
        },
    }


def test_classify_adapter() -> None:
    shared = classify_adapter(NetDevice('net0', 0, type='shared'))
    assert shared.kind is AdapterKind.SHARED
    host = classify_adapter(NetDevice('net1', 1, type='host'))
    assert host.kind is AdapterKind.HOSTONLY
    assert host.hostonly == 'vnic1'
    vnic = classify_adapter(NetDevice('net2', 2, type='bridged', iface='vnic3'))
    assert vnic.kind is AdapterKind.HOSTONLY
    assert vnic.hostonly == 'vnic3'
    br = classify_adapter(NetDevice('net3', 3, type='bridged', iface='en0'))
    assert br.kind is AdapterKind.BRIDGED
    assert br.bridge == 'en0'
    assert classify_adapter(NetDevice('net4', 4, type='nat')) is None


def test_network_interfaces_skips_disabled() -> None:
    vm = VMSettings.from_json(
        {
            'Hardware': {
                'net0': {'enabled': True, 'type': 'shared'},
                'net1': {'enabled': False, 'type': 'bridged', 'iface': 'en0'},
                'net2': {'type': 'bridged', 'iface': 'vnic2'},
                'hdd0': {'image': '/x.hdd'},
            }
        }
    )
    nics = network_interfaces(vm)
    assert sorted(nics) == [0, 2]
    assert nics[2].kind is AdapterKind.HOSTONLY


def test_bridged_candidates_filter() -> None:
    nets = [
        VirtualNetwork('Wi-Fi (en0)', 'bridged', 'en0'),
        VirtualNetwork('Default', 'bridged', 'en1'),
        VirtualNetwork('vnic-bridge', 'bridged', 'vnic5'),
        VirtualNetwork('Host-Only', 'host-only', 'vnic1'),
    ]
    got = bridged_candidates(nets)
    assert [n.bound_to for n in got] == ['en0']
    assert display_name('Wi-Fi (en0)') == 'Wi-Fi'
    assert display_name('Thunderbolt Bridge') == 'Thunderbolt Bridge'


def test_resolve_bridged() -> None:
    net = VirtualNetwork('Ethernet (en0)', 'bridged', 'en0')
    text = (
        'en0: flags=8863<UP,BROADCAST> mtu 1500\n'
        '\tinet 192.168.0.4 netmask 0xffff0000 broadcast 192.168.255.255\n'
        '\tstatus: active\n'
    )
    br = resolve_bridged(net, text)
    assert br.name == 'Ethernet'
    assert br.ip == '192.168.0.4'
    assert br.netmask == '255.255.0.0'
    assert br.status == 'Up'
    down = resolve_bridged(net, '')
    assert (down.ip, down.netmask, down.status) == ('0.0.0.0', '0.0.0.0', 'Down')


def test_resolve_host_only_keeps_dhcp_in_subnet() -> None:
    iface = resolve_host_only(_net_info())
    assert iface.status == 'Up'
    assert iface.bound_to == 'vnic2'
    assert iface.dhcp == DhcpRange('10.37.129.1', '10.37.129.10', '10.37.129.200')


def test_resolve_host_only_omits_dhcp_outside_subnet() -> None:
    iface = resolve_host_only(
        _net_info(ip='10.0.0.1', mask='255.255.255.0', dhcp_ip='10.0.1.5')
    )
    assert iface.dhcp is None
    info = _net_info()
    del info['DHCPv4 server']
    assert resolve_host_only(info).dhcp is None


def test_resolve_host_only_without_adapter_section() -> None:
    info = _net_info()
    del info['Parallels adapter']
    iface = resolve_host_only(info)
    assert iface.ip == '0.0.0.0'
    assert iface.netmask == '0.0.0.0'
    assert iface.dhcp is None
    info = _net_info(ip='10.37.129.2', mask='')
    assert resolve_host_only(info).dhcp is None


def _vm_using(*ifaces: str) -> VMSettings:
    hw = {
        f'net{i}': {'type': 'bridged', 'iface': iface}
        for i, iface in enumerate(ifaces)
    }
    return VMSettings.from_json({'ID': 'vm', 'Hardware': hw})


def test_deletable_host_only_networks_keeps_defaults() -> None:
    nets = [
        VirtualNetwork('Shared', 'host-only', 'vnic0'),
        VirtualNetwork('Host-Only', 'host-only', 'vnic1'),
        VirtualNetwork('Win', 'host-only', 'Parallels Host-Only #1'),
        VirtualNetwork('unused', 'host-only', 'vnic2'),
        VirtualNetwork('win-unused', 'host-only', 'Parallels Host-Only #3'),
        VirtualNetwork('used', 'host-only', 'vnic4'),
        VirtualNetwork('Wi-Fi', 'bridged', 'en0'),
        VirtualNetwork('weird', 'host-only', 'bridge100'),
    ]
    got = deletable_host_only_networks(nets, [_vm_using('vnic4', 'en0')])
    assert [n.network_id for n in got] == ['unused', 'win-unused']


def test_deletable_host_only_networks_defaults_even_if_unused() -> None:
    nets = [
        VirtualNetwork('Shared', 'host-only', 'vnic0'),
        VirtualNetwork('Host-Only', 'host-only', 'vnic1'),
    ]
    assert deletable_host_only_networks(nets, []) == []
