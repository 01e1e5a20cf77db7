"""Parsers for the text formats emitted by the hypervisor command-line tools.

Each external format gets one small parser with its grammar written next
to it, so a change in tool output fails here instead of deep inside a
driver operation.
"""

from __future__ import annotations

import ipaddress
import json
import re
from dataclasses import dataclass
from typing import Any, Optional

NO_FALLBACK: Any = object()

# Progress line: the last carriage-return separated segment of a chunk,
# e.g. ``Copying hard disk... 42 %`` or ``Compacting 7%``.
PROGRESS_RE = re.compile(r'(?<!\d)(\d{1,3}) ?%')

# Interface status block, as printed by ``ifconfig <dev>``::
#
#     en0: flags=8863<UP,BROADCAST,SMART,RUNNING,SIMPLEX,MULTICAST> mtu 1500
#         inet 192.168.1.10 netmask 0xffffff00 broadcast 192.168.1.255
#         status: active
INET_RE = re.compile(r'(?<=inet\s)(\S*)')
NETMASK_RE = re.compile(r'(?<=netmask\s)(\S*)')
UP_RE = re.compile(r'\W(UP)\W')
INACTIVE_RE = re.compile(r'(?<=status:\s)inactive$', re.MULTILINE)

# DHCP lease line: starts with the leased IPv4 address and mentions the
# client MAC somewhere later on the line.
LEASE_IP_RE = re.compile(r'^(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})')

VERSION_RE = re.compile(r'prlctl version ([\d\.]+)')

DEFAULT_ADDRESS = '0.0.0.0'


@dataclass(frozen=True)
class InterfaceStatus:
    ip: str = DEFAULT_ADDRESS
    netmask: str = DEFAULT_ADDRESS
    up: bool = False

    @property
    def status(self) -> str:
        return 'Up' if self.up else 'Down'


def last_line(chunk: str) -> str:
    lines = chunk.split('\r')
    while len(lines) > 1 and not lines[-1].strip():
        lines.pop()
    return lines[-1]


def parse_progress(chunk: str) -> Optional[int]:
    """Return the percentage on the last line of ``chunk``, e.g. ``50%\\r99%`` gives 99."""
    found = PROGRESS_RE.findall(last_line(chunk))
    if not found:
        return None
    return int(found[-1])


def hex_netmask_to_dotted(raw: str) -> Optional[str]:
    """Convert a hex netmask such as ``0xffffff00`` to ``255.255.255.0``."""
    try:
        value = int(raw, 16)
    except ValueError:
        return None
    if value < 0 or value > 0xFFFFFFFF:
        return None
    return str(ipaddress.IPv4Address(value))


def parse_ifconfig(text: str) -> InterfaceStatus:
    ip = DEFAULT_ADDRESS
    netmask = DEFAULT_ADDRESS
    m = INET_RE.search(text)
    if m and m.group(1):
        ip = m.group(1)
    m = NETMASK_RE.search(text)
    if m and m.group(1):
        netmask = hex_netmask_to_dotted(m.group(1)) or DEFAULT_ADDRESS
    up = bool(UP_RE.search(text)) and not INACTIVE_RE.search(text)
    return InterfaceStatus(ip=ip, netmask=netmask, up=up)


def parse_lease_line(line: str, mac: str) -> Optional[str]:
    if not mac or mac.lower() not in line:
        return None
    m = LEASE_IP_RE.match(line)
    return m.group(1) if m else None


def parse_version(text: str) -> Optional[str]:
    m = VERSION_RE.search(text or '')
    return m.group(1).lower() if m else None


def network_address(ip: str, netmask: str) -> Optional[str]:
    try:
        net = ipaddress.IPv4Network(f'{ip}/{netmask}', strict=False)
    except ValueError:
        return None
    return str(net.network_address)


def same_network(ip_a: str, ip_b: str, netmask: str) -> bool:
    net_a = network_address(ip_a, netmask)
    return net_a is not None and net_a == network_address(ip_b, netmask)


def parse_json(text: str, fallback: Any = NO_FALLBACK) -> Any:
    """Decode a JSON document, returning ``fallback`` when it is empty or broken.

    Raises:
        ValueError: when the document cannot be decoded and no fallback
            was given.
    """
    if not (text or '').strip():
        if fallback is NO_FALLBACK:
            raise ValueError('empty JSON document')
        return fallback
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        if fallback is NO_FALLBACK:
            raise
        return fallback
