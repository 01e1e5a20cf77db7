"""Driver configuration: tool names, retry policy defaults, and host paths."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

from .util import expand

DEFAULT_DHCP_LEASES = '/Library/Preferences/Parallels/parallels_dhcp_leases'


@dataclass
class ToolsConfig:
    prlctl: str = 'prlctl'
    prlsrvctl: str = 'prlsrvctl'
    prl_disk_tool: str = 'prl_disk_tool'
    ifconfig: str = 'ifconfig'


@dataclass
class RetryConfig:
    max_attempts: int = 3
    delay_s: float = 1.0
    backoff: float = 2.0
    transient_codes: list[int] = field(default_factory=list)
    transient_patterns: list[str] = field(default_factory=list)


@dataclass
class PathsConfig:
    dhcp_leases: str = DEFAULT_DHCP_LEASES


@dataclass
class DriverConfig:
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    verbosity: int = 1

    def expanded_paths(self) -> 'DriverConfig':
        self.paths.dhcp_leases = expand(self.paths.dhcp_leases)
        return self


_SECTIONS = ('tools', 'retry', 'paths')


def config_path() -> Path:
    return Path(ub.Path.appdir('prlvm', type='config')) / 'config.toml'


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def _toml_value(val: object) -> str:
    if isinstance(val, bool):
        return 'true' if val else 'false'
    if isinstance(val, (int, float)):
        return repr(val)
    if isinstance(val, list):
        return '[' + ', '.join(_toml_value(item) for item in val) + ']'
    return f'"{_toml_escape(str(val))}"'


def dump_toml(cfg: DriverConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    for section, body in d.items():
        if isinstance(body, dict):
            lines.append(f'[{section}]')
            for k, v in body.items():
                lines.append(f'{k} = {_toml_value(v)}')
            lines.append('')
        elif section == 'verbosity' and body != 1:
            lines.insert(0, '')
            lines.insert(0, f'{section} = {body}')
    return '\n'.join(lines).rstrip() + '\n'


def from_dict(raw: dict) -> DriverConfig:
    cfg = DriverConfig()
    for section in _SECTIONS:
        body = raw.get(section, None)
        if isinstance(body, dict):
            obj = getattr(cfg, section)
            for k, v in body.items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def load(path: Path | None = None) -> DriverConfig:
    fpath = path or config_path()
    if not fpath.exists():
        return DriverConfig().expanded_paths()
    raw = tomllib.loads(fpath.read_text(encoding='utf-8'))
    return from_dict(raw).expanded_paths()


def save(path: Path, cfg: DriverConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_toml(cfg), encoding='utf-8')
