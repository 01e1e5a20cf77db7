"""Tests for test config."""

from __future__ import annotations

from pathlib import Path

from prlvm.config import DriverConfig, dump_toml, load, save


def test_dump_load_roundtrip(tmp_path: Path) -> None:
    cfg = DriverConfig()
    cfg.tools.prlctl = '/usr/local/bin/prlctl "x"'
    cfg.retry.max_attempts = 5
    cfg.retry.delay_s = 0.5
    cfg.retry.transient_codes = [255]
    cfg.retry.transient_patterns = ['Unable to connect']
    cfg.verbosity = 3
    fpath = tmp_path / 'prlvm.toml'
    save(fpath, cfg)

    cfg2 = load(fpath)
    assert cfg2.tools.prlctl == cfg.tools.prlctl
    assert cfg2.retry.max_attempts == 5
    assert cfg2.retry.delay_s == 0.5
    assert cfg2.retry.transient_codes == [255]
    assert cfg2.retry.transient_patterns == ['Unable to connect']
    assert cfg2.verbosity == 3


def test_dump_toml_verbosity_default_omitted() -> None:
    text = dump_toml(DriverConfig())
    assert 'verbosity =' not in text
    assert '[tools]' in text
    assert '[retry]' in text


def test_load_missing_file_gives_defaults(tmp_path: Path) -> None:
    cfg = load(tmp_path / 'absent.toml')
    assert cfg.tools.prlsrvctl == 'prlsrvctl'
    assert cfg.retry.max_attempts == 3


def test_load_ignores_unknown_keys(tmp_path: Path) -> None:
    fpath = tmp_path / 'prlvm.toml'
    fpath.write_text(
        '[tools]\nprlctl = "/opt/prlctl"\nbogus = 1\n[other]\nx = 2\n',
        encoding='utf-8',
    )
    cfg = load(fpath)
    assert cfg.tools.prlctl == '/opt/prlctl'
    assert not hasattr(cfg.tools, 'bogus')


def test_expanded_paths_expands_env(monkeypatch) -> None:
    monkeypatch.setenv('PRLVM_TEST_DIR', '/tmp/prlvm-x')
    cfg = DriverConfig()
    cfg.paths.dhcp_leases = '$PRLVM_TEST_DIR/leases'
    out = cfg.expanded_paths()
    assert out.paths.dhcp_leases == '/tmp/prlvm-x/leases'
