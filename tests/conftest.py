"""Shared fixtures: a scripted stand-in for the hypervisor tools."""

from __future__ import annotations

import json

import pytest

from prlvm.util import CmdResult


class FakeTool:
    """Answers ``run_cmd`` calls by the longest matching argument prefix.

    A response registered as a list is consumed one entry per call; the
    last entry repeats.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.sleeps: list[float] = []
        self._responses: list[tuple[tuple[str, ...], list, list[str]]] = []

    def on(self, *prefix: str, stdout='', stderr='', code=0, chunks=None):
        if not isinstance(stdout, str):
            stdout = json.dumps(stdout)
        self._responses.append(
            (prefix, [CmdResult(code, stdout, stderr)], list(chunks or []))
        )

    def on_seq(self, *prefix: str, results: list[CmdResult]):
        self._responses.append((prefix, list(results), []))

    def __call__(self, cmd, **kwargs) -> CmdResult:
        cmd = list(cmd)
        self.calls.append(cmd)
        best = None
        for prefix, results, chunks in self._responses:
            if tuple(cmd[: len(prefix)]) == prefix:
                if best is None or len(prefix) >= len(best[0]):
                    best = (prefix, results, chunks)
        if best is None:
            return CmdResult(0, '', '')
        _, results, chunks = best
        on_chunk = kwargs.get('on_chunk')
        if on_chunk is not None:
            for chunk in chunks:
                on_chunk('stdout', chunk)
        if len(results) > 1:
            return results.pop(0)
        return results[0]

    def commands(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


@pytest.fixture
def fake_tool(monkeypatch) -> FakeTool:
    tool = FakeTool()
    monkeypatch.setattr('prlvm.executor.run_cmd', tool)
    monkeypatch.setattr('prlvm.executor.time.sleep', tool.sleeps.append)
    return tool
