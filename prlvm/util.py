"""Shared helpers for subprocess execution and command formatting."""

from __future__ import annotations

import codecs
import os
import selectors
import shlex
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from loguru import logger

log = logger

ChunkCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{result.stderr}'.strip()
        )

    @property
    def stderr(self) -> str:
        return self.result.stderr


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def _stream_cmd(
    cmd: Sequence[str],
    on_chunk: ChunkCallback,
    env: Optional[dict[str, str]] = None,
) -> CmdResult:
    # Progress output is carriage-return delimited, so read raw chunks
    # instead of lines.
    p = subprocess.Popen(
        list(cmd),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )
    assert p.stdout is not None and p.stderr is not None
    buffers: dict[str, list[str]] = {'stdout': [], 'stderr': []}
    decoders = {
        'stdout': codecs.getincrementaldecoder('utf-8')(errors='replace'),
        'stderr': codecs.getincrementaldecoder('utf-8')(errors='replace'),
    }
    sel = selectors.DefaultSelector()
    sel.register(p.stdout, selectors.EVENT_READ, 'stdout')
    sel.register(p.stderr, selectors.EVENT_READ, 'stderr')
    with sel:
        while sel.get_map():
            for key, _ in sel.select():
                kind = key.data
                data = os.read(key.fd, 4096)
                if not data:
                    sel.unregister(key.fileobj)
                    tail = decoders[kind].decode(b'', final=True)
                    if tail:
                        buffers[kind].append(tail)
                        on_chunk(kind, tail)
                    continue
                text = decoders[kind].decode(data)
                if text:
                    buffers[kind].append(text)
                    on_chunk(kind, text)
    p.stdout.close()
    p.stderr.close()
    code = p.wait()
    return CmdResult(code, ''.join(buffers['stdout']), ''.join(buffers['stderr']))


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    env: Optional[dict[str, str]] = None,
    on_chunk: Optional[ChunkCallback] = None,
) -> CmdResult:
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    if on_chunk is not None:
        res = _stream_cmd(cmd, on_chunk, env=env)
    else:
        p = subprocess.run(
            list(cmd),
            capture_output=capture,
            text=True,
            env=env,
        )
        res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check and res.code != 0:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={} stdout={}',
            res.code,
            shell_join(cmd),
            res.stderr.strip(),
            res.stdout.strip(),
        )
        raise CmdError(cmd, res)
    if res.code == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shell_join(cmd))
    return res


def which(cmd: str) -> Optional[str]:
    from shutil import which as _which

    return _which(cmd)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))
