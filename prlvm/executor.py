"""Command executor for the hypervisor tools with retry and output streaming."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

from .config import DriverConfig, RetryConfig
from .errors import ToolOutputError
from .parse import NO_FALLBACK, parse_json
from .util import ChunkCallback, CmdError, CmdResult, run_cmd, shell_join

log = logger


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_s: float = 1.0
    backoff: float = 2.0
    transient_codes: tuple[int, ...] = ()
    transient_patterns: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> 'RetryPolicy':
        return cls(
            max_attempts=max(1, int(cfg.max_attempts)),
            delay_s=float(cfg.delay_s),
            backoff=float(cfg.backoff),
            transient_codes=tuple(int(c) for c in cfg.transient_codes),
            transient_patterns=tuple(cfg.transient_patterns),
        )

    def is_transient(self, result: CmdResult) -> bool:
        if result.code == 0:
            return False
        if not self.transient_codes and not self.transient_patterns:
            return True
        if result.code in self.transient_codes:
            return True
        return any(
            re.search(pat, result.stderr or '') for pat in self.transient_patterns
        )

    def delays(self) -> list[float]:
        """Sleep durations between consecutive attempts."""
        out = []
        delay = self.delay_s
        for _ in range(self.max_attempts - 1):
            out.append(delay)
            delay *= self.backoff
        return out


NO_RETRY = RetryPolicy(max_attempts=1)


@dataclass
class Executor:
    """Runs ``prlctl`` and friends, returning stdout or raising :class:`CmdError`."""

    config: DriverConfig = field(default_factory=DriverConfig)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy.from_config(self.config.retry)

    def tool_path(self, tool: str) -> str:
        return getattr(self.config.tools, tool, tool)

    def _policy(self, retry: RetryPolicy | bool | None) -> RetryPolicy:
        if isinstance(retry, RetryPolicy):
            return retry
        return self.retry_policy if retry else NO_RETRY

    def execute(
        self,
        *args: str,
        tool: str = 'prlctl',
        retry: RetryPolicy | bool | None = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        cmd = [self.tool_path(tool), *[str(a) for a in args]]
        policy = self._policy(retry)
        delays = policy.delays()
        attempt = 0
        while True:
            attempt += 1
            res = run_cmd(cmd, check=False, capture=True, on_chunk=on_chunk)
            if res.code == 0:
                return res.stdout
            if attempt <= len(delays) and policy.is_transient(res):
                log.warning(
                    'Transient failure (code={}) running {}; retry {}/{} in {}s',
                    res.code,
                    shell_join(cmd),
                    attempt,
                    len(delays),
                    delays[attempt - 1],
                )
                time.sleep(delays[attempt - 1])
                continue
            log.error(
                'Command failed code={} cmd={} stderr={}',
                res.code,
                shell_join(cmd),
                res.stderr.strip(),
            )
            raise CmdError(cmd, res)

    def raw(self, *args: str, tool: str = 'prlctl') -> CmdResult:
        cmd = [self.tool_path(tool), *[str(a) for a in args]]
        return run_cmd(cmd, check=False, capture=True)

    def json(
        self,
        *args: str,
        fallback: Any = NO_FALLBACK,
        tool: str = 'prlctl',
        retry: RetryPolicy | bool | None = None,
    ) -> Any:
        """Execute and decode stdout as JSON.

        Empty or broken documents yield ``fallback`` when one is given;
        otherwise a :class:`ToolOutputError` is raised.
        """
        out = self.execute(*args, tool=tool, retry=retry)
        try:
            return parse_json(out, fallback)
        except ValueError as ex:
            cmd = [self.tool_path(tool), *[str(a) for a in args]]
            raise ToolOutputError(cmd, CmdResult(0, out, str(ex))) from ex
