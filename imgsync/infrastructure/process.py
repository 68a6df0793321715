"""Async subprocess runner shared by the trivy, copa and cosign adapters."""

import asyncio
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import logfire


@dataclass(frozen=True)
class ProcessResult:
    args: tuple[str, ...]
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, lines: int = 20) -> str:
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return "\n".join(text.splitlines()[-lines:])


class ProcessRunner:
    """Runs one command to completion.

    The child is killed when the timeout expires or the caller is cancelled;
    nothing is left running behind a failed batch.

    Raises:
        OSError: If the executable cannot be started.
        TimeoutError: If the command outlives `timeout`.
    """

    async def run(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        merged_env = {**os.environ, **env} if env else None
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=merged_env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except (TimeoutError, asyncio.CancelledError):
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if timeout is not None:
                logfire.warn("Process killed", command=args[0], timeout=timeout)
            raise
        return ProcessResult(
            args=tuple(args), returncode=proc.returncode or 0, stdout=stdout, stderr=stderr
        )
