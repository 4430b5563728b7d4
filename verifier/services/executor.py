"""
Command execution capability.

Build and test commands are run as argument vectors (never through a shell)
with a hard timeout. On timeout the whole process group is killed and the
result is reported with ``timed_out=True``.
"""

import asyncio
import logging
import os
import signal
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from verifier.models.verification import CommandResult

logger = logging.getLogger(__name__)


DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024


class CommandExecutor(ABC):
    """Runs a command in a working directory and captures its output."""

    @abstractmethod
    async def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: str,
        timeout: float,
    ) -> CommandResult:
        """
        Execute ``command`` with ``args`` in ``cwd``.

        Args:
            command: Executable name or path
            args: Arguments passed verbatim
            cwd: Working directory
            timeout: Seconds before the process is killed

        Returns:
            CommandResult with captured output
        """


class SubprocessExecutor(CommandExecutor):
    """CommandExecutor backed by asyncio subprocesses."""

    def __init__(self, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES, env: Optional[dict] = None):
        self._max_output_bytes = max_output_bytes
        self._env = env

    def _decode(self, data: Optional[bytes]) -> str:
        if not data:
            return ""
        if len(data) > self._max_output_bytes:
            data = data[-self._max_output_bytes:]
        return data.decode("utf-8", errors="replace")

    async def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: str,
        timeout: float,
    ) -> CommandResult:
        logger.debug(f"Running {command} {' '.join(args)} in {cwd} (timeout {timeout}s)")

        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._env,
            start_new_session=True,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            self._kill(process)
            await process.wait()
            logger.warning(f"Command {command} timed out after {timeout}s in {cwd}")
            return CommandResult(
                stdout="",
                stderr=f"Command timed out after {timeout:g} seconds",
                exit_code=None,
                timed_out=True,
            )
        except asyncio.CancelledError:
            self._kill(process)
            raise

        return CommandResult(
            stdout=self._decode(stdout),
            stderr=self._decode(stderr),
            exit_code=process.returncode,
            timed_out=False,
        )

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
