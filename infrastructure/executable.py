"""
External command runner
Runs a binary as a child process and captures its output
"""
import asyncio
import logging
import os
from typing import Dict, Mapping, Optional

from infrastructure.errors import CancellationError, ExternalProcessError

logger = logging.getLogger(__name__)


class Executable:
    """Runs one external binary with per-call arguments, stdin and env"""

    def __init__(self, binary: str = "helm", timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def _build_env(self, env: Optional[Mapping[str, str]]) -> Dict[str, str]:
        merged = dict(os.environ)
        if env:
            merged.update(env)
        return merged

    async def execute(self,
                      *args: str,
                      stdin: Optional[bytes] = None,
                      env: Optional[Mapping[str, str]] = None,
                      timeout: Optional[float] = None) -> bytes:
        """Run the binary and return its stdout

        Raises ExternalProcessError when the process cannot be started or
        exits non-zero, and CancellationError when ``timeout`` (or the
        default timeout) expires. The child is killed in both the timeout
        and the task-cancellation case.
        """

        cmd = [self.binary, *args]
        timeout = self.timeout if timeout is None else timeout
        logger.debug("Running %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._build_env(env),
            )
        except OSError as e:
            raise ExternalProcessError(cmd, None, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(input=stdin), timeout=timeout)
        except asyncio.TimeoutError as e:
            await self._terminate(process)
            raise CancellationError(f"{' '.join(cmd)} timed out after {timeout}s") from e
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip() or \
                stdout.decode("utf-8", errors="replace").strip()
            raise ExternalProcessError(cmd, process.returncode, message)

        return stdout

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                # Exited between the check and the kill
                pass
        await process.wait()
        logger.debug("Killed %s (pid %s)", self.binary, process.pid)
