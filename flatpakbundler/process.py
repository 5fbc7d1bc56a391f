# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""External process invocation for flatpak-bundler.

Every call to flatpak or flatpak-builder goes through ProcessRunner. Commands
are started with an argument vector (never through a shell), their output is
captured and logged at debug level, and the exit status decides the result.

Design Principles:
    - Exit status 0 is success; anything else raises ToolError unless the
      caller passed allow_fail=True, in which case run() returns False
    - Captured stdout/stderr travel on the ToolError for diagnostics but
      are never parsed
    - A timeout (optional) kills the child and raises ToolError
    - Cancelling the awaiting task kills the child before propagating, so
      no process outlives the pipeline step that started it

Example:
    ```python
    from flatpakbundler.process import ProcessRunner, add_option

    runner = ProcessRunner(cwd=Path("/var/tmp/work"))
    args = ["info"]
    add_option(args, "user", True)
    args.append("org.freedesktop.Platform/x86_64/23.08")
    installed = await runner.run("flatpak", args, allow_fail=True)
    ```
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from flatpakbundler.exceptions import ToolError
from flatpakbundler.logging import (
    PROCESS_PREFIX,
    Logger,
    get_global_logger,
    log_command,
    log_tool_output,
)

__all__ = ["ProcessRunner", "add_option"]


def add_option(args: list[str], name: str, value: str | bool | None) -> None:
    """Append ``--name [value]`` to an argument vector.

    Falsy values add nothing; ``True`` adds a bare flag.

    Example:
        ```python
        args = ["build-export"]
        add_option(args, "arch", "x86_64")   # --arch x86_64
        add_option(args, "runtime", True)    # --runtime
        add_option(args, "subject", None)    # (nothing)
        ```
    """
    if not value:
        return
    args.append(f"--{name}")
    if value is not True:
        args.append(str(value))


class ProcessRunner:
    """Runs external commands for one bundling run.

    Args:
        cwd: Working directory for every command (the run's working dir).
        timeout: Per-invocation limit in seconds. None means no limit.
        logger: Logger for command lines and captured output.
            Default: the global logger.
    """

    def __init__(
        self,
        cwd: Path | None = None,
        timeout: float | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.cwd = cwd
        self.timeout = timeout
        self._logger = logger

    @property
    def logger(self) -> Logger:
        return self._logger if self._logger is not None else get_global_logger()

    async def run(
        self,
        command: str,
        args: list[str],
        *,
        allow_fail: bool = False,
    ) -> bool:
        """Run ``command`` with ``args`` and wait for it to exit.

        Args:
            command: Executable name or path (e.g., "flatpak").
            args: Argument vector, not including the executable.
            allow_fail: If True, a non-zero exit returns False instead of
                raising.

        Returns:
            True if the command exited with status 0, False if it failed and
            allow_fail is set.

        Raises:
            ToolError: If the command cannot be started, times out, or exits
                non-zero without allow_fail.
        """
        logger = self.logger
        log_command(logger, command, args)

        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(self.cwd) if self.cwd is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as err:
            raise ToolError(
                f"{command} could not be started: {err}",
                command=command,
                args=args,
            ) from err

        try:
            stdout_data, stderr_data = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as err:
            await self._kill(proc)
            raise ToolError(
                f"{command} timed out after {self.timeout}s",
                command=command,
                args=args,
            ) from err
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        stdout = log_tool_output(logger, "stdout", stdout_data)
        stderr = log_tool_output(logger, "stderr", stderr_data)
        code = proc.returncode

        if code == 0:
            return True
        if allow_fail:
            logger.debug(
                PROCESS_PREFIX, f"{command} exited with status {code} (tolerated)"
            )
            return False

        message = f"{command} failed with status code {code}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        raise ToolError(
            message,
            command=command,
            args=args,
            returncode=code,
            stdout=stdout,
            stderr=stderr,
        )

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
