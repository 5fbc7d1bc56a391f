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

"""Logging interface for flatpak-bundler.

Library modules log through this interface so they never depend on the CLI.
The logger can be configured globally or passed as a parameter.

The logger supports three output levels:
- Step: Always printed (pipeline phase progress, e.g. ``[6/12] Copying files...``)
- Verbose: Only printed when verbose mode is enabled
- Debug: Only printed when debug mode is enabled (implies verbose)

Tool invocations are logged at debug level under the ``PROCESS`` prefix:
the command line as ``$ flatpak ...``, then every captured output line
marked with the shell descriptor it came from (``1>`` stdout, ``2>``
stderr). log_command() and log_tool_output() produce that format.

Example:
    Configure global logger:
        ```python
        from flatpakbundler.logging import get_logger, set_global_logger

        set_global_logger(get_logger(verbose=True, debug=True))
        ```

    Use in library code:
        ```python
        from flatpakbundler.logging import get_global_logger, log_command

        logger = get_global_logger()
        logger.step(4, 12, "Writing manifest...")
        logger.verbose("REFS", "Found install of org.freedesktop.Sdk")
        log_command(logger, "flatpak", ["info", "--user", "org.freedesktop.Sdk"])
        ```

    Debug output of a failing install:
        ```
        [PROCESS] $ flatpak install --user --noninteractive --from rt.flatpakref
        [PROCESS] 2> error: Unable to load summary from remote flathub
        ```

Note:
    The default logger is silent, so library functions print nothing unless
    explicitly configured. The CLI configures the global logger when a
    command is executed.
"""

from __future__ import annotations

import shlex
import sys
from typing import Protocol, TextIO

PROCESS_PREFIX = "PROCESS"

# Output stream name -> marker shown in front of each captured line
STREAM_MARKERS = {"stdout": "1>", "stderr": "2>"}


class Logger(Protocol):
    """Protocol for logger implementations."""

    def step(self, step: int, total: int, message: str) -> None:
        """Report entry into a pipeline phase.

        Args:
            step: Current phase number (1-based).
            total: Number of phases in this run.
            message: Phase description.
        """
        ...

    def verbose(self, prefix: str, message: str) -> None:
        """Print a verbose log message.

        Args:
            prefix: Component prefix (e.g., "REFS", "FILES", "WORKDIR").
            message: Log message.
        """
        ...

    def debug(self, prefix: str, message: str) -> None:
        """Print a debug log message.

        Args:
            prefix: Component prefix (e.g., "PROCESS", "CONFIG").
            message: Log message. May span several lines.
        """
        ...


class DefaultLogger:
    """Console logger used by the CLI.

    Multi-line messages (manifest dumps, tool stderr) are printed one line
    at a time, each with its own ``[PREFIX]``. Step lines are flushed
    immediately.

    Args:
        verbose: If True, print verbose messages.
        debug: If True, print debug messages (implies verbose).
        stream: Output stream. Default: sys.stdout at the time of writing.
    """

    def __init__(
        self, verbose: bool = False, debug: bool = False, stream: TextIO | None = None
    ) -> None:
        self._verbose = verbose or debug
        self._debug = debug
        self._stream = stream

    def _write(self, text: str, flush: bool = False) -> None:
        print(text, file=self._stream or sys.stdout, flush=flush)

    def _lines(self, prefix: str, message: str) -> None:
        for line in message.splitlines() or [""]:
            self._write(f"[{prefix}] {line}")

    def step(self, step: int, total: int, message: str) -> None:
        self._write(f"[{step}/{total}] {message}", flush=True)

    def verbose(self, prefix: str, message: str) -> None:
        if self._verbose:
            self._lines(prefix, message)

    def debug(self, prefix: str, message: str) -> None:
        if self._debug:
            self._lines(prefix, message)


class SilentLogger:
    """Logger that suppresses all output (the library default)."""

    def step(self, step: int, total: int, message: str) -> None:
        pass

    def verbose(self, prefix: str, message: str) -> None:
        pass

    def debug(self, prefix: str, message: str) -> None:
        pass


def log_command(logger: Logger, command: str, args: list[str]) -> None:
    """Log a tool invocation as a shell-quoted ``$ command args...`` line."""
    logger.debug(PROCESS_PREFIX, f"$ {shlex.join([command, *args])}")


def log_tool_output(logger: Logger, stream: str, data: bytes) -> str:
    """Decode captured tool output and log each line with its stream marker.

    Args:
        logger: Logger to write to (debug level).
        stream: "stdout" or "stderr".
        data: Raw bytes captured from the tool.

    Returns:
        The decoded text. Undecodable bytes are replaced, never raised.

    Example:
        ```python
        log_tool_output(logger, "stderr", b"error: No remote refs found\\n")
        # [PROCESS] 2> error: No remote refs found
        ```
    """
    marker = STREAM_MARKERS[stream]
    text = data.decode("utf-8", errors="replace")
    for line in text.splitlines():
        logger.debug(PROCESS_PREFIX, f"{marker} {line}")
    return text


# Global logger instance (defaults to silent)
_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Get a console logger with the given verbosity."""
    return DefaultLogger(verbose=verbose, debug=debug)


def get_global_logger() -> Logger:
    """Return the logger used by functions that were not given one."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Set the global logger instance.

    Args:
        logger: Logger instance to use as the global logger.

    Note:
        This affects every library function that does not receive a logger
        explicitly, and is the only process-wide state this package keeps.
    """
    global _global_logger
    _global_logger = logger
