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

"""Exception hierarchy for flatpak-bundler.

This module defines a custom exception hierarchy that allows library users
to distinguish between the ways a bundling run can fail:

- ConfigError: Manifest or option problems (missing id/files, bad entries)
- FilesystemError: Directory creation, file copy or symlink failures
- DependencyError: A runtime/sdk/base install was requested but cannot be
  satisfied (no usable reference descriptor)
- ToolError: flatpak or flatpak-builder exited non-zero
- NetworkError: A remote reference descriptor could not be downloaded

All exceptions inherit from BundlerError, allowing users to catch every
bundler error with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from flatpakbundler.core import bundle_async
        from flatpakbundler.exceptions import ConfigError, ToolError

        try:
            result = await bundle_async(manifest, options)
        except ConfigError as e:
            print(f"Configuration error: {e}")
        except ToolError as e:
            print(f"{e.command} failed with status code {e.returncode}")
            print(e.stderr)
        ```
"""

from __future__ import annotations

__all__ = [
    "BundlerError",
    "ConfigError",
    "FilesystemError",
    "DependencyError",
    "ToolError",
    "NetworkError",
]


class BundlerError(Exception):
    """Base exception for all flatpak-bundler errors."""

    pass


class ConfigError(BundlerError):
    """Raised for manifest and option errors.

    This exception is raised before any filesystem or process side effect
    when:

    - The manifest has no ``id`` (or ``app-id``)
    - The manifest has no ``files`` list
    - A ``files`` or ``symlinks`` entry is not a (source, dest) pair
    - An option has an unsupported value (e.g., unknown build mode)
    - A recipe file cannot be parsed
    """

    pass


class FilesystemError(BundlerError):
    """Raised when a filesystem step of the pipeline fails.

    Covers working/build directory creation, copying declared files,
    creating declared symlinks and copying extra exports. No rollback is
    performed; the build directory is purged at the start of the next run.
    """

    pass


class DependencyError(BundlerError):
    """Raised when a runtime, sdk or base app cannot be installed.

    Example:
        ```python
        # auto_install_runtime=True, runtime not installed, no descriptor
        DependencyError("Cannot install org.freedesktop.Platform without flatpakref")
        ```
    """

    pass


class ToolError(BundlerError):
    """Raised when an external tool invocation fails.

    The captured output is kept on the exception for diagnostics; it is
    never parsed.

    Attributes:
        command: Executable that was invoked (e.g., "flatpak").
        args_list: Argument vector passed to the executable.
        returncode: Exit status, or None if the process never ran or was
            killed after a timeout.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        args: list[str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.args_list = list(args or [])
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class NetworkError(BundlerError):
    """Raised when a remote reference descriptor cannot be downloaded."""

    pass
