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

"""Working directory provisioning.

Design Principles:
    - The working directory exists before any path derived from it is
      computed
    - An unset working directory becomes a fresh temporary directory; with
      clean_tmpdirs it is removed at interpreter exit (best effort, failures
      are logged)
    - A given working directory is reused; only its build/ subtree is purged
      and recreated, so a failed earlier run cannot leak files into this one
    - repo/ is created when missing and otherwise left as is
    - Temporary directories default to /var/tmp, which (unlike a tmpfs /tmp)
      supports the extended attributes the toolchain relies on
"""

from __future__ import annotations

import asyncio
import atexit
from dataclasses import replace
from pathlib import Path
import shutil
import tempfile

from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.exceptions import FilesystemError

DEFAULT_TMPDIR_BASE = Path("/var/tmp")
TMPDIR_PREFIX = "flatpak-bundler-"


def _cleanup_tmpdir(path: Path) -> None:
    """Remove a temporary working directory; registered with atexit."""
    from flatpakbundler.logging import get_global_logger

    logger = get_global_logger()
    try:
        shutil.rmtree(path)
        logger.verbose("WORKDIR", f"Removed temporary directory: {path}")
    except FileNotFoundError:
        pass
    except OSError as err:
        logger.verbose(
            "WORKDIR", f"Could not remove temporary directory {path}: {err}"
        )


def _make_tmpdir(options: Options) -> Path:
    base = options.tmpdir_base
    if base is None and DEFAULT_TMPDIR_BASE.is_dir():
        base = DEFAULT_TMPDIR_BASE
    path = Path(tempfile.mkdtemp(prefix=TMPDIR_PREFIX, dir=base))
    if options.clean_tmpdirs:
        atexit.register(_cleanup_tmpdir, path)
    return path


def _reset_build_dir(build_dir: Path) -> None:
    """Remove and recreate the build directory."""
    if build_dir.exists() or build_dir.is_symlink():
        if build_dir.is_dir() and not build_dir.is_symlink():
            shutil.rmtree(build_dir)
        else:
            build_dir.unlink()
    build_dir.mkdir(parents=True)


def _provision(options: Options, manifest: Manifest) -> Options:
    from flatpakbundler.logging import get_global_logger

    logger = get_global_logger()

    if options.working_dir is None:
        working_dir = _make_tmpdir(options)
        logger.verbose(
            "WORKDIR", f"Created temporary working directory: {working_dir}"
        )
        options = replace(options, working_dir=working_dir)
    else:
        options.working_dir.mkdir(parents=True, exist_ok=True)
        logger.verbose("WORKDIR", f"Using working directory: {options.working_dir}")

    options = options.with_defaults(manifest)

    build_dir = options.require("build_dir")
    if build_dir.exists():
        logger.verbose("WORKDIR", f"Removing existing build: {build_dir}")
    _reset_build_dir(build_dir)
    logger.verbose("WORKDIR", f"Created build directory: {build_dir}")

    # An existing repo is kept; build-export adds commits to it
    repo_dir = options.require("repo_dir")
    repo_dir.mkdir(parents=True, exist_ok=True)
    logger.verbose("WORKDIR", f"Using repo directory: {repo_dir}")

    return options


async def ensure_working_dir(options: Options, manifest: Manifest) -> Options:
    """Make sure the working, build and repo directories exist.

    Args:
        options: Normalized options. working_dir may be unset.
        manifest: Normalized manifest (used to fill remaining defaults).

    Returns:
        Options with working_dir, build_dir, repo_dir and manifest_path all
        set to absolute paths.

    Raises:
        FilesystemError: If a directory cannot be created or the previous
            build cannot be removed.
    """
    try:
        return await asyncio.to_thread(_provision, options, manifest)
    except OSError as err:
        raise FilesystemError(f"Failed to prepare working directory: {err}") from err
