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

"""Runtime, sdk and base-app installation.

Before building, the bundler can make sure the runtime, sdk and base app the
manifest names are installed and current. Each dependency kind is handled
independently by ensure_ref:

1. Probe ``flatpak info`` at user and system scope concurrently. A non-zero
   exit means "not installed at that scope", not an error.
2. Not installed anywhere: install at user scope from the reference
   descriptor, without dependencies, for the build architecture.
3. Installed: update at the scope it was found in (user wins when both).
   A failed update is fatal.

Reference descriptors may be local ``.flatpakref`` files or http(s) URLs.
URLs are downloaded into ``<working_dir>/refs/`` first; either way the file
must contain a ``[Flatpak Ref]`` group before it is handed to flatpak.

Example:
    ```python
    from flatpakbundler.build.refs import ensure_runtime

    await ensure_runtime(options, manifest, runner)
    ```
"""

from __future__ import annotations

import asyncio
import configparser
from pathlib import Path

from flatpakbundler.build.tasks import gather_all
from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.exceptions import DependencyError
from flatpakbundler.io import download_file
from flatpakbundler.logging import get_global_logger
from flatpakbundler.process import ProcessRunner, add_option

FLATPAKREF_GROUP = "Flatpak Ref"


def _is_remote(descriptor: str) -> bool:
    return descriptor.startswith(("http://", "https://"))


def read_flatpakref(path: Path) -> dict[str, str]:
    """Parse a ``.flatpakref`` file and return its ``[Flatpak Ref]`` keys.

    Args:
        path: Local descriptor file.

    Returns:
        Mapping of key to value (e.g., Name, Branch, Url), keys as written.

    Raises:
        DependencyError: If the file is missing, unreadable or has no
            ``[Flatpak Ref]`` group.
    """
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        with path.open("r", encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as err:
        raise DependencyError(f"Invalid flatpakref {path}: {err}") from err

    if not parser.has_section(FLATPAKREF_GROUP):
        raise DependencyError(
            f"Invalid flatpakref {path}: no [{FLATPAKREF_GROUP}] group"
        )
    return dict(parser.items(FLATPAKREF_GROUP))


async def prepare_descriptor(options: Options, descriptor: str) -> str:
    """Return a local, validated path for a reference descriptor.

    Remote descriptors are downloaded into ``<working_dir>/refs/``.

    Raises:
        DependencyError: If the descriptor is not a valid flatpakref.
        NetworkError: If a remote descriptor cannot be downloaded.
    """
    logger = get_global_logger()

    if _is_remote(descriptor):
        refs_dir = options.require("working_dir") / "refs"
        path, _sha256 = await asyncio.to_thread(download_file, descriptor, refs_dir)
        logger.verbose("REFS", f"Fetched {descriptor} -> {path}")
    else:
        path = Path(descriptor)

    ref = await asyncio.to_thread(read_flatpakref, path)
    logger.verbose(
        "REFS",
        f"Descriptor {path.name}: {ref.get('Name', '?')} "
        f"branch {ref.get('Branch', '?')}",
    )
    return str(path)


async def _check_installed(
    runner: ProcessRunner,
    options: Options,
    ref_id: str,
    version: str | None,
    user: bool,
) -> bool:
    args = ["info"]
    add_option(args, "show-commit", True)
    add_option(args, "user" if user else "system", True)
    args.append("/".join(part for part in (ref_id, options.arch, version) if part))
    return await runner.run("flatpak", args, allow_fail=True)


async def ensure_ref(
    options: Options,
    descriptor: str | None,
    ref_id: str | None,
    version: str | None,
    runner: ProcessRunner,
) -> None:
    """Install or update one runtime/sdk/base-app reference.

    Args:
        options: Provisioned options (arch and working_dir set).
        descriptor: Reference descriptor to install from, if any.
        ref_id: Id of the reference (e.g., "org.freedesktop.Platform").
        version: Branch of the reference, if pinned.
        runner: Process runner for the flatpak invocations.

    Raises:
        DependencyError: If ref_id is unset, or the reference is not
            installed and there is no usable descriptor.
        ToolError: If the install or update command fails.
    """
    logger = get_global_logger()

    if not ref_id:
        raise DependencyError(
            f"Cannot install from {descriptor or 'an unset flatpakref'}: "
            f"the manifest names no id for it"
        )

    logger.verbose("REFS", f"Checking for install of {ref_id}")
    user_install, system_install = await gather_all(
        [
            _check_installed(runner, options, ref_id, version, user=True),
            _check_installed(runner, options, ref_id, version, user=False),
        ]
    )

    if not user_install and not system_install:
        logger.verbose(
            "REFS", f"No install of {ref_id} found, trying to install from {descriptor}"
        )
        if not descriptor:
            raise DependencyError(f"Cannot install {ref_id} without flatpakref")
        local_descriptor = await prepare_descriptor(options, descriptor)

        args = ["install"]
        add_option(args, "user", True)
        add_option(args, "noninteractive", True)
        add_option(args, "no-deps", True)
        add_option(args, "arch", options.arch)
        add_option(args, "from", local_descriptor)
        await runner.run("flatpak", args)
        logger.verbose("REFS", f"[OK] Installed {ref_id}")
        return

    scope = "user" if user_install else "system"
    logger.verbose("REFS", f"Found {scope} install of {ref_id}, trying to update")
    args = ["update"]
    add_option(args, scope, True)
    add_option(args, "noninteractive", True)
    add_option(args, "no-deps", True)
    add_option(args, "arch", options.arch)
    args.append(f"{ref_id}//{version}" if version else ref_id)
    await runner.run("flatpak", args)
    logger.verbose("REFS", f"[OK] Updated {ref_id}")


async def ensure_runtime(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> bool:
    """Install/update the runtime. Returns False when auto-install is off."""
    if not options.auto_install_runtime:
        return False
    get_global_logger().verbose("REFS", "Ensuring runtime is up to date")
    await ensure_ref(
        options,
        manifest.runtime_flatpakref,
        manifest.runtime,
        manifest.runtime_version,
        runner,
    )
    return True


async def ensure_sdk(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> bool:
    """Install/update the sdk. Returns False when auto-install is off."""
    if not options.auto_install_sdk:
        return False
    get_global_logger().verbose("REFS", "Ensuring sdk is up to date")
    # The sdk follows the runtime branch unless pinned separately
    await ensure_ref(
        options,
        manifest.sdk_flatpakref,
        manifest.sdk,
        manifest.sdk_version or manifest.runtime_version,
        runner,
    )
    return True


async def ensure_base(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> bool:
    """Install/update the base app. Returns False when auto-install is off."""
    if not options.auto_install_base:
        return False
    get_global_logger().verbose("REFS", "Ensuring base app is up to date")
    await ensure_ref(
        options,
        manifest.base_flatpakref,
        manifest.base,
        manifest.base_version,
        runner,
    )
    return True
