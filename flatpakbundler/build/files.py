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

"""Installing declared files into the build tree.

The install root of the app (``/app`` at runtime) is ``<build_dir>/files``
while building. This module fills it between the structure-creation and
finish steps of the pipeline.

Private Helpers:
    - _install_path: Map an install-root path to its place in the build tree
    - _copy_one: Copy one file or directory tree
    - _symlink_one: Create one symlink
    - _find_desktop_file: Locate the single desktop entry, if there is one
    - _read_icon_name: Read Icon= from a desktop entry

Design Principles:
    - Copies and symlinks fan out concurrently; the first failure cancels the
      rest and aborts the step with FilesystemError (no rollback)
    - Symlink failures are as fatal as copy failures
    - Desktop entry renaming is opportunistic: zero or several desktop
      entries means there is nothing unambiguous to rename, so the step is
      skipped
    - Icon renaming substitutes the id for the old icon name anywhere in an
      icon file's name (plain substring match)
"""

from __future__ import annotations

import asyncio
import configparser
import os
from pathlib import Path, PurePosixPath
import shutil

from flatpakbundler.build.tasks import gather_all
from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.exceptions import FilesystemError
from flatpakbundler.logging import get_global_logger

INSTALL_ROOT = PurePosixPath("/app")
DESKTOP_GROUP = "Desktop Entry"


def files_dir(options: Options) -> Path:
    """Return the install root inside the build tree."""
    return options.require("build_dir") / "files"


def _install_path(root: Path, install_path: str) -> Path:
    """Map ``/bin/hello`` (or ``bin/hello``) to ``<root>/bin/hello``."""
    return root / install_path.lstrip("/")


def _copy_one(source: Path, dest: Path, into_dir: bool) -> None:
    if into_dir:
        dest.mkdir(parents=True, exist_ok=True)
        dest = dest / source.name
    else:
        dest.parent.mkdir(parents=True, exist_ok=True)

    if source.is_dir():
        shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
    else:
        shutil.copy2(source, dest)


def _symlink_one(target: str, link: Path) -> None:
    link.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(target, link)


async def materialize_files(options: Options, manifest: Manifest) -> None:
    """Copy every declared (source, dest) pair into the install root.

    A dest ending in ``/`` is a directory the source is copied into under
    its own name; any other dest is the exact target path.

    Raises:
        ConfigError: If options have not been provisioned (no build_dir).
        FilesystemError: If any copy fails. Copies that completed stay.
    """
    logger = get_global_logger()
    root = files_dir(options)

    async def copy(source: str, dest: str) -> None:
        target = _install_path(root, dest)
        logger.verbose("FILES", f"Copying {source} to {target}")
        try:
            await asyncio.to_thread(
                _copy_one, Path(source), target, dest.endswith("/")
            )
        except OSError as err:
            raise FilesystemError(f"Failed to copy {source} to {dest}: {err}") from err

    await gather_all(copy(source, dest) for source, dest in manifest.files)
    logger.verbose("FILES", f"[OK] Copied {len(manifest.files)} file(s)")


async def create_symlinks(options: Options, manifest: Manifest) -> None:
    """Create every declared (target, link) symlink in the install root.

    Targets are absolute paths inside the sandbox (``/app/<target>``), so
    links resolve correctly once the app runs.

    Raises:
        FilesystemError: If any symlink cannot be created.
    """
    if not manifest.symlinks:
        return

    logger = get_global_logger()
    root = files_dir(options)

    async def link(target: str, link_path: str) -> None:
        sandbox_target = str(INSTALL_ROOT / target.lstrip("/"))
        dest = _install_path(root, link_path)
        logger.verbose("FILES", f"Symlinking {sandbox_target} at {dest}")
        try:
            await asyncio.to_thread(_symlink_one, sandbox_target, dest)
        except OSError as err:
            raise FilesystemError(
                f"Failed to create symlink {link_path} -> {sandbox_target}: {err}"
            ) from err

    await gather_all(link(target, link_path) for target, link_path in manifest.symlinks)
    logger.verbose("FILES", f"[OK] Created {len(manifest.symlinks)} symlink(s)")


async def copy_exports(options: Options, manifest: Manifest) -> None:
    """Copy ``extra_exports`` from the install root into ``<build>/export``.

    Raises:
        FilesystemError: If any export cannot be copied.
    """
    if not manifest.extra_exports:
        return

    logger = get_global_logger()
    root = files_dir(options)
    export_root = options.require("build_dir") / "export"

    async def export(path: str) -> None:
        source = _install_path(root, path)
        dest = _install_path(export_root, path)
        logger.verbose("FILES", f"Exporting {source} to {dest}")
        try:
            await asyncio.to_thread(_copy_one, source, dest, False)
        except OSError as err:
            raise FilesystemError(f"Failed to export {path}: {err}") from err

    await gather_all(export(path) for path in manifest.extra_exports)


# -------------------------------
# Desktop entry / icon renaming
# -------------------------------


def _find_desktop_file(applications_dir: Path) -> Path | None:
    """Return the only ``*.desktop`` file, or None if there are 0 or 2+."""
    if not applications_dir.is_dir():
        return None
    candidates = sorted(p for p in applications_dir.glob("*.desktop") if p.is_file())
    if len(candidates) != 1:
        return None
    return candidates[0]


def _read_icon_name(desktop_file: Path) -> str | None:
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        parser.read(desktop_file, encoding="utf-8")
    except configparser.Error:
        return None
    if not parser.has_option(DESKTOP_GROUP, "Icon"):
        return None
    icon = parser.get(DESKTOP_GROUP, "Icon").strip()
    return icon or None


def _set_icon_name(desktop_file: Path, icon: str) -> None:
    """Rewrite the Icon= line in place, leaving every other line as is."""
    lines = desktop_file.read_text(encoding="utf-8").splitlines(keepends=True)
    in_group = False
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("["):
            in_group = stripped == f"[{DESKTOP_GROUP}]"
        elif in_group and stripped.split("=", 1)[0].strip() == "Icon":
            ending = "\n" if line.endswith("\n") else ""
            lines[index] = f"Icon={icon}{ending}"
    desktop_file.write_text("".join(lines), encoding="utf-8")


def rename_icon_files(icons_dir: Path, old_name: str, new_name: str) -> list[Path]:
    """Rename icon files whose file name contains ``old_name``.

    Every occurrence of ``old_name`` in the file name is replaced; the
    directory and the rest of the name (extension included) are kept.
    Matching is a plain substring match: with ``old_name="app"``, a file
    called ``happy.png`` is renamed too.

    Every target is checked before anything is renamed, so a collision
    leaves the icon tree untouched.

    Returns:
        The new paths of the renamed files.

    Raises:
        FilesystemError: If a target name already exists or two icons would
            be renamed to the same path.
    """
    if not icons_dir.is_dir():
        return []
    plan = [
        (path, path.with_name(path.name.replace(old_name, new_name)))
        for path in sorted(icons_dir.rglob("*"))
        if old_name in path.name and not path.is_dir()
    ]
    targets: set[Path] = set()
    for path, target in plan:
        if target in targets or target.exists():
            raise FilesystemError(
                f"Cannot rename icon {path} to {target.name}: target already exists"
            )
        targets.add(target)
    for path, target in plan:
        path.rename(target)
    return [target for _, target in plan]


def _rename(options: Options, manifest: Manifest) -> None:
    logger = get_global_logger()
    share = files_dir(options) / "share"

    desktop_file = _find_desktop_file(share / "applications")
    if desktop_file is None:
        logger.verbose("FILES", "No single desktop file found, skipping rename")
        return

    app_id = manifest.id
    icon = _read_icon_name(desktop_file)
    desktop_name = f"{app_id}.desktop"
    if desktop_file.name != desktop_name:
        target = desktop_file.with_name(desktop_name)
        logger.verbose("FILES", f"Renaming {desktop_file.name} to {desktop_name}")
        desktop_file = desktop_file.rename(target)

    if icon is None or icon == app_id:
        return

    for path in rename_icon_files(share / "icons", icon, app_id):
        logger.verbose("FILES", f"Renamed icon to {path.name}")
    _set_icon_name(desktop_file, app_id)
    logger.verbose("FILES", f"Updated Icon={app_id} in {desktop_file.name}")


async def rename_files(options: Options, manifest: Manifest) -> None:
    """Rename the desktop entry and its icons to match the app id.

    Runs only when ``options.rename_files`` is set. The single desktop file
    in ``share/applications`` becomes ``<id>.desktop``; if its Icon= name
    differs from the id, matching icon files under ``share/icons`` are
    renamed and Icon= is rewritten to the id.

    Raises:
        FilesystemError: If a rename fails, an icon target already exists or
            the desktop file is not valid UTF-8. A bad desktop file is
            detected before anything is renamed.
    """
    if not options.rename_files:
        return
    try:
        await asyncio.to_thread(_rename, options, manifest)
    except UnicodeDecodeError as err:
        raise FilesystemError(f"Desktop file is not valid UTF-8: {err}") from err
    except OSError as err:
        raise FilesystemError(f"Failed to rename desktop/icon files: {err}") from err
