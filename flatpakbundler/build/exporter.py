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

"""Repository export and single-file bundle creation.

Design Principles:
    - Export always runs once the build is finished
    - The bundle is only produced when ``options.bundle_path`` is set; the
      file flatpak writes is exactly that path
    - Signing, commit metadata and the remote repo URL are passed through
      to flatpak untouched

Example:
    ```python
    from flatpakbundler.build.exporter import build_bundle, export_repo

    await export_repo(options, manifest, runner)
    bundle_path = await build_bundle(options, manifest, runner)
    ```
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.exceptions import FilesystemError
from flatpakbundler.logging import get_global_logger
from flatpakbundler.process import ProcessRunner, add_option


async def export_repo(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> None:
    """Export the finished build into the repository with ``build-export``.

    Raises:
        ToolError: If flatpak exits non-zero.
    """
    args = ["build-export"]
    add_option(args, "arch", options.arch)
    add_option(args, "gpg-sign", options.gpg_sign)
    add_option(args, "gpg-homedir", options.gpg_homedir)
    add_option(args, "subject", options.subject)
    add_option(args, "body", options.body)
    add_option(args, "runtime", options.build_runtime)
    args.extend(options.extra_flatpak_build_export_args)

    args.append(str(options.repo_dir))
    args.append(str(options.build_dir))
    if manifest.branch:
        args.append(manifest.branch)
    await runner.run("flatpak", args)
    get_global_logger().verbose("EXPORT", f"[OK] Exported to {options.repo_dir}")


async def build_bundle(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> Path | None:
    """Create the single-file bundle with ``build-bundle``.

    Returns:
        The bundle path, or None when no bundle_path is configured (the
            step is skipped).

    Raises:
        FilesystemError: If the bundle's parent directory cannot be created.
        ToolError: If flatpak exits non-zero.
    """
    logger = get_global_logger()
    if options.bundle_path is None:
        logger.verbose("EXPORT", "No bundle path configured, skipping bundle")
        return None

    bundle_path = options.bundle_path
    args = ["build-bundle"]
    add_option(args, "arch", options.arch)
    add_option(args, "gpg-keys", options.gpg_keys)
    add_option(args, "gpg-homedir", options.gpg_homedir)
    add_option(args, "repo-url", options.bundle_repo_url)
    add_option(args, "runtime", options.build_runtime)
    args.extend(options.extra_flatpak_build_bundle_args)

    args.append(str(options.repo_dir))
    args.append(str(bundle_path))
    args.append(manifest.id)
    if manifest.branch:
        args.append(manifest.branch)

    try:
        await asyncio.to_thread(bundle_path.parent.mkdir, parents=True, exist_ok=True)
    except OSError as err:
        raise FilesystemError(
            f"Failed to create bundle directory {bundle_path.parent}: {err}"
        ) from err

    await runner.run("flatpak", args)
    logger.verbose("EXPORT", f"[OK] Bundle created: {bundle_path}")
    return bundle_path
