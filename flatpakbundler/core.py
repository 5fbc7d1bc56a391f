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

"""Core orchestration for flatpak-bundler.

This module sequences one bundling run. Phases run strictly one after the
other, each only once the previous one has succeeded:

    NORMALIZE -> PROVISION_DIRS -> ENSURE_RUNTIME -> ENSURE_SDK -> ENSURE_BASE
    -> WRITE_MANIFEST -> BUILD_ONLY / BUILD_INIT -> MATERIALIZE_FILES
    -> CREATE_SYMLINKS -> RENAME_FILES -> FINISH_ONLY / BUILD_FINISH
    -> COPY_EXPORTS -> EXPORT -> BUNDLE -> DONE

- ENSURE_* phases are skipped when the matching auto_install_* option is
  off (the default when the manifest has no descriptor for it).
- RENAME_FILES runs only with ``rename_files``; COPY_EXPORTS only when the
  manifest lists extra exports.
- BUNDLE runs only when ``bundle_path`` is set; otherwise the run ends
  successfully after EXPORT.
- The first failure ends the run and reaches the caller unchanged.

Design Principles:

- Manifest and Options are owned by one run; nothing is shared between runs
  except the global logger
- Concurrent runs are safe only with distinct working directories
- Errors are exceptions in the async API; the callback API turns the single
  outcome into exactly one callback invocation

Example:
    Async usage:
        ```python
        from flatpakbundler.core import bundle_async

        result = await bundle_async(
            {"id": "org.world.Hello", "files": [["hello", "/bin/hello"]]},
            {"bundlePath": "hello.flatpak"},
        )
        print(result.bundle_path)
        ```

    Callback usage:
        ```python
        from flatpakbundler.core import bundle

        def done(error, options=None, manifest=None):
            if error:
                print(f"Error: {error}")
            else:
                print(f"Bundle: {options.bundle_path}")

        bundle(manifest, options, done)
        ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
import json
from pathlib import Path
from typing import Any

from flatpakbundler.build.builder import create_structure, finalize
from flatpakbundler.build.exporter import build_bundle, export_repo
from flatpakbundler.build.files import (
    copy_exports,
    create_symlinks,
    materialize_files,
    rename_files,
)
from flatpakbundler.build.refs import ensure_base, ensure_runtime, ensure_sdk
from flatpakbundler.build.workdir import ensure_working_dir
from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.config.normalize import normalize
from flatpakbundler.exceptions import FilesystemError
from flatpakbundler.logging import get_global_logger
from flatpakbundler.process import ProcessRunner
from flatpakbundler.results import BundleResult

TOTAL_STEPS = 9

BundleCallback = Callable[..., Any]


def write_manifest(options: Options, manifest: Manifest) -> None:
    """Write the manifest JSON read by the toolchain.

    Raises:
        ConfigError: If options have no manifest_path.
        FilesystemError: If the file cannot be written.
    """
    manifest_path = options.require("manifest_path")
    text = json.dumps(manifest.to_json_dict(), indent=2)
    try:
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        manifest_path.write_text(text, encoding="utf-8")
    except OSError as err:
        raise FilesystemError(
            f"Failed to write manifest {manifest_path}: {err}"
        ) from err


async def bundle_async(
    manifest: Manifest | Mapping[str, Any],
    options: Options | Mapping[str, Any] | None = None,
    *,
    runner: ProcessRunner | None = None,
    base_dir: Path | None = None,
) -> BundleResult:
    """Run the complete bundle pipeline.

    Args:
        manifest: Raw manifest mapping (any key casing) or a Manifest.
        options: Raw options mapping (any key casing), an Options, or None.
        runner: Process runner to use. Default: a ProcessRunner working in
            the run's working directory with ``options.timeout``.
        base_dir: Directory relative paths are resolved against.
            Default: the current working directory.

    Returns:
        BundleResult with the final options, the manifest and the bundle path
            (None when no bundle_path was configured).

    Raises:
        ConfigError: If the manifest or options are invalid. Raised before
            any filesystem or process side effect.
        FilesystemError: If a directory, copy, symlink or rename step fails.
        DependencyError: If a runtime/sdk/base install cannot be satisfied.
        NetworkError: If a remote reference descriptor cannot be fetched.
        ToolError: If flatpak or flatpak-builder fails.
    """
    logger = get_global_logger()

    # NORMALIZE (no I/O)
    logger.step(1, TOTAL_STEPS, "Normalizing manifest and options...")
    manifest, options = normalize(manifest, options, base_dir=base_dir)

    # PROVISION_DIRS
    logger.step(2, TOTAL_STEPS, "Preparing working directory...")
    options = await ensure_working_dir(options, manifest)

    logger.debug(
        "CONFIG", f"Using manifest...\n{json.dumps(manifest.to_json_dict(), indent=2)}"
    )
    logger.debug(
        "CONFIG", f"Using options...\n{json.dumps(options.to_json_dict(), indent=2)}"
    )

    if runner is None:
        runner = ProcessRunner(cwd=options.working_dir, timeout=options.timeout)

    # ENSURE_RUNTIME / ENSURE_SDK / ENSURE_BASE, sequential for stable logs
    logger.step(3, TOTAL_STEPS, "Ensuring runtime, sdk and base app...")
    for kind, ensure in (
        ("runtime", ensure_runtime),
        ("sdk", ensure_sdk),
        ("base app", ensure_base),
    ):
        if not await ensure(options, manifest, runner):
            logger.verbose("REFS", f"Auto-install of {kind} disabled, skipping")

    # WRITE_MANIFEST
    logger.step(4, TOTAL_STEPS, "Writing manifest...")
    await asyncio.to_thread(write_manifest, options, manifest)
    logger.verbose("BUILD", f"Wrote manifest: {options.manifest_path}")

    # BUILD_ONLY / BUILD_INIT
    logger.step(5, TOTAL_STEPS, "Creating build structure...")
    await create_structure(options, manifest, runner)

    # MATERIALIZE_FILES / CREATE_SYMLINKS / RENAME_FILES
    logger.step(6, TOTAL_STEPS, "Installing files...")
    await materialize_files(options, manifest)
    await create_symlinks(options, manifest)
    await rename_files(options, manifest)

    # FINISH_ONLY / BUILD_FINISH / COPY_EXPORTS
    logger.step(7, TOTAL_STEPS, "Finishing build...")
    await finalize(options, manifest, runner)
    await copy_exports(options, manifest)

    # EXPORT
    logger.step(8, TOTAL_STEPS, "Exporting to repository...")
    await export_repo(options, manifest, runner)

    # BUNDLE
    logger.step(9, TOTAL_STEPS, "Creating bundle...")
    bundle_path = await build_bundle(options, manifest, runner)

    logger.verbose("BUILD", f"[OK] Bundling of {manifest.id} complete")

    return BundleResult(
        options=options,
        manifest=manifest,
        bundle_path=bundle_path,
        status="success",
    )


def bundle(
    manifest: Manifest | Mapping[str, Any],
    options: Options | Mapping[str, Any] | None,
    callback: BundleCallback,
    *,
    runner: ProcessRunner | None = None,
    base_dir: Path | None = None,
) -> None:
    """Run the bundle pipeline and report the outcome through ``callback``.

    The pipeline runs to completion on a fresh event loop, then ``callback``
    is invoked exactly once: ``callback(error)`` on failure, or
    ``callback(None, options, manifest)`` on success.

    Args:
        manifest: Raw manifest mapping (any key casing) or a Manifest.
        options: Raw options mapping (any key casing), an Options, or None.
        callback: Receives the outcome, see above.
        runner: Process runner to use (see bundle_async).
        base_dir: Directory relative paths are resolved against.

    Note:
        Must not be called from inside a running event loop; use
        bundle_async there.
    """
    try:
        result = asyncio.run(
            bundle_async(manifest, options, runner=runner, base_dir=base_dir)
        )
    except Exception as err:
        callback(err)
        return
    callback(None, result.options, result.manifest)
