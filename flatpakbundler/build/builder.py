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

"""Build structure creation and finalization.

Two toolchain shapes are supported, selected by ``options.build_mode``:

- ``builder`` (default): flatpak-builder is called twice on the generated
  manifest, first with ``--build-only`` (creates the build tree and runs any
  modules), then with ``--finish-only`` (applies finish-args and validates
  the installed files).
- ``build-init``: ``flatpak build-init`` creates the build tree for the
  id/sdk/runtime, ``flatpak build-finish`` finalizes it with the command and
  finish-args.

Either way the declared files are installed between the two calls, so the
finish step sees them.
"""

from __future__ import annotations

from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.process import ProcessRunner, add_option


async def flatpak_builder(
    options: Options, manifest: Manifest, runner: ProcessRunner, *, finish: bool
) -> None:
    """Run one flatpak-builder pass (``--build-only`` or ``--finish-only``).

    Raises:
        ToolError: If flatpak-builder exits non-zero.
    """
    args: list[str] = []
    add_option(args, "arch", options.arch)
    if not finish:
        add_option(args, "force-clean", True)
    # Nothing to compile: allow building on a machine without the sdk
    if not manifest.modules:
        add_option(args, "allow-missing-runtimes", True)
    add_option(args, "finish-only" if finish else "build-only", True)
    args.extend(options.extra_flatpak_builder_args)

    args.append(str(options.build_dir))
    args.append(str(options.manifest_path))
    await runner.run("flatpak-builder", args)


async def build_init(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> None:
    """Create the build tree with ``flatpak build-init``.

    Raises:
        ToolError: If flatpak exits non-zero.
    """
    args = ["build-init"]
    add_option(args, "arch", options.arch)
    add_option(args, "base", manifest.base)
    add_option(args, "base-version", manifest.base_version)
    args.append(str(options.build_dir))
    args.append(manifest.id)
    args.append(str(manifest.sdk))
    args.append(str(manifest.runtime))
    if manifest.runtime_version:
        args.append(manifest.runtime_version)
    await runner.run("flatpak", args)


async def build_finish(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> None:
    """Finalize the build tree with ``flatpak build-finish``.

    Raises:
        ToolError: If flatpak exits non-zero.
    """
    args = ["build-finish"]
    add_option(args, "command", manifest.command)
    args.extend(manifest.finish_args)
    args.append(str(options.build_dir))
    await runner.run("flatpak", args)


async def create_structure(
    options: Options, manifest: Manifest, runner: ProcessRunner
) -> None:
    """First half of the build: create the build tree."""
    if options.build_mode == "build-init":
        await build_init(options, manifest, runner)
    else:
        await flatpak_builder(options, manifest, runner, finish=False)


async def finalize(options: Options, manifest: Manifest, runner: ProcessRunner) -> None:
    """Second half of the build: finalize the populated build tree."""
    if options.build_mode == "build-init":
        await build_finish(options, manifest, runner)
    else:
        await flatpak_builder(options, manifest, runner, finish=True)
