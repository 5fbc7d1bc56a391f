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

"""Typed manifest and option records.

Manifest describes *what* is packaged, Options describe *how and where* the
build happens. Both are frozen; every stage of the pipeline that needs a
changed copy goes through ``dataclasses.replace`` or ``with_defaults``.

Field names here are the canonical snake_case names. Key aliases
(camelCase, kebab-case, ``app-id``) are only understood by
flatpakbundler.config.normalize at the input boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
import platform
from typing import Any

from flatpakbundler.exceptions import ConfigError

DEFAULT_BRANCH = "master"

BUILD_MODES = ("builder", "build-init")

# Host (Node/Debian style) names -> flatpak names
ARCH_ALIASES = {
    "ia32": "i386",
    "x64": "x86_64",
    "amd64": "x86_64",
    "armv7l": "arm",
}


def flatpak_arch(arch: str) -> str:
    """Map a host architecture alias to the name flatpak expects.

    Unknown names pass through unchanged.

    Example:
        ```python
        flatpak_arch("x64")      # "x86_64"
        flatpak_arch("aarch64")  # "aarch64"
        ```
    """
    return ARCH_ALIASES.get(arch, arch)


def host_arch() -> str:
    """Return the flatpak name of the running machine's architecture."""
    return flatpak_arch(platform.machine().lower())


def _kebab(name: str) -> str:
    return name.replace("_", "-")


@dataclass(frozen=True)
class Manifest:
    """Normalized application manifest.

    Attributes:
        id: Reverse-domain application id (e.g., "org.world.Hello").
        files: (source, dest) install pairs. Sources are absolute, dests
            are relative to the install root (/app).
        branch: Branch the build is exported and bundled at.
        runtime: Runtime id (e.g., "org.freedesktop.Platform").
        runtime_version: Runtime branch.
        sdk: Sdk id.
        sdk_version: Sdk branch.
        base: Base application id.
        base_version: Base application branch.
        runtime_flatpakref: Descriptor to install the runtime from.
        sdk_flatpakref: Descriptor to install the sdk from.
        base_flatpakref: Descriptor to install the base app from.
        command: Command the finished app runs.
        symlinks: (target, link) pairs, both relative to the install root.
        extra_exports: Paths under the install root to copy into export/.
        modules: Build module descriptors, passed through untouched.
        finish_args: Passthrough arguments for the finish step.
        extra: Any other manifest keys, passed through to the manifest file.
    """

    id: str
    files: tuple[tuple[str, str], ...]
    branch: str = DEFAULT_BRANCH
    runtime: str | None = None
    runtime_version: str | None = None
    sdk: str | None = None
    sdk_version: str | None = None
    base: str | None = None
    base_version: str | None = None
    runtime_flatpakref: str | None = None
    sdk_flatpakref: str | None = None
    base_flatpakref: str | None = None
    command: str | None = None
    symlinks: tuple[tuple[str, str], ...] = ()
    extra_exports: tuple[str, ...] = ()
    modules: list[Any] | None = None
    finish_args: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the kebab-case mapping written to the manifest file.

        Unset optional fields and empty sequences are omitted. Keys from
        ``extra`` are merged at the top level without renaming.
        """
        data: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None or value == ():
                continue
            if isinstance(value, tuple):
                value = [list(v) if isinstance(v, tuple) else v for v in value]
            data[_kebab(f.name)] = value
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data


@dataclass(frozen=True)
class Options:
    """Build options.

    ``None`` means "unset"; with_defaults() fills those fields and never
    touches a value the caller provided.

    Attributes:
        working_dir: Root of every derived path. A temporary directory is
            allocated when unset.
        build_dir: Staging tree (default: <working_dir>/build).
        repo_dir: Repository the build is exported into
            (default: <working_dir>/repo).
        manifest_path: Where the generated manifest is written
            (default: <working_dir>/manifest.json).
        bundle_path: Output bundle. The bundle step only runs when set.
        arch: Flatpak architecture name (default: host architecture).
        auto_install_runtime: Install/update the runtime first
            (default: whether runtime_flatpakref is set).
        auto_install_sdk: Same for the sdk.
        auto_install_base: Same for the base app.
        clean_tmpdirs: Remove an allocated temporary working dir at exit.
        tmpdir_base: Parent for the temporary working dir.
        gpg_sign: Key id to sign the export with.
        gpg_keys: Key file embedded in the bundle.
        gpg_homedir: GPG home directory for signing.
        subject: Commit subject for the export.
        body: Commit body for the export.
        bundle_repo_url: Remote repository URL recorded in the bundle.
        build_runtime: Export and bundle a runtime instead of an app.
        build_mode: "builder" (flatpak-builder --build-only/--finish-only)
            or "build-init" (flatpak build-init/build-finish).
        rename_files: Rename the desktop entry and icons to match the id.
        extra_flatpak_builder_args: Passthrough args for flatpak-builder.
        extra_flatpak_build_export_args: Passthrough args for build-export.
        extra_flatpak_build_bundle_args: Passthrough args for build-bundle.
        timeout: Per-invocation time limit in seconds (None: unlimited).
    """

    working_dir: Path | None = None
    build_dir: Path | None = None
    repo_dir: Path | None = None
    manifest_path: Path | None = None
    bundle_path: Path | None = None
    arch: str | None = None
    auto_install_runtime: bool | None = None
    auto_install_sdk: bool | None = None
    auto_install_base: bool | None = None
    clean_tmpdirs: bool = True
    tmpdir_base: Path | None = None
    gpg_sign: str | None = None
    gpg_keys: str | None = None
    gpg_homedir: str | None = None
    subject: str | None = None
    body: str | None = None
    bundle_repo_url: str | None = None
    build_runtime: bool = False
    build_mode: str = "builder"
    rename_files: bool = False
    extra_flatpak_builder_args: tuple[str, ...] = ()
    extra_flatpak_build_export_args: tuple[str, ...] = ()
    extra_flatpak_build_bundle_args: tuple[str, ...] = ()
    timeout: float | None = None

    def with_defaults(self, manifest: Manifest) -> Options:
        """Return a copy with every unset, derivable field filled in.

        Paths derived from working_dir are only filled once working_dir is
        known; before that they stay None.

        Args:
            manifest: Normalized manifest (drives the auto_install_* defaults).

        Returns:
            A new Options instance. Explicit values are never overwritten.
        """
        updates: dict[str, Any] = {}

        if self.arch is None:
            updates["arch"] = host_arch()
        if self.auto_install_runtime is None:
            updates["auto_install_runtime"] = manifest.runtime_flatpakref is not None
        if self.auto_install_sdk is None:
            updates["auto_install_sdk"] = manifest.sdk_flatpakref is not None
        if self.auto_install_base is None:
            updates["auto_install_base"] = manifest.base_flatpakref is not None

        if self.working_dir is not None:
            working_dir = self.working_dir
            if self.build_dir is None:
                updates["build_dir"] = working_dir / "build"
            if self.repo_dir is None:
                updates["repo_dir"] = working_dir / "repo"
            if self.manifest_path is None:
                updates["manifest_path"] = working_dir / "manifest.json"

        if not updates:
            return self
        return replace(self, **updates)

    def require(self, name: str) -> Path:
        """Return a path option that provisioning fills, or raise ConfigError.

        Example:
            ```python
            options.require("build_dir")   # Path("/work/build")
            ```
        """
        value = getattr(self, name)
        if value is None:
            raise ConfigError(f"options are not provisioned: {name} unset")
        return value

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to a kebab-case mapping (for logs and the CLI)."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, tuple):
                value = list(value)
            data[_kebab(f.name)] = value
        return data
