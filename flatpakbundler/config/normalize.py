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

"""Manifest and option normalization.

This is the only place that understands the loose input forms callers use.
Raw mappings may spell keys in camelCase (``runtimeFlatpakref``), kebab-case
(``runtime-flatpakref``) or snake_case (``runtime_flatpakref``); the rest of
the package only ever sees the typed Manifest and Options records.

Normalization is pure: it validates, canonicalizes keys, resolves relative
paths to absolute ones and fills defaults, but it never creates directories
or starts processes. A missing ``id`` or ``files`` raises ConfigError here,
before the pipeline has any side effect.

Key canonicalization is shallow. Nested values (``modules`` in particular)
are passed through exactly as given.

Example:
    ```python
    from flatpakbundler.config import normalize

    manifest, options = normalize(
        {"id": "org.world.Hello", "files": [["hello", "/bin/hello"]]},
        {"bundlePath": "hello.flatpak", "arch": "x64"},
    )
    options.arch          # "x86_64"
    options.bundle_path   # Path("/abs/cwd/hello.flatpak")
    ```
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import fields, replace
from pathlib import Path
import re
from typing import Any

from flatpakbundler.config.models import (
    BUILD_MODES,
    Manifest,
    Options,
    flatpak_arch,
)
from flatpakbundler.exceptions import ConfigError

__all__ = ["canonical_key", "canonicalize_keys", "normalize"]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

_MANIFEST_FIELDS = {f.name for f in fields(Manifest)} - {"extra"}
_OPTION_FIELDS = {f.name for f in fields(Options)}

_DESCRIPTOR_KEYS = ("runtime_flatpakref", "sdk_flatpakref", "base_flatpakref")

_OPTION_PATHS = (
    "working_dir",
    "build_dir",
    "repo_dir",
    "manifest_path",
    "bundle_path",
    "tmpdir_base",
)
_OPTION_FLAGS = (
    "auto_install_runtime",
    "auto_install_sdk",
    "auto_install_base",
    "clean_tmpdirs",
    "build_runtime",
    "rename_files",
)
_OPTION_ARG_LISTS = (
    "extra_flatpak_builder_args",
    "extra_flatpak_build_export_args",
    "extra_flatpak_build_bundle_args",
)


def canonical_key(key: str) -> str:
    """Convert a camelCase or kebab-case key to snake_case.

    Example:
        ```python
        canonical_key("runtimeFlatpakref")   # "runtime_flatpakref"
        canonical_key("runtime-version")     # "runtime_version"
        canonical_key("bundle_path")         # "bundle_path"
        ```
    """
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower().replace("-", "_")


def canonicalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``raw`` with every top-level key in snake_case.

    Raises:
        ConfigError: If two spellings of the same key are both present.
    """
    result: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = canonical_key(str(key))
        if canonical in result:
            raise ConfigError(
                f"Duplicate key {key!r} (already given as {canonical!r})"
            )
        result[canonical] = value
    return result


def _resolve_path(value: Any, base_dir: Path) -> Path:
    p = Path(str(value)).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return p.resolve()


def _resolve_descriptor(value: str, base_dir: Path) -> str:
    """Resolve a local reference descriptor; http(s) URLs are returned as is."""
    if value.startswith(("http://", "https://")):
        return value
    return str(_resolve_path(value, base_dir))


def _pairs(value: Any, name: str) -> list[tuple[str, str]]:
    """Validate a list of 2-item [source, dest] entries."""
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise ConfigError(f"Manifest field {name!r} must be a list of pairs")
    pairs = []
    for index, entry in enumerate(value):
        if (
            not isinstance(entry, Sequence)
            or isinstance(entry, (str, bytes))
            or len(entry) != 2
        ):
            raise ConfigError(
                f"Manifest field {name!r} entry {index} must be a "
                f"[source, dest] pair, got {entry!r}"
            )
        pairs.append((str(entry[0]), str(entry[1])))
    return pairs


def _str_list(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigError(f"{name!r} must be a list of strings")
    return tuple(str(v) for v in value)


def _normalize_manifest(raw_manifest: Mapping[str, Any], base_dir: Path) -> Manifest:
    data = canonicalize_keys(raw_manifest)

    app_id = data.pop("app_id", None)
    if app_id:
        data["id"] = app_id

    if not data.get("id") or not isinstance(data["id"], str):
        raise ConfigError("Manifest is missing required field 'id'")
    if data.get("files") is None:
        raise ConfigError("Manifest is missing required field 'files'")

    data["files"] = tuple(
        (str(_resolve_path(source, base_dir)), dest)
        for source, dest in _pairs(data["files"], "files")
    )
    if data.get("symlinks") is not None:
        data["symlinks"] = tuple(_pairs(data["symlinks"], "symlinks"))
    if "finish_args" in data:
        data["finish_args"] = _str_list(data["finish_args"], "finish-args")
    if "extra_exports" in data:
        data["extra_exports"] = _str_list(data["extra_exports"], "extra-exports")
    if data.get("modules") is not None and not isinstance(data["modules"], list):
        raise ConfigError("Manifest field 'modules' must be a list")
    known = {
        k: v for k, v in data.items() if k in _MANIFEST_FIELDS and v is not None
    }
    # Unknown keys go to the manifest file in the toolchain's kebab-case form
    extra = {
        k.replace("_", "-"): v
        for k, v in data.items()
        if k not in _MANIFEST_FIELDS
    }
    for key in ("runtime_version", "sdk_version", "base_version"):
        if known.get(key) is not None:
            known[key] = str(known[key])
    for key in _DESCRIPTOR_KEYS:
        if known.get(key):
            known[key] = _resolve_descriptor(str(known[key]), base_dir)

    return Manifest(**known, extra=extra)


def _resolve_manifest(manifest: Manifest, base_dir: Path) -> Manifest:
    """Make the file sources and descriptors of a Manifest instance absolute."""
    changes: dict[str, Any] = {
        "files": tuple(
            (str(_resolve_path(source, base_dir)), dest)
            for source, dest in manifest.files
        )
    }
    for key in _DESCRIPTOR_KEYS:
        value = getattr(manifest, key)
        if value:
            changes[key] = _resolve_descriptor(value, base_dir)
    return replace(manifest, **changes)


def _resolve_options(options: Options, base_dir: Path) -> Options:
    """Map the arch and make the paths of an Options instance absolute."""
    changes: dict[str, Any] = {
        key: _resolve_path(getattr(options, key), base_dir)
        for key in _OPTION_PATHS
        if getattr(options, key) is not None
    }
    if options.arch is not None:
        changes["arch"] = flatpak_arch(str(options.arch))
    if options.build_mode not in BUILD_MODES:
        raise ConfigError(
            f"Unsupported build mode {options.build_mode!r}. "
            f"Supported: {', '.join(BUILD_MODES)}"
        )
    return replace(options, **changes)


def _normalize_options(raw_options: Mapping[str, Any], base_dir: Path) -> Options:
    data = canonicalize_keys(raw_options)

    unknown = sorted(set(data) - _OPTION_FIELDS)
    if unknown:
        raise ConfigError(f"Unknown option(s): {', '.join(unknown)}")

    # Drop explicit nulls so defaults apply to them
    data = {k: v for k, v in data.items() if v is not None}

    for key in _OPTION_PATHS:
        if key in data:
            data[key] = _resolve_path(data[key], base_dir)
    for key in _OPTION_FLAGS:
        if key in data:
            data[key] = bool(data[key])
    for key in _OPTION_ARG_LISTS:
        if key in data:
            data[key] = _str_list(data[key], key.replace("_", "-"))

    if "arch" in data:
        data["arch"] = flatpak_arch(str(data["arch"]))

    build_mode = data.get("build_mode", "builder")
    if build_mode not in BUILD_MODES:
        raise ConfigError(
            f"Unsupported build mode {build_mode!r}. "
            f"Supported: {', '.join(BUILD_MODES)}"
        )

    if "timeout" in data:
        try:
            data["timeout"] = float(data["timeout"])
        except (TypeError, ValueError) as err:
            raise ConfigError(f"Invalid timeout: {data['timeout']!r}") from err

    return Options(**data)


def normalize(
    raw_manifest: Manifest | Mapping[str, Any],
    raw_options: Options | Mapping[str, Any] | None = None,
    *,
    base_dir: Path | None = None,
) -> tuple[Manifest, Options]:
    """Validate and normalize a raw manifest and raw options.

    Steps:

    1. Canonicalize keys (camelCase/kebab-case -> snake_case).
    2. Check required manifest fields (``id``, ``files``).
    3. Resolve file sources, local descriptors and option paths against
       ``base_dir``.
    4. Map the architecture alias to the flatpak name.
    5. Fill defaults for unset options (explicit values are kept).

    Args:
        raw_manifest: Manifest mapping as supplied by the caller. For a
            Manifest instance only file sources and descriptors are resolved.
        raw_options: Options mapping as supplied by the caller. For an
            Options instance the arch is mapped, paths are resolved and
            unset defaults are filled; explicit values are kept.
        base_dir: Directory relative paths are resolved against.
            Default: the current working directory.

    Returns:
        A tuple (manifest, options). Options derived from the working
            directory stay unset until the directory is provisioned.

    Raises:
        ConfigError: If a required field is missing or a value is invalid.
    """
    base_dir = Path.cwd() if base_dir is None else base_dir

    if isinstance(raw_manifest, Manifest):
        manifest = _resolve_manifest(raw_manifest, base_dir)
    elif isinstance(raw_manifest, Mapping):
        manifest = _normalize_manifest(raw_manifest, base_dir)
    else:
        raise ConfigError("Manifest must be a mapping")

    if isinstance(raw_options, Options):
        options = _resolve_options(raw_options, base_dir)
    elif raw_options is None or isinstance(raw_options, Mapping):
        options = _normalize_options(raw_options or {}, base_dir)
    else:
        raise ConfigError("Options must be a mapping")

    if options.build_mode == "build-init" and not (manifest.sdk and manifest.runtime):
        raise ConfigError("Build mode 'build-init' requires 'sdk' and 'runtime'")

    return manifest, options.with_defaults(manifest)
