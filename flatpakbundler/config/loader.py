"""
Recipe loading for flatpak-bundler.

A recipe is a YAML document (JSON works too, being a YAML subset) holding the
two inputs of a bundling run side by side:

    manifest:
      id: org.world.Hello
      runtime: org.freedesktop.Platform
      runtime-version: "23.08"
      runtime-flatpakref: refs/freedesktop-runtime.flatpakref
      sdk: org.freedesktop.Sdk
      files:
        - [build/hello, /bin/hello]
    options:
      bundle-path: out/hello.flatpak
      arch: x64

Path Resolution
---------------
Relative paths are resolved against the RECIPE FILE location, not the
current working directory, so recipes stay relocatable. This covers the
``files`` sources, every path-valued option and local reference
descriptors (``*-flatpakref``). Remote descriptors (http/https URLs) are
left untouched.

Overrides
---------
Callers (the CLI in particular) may pass option overrides. They are applied
key by key on top of the recipe's ``options`` mapping, after key
canonicalization, so ``--bundle-path`` overrides ``bundlePath`` or
``bundle-path`` alike. There is no deep merge.

Functions
---------
load_recipe : function
    Load a recipe file and return the normalized (Manifest, Options).
read_recipe : function
    Load a recipe file and return the raw mappings without normalizing.

Error Handling
--------------
- ConfigError: file missing, YAML parse errors, empty files, wrong shape
- All errors are chained with "from err" for better debugging
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from flatpakbundler.config.models import Manifest, Options
from flatpakbundler.config.normalize import canonicalize_keys, normalize
from flatpakbundler.exceptions import ConfigError


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """
    Load a YAML file and return the parsed Python object.

    Raises:
      ConfigError - when the file does not exist, cannot be parsed or is empty
    """
    if not p.exists():
        raise ConfigError(f"file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


def _print_yaml_content(data: dict[str, Any], indent: int = 0) -> None:
    """Dump a mapping to the debug log, one YAML line at a time."""
    from flatpakbundler.logging import get_global_logger

    logger = get_global_logger()
    yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False)
    for line in yaml_str.split("\n"):
        if line.strip():
            logger.debug("CONFIG", " " * indent + line)


# -------------------------------
# Public API
# -------------------------------


def read_recipe(
    recipe_path: Path,
    overrides: dict[str, Any] | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Read a recipe file and return its raw (manifest, options) mappings.

    Keys are canonicalized (snake_case) at the top level of both mappings
    and option overrides are applied. No other normalization happens here;
    relative paths stay as written until normalize() resolves them.

    Raises
      ConfigError on a missing file, YAML errors or a malformed recipe.
    """
    from flatpakbundler.logging import get_global_logger

    logger = get_global_logger()
    recipe_path = recipe_path.resolve()

    logger.verbose("CONFIG", f"Loading recipe: {recipe_path}")

    recipe_obj = _load_yaml_file(recipe_path)
    if not isinstance(recipe_obj, dict):
        raise ConfigError(f"top-level YAML must be a mapping (dict): {recipe_path}")

    raw_manifest = recipe_obj.get("manifest")
    if not isinstance(raw_manifest, dict):
        raise ConfigError(f"recipe has no 'manifest' mapping: {recipe_path}")

    raw_options = recipe_obj.get("options") or {}
    if not isinstance(raw_options, dict):
        raise ConfigError(f"recipe 'options' must be a mapping: {recipe_path}")

    manifest = canonicalize_keys(raw_manifest)
    options = canonicalize_keys(raw_options)

    if overrides:
        applied = canonicalize_keys(overrides)
        for key, value in applied.items():
            if value is not None:
                logger.verbose("CONFIG", f"Override: {key} = {value}")
                options[key] = value

    logger.debug("CONFIG", f"--- Content from {recipe_path.name} ---")
    _print_yaml_content({"manifest": manifest, "options": options})

    return manifest, options


def load_recipe(
    recipe_path: Path,
    overrides: dict[str, Any] | None = None,
) -> tuple[Manifest, Options]:
    """
    Load and normalize a recipe.

    Steps
      1) Read recipe YAML.
      2) Canonicalize keys.
      3) Apply option overrides (key by key, last wins).
      4) Normalize with paths resolved against the recipe directory.

    Returns
      A tuple (manifest, options) ready for the bundle pipeline.

    Raises
      ConfigError on YAML errors, a malformed recipe or invalid values.
    """
    recipe_path = recipe_path.resolve()
    manifest, options = read_recipe(recipe_path, overrides)
    return normalize(manifest, options, base_dir=recipe_path.parent)
