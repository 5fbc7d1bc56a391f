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

"""Recipe validation module.

This module checks a recipe without starting any process, creating any
directory or making network calls. It is useful for quick feedback while
writing a recipe and in CI/CD pipelines.

Validation Checks:

- YAML syntax is valid
- The recipe has a ``manifest`` mapping (and ``options``, if any, is a
  mapping)
- The manifest and options normalize cleanly (id and files present,
  well-formed pairs, known options, supported build mode)
- Declared file sources exist (warning only; they may be produced by an
  earlier build step)
- Local reference descriptors exist and contain a ``[Flatpak Ref]`` group
- Auto-install requested without a descriptor (warning)

Example:
    Validate a recipe and handle results:
        ```python
        from pathlib import Path
        from flatpakbundler.validation import validate_recipe

        result = validate_recipe(Path("recipes/hello.yaml"))
        if result.status == "valid":
            print(f"Recipe for {result.app_id} is valid")
        else:
            for error in result.errors:
                print(f"Error: {error}")
        ```

"""

from __future__ import annotations

from pathlib import Path

from flatpakbundler.build.refs import read_flatpakref
from flatpakbundler.config.loader import read_recipe
from flatpakbundler.config.normalize import normalize
from flatpakbundler.exceptions import ConfigError, DependencyError
from flatpakbundler.results import ValidationResult

__all__ = ["validate_recipe"]

_DESCRIPTORS = (
    ("runtime", "runtime_flatpakref", "auto_install_runtime"),
    ("sdk", "sdk_flatpakref", "auto_install_sdk"),
    ("base", "base_flatpakref", "auto_install_base"),
)


def validate_recipe(recipe_path: Path, verbose: bool = False) -> ValidationResult:
    """Validate a recipe file without building anything.

    This function checks:

    1. The YAML file can be parsed and has the expected shape
    2. The manifest and options normalize without ConfigError
    3. Declared file sources exist
    4. Local reference descriptors are valid flatpakref files

    Does NOT:

    - Start flatpak or flatpak-builder
    - Create the working directory
    - Download remote reference descriptors

    Args:
        recipe_path: Path to the recipe YAML file to validate.
        verbose: If True, print validation progress.
            Default is False.

    Returns:
        ValidationResult with status "valid" or "invalid", the error and
            warning messages, the declared app id (if it could be read) and
            the recipe path.

    """
    errors: list[str] = []
    warnings: list[str] = []
    app_id: str | None = None

    if verbose:
        print(f"Validating recipe: {recipe_path}")

    def _result() -> ValidationResult:
        return ValidationResult(
            status="valid" if not errors else "invalid",
            errors=errors,
            warnings=warnings,
            app_id=app_id,
            recipe_path=str(recipe_path),
        )

    if not recipe_path.exists():
        errors.append(f"Recipe file not found: {recipe_path}")
        return _result()

    try:
        raw_manifest, raw_options = read_recipe(recipe_path)
    except ConfigError as err:
        errors.append(str(err))
        return _result()

    if verbose:
        print("  [OK] YAML syntax is valid")

    raw_id = raw_manifest.get("id") or raw_manifest.get("app_id")
    if isinstance(raw_id, str) and raw_id:
        app_id = raw_id

    try:
        manifest, options = normalize(
            raw_manifest, raw_options, base_dir=recipe_path.resolve().parent
        )
    except ConfigError as err:
        errors.append(str(err))
        return _result()

    if verbose:
        print(f"  [OK] Manifest for {manifest.id} normalizes cleanly")

    for source, dest in manifest.files:
        if not Path(source).exists():
            warnings.append(f"File source does not exist yet: {source} (-> {dest})")

    for kind, ref_key, flag_key in _DESCRIPTORS:
        descriptor = getattr(manifest, ref_key)
        if getattr(options, flag_key) and not descriptor:
            warnings.append(
                f"auto-install-{kind} is set but the manifest has no "
                f"{ref_key.replace('_', '-')}; the {kind} must already be "
                f"installed"
            )
        if not descriptor or descriptor.startswith(("http://", "https://")):
            continue
        try:
            read_flatpakref(Path(descriptor))
        except DependencyError as err:
            errors.append(str(err))
            continue
        if verbose:
            print(f"  [OK] {kind} descriptor: {descriptor}")

    if verbose:
        if not errors:
            print("  [OK] Recipe is valid!")
        else:
            print(f"  [ERROR] Recipe has {len(errors)} error(s)")

    return _result()
