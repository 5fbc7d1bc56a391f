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

"""Public API return types for flatpak-bundler.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Note:
    Only public API return types belong in this module. The Manifest and
    Options records live with the normalizer in flatpakbundler.config.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from flatpakbundler.config.models import Manifest, Options


@dataclass(frozen=True)
class BundleResult:
    """Result from a completed bundle pipeline run.

    Attributes:
        options: Final options, with every derived path filled in.
        manifest: Normalized manifest that was written for the toolchain.
        bundle_path: Path to the produced bundle, or None when no
            bundle_path was configured (the run stopped after export).
        status: Always "success" for a completed run.
    """

    options: Options
    manifest: Manifest
    bundle_path: Path | None
    status: str


@dataclass(frozen=True)
class ValidationResult:
    """Result from validating a recipe.

    Attributes:
        status: Validation status ("valid" or "invalid").
        errors: List of error messages (empty if valid).
        warnings: List of warning messages.
        app_id: Application id declared by the recipe, if any.
        recipe_path: String path to the validated recipe file.
    """

    status: str
    errors: list[str]
    warnings: list[str]
    app_id: str | None
    recipe_path: str
