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

"""Manifest/option records, normalization and recipe loading.

Public API:

- Manifest, Options: Typed, frozen input records
- normalize: Validate raw mappings and build Manifest/Options
- flatpak_arch: Map host architecture aliases to flatpak names
- load_recipe: Load a YAML recipe and normalize it

Example:
    Basic usage:

        from pathlib import Path
        from flatpakbundler.config import load_recipe

        manifest, options = load_recipe(Path("recipes/hello.yaml"))
        print(manifest.id)  # "org.world.Hello"

"""

from .loader import load_recipe, read_recipe
from .models import Manifest, Options, flatpak_arch
from .normalize import normalize

__all__ = [
    "Manifest",
    "Options",
    "flatpak_arch",
    "load_recipe",
    "normalize",
    "read_recipe",
]
