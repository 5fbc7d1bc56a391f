"""
flatpak-bundler

A Python library and CLI that packages an application into a single-file
Flatpak bundle by driving the ``flatpak`` and ``flatpak-builder`` tools.

flatpak-bundler provides:
  - Declarative manifest and options (any key casing), validated up front
  - Automatic install/update of the runtime, sdk and base app from
    reference descriptors (local files or http(s) URLs)
  - Installation of declared files and symlinks into the build tree
  - Optional renaming of the desktop entry and icons to match the app id
  - Export to a repository and creation of the single-file bundle
  - YAML recipes and a small command-line front-end

Quick Start
-----------
Validate a recipe:

    $ flatpak-bundler validate recipes/hello.yaml

Build a bundle:

    $ flatpak-bundler bundle recipes/hello.yaml --bundle-path hello.flatpak

For full CLI documentation:

    $ flatpak-bundler --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    Pipeline orchestration, public bundle/bundle_async functions.
config : package
    Manifest/Options records, normalization and recipe loading.
build : package
    Working directory, reference install, files, build and export steps.
io : package
    Download of remote reference descriptors.
process : module
    External process invocation.

Public API
----------
    from flatpakbundler import bundle, bundle_async
    from flatpakbundler.config import load_recipe, normalize
    from flatpakbundler.validation import validate_recipe

For more details, see the individual module docstrings.

Project Information
-------------------
Author: Roger Cibrian
License: Apache-2.0
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "Build single-file Flatpak bundles with flatpak-builder"

# Re-export commonly used functions for convenience
from flatpakbundler.config import (
    Manifest,
    Options,
    flatpak_arch,
    load_recipe,
    normalize,
)
from flatpakbundler.core import bundle, bundle_async
from flatpakbundler.exceptions import (
    BundlerError,
    ConfigError,
    DependencyError,
    FilesystemError,
    NetworkError,
    ToolError,
)
from flatpakbundler.results import BundleResult, ValidationResult
from flatpakbundler.validation import validate_recipe

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "bundle",
    "bundle_async",
    "normalize",
    "load_recipe",
    "validate_recipe",
    "flatpak_arch",
    "Manifest",
    "Options",
    "BundleResult",
    "ValidationResult",
    "BundlerError",
    "ConfigError",
    "DependencyError",
    "FilesystemError",
    "NetworkError",
    "ToolError",
]
