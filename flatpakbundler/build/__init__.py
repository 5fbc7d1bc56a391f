"""Build steps of the bundle pipeline.

Modules:

- workdir: Working and build directory provisioning
- refs: Runtime, sdk and base-app install/update
- files: Declared files, symlinks, extra exports and desktop/icon renaming
- builder: flatpak-builder or build-init/build-finish invocations
- exporter: Repository export and single-file bundle creation
- tasks: Structured fan-out of independent sub-tasks

Each step takes the normalized Manifest and Options of one run. Steps that
invoke external tools also take the run's ProcessRunner.
"""

from .builder import create_structure, finalize
from .exporter import build_bundle, export_repo
from .files import copy_exports, create_symlinks, materialize_files, rename_files
from .refs import ensure_base, ensure_ref, ensure_runtime, ensure_sdk
from .workdir import ensure_working_dir

__all__ = [
    "build_bundle",
    "copy_exports",
    "create_structure",
    "create_symlinks",
    "ensure_base",
    "ensure_ref",
    "ensure_runtime",
    "ensure_sdk",
    "ensure_working_dir",
    "export_repo",
    "finalize",
    "materialize_files",
    "rename_files",
]
