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

"""Command-line interface for flatpak-bundler.

This module provides the main CLI entry point for the flatpak-bundler tool,
offering commands for recipe validation and bundle creation.

Commands:

    validate: Validate recipe syntax and configuration
    bundle: Build, export and bundle the app described by a recipe

Example:
    Validate recipe syntax:
        ```bash
        $ flatpak-bundler validate recipes/hello.yaml
        ```

    Build a bundle:
        ```bash
        $ flatpak-bundler bundle recipes/hello.yaml --bundle-path hello.flatpak
        ```

    Override the architecture and keep the working directory:
        ```bash
        $ flatpak-bundler bundle recipes/hello.yaml --arch x64 --working-dir work
        ```

    Enable debug output (includes every flatpak command line and its output):
        ```bash
        $ flatpak-bundler bundle recipes/hello.yaml --debug
        ```

Exit Codes:

- 0: Success
- 1: Error (configuration, dependency, filesystem, tool or network failure)

Note:
    Command-line options override the recipe's ``options`` mapping key by
    key. Verbose mode shows full tracebacks on errors for debugging.
    Debug mode implies verbose mode.

"""

from __future__ import annotations

import argparse
import asyncio
from importlib.metadata import version
from pathlib import Path
import sys
from typing import Any

from flatpakbundler.config import load_recipe
from flatpakbundler.config.models import BUILD_MODES
from flatpakbundler.core import bundle_async
from flatpakbundler.exceptions import BundlerError, ToolError
from flatpakbundler.logging import get_logger, set_global_logger
from flatpakbundler.validation import validate_recipe


def _print_error(args: argparse.Namespace, err: Exception) -> None:
    print(f"Error: {err}")
    if args.verbose or args.debug:
        import traceback

        traceback.print_exc()


def cmd_validate(args: argparse.Namespace) -> int:
    """Handler for 'flatpak-bundler validate' command.

    Validates recipe syntax and configuration without starting flatpak,
    creating directories or making network calls.

    Args:
        args: Parsed command-line arguments containing
            recipe path and verbose flag.

    Returns:
        Exit code (0 for valid recipe, 1 for invalid).

    """
    logger = get_logger(verbose=args.verbose, debug=False)
    set_global_logger(logger)

    recipe_path = Path(args.recipe).resolve()

    print(f"Validating recipe: {recipe_path}")
    print()

    result = validate_recipe(recipe_path, verbose=args.verbose)

    print("=" * 70)
    print("VALIDATION RESULTS")
    print("=" * 70)
    print(f"Recipe:      {result.recipe_path}")
    print(f"Status:      {result.status.upper()}")
    print(f"App ID:      {result.app_id or '-'}")
    print()

    if result.warnings:
        print(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  [WARNING] {warning}")
        print()

    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  [X] {error}")
        print()

    print("=" * 70)

    if result.status == "valid":
        print()
        print("[SUCCESS] Recipe is valid!")
        return 0
    else:
        print()
        print(f"[FAILED] Recipe validation failed with {len(result.errors)} error(s).")
        return 1


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "bundle_path": args.bundle_path,
        "arch": args.arch,
        "working_dir": args.working_dir,
        "build_mode": args.build_mode,
    }


def cmd_bundle(args: argparse.Namespace) -> int:
    """Handler for 'flatpak-bundler bundle' command.

    Loads the recipe, applies the command-line overrides and runs the full
    pipeline: runtime/sdk/base install, build structure, files, finish,
    export and bundle.

    Args:
        args: Parsed command-line arguments containing the recipe path,
            option overrides and flags.

    Returns:
        Exit code (0 for success, 1 for failure).

    Note:
        Paths given on the command line are relative to the current
        directory; paths inside the recipe are relative to the recipe.

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    recipe_path = Path(args.recipe).resolve()

    if not recipe_path.exists():
        print(f"Error: Recipe file not found: {recipe_path}")
        return 1

    overrides = _overrides(args)
    for key in ("bundle_path", "working_dir"):
        if overrides[key] is not None:
            overrides[key] = str(Path(overrides[key]).resolve())

    print(f"Bundling recipe: {recipe_path}")
    print()

    try:
        manifest, options = load_recipe(recipe_path, overrides)
        result = asyncio.run(
            bundle_async(manifest, options, base_dir=recipe_path.parent)
        )
    except ToolError as err:
        _print_error(args, err)
        if err.stderr and not (args.verbose or args.debug):
            print("Run again with --debug to see the full tool output.")
        return 1
    except BundlerError as err:
        _print_error(args, err)
        return 1

    print("=" * 70)
    print("BUNDLE RESULTS")
    print("=" * 70)
    print(f"App ID:          {result.manifest.id}")
    print(f"Branch:          {result.manifest.branch}")
    print(f"Arch:            {result.options.arch}")
    print(f"Working Dir:     {result.options.working_dir}")
    print(f"Repository:      {result.options.repo_dir}")
    print(f"Bundle:          {result.bundle_path or '(not requested)'}")
    print(f"Status:          {result.status}")
    print("=" * 70)
    print()
    print("[SUCCESS] Bundle created successfully!")

    return 0


def main() -> None:
    """Main entry point for the flatpak-bundler CLI.

    This function is registered as the 'flatpak-bundler' console script in
    pyproject.toml.
    """
    parser = argparse.ArgumentParser(
        prog="flatpak-bundler",
        description="Build single-file Flatpak bundles with flatpak-builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"flatpak-bundler {version('flatpak-bundler')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'validate' command
    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate recipe syntax and configuration (no build)",
        description="Check a recipe for errors without running flatpak.",
    )
    parser_validate.add_argument(
        "recipe",
        help="Path to the recipe YAML file",
    )
    parser_validate.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show validation progress and details",
    )
    parser_validate.set_defaults(func=cmd_validate)

    # 'bundle' command
    parser_bundle = subparsers.add_parser(
        "bundle",
        help="Build, export and bundle the app described by a recipe",
        description="Run the full pipeline and write the single-file bundle.",
    )
    parser_bundle.add_argument(
        "recipe",
        help="Path to the recipe YAML file",
    )
    parser_bundle.add_argument(
        "--bundle-path",
        default=None,
        help="Output bundle file (default: from recipe; no bundle if unset)",
    )
    parser_bundle.add_argument(
        "--arch",
        default=None,
        help="Target architecture, e.g. x86_64 or x64 (default: host)",
    )
    parser_bundle.add_argument(
        "--working-dir",
        default=None,
        help="Working directory (default: from recipe or a temporary directory)",
    )
    parser_bundle.add_argument(
        "--build-mode",
        choices=BUILD_MODES,
        default=None,
        help="Toolchain shape (default: from recipe or 'builder')",
    )
    parser_bundle.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser_bundle.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )
    parser_bundle.set_defaults(func=cmd_bundle)

    # Parse and dispatch
    args = parser.parse_args()

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
