"""
Pytest configuration and shared fixtures for flatpak-bundler tests.

This module provides reusable fixtures and test utilities used across
the test suite, most importantly FakeRunner: a recording stand-in for
ProcessRunner that never starts a process.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest
import yaml

from flatpakbundler.exceptions import ToolError
from flatpakbundler.logging import SilentLogger, set_global_logger


class FakeRunner:
    """Records every invocation instead of running it.

    Args:
        installed: (ref_id, scope) pairs reported as installed by
            ``flatpak info``; scope is "user" or "system".
        fail_on: Invocation keys that exit non-zero. The key of a flatpak
            call is its subcommand ("install", "build-export", ...); the key
            of any other command is the command itself ("flatpak-builder").
    """

    def __init__(
        self,
        installed: Iterable[tuple[str, str]] = (),
        fail_on: Iterable[str] = (),
    ) -> None:
        self.installed = set(installed)
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, list[str]]] = []

    @staticmethod
    def _key(command: str, args: list[str]) -> str:
        return args[0] if command == "flatpak" and args else command

    def commands(self) -> list[str]:
        """Return the invocation keys in call order."""
        return [self._key(command, args) for command, args in self.calls]

    def args_for(self, key: str) -> list[list[str]]:
        """Return the argument vectors of every call with this key."""
        return [args for command, args in self.calls if self._key(command, args) == key]

    async def run(
        self, command: str, args: list[str], *, allow_fail: bool = False
    ) -> bool:
        self.calls.append((command, list(args)))
        key = self._key(command, args)

        if key == "info":
            scope = "user" if "--user" in args else "system"
            ref_id = args[-1].split("/")[0]
            return (ref_id, scope) in self.installed

        if key in self.fail_on:
            if allow_fail:
                return False
            raise ToolError(
                f"{command} failed with status code 1",
                command=command,
                args=args,
                returncode=1,
                stderr="error: simulated failure",
            )

        if key == "build-bundle":
            bundle = next(a for a in args[1:] if a.endswith(".flatpak"))
            Path(bundle).write_bytes(b"flatpak bundle")

        return True


@pytest.fixture(autouse=True)
def silent_logger():
    """Reset the global logger after each test (the CLI tests change it)."""
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Provide a FakeRunner with nothing installed and nothing failing."""
    return FakeRunner()


@pytest.fixture
def make_runner():
    """
    Factory fixture for FakeRunner instances.

    Usage:
        runner = make_runner(installed=[("org.freedesktop.Platform", "user")])
    """
    return FakeRunner


@pytest.fixture
def app_source(tmp_test_dir: Path) -> Path:
    """
    Provide a small application tree to install.

    Layout:
        src/hello                          (executable)
        src/share/applications/hello.desktop
        src/share/icons/hicolor/48x48/apps/hello.png
    """
    src = tmp_test_dir / "src"
    (src / "share" / "applications").mkdir(parents=True)
    (src / "share" / "icons" / "hicolor" / "48x48" / "apps").mkdir(parents=True)
    (src / "hello").write_text("#!/bin/sh\necho hello\n", encoding="utf-8")
    (src / "hello").chmod(0o755)
    (src / "share" / "applications" / "hello.desktop").write_text(
        "[Desktop Entry]\nName=Hello\nExec=hello\nIcon=hello\nType=Application\n",
        encoding="utf-8",
    )
    (src / "share" / "icons" / "hicolor" / "48x48" / "apps" / "hello.png").write_bytes(
        b"\x89PNG"
    )
    return src


@pytest.fixture
def sample_manifest(app_source: Path) -> dict[str, Any]:
    """
    Provide a raw manifest in the loose camelCase form callers use.
    """
    return {
        "id": "org.world.Hello",
        "runtime": "org.freedesktop.Platform",
        "runtimeVersion": "23.08",
        "sdk": "org.freedesktop.Sdk",
        "command": "hello",
        "files": [
            [str(app_source / "hello"), "/bin/hello"],
            [str(app_source / "share"), "/share"],
        ],
        "symlinks": [["/bin/hello", "/bin/hello-world"]],
        "finishArgs": ["--share=network", "--socket=x11"],
    }


@pytest.fixture
def write_flatpakref(tmp_test_dir: Path):
    """
    Factory fixture for creating .flatpakref descriptor files.

    Usage:
        path = write_flatpakref("runtime.flatpakref", name="org.freedesktop.Platform")
    """

    def _write(
        filename: str,
        name: str = "org.freedesktop.Platform",
        branch: str = "23.08",
        valid: bool = True,
    ) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        group = "Flatpak Ref" if valid else "Something Else"
        path.write_text(
            f"[{group}]\n"
            f"Name={name}\n"
            f"Branch={branch}\n"
            "Url=https://dl.flathub.org/repo/\n"
            "IsRuntime=true\n",
            encoding="utf-8",
        )
        return path

    return _write


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("recipe.yaml", {"manifest": {...}})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create
