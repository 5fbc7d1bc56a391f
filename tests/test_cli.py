"""
Tests for flatpakbundler.cli module.

Tests the command handlers including:
- validate: exit codes and result output
- bundle: overrides, success output and error handling
- main: argument parsing and dispatch
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from flatpakbundler import cli
from flatpakbundler.core import bundle_async

pytestmark = pytest.mark.unit


@pytest.fixture
def recipe(create_yaml_file, app_source: Path, tmp_test_dir: Path) -> Path:
    return create_yaml_file(
        "recipes/hello.yaml",
        {
            "manifest": {
                "id": "org.world.Hello",
                "runtime": "org.freedesktop.Platform",
                "files": [[str(app_source / "hello"), "/bin/hello"]],
            },
            "options": {"working-dir": str(tmp_test_dir / "work")},
        },
    )


@pytest.fixture
def use_fake_runner(monkeypatch, fake_runner):
    """Route cmd_bundle through bundle_async with the FakeRunner."""

    async def _bundle(manifest, options, **kwargs):
        return await bundle_async(manifest, options, runner=fake_runner, **kwargs)

    monkeypatch.setattr(cli, "bundle_async", _bundle)
    return fake_runner


def _bundle_args(recipe: Path, **overrides) -> argparse.Namespace:
    values = {
        "recipe": str(recipe),
        "bundle_path": None,
        "arch": None,
        "working_dir": None,
        "build_mode": None,
        "verbose": False,
        "debug": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestValidateCommand:
    """Tests for cmd_validate."""

    def test_valid(self, recipe: Path, capsys):
        code = cli.cmd_validate(argparse.Namespace(recipe=str(recipe), verbose=False))
        out = capsys.readouterr().out
        assert code == 0
        assert "VALIDATION RESULTS" in out
        assert "org.world.Hello" in out
        assert "[SUCCESS] Recipe is valid!" in out

    def test_invalid(self, create_yaml_file, capsys):
        path = create_yaml_file("bad.yaml", {"manifest": {"files": []}})
        code = cli.cmd_validate(argparse.Namespace(recipe=str(path), verbose=False))
        out = capsys.readouterr().out
        assert code == 1
        assert "[X]" in out
        assert "[FAILED]" in out


class TestBundleCommand:
    """Tests for cmd_bundle."""

    def test_success(self, recipe: Path, use_fake_runner, tmp_test_dir: Path, capsys):
        """Test a full run with command-line overrides."""
        bundle_path = tmp_test_dir / "dist" / "hello.flatpak"
        args = _bundle_args(recipe, bundle_path=str(bundle_path), arch="x64")

        code = cli.cmd_bundle(args)

        out = capsys.readouterr().out
        assert code == 0
        assert "BUNDLE RESULTS" in out
        assert "x86_64" in out
        assert "[SUCCESS] Bundle created successfully!" in out
        assert bundle_path.exists()
        (export,) = use_fake_runner.args_for("build-export")
        assert export[export.index("--arch") + 1] == "x86_64"

    def test_without_bundle_path(self, recipe: Path, use_fake_runner, capsys):
        code = cli.cmd_bundle(_bundle_args(recipe))
        assert code == 0
        assert "(not requested)" in capsys.readouterr().out
        assert "build-bundle" not in use_fake_runner.commands()

    def test_missing_recipe(self, tmp_test_dir: Path, capsys):
        code = cli.cmd_bundle(_bundle_args(tmp_test_dir / "nope.yaml"))
        assert code == 1
        assert "Recipe file not found" in capsys.readouterr().out

    def test_config_error(self, create_yaml_file, use_fake_runner, capsys):
        path = create_yaml_file("bad.yaml", {"manifest": {"id": "org.world.Hello"}})
        code = cli.cmd_bundle(_bundle_args(path))
        assert code == 1
        assert "Error:" in capsys.readouterr().out
        assert use_fake_runner.calls == []

    def test_tool_error_hint(self, recipe: Path, monkeypatch, make_runner, capsys):
        """Test that a tool failure exits 1 and points at --debug."""
        runner = make_runner(fail_on=["flatpak-builder"])

        async def _bundle(manifest, options, **kwargs):
            return await bundle_async(manifest, options, runner=runner, **kwargs)

        monkeypatch.setattr(cli, "bundle_async", _bundle)

        code = cli.cmd_bundle(_bundle_args(recipe))

        out = capsys.readouterr().out
        assert code == 1
        assert "flatpak-builder failed with status code 1" in out
        assert "--debug" in out


class TestMain:
    """Tests for main() argument parsing."""

    def test_dispatches_validate(self, recipe: Path, monkeypatch, capsys):
        monkeypatch.setattr(cli, "version", lambda name: "0.1.0")
        monkeypatch.setattr("sys.argv", ["flatpak-bundler", "validate", str(recipe)])

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 0
        assert "VALIDATION RESULTS" in capsys.readouterr().out

    def test_rejects_unknown_build_mode(self, recipe: Path, monkeypatch):
        monkeypatch.setattr(cli, "version", lambda name: "0.1.0")
        monkeypatch.setattr(
            "sys.argv",
            ["flatpak-bundler", "bundle", str(recipe), "--build-mode", "make"],
        )

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 2
