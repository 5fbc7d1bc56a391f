"""
Tests for flatpakbundler.config (models, normalize and loader).

Tests configuration handling including:
- Key canonicalization (camelCase, kebab-case, snake_case)
- Required manifest fields and entry shapes
- Architecture alias mapping
- Defaults for unset options
- Recipe loading, path resolution and overrides
"""

from __future__ import annotations

from pathlib import Path

import pytest

from flatpakbundler.config import Manifest, Options, load_recipe, normalize, read_recipe
from flatpakbundler.config.models import ARCH_ALIASES, flatpak_arch, host_arch
from flatpakbundler.config.normalize import canonical_key, canonicalize_keys
from flatpakbundler.exceptions import ConfigError

pytestmark = pytest.mark.unit

MINIMAL = {"id": "org.world.Hello", "files": []}


class TestCanonicalKey:
    """Tests for key canonicalization."""

    @pytest.mark.parametrize(
        "key, expected",
        [
            ("runtimeFlatpakref", "runtime_flatpakref"),
            ("runtime-flatpakref", "runtime_flatpakref"),
            ("runtime_flatpakref", "runtime_flatpakref"),
            ("bundlePath", "bundle_path"),
            ("extraFlatpakBuildExportArgs", "extra_flatpak_build_export_args"),
            ("app-id", "app_id"),
            ("id", "id"),
        ],
    )
    def test_spellings(self, key, expected):
        """Test that every supported spelling maps to snake_case."""
        assert canonical_key(key) == expected

    def test_duplicate_spellings_raise(self):
        """Test that two spellings of one key are rejected."""
        with pytest.raises(ConfigError, match="Duplicate key"):
            canonicalize_keys({"bundlePath": "a", "bundle-path": "b"})

    def test_nested_values_untouched(self):
        """Test that canonicalization is shallow."""
        modules = [{"name": "hello", "buildCommands": ["make"]}]
        data = canonicalize_keys({"modules": modules})
        assert data["modules"] is modules
        assert "buildCommands" in data["modules"][0]


class TestArch:
    """Tests for architecture alias mapping."""

    @pytest.mark.parametrize(
        "alias, expected",
        [
            ("ia32", "i386"),
            ("x64", "x86_64"),
            ("amd64", "x86_64"),
            ("armv7l", "arm"),
            ("x86_64", "x86_64"),
            ("aarch64", "aarch64"),
            ("riscv64", "riscv64"),
        ],
    )
    def test_flatpak_arch(self, alias, expected):
        """Test alias mapping; unknown names pass through."""
        assert flatpak_arch(alias) == expected

    def test_host_arch_is_mapped(self, monkeypatch):
        """Test that the host machine name goes through the alias table."""
        monkeypatch.setattr("platform.machine", lambda: "AMD64")
        assert host_arch() == "x86_64"

    def test_option_arch_is_mapped(self):
        """Test that normalize maps the arch option."""
        for alias, expected in ARCH_ALIASES.items():
            _, options = normalize(MINIMAL, {"arch": alias})
            assert options.arch == expected


class TestNormalizeManifest:
    """Tests for manifest normalization."""

    def test_missing_id_raises(self):
        """Test that a manifest without id is rejected."""
        with pytest.raises(ConfigError, match="'id'"):
            normalize({"files": []})

    def test_missing_files_raises(self):
        """Test that a manifest without files is rejected."""
        with pytest.raises(ConfigError, match="'files'"):
            normalize({"id": "org.world.Hello"})

    def test_empty_files_allowed(self):
        """Test that an empty files list is valid."""
        manifest, _ = normalize(MINIMAL)
        assert manifest.files == ()

    def test_app_id_alias(self):
        """Test that app-id is accepted in place of id."""
        manifest, _ = normalize({"app-id": "org.world.Hello", "files": []})
        assert manifest.id == "org.world.Hello"

    def test_app_id_wins_over_id(self):
        """Test that app-id takes precedence when both are given."""
        manifest, _ = normalize(
            {"id": "org.world.Old", "appId": "org.world.Hello", "files": []}
        )
        assert manifest.id == "org.world.Hello"

    def test_key_spellings_equivalent(self):
        """Test that camelCase, kebab-case and snake_case give one manifest."""
        base = {"id": "org.world.Hello", "files": []}
        camel, _ = normalize({**base, "runtimeVersion": "23.08"})
        kebab, _ = normalize({**base, "runtime-version": "23.08"})
        snake, _ = normalize({**base, "runtime_version": "23.08"})
        assert camel == kebab == snake
        assert camel.runtime_version == "23.08"

    def test_versions_become_strings(self):
        """Test that numeric YAML versions are kept as strings."""
        manifest, _ = normalize({**MINIMAL, "runtime-version": 23.08})
        assert manifest.runtime_version == "23.08"

    def test_default_branch(self):
        """Test that the branch defaults to master."""
        manifest, _ = normalize(MINIMAL)
        assert manifest.branch == "master"

    def test_relative_sources_resolved(self, tmp_test_dir: Path):
        """Test that file sources resolve against base_dir."""
        manifest, _ = normalize(
            {"id": "org.world.Hello", "files": [["build/hello", "/bin/hello"]]},
            base_dir=tmp_test_dir,
        )
        source, dest = manifest.files[0]
        assert source == str((tmp_test_dir / "build" / "hello").resolve())
        assert dest == "/bin/hello"

    @pytest.mark.parametrize(
        "files",
        [
            "hello",
            [["only-one"]],
            [["a", "b", "c"]],
            ["a-string-entry"],
        ],
    )
    def test_bad_file_entries_raise(self, files):
        """Test that files entries must be [source, dest] pairs."""
        with pytest.raises(ConfigError, match="files"):
            normalize({"id": "org.world.Hello", "files": files})

    def test_bad_symlink_entries_raise(self):
        """Test that symlink entries must be pairs too."""
        with pytest.raises(ConfigError, match="symlinks"):
            normalize({**MINIMAL, "symlinks": [["/bin/a"]]})

    def test_unknown_keys_kept_as_extra(self):
        """Test that unknown manifest keys pass through in kebab-case."""
        manifest, _ = normalize({**MINIMAL, "separateLocales": False})
        assert manifest.extra == {"separate-locales": False}

    def test_build_init_requires_sdk_and_runtime(self):
        """Test the build-init mode precondition."""
        with pytest.raises(ConfigError, match="build-init"):
            normalize(
                {**MINIMAL, "runtime": "org.freedesktop.Platform"},
                {"buildMode": "build-init"},
            )

    def test_manifest_instance_passthrough(self):
        """Test that an already-normalized Manifest keeps its values."""
        manifest = Manifest(id="org.world.Hello", files=(), runtime="rt")
        result, _ = normalize(manifest)
        assert result == manifest

    def test_manifest_instance_paths_resolved(self, tmp_test_dir: Path):
        """Test that a Manifest instance gets sources and descriptors resolved."""
        manifest = Manifest(
            id="org.world.Hello",
            files=(("build/hello", "/bin/hello"),),
            sdk_flatpakref="refs/sdk.flatpakref",
            base_flatpakref="https://example.com/base.flatpakref",
        )
        result, _ = normalize(manifest, base_dir=tmp_test_dir)
        base = tmp_test_dir.resolve()
        assert result.files == ((str(base / "build" / "hello"), "/bin/hello"),)
        assert result.sdk_flatpakref == str(base / "refs" / "sdk.flatpakref")
        assert result.base_flatpakref == "https://example.com/base.flatpakref"

    def test_descriptors_resolved(self, tmp_test_dir: Path):
        """Test that local descriptors become absolute and URLs stay as given."""
        manifest, _ = normalize(
            {
                **MINIMAL,
                "runtimeFlatpakref": "refs/rt.flatpakref",
                "sdk-flatpakref": "https://example.com/sdk.flatpakref",
            },
            base_dir=tmp_test_dir,
        )
        base = tmp_test_dir.resolve()
        assert manifest.runtime_flatpakref == str(base / "refs" / "rt.flatpakref")
        assert manifest.sdk_flatpakref == "https://example.com/sdk.flatpakref"

    def test_non_mapping_raises(self):
        """Test that a non-mapping manifest is rejected."""
        with pytest.raises(ConfigError):
            normalize(["org.world.Hello"])  # type: ignore[arg-type]


class TestNormalizeOptions:
    """Tests for option normalization and defaults."""

    def test_unknown_option_raises(self):
        """Test that a misspelled option is reported."""
        with pytest.raises(ConfigError, match="bundle_pth"):
            normalize(MINIMAL, {"bundlePth": "x.flatpak"})

    def test_paths_resolved(self, tmp_test_dir: Path):
        """Test that path options become absolute Paths."""
        _, options = normalize(
            MINIMAL,
            {"bundle-path": "out/hello.flatpak", "workingDir": "work"},
            base_dir=tmp_test_dir,
        )
        assert options.bundle_path == (tmp_test_dir / "out" / "hello.flatpak").resolve()
        assert options.working_dir == (tmp_test_dir / "work").resolve()

    def test_derived_paths_follow_working_dir(self, tmp_test_dir: Path):
        """Test build/repo/manifest defaults under working_dir."""
        work = tmp_test_dir.resolve()
        _, options = normalize(MINIMAL, {"working_dir": str(work)})
        assert options.build_dir == work / "build"
        assert options.repo_dir == work / "repo"
        assert options.manifest_path == work / "manifest.json"

    def test_derived_paths_unset_without_working_dir(self):
        """Test that nothing is derived before the working dir is known."""
        _, options = normalize(MINIMAL)
        assert options.working_dir is None
        assert options.build_dir is None
        assert options.repo_dir is None

    def test_explicit_paths_kept(self, tmp_test_dir: Path):
        """Test that explicit paths are never overwritten by defaults."""
        work = tmp_test_dir.resolve()
        _, options = normalize(
            MINIMAL, {"working_dir": str(work), "repo_dir": str(work / "r")}
        )
        assert options.repo_dir == work / "r"

    def test_auto_install_defaults_follow_descriptors(self):
        """Test auto_install_* defaults to whether a descriptor is set."""
        _, options = normalize(
            {**MINIMAL, "runtimeFlatpakref": "https://example.com/rt.flatpakref"}
        )
        assert options.auto_install_runtime is True
        assert options.auto_install_sdk is False
        assert options.auto_install_base is False

    def test_explicit_auto_install_false_kept(self):
        """Test that an explicit False is not replaced by the default."""
        _, options = normalize(
            {**MINIMAL, "runtimeFlatpakref": "https://example.com/rt.flatpakref"},
            {"autoInstallRuntime": False},
        )
        assert options.auto_install_runtime is False

    def test_null_options_use_defaults(self):
        """Test that explicit nulls fall back to defaults."""
        _, options = normalize(MINIMAL, {"clean-tmpdirs": None, "arch": None})
        assert options.clean_tmpdirs is True
        assert options.arch == host_arch()

    def test_unsupported_build_mode_raises(self):
        """Test that the build mode is validated."""
        with pytest.raises(ConfigError, match="Unsupported build mode"):
            normalize(MINIMAL, {"build-mode": "make"})

    def test_invalid_timeout_raises(self):
        """Test that a non-numeric timeout is rejected."""
        with pytest.raises(ConfigError, match="timeout"):
            normalize(MINIMAL, {"timeout": "soon"})

    def test_extra_args_as_tuples(self):
        """Test that passthrough argument lists are normalized."""
        _, options = normalize(
            MINIMAL, {"extraFlatpakBuilderArgs": ["--ccache", "--keep-build-dirs"]}
        )
        assert options.extra_flatpak_builder_args == ("--ccache", "--keep-build-dirs")

    def test_extra_args_must_be_list(self):
        """Test that a bare string is not accepted as an argument list."""
        with pytest.raises(ConfigError):
            normalize(MINIMAL, {"extraFlatpakBuilderArgs": "--ccache"})

    def test_options_instance_gets_defaults(self, tmp_test_dir: Path):
        """Test that an Options instance only has unset defaults filled."""
        options = Options(working_dir=tmp_test_dir, arch="aarch64")
        _, result = normalize(MINIMAL, options)
        assert result.arch == "aarch64"
        assert result.build_dir == tmp_test_dir.resolve() / "build"

    def test_options_instance_arch_and_paths_normalized(self, tmp_test_dir: Path):
        """Test that an Options instance gets arch aliases and relative paths fixed."""
        options = Options(
            working_dir=Path("work"),
            bundle_path=Path("out/hello.flatpak"),
            arch="x64",
        )
        _, result = normalize(MINIMAL, options, base_dir=tmp_test_dir)
        base = tmp_test_dir.resolve()
        assert result.arch == "x86_64"
        assert result.working_dir == base / "work"
        assert result.build_dir == base / "work" / "build"
        assert result.bundle_path == base / "out" / "hello.flatpak"

    def test_options_instance_bad_build_mode_raises(self):
        with pytest.raises(ConfigError, match="build mode"):
            normalize(MINIMAL, Options(build_mode="make"))

    def test_require_provisioned_path(self, tmp_test_dir: Path):
        """Test that require returns set paths and rejects unset ones."""
        options = Options(working_dir=tmp_test_dir)
        assert options.require("working_dir") == tmp_test_dir
        with pytest.raises(ConfigError, match="repo_dir unset"):
            options.require("repo_dir")


class TestManifestJson:
    """Tests for the manifest file mapping."""

    def test_kebab_keys_and_omissions(self):
        """Test kebab-case keys and that unset fields are left out."""
        manifest = Manifest(
            id="org.world.Hello",
            files=(("/src/hello", "/bin/hello"),),
            runtime="org.freedesktop.Platform",
            runtime_version="23.08",
            finish_args=("--share=network",),
            extra={"separate-locales": False},
        )
        data = manifest.to_json_dict()
        assert data == {
            "id": "org.world.Hello",
            "files": [["/src/hello", "/bin/hello"]],
            "branch": "master",
            "runtime": "org.freedesktop.Platform",
            "runtime-version": "23.08",
            "finish-args": ["--share=network"],
            "separate-locales": False,
        }

    def test_modules_passed_through(self):
        """Test that modules are written exactly as given."""
        modules = [{"name": "hello", "buildsystem": "simple"}]
        manifest = Manifest(id="org.world.Hello", files=(), modules=modules)
        assert manifest.to_json_dict()["modules"] == modules


class TestLoader:
    """Tests for recipe loading."""

    def test_read_recipe_canonicalizes(self, create_yaml_file):
        """Test that read_recipe returns snake_case mappings."""
        recipe = create_yaml_file(
            "recipe.yaml",
            {
                "manifest": {"app-id": "org.world.Hello", "files": []},
                "options": {"bundlePath": "hello.flatpak"},
            },
        )
        manifest, options = read_recipe(recipe)
        assert manifest["app_id"] == "org.world.Hello"
        assert options == {"bundle_path": "hello.flatpak"}

    def test_paths_relative_to_recipe(self, tmp_test_dir: Path, create_yaml_file):
        """Test that relative paths resolve against the recipe directory."""
        recipe = create_yaml_file(
            "recipes/hello.yaml",
            {
                "manifest": {
                    "id": "org.world.Hello",
                    "runtimeFlatpakref": "refs/runtime.flatpakref",
                    "sdkFlatpakref": "https://example.com/sdk.flatpakref",
                    "files": [["build/hello", "/bin/hello"]],
                },
                "options": {"bundle-path": "out/hello.flatpak"},
            },
        )
        recipe_dir = (tmp_test_dir / "recipes").resolve()
        manifest, options = load_recipe(recipe)

        assert manifest.files[0][0] == str(recipe_dir / "build" / "hello")
        runtime_ref = recipe_dir / "refs" / "runtime.flatpakref"
        assert manifest.runtime_flatpakref == str(runtime_ref)
        assert manifest.sdk_flatpakref == "https://example.com/sdk.flatpakref"
        assert options.bundle_path == recipe_dir / "out" / "hello.flatpak"

    def test_overrides_applied(self, create_yaml_file):
        """Test that overrides replace recipe options key by key."""
        recipe = create_yaml_file(
            "recipe.yaml",
            {
                "manifest": MINIMAL,
                "options": {"arch": "aarch64", "buildRuntime": True},
            },
        )
        _, options = load_recipe(recipe, {"arch": "x64", "bundle-path": None})
        assert options.arch == "x86_64"
        assert options.build_runtime is True
        assert options.bundle_path is None

    def test_missing_file_raises(self, tmp_test_dir: Path):
        """Test that a missing recipe raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_recipe(tmp_test_dir / "missing.yaml")

    def test_empty_file_raises(self, tmp_test_dir: Path):
        """Test that an empty recipe raises ConfigError."""
        recipe = tmp_test_dir / "empty.yaml"
        recipe.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError, match="empty"):
            load_recipe(recipe)

    def test_invalid_yaml_raises(self, tmp_test_dir: Path):
        """Test that a YAML syntax error raises ConfigError."""
        recipe = tmp_test_dir / "broken.yaml"
        recipe.write_text("manifest: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="parsing YAML"):
            load_recipe(recipe)

    def test_missing_manifest_raises(self, create_yaml_file):
        """Test that a recipe must have a manifest mapping."""
        recipe = create_yaml_file("recipe.yaml", {"options": {}})
        with pytest.raises(ConfigError, match="manifest"):
            load_recipe(recipe)

    def test_json_recipe(self, tmp_test_dir: Path):
        """Test that a JSON recipe loads too."""
        recipe = tmp_test_dir / "recipe.json"
        recipe.write_text(
            '{"manifest": {"id": "org.world.Hello", "files": []}}', encoding="utf-8"
        )
        manifest, _ = load_recipe(recipe)
        assert manifest.id == "org.world.Hello"
