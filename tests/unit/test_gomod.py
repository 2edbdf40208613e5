"""Unit tests for go.mod parsing and toolchain discovery."""

from pathlib import Path

import pytest

from goapispec.analyzers.go_parser import GoSourceParser
from goapispec.analyzers.gomod import (
    ModuleRequirement,
    escape_module_path,
    find_goroot,
    find_main_file,
    find_module_cache,
    module_source_dir,
    parse_go_mod,
)
from goapispec.errors import ConfigurationError

GO_MOD = """module github.com/acme/shop

go 1.22.1

require (
	github.com/google/uuid v1.6.0
	github.com/BurntSushi/toml v1.3.2 // indirect
)

require golang.org/x/text v0.14.0

replace github.com/acme/lib => ../lib
replace github.com/other/fork => github.com/other/fork v1.0.1
"""


class TestParseGoMod:
    """Tests for parse_go_mod."""

    @pytest.fixture
    def go_mod(self, tmp_path: Path) -> Path:
        """Write a go.mod with block and single-line directives."""
        path = tmp_path / "shop" / "go.mod"
        path.parent.mkdir()
        path.write_text(GO_MOD)
        return path

    def test_module_name_and_version(self, go_mod: Path) -> None:
        """Test module and go directives."""
        module = parse_go_mod(go_mod)

        assert module.name == "github.com/acme/shop"
        assert module.go_version == "1.22.1"
        assert module.root == go_mod.parent

    def test_requirements(self, go_mod: Path) -> None:
        """Test block and single-line requirements with indirect markers."""
        module = parse_go_mod(go_mod)
        requirements = {r.path: r for r in module.requirements}

        assert set(requirements) == {
            "github.com/google/uuid",
            "github.com/BurntSushi/toml",
            "golang.org/x/text",
        }
        assert requirements["github.com/BurntSushi/toml"].indirect is True
        assert requirements["github.com/google/uuid"].version == "v1.6.0"

    def test_only_local_replacements_kept(self, go_mod: Path) -> None:
        """Test that module-to-module replacements are ignored."""
        module = parse_go_mod(go_mod)

        assert module.replacements == {
            "github.com/acme/lib": (go_mod.parent / "../lib").resolve()
        }

    def test_missing_module_directive(self, tmp_path: Path) -> None:
        """Test that a go.mod without module directive is rejected."""
        path = tmp_path / "go.mod"
        path.write_text("go 1.21\n")

        with pytest.raises(ConfigurationError, match="no module directive"):
            parse_go_mod(path)

    def test_unreadable_file(self, tmp_path: Path) -> None:
        """Test that a missing go.mod raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="cannot read"):
            parse_go_mod(tmp_path / "go.mod")


class TestModuleCache:
    """Tests for module cache paths."""

    def test_escape_uppercase(self) -> None:
        """Test uppercase letters are escaped with '!'."""
        assert escape_module_path("github.com/BurntSushi/toml") == "github.com/!burnt!sushi/toml"

    def test_module_source_dir(self, tmp_path: Path) -> None:
        """Test the extracted directory name includes the version."""
        requirement = ModuleRequirement(path="github.com/Acme/lib", version="v1.0.0")

        assert module_source_dir(tmp_path, requirement) == tmp_path / "github.com/!acme/lib@v1.0.0"

    def test_override_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an explicit module cache beats the environment."""
        monkeypatch.setenv("GOMODCACHE", "/env/cache")

        assert find_module_cache("/explicit") == Path("/explicit")

    def test_gomodcache_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test GOMODCACHE is used when set."""
        monkeypatch.setenv("GOMODCACHE", "/env/cache")

        assert find_module_cache() == Path("/env/cache")

    def test_gopath_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the last GOPATH entry is used without GOMODCACHE."""
        monkeypatch.delenv("GOMODCACHE", raising=False)
        monkeypatch.setenv("GOPATH", "/first:/second")

        assert find_module_cache() == Path("/second/pkg/mod")


class TestGoroot:
    """Tests for GOROOT discovery."""

    def test_override(self) -> None:
        """Test that an explicit GOROOT is returned as is."""
        assert find_goroot("/opt/go") == Path("/opt/go")

    def test_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test GOROOT from the environment."""
        monkeypatch.setenv("GOROOT", "/env/go")

        assert find_goroot() == Path("/env/go")

    def test_no_go_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test None when neither GOROOT nor the go binary exist."""
        monkeypatch.delenv("GOROOT", raising=False)
        monkeypatch.setattr("goapispec.analyzers.gomod.shutil.which", lambda _: None)

        assert find_goroot() is None


class TestFindMainFile:
    """Tests for main file discovery."""

    def test_finds_package_main(self, go_parser: GoSourceParser, tmp_path: Path) -> None:
        """Test the file with package main and func main is found."""
        (tmp_path / "a_util.go").write_text("package main\n\nfunc helper() {}\n")
        (tmp_path / "b_main.go").write_text("package main\n\nfunc main() {}\n")

        assert find_main_file(tmp_path, go_parser) == tmp_path / "b_main.go"

    def test_test_files_skipped(self, go_parser: GoSourceParser, tmp_path: Path) -> None:
        """Test _test.go files are never chosen."""
        (tmp_path / "main_test.go").write_text("package main\n\nfunc main() {}\n")

        with pytest.raises(ConfigurationError, match="cannot find a main file"):
            find_main_file(tmp_path, go_parser)
