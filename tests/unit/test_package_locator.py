"""Unit tests for package location."""

from collections.abc import Callable
from pathlib import Path

from goapispec.analyzers.gomod import parse_go_mod
from goapispec.analyzers.package_locator import PackageLocator, is_source_file, iter_source_dirs


class TestSourceDirs:
    """Tests for source directory walking."""

    def test_is_source_file(self) -> None:
        """Test test files and hidden files are excluded."""
        assert is_source_file(Path("user.go"))
        assert not is_source_file(Path("user_test.go"))
        assert not is_source_file(Path("_gen.go"))
        assert not is_source_file(Path("README.md"))

    def test_skips_vendor_testdata_and_nested_modules(self, make_module: Callable[..., Path]) -> None:
        """Test directories the go tool ignores are not walked."""
        root = make_module({
            "main.go": "package main\n",
            "api/api.go": "package api\n",
            "testdata/fixture.go": "package fixture\n",
            "vendor/x/x.go": "package x\n",
            "tools/go.mod": "module example.com/tools\n",
            "tools/tools.go": "package tools\n",
            "docs/README.md": "# docs\n",
        })

        assert iter_source_dirs(root) == [root, root / "api"]


class TestPackageLocator:
    """Tests for PackageLocator."""

    def test_discovers_primary_and_requirements(
        self, petstore_root: Path, module_cache_dir: Path, goroot_dir: Path
    ) -> None:
        """Test the primary module and cached requirements are indexed."""
        locator = PackageLocator(
            parse_go_mod(petstore_root / "go.mod"), module_cache=module_cache_dir, goroot=goroot_dir
        )

        names = [p.name for p in locator.discover()]

        assert names == [
            "github.com/acme/petstore",
            "github.com/acme/petstore/handler",
            "github.com/acme/petstore/model",
            "github.com/acme/shared/audit",
        ]
        assert locator.missing_requirements == []

    def test_locate_and_memoize(self, petstore_root: Path, module_cache_dir: Path) -> None:
        """Test locate() returns the directory and remembers misses."""
        locator = PackageLocator(parse_go_mod(petstore_root / "go.mod"), module_cache=module_cache_dir)

        path, found = locator.locate("github.com/acme/petstore/model")
        assert found is True
        assert path == petstore_root / "model"

        assert locator.locate("github.com/nobody/nothing") == (None, False)
        assert "github.com/nobody/nothing" in locator._located

    def test_standard_library_from_goroot(self, petstore_root: Path, goroot_dir: Path) -> None:
        """Test packages under GOROOT/src are found lazily and flagged core."""
        locator = PackageLocator(parse_go_mod(petstore_root / "go.mod"), goroot=goroot_dir)

        package = locator.package("net/url")

        assert package is not None
        assert package.path == goroot_dir / "src" / "net" / "url"
        assert locator.is_core("net/url") is True
        assert locator.is_core("github.com/acme/petstore/model") is False

    def test_is_core_without_goroot(self, petstore_root: Path) -> None:
        """Test the no-dot rule applies when GOROOT is unknown."""
        locator = PackageLocator(parse_go_mod(petstore_root / "go.mod"))

        assert locator.is_core("encoding/json") is True
        assert locator.is_core("github.com/google/uuid") is False

    def test_missing_requirement(self, petstore_root: Path, tmp_path: Path) -> None:
        """Test requirements absent from the cache are reported."""
        locator = PackageLocator(parse_go_mod(petstore_root / "go.mod"), module_cache=tmp_path)

        locator.discover()

        assert [r.path for r in locator.missing_requirements] == ["github.com/acme/shared"]
        assert locator.package("github.com/acme/shared/audit") is None

    def test_local_replacement(self, make_module: Callable[..., Path]) -> None:
        """Test replace directives pointing at a directory are honored."""
        make_module({"types/types.go": "package types\n"}, module="example.com/lib", name="lib")
        root = make_module(
            {"main.go": "package main\n"},
            requires={"example.com/lib": "v0.0.0"},
            replaces={"example.com/lib": "../lib"},
        )
        locator = PackageLocator(parse_go_mod(root / "go.mod"))

        package = locator.package("example.com/lib/types")

        assert package is not None
        assert package.path == (root / "../lib/types").resolve()

    def test_vendor_directory(self, make_module: Callable[..., Path]) -> None:
        """Test vendored packages are found when nothing else matches."""
        root = make_module({
            "main.go": "package main\n",
            "vendor/example.org/dep/dep.go": "package dep\n",
        })
        locator = PackageLocator(parse_go_mod(root / "go.mod"))

        package = locator.package("example.org/dep")

        assert package is not None
        assert package.path == root / "vendor" / "example.org" / "dep"

    def test_find_by_suffix(self, petstore_root: Path, module_cache_dir: Path) -> None:
        """Test last-segment lookup."""
        locator = PackageLocator(parse_go_mod(petstore_root / "go.mod"), module_cache=module_cache_dir)

        matches = locator.find_by_suffix("audit")

        assert [p.name for p in matches] == ["github.com/acme/shared/audit"]
        assert locator.is_primary("github.com/acme/petstore/handler") is True
        assert locator.is_primary("github.com/acme/petstorefront") is False
