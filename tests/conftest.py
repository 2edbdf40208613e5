"""Shared pytest fixtures for goapispec tests.

This module provides common fixtures used across unit and integration
tests. Fixtures are organized by category:
- Path fixtures: the sample Go module, its module cache and a fake GOROOT
- Module fixtures: throwaway Go modules written into tmp_path
- Configuration fixtures: configs pointing at the fixture toolchain
- Context fixtures: resolution contexts ready for the resolver
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from goapispec.analyzers.declaration_index import DeclarationIndex
from goapispec.analyzers.go_parser import GoSourceParser
from goapispec.analyzers.gomod import parse_go_mod
from goapispec.analyzers.package_locator import PackageLocator
from goapispec.config import FetchConfig, GoapiSpecConfig, GoEnvConfig
from goapispec.context import ResolutionContext, ResolutionSettings
from tests.fixtures import GOROOT_DIR, MODULE_CACHE_DIR, PETSTORE_PATH

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def petstore_root() -> Path:
    """Return the sample petstore module root."""
    return PETSTORE_PATH


@pytest.fixture
def module_cache_dir() -> Path:
    """Return the fake module cache holding github.com/acme/shared."""
    return MODULE_CACHE_DIR


@pytest.fixture
def goroot_dir() -> Path:
    """Return the fake GOROOT (only net/url is present)."""
    return GOROOT_DIR


# =============================================================================
# Parser Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def go_parser() -> GoSourceParser:
    """Return a Go parser shared by the whole session (grammar loads once)."""
    return GoSourceParser()


# =============================================================================
# Module Fixtures
# =============================================================================


@pytest.fixture
def make_module(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory writing a Go module into tmp_path.

    Usage:
        root = make_module({"model/user.go": "package model\\n..."})
    """

    def _make(
        files: dict[str, str],
        module: str = "example.com/app",
        requires: dict[str, str] | None = None,
        name: str = "app",
        replaces: dict[str, str] | None = None,
    ) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        lines = [f"module {module}", "", "go 1.21"]
        if requires:
            lines.append("")
            lines.append("require (")
            lines.extend(f"\t{path} {version}" for path, version in requires.items())
            lines.append(")")
        for path, target in (replaces or {}).items():
            lines.append(f"replace {path} => {target}")
        (root / "go.mod").write_text("\n".join(lines) + "\n")
        for relative, content in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return root

    return _make


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def test_config(module_cache_dir: Path, goroot_dir: Path) -> GoapiSpecConfig:
    """Return a config that resolves against the fixture toolchain only."""
    config = GoapiSpecConfig()
    config.go = GoEnvConfig(module_cache=str(module_cache_dir), goroot=str(goroot_dir))
    config.fetch = FetchConfig(enabled=False)
    return config


@pytest.fixture
def config_file(tmp_path: Path, module_cache_dir: Path, goroot_dir: Path) -> Path:
    """Write a YAML config pointing at the fixture toolchain."""
    path = tmp_path / "goapispec.yaml"
    path.write_text(
        "go:\n"
        f'  module_cache: "{module_cache_dir}"\n'
        f'  goroot: "{goroot_dir}"\n'
        "fetch:\n"
        "  enabled: false\n"
    )
    return path


# =============================================================================
# Context Fixtures
# =============================================================================


@pytest.fixture
def make_context(
    go_parser: GoSourceParser,
    module_cache_dir: Path,
    goroot_dir: Path,
) -> Callable[..., ResolutionContext]:
    """Return a factory building a ResolutionContext for a module root."""

    def _make(root: Path, **settings: object) -> ResolutionContext:
        module = parse_go_mod(root / "go.mod")
        locator = PackageLocator(module, module_cache=module_cache_dir, goroot=goroot_dir)
        locator.discover()
        return ResolutionContext(
            locator,
            DeclarationIndex(go_parser),
            ResolutionSettings(**settings),  # type: ignore[arg-type]
        )

    return _make
