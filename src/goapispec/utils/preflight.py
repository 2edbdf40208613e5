"""Preflight validation.

Everything a generation run depends on is checked before scanning starts:
the tree-sitter Go grammar and the module's go.mod are required; the go
toolchain, the module cache and GOROOT are optional, since a run without
them only loses dependency and standard-library type resolution.
"""

import importlib.util
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from goapispec.analyzers.gomod import find_goroot, find_module_cache, parse_go_mod
from goapispec.errors import ConfigurationError


@dataclass
class ToolCheck:
    """Result of checking a single prerequisite.

    Attributes:
        name: Check name
        available: Whether the prerequisite is satisfied
        version: Version if known
        required: Whether a run cannot proceed without it
        path: Location found, if any
        message: Status message (human-readable context)
    """

    name: str
    available: bool
    version: str | None = None
    required: bool = True
    path: str | None = None
    message: str = ""


@dataclass
class PreflightResult:
    """Result of preflight validation.

    Attributes:
        success: Whether all required checks passed
        checks: Individual check results
        errors: Messages for failed required checks
        warnings: Messages for failed optional checks
    """

    success: bool = True
    checks: list[ToolCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_check(self, check: ToolCheck) -> None:
        """Add a check result."""
        self.checks.append(check)

        if not check.available:
            if check.required:
                self.success = False
                self.errors.append(f"Required check failed: {check.name}")
            else:
                self.warnings.append(f"Optional check failed: {check.name}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "name": c.name,
                    "available": c.available,
                    "version": c.version,
                    "required": c.required,
                    "path": c.path,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


class PreflightChecker:
    """Validates prerequisites before generation.

    Usage:
        checker = PreflightChecker()
        result = checker.check_all(Path("."))
        if not result.success:
            raise typer.Exit(1)
    """

    def __init__(self, timeout: int = 10) -> None:
        """Initialize preflight checker.

        Args:
            timeout: Timeout in seconds for subprocess calls
        """
        self.timeout = timeout

    def check_command_available(self, command: str) -> tuple[bool, str | None]:
        """Check if a command is available in PATH.

        Returns:
            Tuple of (available, path)
        """
        path = shutil.which(command)
        return path is not None, path

    def get_command_version(self, command: str, version_args: list[str] | None = None) -> str | None:
        """Get the first line a command prints for its version arguments."""
        if version_args is None:
            version_args = ["--version"]

        try:
            result = subprocess.run(
                [command, *version_args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            if result.returncode == 0:
                output = result.stdout.strip() or result.stderr.strip()
                return output.split("\n")[0] if output else None
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
            pass
        return None

    def check_tree_sitter(self, required: bool = True) -> ToolCheck:
        """Check that tree-sitter and its Go grammar can be loaded."""
        ts_spec = importlib.util.find_spec("tree_sitter")
        if ts_spec is None:
            return ToolCheck(
                name="tree-sitter",
                available=False,
                required=required,
                message="Install with: pip install tree-sitter",
            )

        lang_pack_spec = importlib.util.find_spec("tree_sitter_language_pack")
        if lang_pack_spec is None:
            return ToolCheck(
                name="tree-sitter",
                available=False,
                required=required,
                message="Install with: pip install tree-sitter-language-pack",
            )

        from goapispec.analyzers.go_parser import GoSourceParser

        if not GoSourceParser().check_available():
            return ToolCheck(
                name="tree-sitter",
                available=False,
                required=required,
                message="The Go grammar could not be loaded from tree-sitter-language-pack",
            )

        import tree_sitter

        return ToolCheck(
            name="tree-sitter",
            available=True,
            version=getattr(tree_sitter, "__version__", None),
            required=required,
            path=ts_spec.origin,
            message="Go source parser",
        )

    def check_go_mod(self, module_root: Path, required: bool = True) -> ToolCheck:
        """Check that the module root holds a parseable go.mod."""
        go_mod = module_root / "go.mod"
        if not go_mod.is_file():
            return ToolCheck(
                name="go.mod",
                available=False,
                required=required,
                message=f"No go.mod in {module_root}; pass --module-path",
            )

        try:
            module = parse_go_mod(go_mod)
        except ConfigurationError as e:
            return ToolCheck(name="go.mod", available=False, required=required, message=e.message)

        return ToolCheck(
            name="go.mod",
            available=True,
            version=module.go_version,
            required=required,
            path=str(go_mod),
            message=f"module {module.name}, {len(module.requirements)} requirements",
        )

    def check_go(self, required: bool = False) -> ToolCheck:
        """Check for the go toolchain (only used to locate GOROOT)."""
        available, path = self.check_command_available("go")
        if available:
            return ToolCheck(
                name="go",
                available=True,
                version=self.get_command_version("go", ["version"]),
                required=required,
                path=path,
                message="Go toolchain",
            )
        return ToolCheck(
            name="go",
            available=False,
            required=required,
            message="Install from: https://go.dev/dl (or set GOROOT)",
        )

    def check_module_cache(self, override: str | None = None, required: bool = False) -> ToolCheck:
        """Check that the module cache directory exists."""
        cache = find_module_cache(override)
        if cache.is_dir():
            return ToolCheck(
                name="module-cache",
                available=True,
                required=required,
                path=str(cache),
                message="Dependency sources",
            )
        return ToolCheck(
            name="module-cache",
            available=False,
            required=required,
            path=str(cache),
            message="Run 'go mod download' so dependency types can be resolved",
        )

    def check_goroot(self, override: str | None = None, required: bool = False) -> ToolCheck:
        """Check that the standard library sources can be found."""
        goroot = find_goroot(override, timeout=self.timeout)
        if goroot is not None and (goroot / "src").is_dir():
            return ToolCheck(
                name="goroot",
                available=True,
                required=required,
                path=str(goroot),
                message="Standard library sources",
            )
        return ToolCheck(
            name="goroot",
            available=False,
            required=required,
            path=str(goroot) if goroot else None,
            message="Set GOROOT so standard library types can be resolved",
        )

    def check_all(
        self,
        module_root: Path,
        module_cache: str | None = None,
        goroot: str | None = None,
    ) -> PreflightResult:
        """Run all preflight checks.

        Args:
            module_root: Directory expected to hold go.mod
            module_cache: Module cache override
            goroot: GOROOT override

        Returns:
            PreflightResult with all check results
        """
        result = PreflightResult()
        result.add_check(self.check_tree_sitter(required=True))
        result.add_check(self.check_go_mod(module_root, required=True))
        result.add_check(self.check_module_cache(module_cache, required=False))
        result.add_check(self.check_goroot(goroot, required=False))
        if goroot is None:
            result.add_check(self.check_go(required=False))
        return result
