"""go.mod parsing and Go toolchain location discovery.

Only what package location needs is extracted: the module path, the
``require`` list and local-path ``replace`` directives.
"""

import os
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from goapispec.analyzers.go_parser import GoSourceParser
from goapispec.errors import ConfigurationError
from goapispec.utils.logging import get_logger

_logger = get_logger(__name__)

_MODULE_PATTERN = re.compile(r"^module\s+\"?([^\s\"]+)\"?", re.MULTILINE)
_GO_VERSION_PATTERN = re.compile(r"^go\s+(\d+\.\d+(?:\.\d+)?)", re.MULTILINE)
_BLOCK_PATTERN = re.compile(r"^(require|replace)\s*\((.*?)^\)", re.MULTILINE | re.DOTALL)
_SINGLE_PATTERN = re.compile(r"^(require|replace)\s+([^(\s].*)$", re.MULTILINE)


@dataclass(frozen=True)
class ModuleRequirement:
    """One ``require`` entry."""

    path: str
    version: str
    indirect: bool = False


@dataclass
class GoModule:
    """Parsed go.mod content.

    Attributes:
        name: Module path from the ``module`` directive
        go_version: Language version from the ``go`` directive
        requirements: Required modules in file order
        replacements: Module path -> local directory for path replacements
        root: Directory holding the go.mod
    """

    name: str
    root: Path
    go_version: str | None = None
    requirements: list[ModuleRequirement] = field(default_factory=list)
    replacements: dict[str, Path] = field(default_factory=dict)


def _strip_comment(line: str) -> tuple[str, str]:
    code, _, comment = line.partition("//")
    return code.strip(), comment.strip()


def parse_go_mod(file_path: Path) -> GoModule:
    """Parse a go.mod file.

    Args:
        file_path: Path to go.mod

    Returns:
        GoModule with the module name, requirements and local replacements

    Raises:
        ConfigurationError: If the file is unreadable or has no module directive
    """
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read {file_path}: {e}") from e

    module_match = _MODULE_PATTERN.search(content)
    if not module_match:
        raise ConfigurationError(f"no module directive in {file_path}")

    version_match = _GO_VERSION_PATTERN.search(content)
    module = GoModule(
        name=module_match.group(1),
        root=file_path.parent,
        go_version=version_match.group(1) if version_match else None,
    )

    entries: list[tuple[str, str]] = []
    for match in _BLOCK_PATTERN.finditer(content):
        for line in match.group(2).splitlines():
            entries.append((match.group(1), line))
    for match in _SINGLE_PATTERN.finditer(content):
        entries.append((match.group(1), match.group(2)))

    for directive, line in entries:
        code, comment = _strip_comment(line)
        if not code:
            continue
        if directive == "require":
            parts = code.split()
            if len(parts) >= 2 and not any(r.path == parts[0] for r in module.requirements):
                module.requirements.append(
                    ModuleRequirement(
                        path=parts[0],
                        version=parts[1],
                        indirect=comment == "indirect",
                    )
                )
        else:
            old, arrow, new = code.partition("=>")
            if not arrow:
                continue
            old_path = old.split()[0] if old.split() else ""
            target = new.split()
            if old_path and len(target) == 1 and target[0].startswith((".", "/")):
                module.replacements[old_path] = (module.root / target[0]).resolve()

    _logger.debug(
        f"Parsed {file_path}: module {module.name}, "
        f"{len(module.requirements)} requirements, {len(module.replacements)} replacements"
    )
    return module


def escape_module_path(path: str) -> str:
    """Escape a module path the way the module cache stores it.

    Each uppercase letter becomes ``!`` followed by its lowercase form,
    e.g. ``github.com/BurntSushi/toml`` -> ``github.com/!burnt!sushi/toml``.
    """
    return "".join(f"!{c.lower()}" if c.isupper() else c for c in path)


def module_source_dir(module_cache: Path, requirement: ModuleRequirement) -> Path:
    """Return the extracted source directory of a required module."""
    return module_cache / f"{escape_module_path(requirement.path)}@{requirement.version}"


# =============================================================================
# Toolchain Locations
# =============================================================================


def find_module_cache(override: str | None = None) -> Path:
    """Return the module cache directory.

    Resolution order: explicit override, GOMODCACHE, the last GOPATH entry
    plus ``pkg/mod``, then ``~/go/pkg/mod``.
    """
    if override:
        return Path(override).expanduser()

    env_cache = os.environ.get("GOMODCACHE")
    if env_cache:
        return Path(env_cache)

    gopath = os.environ.get("GOPATH", "")
    entries = [p for p in gopath.split(os.pathsep) if p]
    base = Path(entries[-1]) if entries else Path.home() / "go"
    return base / "pkg" / "mod"


def find_goroot(override: str | None = None, timeout: int = 10) -> Path | None:
    """Return the Go installation root, if one can be found.

    Resolution order: explicit override, GOROOT, then ``go env GOROOT``.
    """
    if override:
        return Path(override).expanduser()

    env_root = os.environ.get("GOROOT")
    if env_root:
        return Path(env_root)

    go_binary = shutil.which("go")
    if go_binary is None:
        return None

    try:
        result = subprocess.run(
            [go_binary, "env", "GOROOT"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        _logger.debug(f"go env GOROOT failed: {e}")
        return None

    value = result.stdout.strip()
    if result.returncode != 0 or not value:
        return None
    return Path(value)


def find_main_file(module_root: Path, parser: GoSourceParser) -> Path:
    """Find the file declaring ``package main`` with ``func main()``.

    Only the module root is searched, in sorted file order.

    Raises:
        ConfigurationError: If no such file exists
    """
    for candidate in sorted(module_root.glob("*.go")):
        if candidate.name.endswith("_test.go"):
            continue
        result = parser.parse_file(candidate)
        if result.success and result.file is not None and result.file.declares_main():
            _logger.debug(f"Discovered main file: {candidate}")
            return candidate
    raise ConfigurationError(f"cannot find a main file in {module_root}; pass --main-file")


