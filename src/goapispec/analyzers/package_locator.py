"""Package location: import name -> source directory.

Packages are discovered by walking the primary module and the extracted
source of every go.mod requirement. Standard library packages are looked
up lazily under GOROOT/src. Every lookup, including a miss, is memoized.
"""

import os
from pathlib import Path

from goapispec.analyzers.gomod import GoModule, ModuleRequirement, module_source_dir
from goapispec.models.declarations import Package
from goapispec.utils.logging import get_logger

_logger = get_logger(__name__)

# Directories the go tool never treats as packages of the enclosing module
SKIP_DIRS = {"testdata", "vendor", "node_modules"}


def is_source_file(path: Path) -> bool:
    """Return True for Go files the compiler would build (tests excluded)."""
    name = path.name
    return (
        name.endswith(".go")
        and not name.endswith("_test.go")
        and not name.startswith((".", "_"))
    )


def has_source_files(directory: Path) -> bool:
    """Return True if the directory directly contains buildable Go files."""
    try:
        return any(is_source_file(entry) and entry.is_file() for entry in directory.iterdir())
    except OSError:
        return False


def iter_source_dirs(root: Path) -> list[Path]:
    """List directories below root that hold Go sources, in sorted order.

    Hidden and underscore-prefixed directories, SKIP_DIRS and nested modules
    (subdirectories with their own go.mod) are not descended into.
    """
    found: list[Path] = []
    for current, dirnames, filenames in os.walk(root):
        current_path = Path(current)
        dirnames[:] = sorted(
            d for d in dirnames
            if not d.startswith((".", "_"))
            and d not in SKIP_DIRS
            and not (current_path / d / "go.mod").exists()
        )
        if any(is_source_file(Path(f)) for f in filenames):
            found.append(current_path)
    return found


class PackageLocator:
    """Resolves import names to package directories.

    The primary module and its requirements are walked once by
    ``discover()``; ``locate()`` then answers from the index, falling back
    to the module's vendor tree and GOROOT/src.
    """

    def __init__(
        self,
        module: GoModule,
        module_cache: Path | None = None,
        goroot: Path | None = None,
    ) -> None:
        """Initialize the locator.

        Args:
            module: Parsed go.mod of the primary module
            module_cache: Module cache root (GOPATH/pkg/mod)
            goroot: Go installation root
        """
        self.module = module
        self.module_cache = module_cache
        self.goroot_src = goroot / "src" if goroot else None
        self._by_name: dict[str, Package] = {}
        self._located: dict[str, Package | None] = {}
        self._core: dict[str, bool] = {}
        self._missing_requirements: list[ModuleRequirement] = []
        self._discovered = False

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def discover(self) -> list[Package]:
        """Walk the primary module and every requirement.

        Returns:
            All discovered packages, primary module first
        """
        if self._discovered:
            return self.packages

        for directory in iter_source_dirs(self.module.root):
            rel = directory.relative_to(self.module.root).as_posix()
            name = self.module.name if rel == "." else f"{self.module.name}/{rel}"
            self._register(name, directory)

        for requirement in sorted(self.module.requirements, key=lambda r: r.path):
            root = self.requirement_root(requirement)
            if root is None or not root.is_dir():
                self._missing_requirements.append(requirement)
                _logger.debug(f"Sources for {requirement.path}@{requirement.version} not found")
                continue
            for directory in iter_source_dirs(root):
                rel = directory.relative_to(root).as_posix()
                name = requirement.path if rel == "." else f"{requirement.path}/{rel}"
                self._register(name, directory)

        self._discovered = True
        _logger.debug(f"Discovered {len(self._by_name)} packages")
        return self.packages

    def requirement_root(self, requirement: ModuleRequirement) -> Path | None:
        """Return the source directory of a required module."""
        replaced = self.module.replacements.get(requirement.path)
        if replaced is not None:
            return replaced
        if self.module_cache is None:
            return None
        return module_source_dir(self.module_cache, requirement)

    @property
    def missing_requirements(self) -> list[ModuleRequirement]:
        """Requirements whose sources were not found during discovery."""
        return list(self._missing_requirements)

    def _register(self, name: str, path: Path) -> Package:
        existing = self._by_name.get(name)
        if existing is not None:
            return existing
        package = Package(name=name, path=path)
        self._by_name[name] = package
        return package

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def packages(self) -> list[Package]:
        """All known packages in discovery order."""
        return list(self._by_name.values())

    def locate(self, import_name: str) -> tuple[Path | None, bool]:
        """Return the source directory of an import.

        Search order: discovered packages (primary module, then
        requirements), the module's vendor tree, GOROOT/src.

        Args:
            import_name: Package import path

        Returns:
            Tuple of (path, found)
        """
        package = self.package(import_name)
        if package is None:
            return None, False
        return package.path, True

    def package(self, import_name: str) -> Package | None:
        """Like ``locate()`` but returns the Package entity."""
        if import_name in self._located:
            return self._located[import_name]

        self.discover()
        package = self._by_name.get(import_name)

        if package is None:
            vendored = self.module.root / "vendor" / import_name
            if has_source_files(vendored):
                package = self._register(import_name, vendored)

        if package is None:
            package = self._locate_in_requirements(import_name)

        if package is None and self.goroot_src is not None:
            core_dir = self.goroot_src / import_name
            if has_source_files(core_dir):
                package = self._register(import_name, core_dir)
                self._core[import_name] = True

        if package is None:
            _logger.debug(f"Package not found: {import_name}")

        self._located[import_name] = package
        return package

    def _locate_in_requirements(self, import_name: str) -> Package | None:
        # Packages of a requirement that discovery skipped (e.g. below testdata)
        for requirement in self.module.requirements:
            if import_name != requirement.path and not import_name.startswith(
                requirement.path + "/"
            ):
                continue
            root = self.requirement_root(requirement)
            if root is None:
                continue
            directory = root / import_name[len(requirement.path):].lstrip("/")
            if has_source_files(directory):
                return self._register(import_name, directory)
        return None

    def find_by_suffix(self, alias: str) -> list[Package]:
        """Return known packages whose last path element equals ``alias``."""
        self.discover()
        return [p for p in self._by_name.values() if p.last_segment == alias]

    def is_primary(self, package_name: str) -> bool:
        """Return True for packages that belong to the primary module."""
        return package_name == self.module.name or package_name.startswith(
            self.module.name + "/"
        )

    def is_core(self, import_name: str) -> bool:
        """Return True for standard library packages.

        With a known GOROOT the package must exist under GOROOT/src;
        otherwise the go tool's rule applies (no dot in the first element).
        """
        if import_name in self._core:
            return self._core[import_name]
        if self.is_primary(import_name):
            result = False
        elif self.goroot_src is not None:
            result = (self.goroot_src / import_name).is_dir()
        else:
            result = "." not in import_name.split("/", 1)[0]
        self._core[import_name] = result
        return result
