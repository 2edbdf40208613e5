"""Per-package declaration tables.

Each package directory is parsed at most once. The index answers two
questions about it: which types it declares, and which import paths each
import alias of its files refers to.
"""

from dataclasses import dataclass, field
from pathlib import Path

from goapispec.analyzers.go_parser import GoSourceParser
from goapispec.analyzers.package_locator import is_source_file
from goapispec.errors import GoapiSpecError
from goapispec.models.declarations import GoFile, TypeDeclaration
from goapispec.utils.logging import get_logger

_logger = get_logger(__name__)


class PackageParseError(GoapiSpecError):
    """Raised when a package directory cannot be read or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"cannot parse package at {path}: {reason}")


@dataclass
class PackageSource:
    """Parsed content of one package directory.

    Attributes:
        path: Package directory
        files: Parsed files in sorted file-name order
        types: Declaration key -> declaration (first declaration wins)
        aliases: Import alias -> import paths, in first-seen order
    """

    path: Path
    files: list[GoFile] = field(default_factory=list)
    types: dict[str, TypeDeclaration] = field(default_factory=dict)
    aliases: dict[str, list[str]] = field(default_factory=dict)

    @property
    def package_name(self) -> str:
        """Package clause name of the first file."""
        return self.files[0].package if self.files else ""


class DeclarationIndex:
    """Lazily parses package directories and caches the result by path."""

    def __init__(self, parser: GoSourceParser | None = None) -> None:
        """Initialize the index.

        Args:
            parser: Go source parser (a new one is created if omitted)
        """
        self.parser = parser or GoSourceParser()
        self._cache: dict[Path, PackageSource] = {}

    def source(self, package_path: Path) -> PackageSource:
        """Parse a package directory, or return the cached result.

        Args:
            package_path: Package directory

        Returns:
            PackageSource for the directory

        Raises:
            PackageParseError: If the directory cannot be listed or a file fails to parse
        """
        key = package_path.resolve()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            files = sorted(p for p in key.iterdir() if is_source_file(p) and p.is_file())
        except OSError as e:
            raise PackageParseError(package_path, str(e)) from e

        source = PackageSource(path=key)
        for file_path in files:
            result = self.parser.parse_file(file_path)
            if not result.success or result.file is None:
                raise PackageParseError(package_path, result.error or f"failed to parse {file_path}")
            self._add_file(source, result.file)

        self._cache[key] = source
        _logger.debug(
            f"Indexed {key}: {len(source.files)} files, {len(source.types)} types"
        )
        return source

    def _add_file(self, source: PackageSource, go_file: GoFile) -> None:
        source.files.append(go_file)

        for declaration in go_file.types:
            existing = source.types.get(declaration.key)
            if existing is not None:
                _logger.warning(
                    f"Type {declaration.key} in {declaration.file_path} shadowed by "
                    f"{existing.file_path}"
                )
                continue
            source.types[declaration.key] = declaration

        for go_import in go_file.imports:
            alias = go_import.alias
            if alias is None:
                continue
            paths = source.aliases.setdefault(alias, [])
            if go_import.path not in paths:
                paths.append(go_import.path)

    def declarations_for(self, package_path: Path) -> dict[str, TypeDeclaration]:
        """Return the type declarations of a package keyed by name.

        Local types are keyed ``Func@Type`` or ``Recv@Func@Type``.
        """
        return self.source(package_path).types

    def import_aliases_for(self, package_path: Path) -> dict[str, list[str]]:
        """Return the import alias table of a package."""
        return self.source(package_path).aliases

    def files_for(self, package_path: Path) -> list[GoFile]:
        return self.source(package_path).files

    def package_name_of(self, package_path: Path) -> str:
        return self.source(package_path).package_name

    def reset(self) -> None:
        """Drop every cached package."""
        self._cache.clear()
