"""Exception types raised while generating a document.

Recoverable problems (a package that cannot be located in lax mode, a
malformed directive on one declaration) are not raised; they are recorded
as ``Diagnostic`` entries on the resolution context. The exceptions below
are what escapes when a problem is fatal.
"""


class GoapiSpecError(Exception):
    """Base class for all goapispec errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(GoapiSpecError):
    """Raised when the module layout or the run options are unusable."""


class PackageNotFoundError(GoapiSpecError):
    """Raised in strict mode when an imported package cannot be located."""

    def __init__(self, package: str, message: str | None = None) -> None:
        self.package = package
        super().__init__(message or f"cannot locate package {package!r}")


class TypeNotFoundError(GoapiSpecError):
    """Raised when a referenced type has no declaration.

    Attributes:
        type_name: The unresolved type reference
        package: Import name of the package that was searched
    """

    def __init__(self, type_name: str, package: str, message: str | None = None) -> None:
        self.type_name = type_name
        self.package = package
        super().__init__(message or f"cannot find type {type_name!r} in package {package!r}")


class AnnotationSyntaxError(GoapiSpecError):
    """Raised when a comment directive does not match its grammar."""

    def __init__(self, directive: str, message: str) -> None:
        self.directive = directive
        super().__init__(f"@{directive}: {message}" if directive else message)


class DuplicateRouteError(GoapiSpecError):
    """Raised when a path and method already carry an operation."""

    def __init__(self, path: str, method: str) -> None:
        self.path = path
        self.method = method.upper()
        super().__init__(f"route {self.method} {path} already exists")


class DocumentValidationError(GoapiSpecError):
    """Raised when required document fields are missing.

    Attributes:
        problems: One entry per failed check
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("invalid document: " + "; ".join(problems))


class RemoteDescriptionError(GoapiSpecError):
    """Raised when a ``$ref:`` description cannot be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(f"cannot fetch description from {url}: {reason}")
