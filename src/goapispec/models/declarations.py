"""Parsed Go declarations.

These entities are produced once by the source parser and never mutated:
- Package: a located import name and its source directory
- TypeShape variants: the closed set of type expression forms
- TypeDeclaration: one named type and its shape
- GoImport / AnnotatedDeclaration / GoFile: per-file parse output
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union


@dataclass(frozen=True)
class Package:
    """A Go package resolved to its source directory.

    Attributes:
        name: Import name (e.g. "github.com/acme/shop/model")
        path: Directory that holds the package sources
    """

    name: str
    path: Path

    @property
    def last_segment(self) -> str:
        """Return the final element of the import name."""
        return self.name.rsplit("/", 1)[-1]


# =============================================================================
# Type Shapes
# =============================================================================


@dataclass(frozen=True)
class IdentType:
    """A bare type name: a builtin (``string``) or a same-package type."""

    name: str


@dataclass(frozen=True)
class SelectorType:
    """A package-qualified type name (``model.User``).

    ``package`` is whatever precedes the final dot: an import alias in Go
    source, or possibly a full import path in annotation text.
    """

    package: str
    name: str

    @property
    def qualified(self) -> str:
        return f"{self.package}.{self.name}"


@dataclass(frozen=True)
class PointerType:
    inner: "TypeShape"


@dataclass(frozen=True)
class ArrayType:
    """Slice or fixed-length array; the length is irrelevant to schemas."""

    element: "TypeShape"


@dataclass(frozen=True)
class MapType:
    value: "TypeShape"
    key: "TypeShape | None" = None


@dataclass(frozen=True)
class StructField:
    """One field of a struct type.

    Attributes:
        names: Declared identifiers; empty for an embedded field
        type: Field type
        tag: Raw struct tag content without the surrounding quotes
    """

    names: tuple[str, ...]
    type: "TypeShape"
    tag: str | None = None

    @property
    def embedded(self) -> bool:
        return not self.names


@dataclass(frozen=True)
class StructType:
    fields: tuple[StructField, ...] = ()


@dataclass(frozen=True)
class InterfaceType:
    """Any interface type; all of them accept arbitrary JSON."""


@dataclass(frozen=True)
class CompoundType:
    """A ``oneOf``/``anyOf``/``allOf``/``not`` composition from annotation text."""

    operator: str
    arguments: tuple["TypeShape", ...]


@dataclass(frozen=True)
class UnsupportedType:
    """Channels, function types, generic instantiations and the like."""

    text: str


TypeShape = Union[
    IdentType,
    SelectorType,
    PointerType,
    ArrayType,
    MapType,
    StructType,
    InterfaceType,
    CompoundType,
    UnsupportedType,
]


def strip_pointers(shape: TypeShape) -> TypeShape:
    """Return the shape with any number of leading pointers removed."""
    while isinstance(shape, PointerType):
        shape = shape.inner
    return shape


def describe_shape(shape: TypeShape) -> str:
    """Render a shape back to a Go-like type reference string.

    Pointers are dropped and map keys are omitted, so the result is the
    normalized form used in log messages and diagnostics.
    """
    shape = strip_pointers(shape)
    if isinstance(shape, IdentType):
        return shape.name
    if isinstance(shape, SelectorType):
        return shape.qualified
    if isinstance(shape, ArrayType):
        return "[]" + describe_shape(shape.element)
    if isinstance(shape, MapType):
        return "map[]" + describe_shape(shape.value)
    if isinstance(shape, StructType):
        return "struct{...}"
    if isinstance(shape, InterfaceType):
        return "interface{}"
    if isinstance(shape, CompoundType):
        args = ",".join(describe_shape(a) for a in shape.arguments)
        return f"{shape.operator}({args})"
    return shape.text


# =============================================================================
# Declarations
# =============================================================================


@dataclass(frozen=True)
class TypeDeclaration:
    """A named type declared in a Go package.

    Attributes:
        name: Declared type name
        shape: Parsed right-hand side of the declaration
        file_path: Source file
        line: 1-based line of the type spec
        enclosing: ``Func`` or ``Recv@Func`` for types declared in a body
        doc: Cleaned doc-comment lines
    """

    name: str
    shape: TypeShape
    file_path: Path
    line: int = 0
    enclosing: str | None = None
    doc: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        """Return the key used in the per-package declaration table."""
        if self.enclosing:
            return f"{self.enclosing}@{self.name}"
        return self.name


@dataclass(frozen=True)
class GoImport:
    """One import spec.

    Attributes:
        path: Imported package path
        name: Explicit name clause (alias, ``.`` or ``_``) if any
    """

    path: str
    name: str | None = None

    @property
    def alias(self) -> str | None:
        """Return the identifier this import is referenced by, if any."""
        if self.name in (".", "_"):
            return None
        if self.name:
            return self.name
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class AnnotatedDeclaration:
    """A top-level declaration that carries a doc comment.

    Attributes:
        kind: "func", "method", "type", "var" or "const"
        name: Declared name (first name for grouped declarations)
        comments: Cleaned doc-comment lines
        file_path: Source file
        line: 1-based line of the declaration
        receiver: Receiver type name for methods
    """

    kind: str
    name: str
    comments: tuple[str, ...]
    file_path: Path
    line: int = 0
    receiver: str | None = None

    @property
    def scope(self) -> str | None:
        """Return the local-type scope key for functions and methods."""
        if self.kind == "func":
            return self.name
        if self.kind == "method":
            return f"{self.receiver}@{self.name}" if self.receiver else self.name
        return None


@dataclass
class GoFile:
    """Everything extracted from one Go source file."""

    path: Path
    package: str
    imports: list[GoImport] = field(default_factory=list)
    types: list[TypeDeclaration] = field(default_factory=list)
    declarations: list[AnnotatedDeclaration] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    has_errors: bool = False

    def declares_main(self) -> bool:
        """Return True if this is ``package main`` with a ``func main``."""
        return self.package == "main" and "main" in self.functions

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for debugging output."""
        return {
            "path": str(self.path),
            "package": self.package,
            "imports": [{"path": i.path, "name": i.name} for i in self.imports],
            "types": [t.key for t in self.types],
            "declarations": [f"{d.kind} {d.name}" for d in self.declarations],
            "functions": self.functions,
            "has_errors": self.has_errors,
        }
