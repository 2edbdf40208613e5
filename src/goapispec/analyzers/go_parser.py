"""Go source parsing via tree-sitter.

Extracts the declaration-level structure of a Go file: package clause,
imports, type declarations (top-level and inside function bodies), doc
comments attached to declarations, and every comment line of the file.
Type expressions are converted once into the TypeShape variants from
``goapispec.models.declarations`` so later stages never touch syntax nodes.

tree-sitter is a required dependency. Run ``goapispec check`` to verify it
is installed; there is no fallback parser.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from goapispec.models.declarations import (
    AnnotatedDeclaration,
    ArrayType,
    CompoundType,
    GoFile,
    GoImport,
    IdentType,
    InterfaceType,
    MapType,
    PointerType,
    SelectorType,
    StructField,
    StructType,
    TypeDeclaration,
    TypeShape,
    UnsupportedType,
)
from goapispec.models.schema import COMPOSITION_KEYWORDS, FREE_FORM_NAMES
from goapispec.utils.logging import get_logger

_logger = get_logger(__name__)

LANGUAGE = "go"


class TreeSitterUnavailableError(Exception):
    """Raised when tree-sitter or its Go grammar is not available.

    Run `goapispec check` to verify dependencies.
    """

    def __init__(self, message: str | None = None) -> None:
        self.message = message or (
            "tree-sitter is not available. "
            "Run `goapispec check` to verify dependencies."
        )
        super().__init__(self.message)


@dataclass
class ParseResult:
    """Result of parsing a single file."""

    file_path: str
    success: bool
    file: GoFile | None = None
    error: str | None = None


class GoSourceParser:
    """Go declaration extractor backed by tree-sitter.

    The grammar is loaded lazily on first use and shared by every file the
    instance parses.
    """

    def __init__(self) -> None:
        """Initialize the parser."""
        self._parser: Any = None
        self._init_error: str | None = None

    def _ensure_initialized(self) -> None:
        """Load the tree-sitter Go grammar.

        Raises:
            TreeSitterUnavailableError: If tree-sitter cannot be initialized
        """
        if self._parser is not None:
            return

        if self._init_error:
            raise TreeSitterUnavailableError(self._init_error)

        try:
            from tree_sitter_language_pack import get_parser
        except ImportError as e:
            self._init_error = f"tree-sitter-language-pack not installed: {e}"
            raise TreeSitterUnavailableError(self._init_error) from e

        try:
            self._parser = get_parser(LANGUAGE)
        except Exception as e:
            self._init_error = f"tree-sitter Go grammar unavailable: {e}"
            raise TreeSitterUnavailableError(self._init_error) from e

        _logger.debug("Initialized tree-sitter parser for go")

    def check_available(self) -> bool:
        """Check if tree-sitter with the Go grammar is available.

        Returns:
            True if tree-sitter is functional, False otherwise
        """
        try:
            self._ensure_initialized()
            return True
        except TreeSitterUnavailableError:
            return False

    def parse_file(self, file_path: Path) -> ParseResult:
        """Parse a single Go source file.

        Args:
            file_path: Path to source file

        Returns:
            ParseResult with the extracted GoFile, or the error message
        """
        try:
            self._ensure_initialized()
        except TreeSitterUnavailableError as e:
            return ParseResult(file_path=str(file_path), success=False, error=str(e))

        try:
            source = file_path.read_bytes()
        except OSError as e:
            _logger.warning(f"Failed to read {file_path}: {e}")
            return ParseResult(file_path=str(file_path), success=False, error=str(e))

        go_file = self.parse_source(source, file_path)
        return ParseResult(file_path=str(file_path), success=True, file=go_file)

    def parse_source(self, source: bytes, file_path: Path) -> GoFile:
        """Parse Go source bytes.

        Args:
            source: File content
            file_path: Path recorded on the extracted declarations

        Returns:
            GoFile with everything extracted from the source

        Raises:
            TreeSitterUnavailableError: If tree-sitter is not available
        """
        self._ensure_initialized()
        tree = self._parser.parse(source)
        root = tree.root_node

        extractor = _FileExtractor(source, file_path)
        go_file = extractor.extract(root)
        if root.has_error:
            go_file.has_errors = True
            _logger.debug(f"Syntax errors in {file_path}; extracted what could be parsed")
        return go_file


# =============================================================================
# Syntax Tree Extraction
# =============================================================================


class _FileExtractor:
    """Walks one syntax tree. Not reused across files."""

    def __init__(self, source: bytes, file_path: Path) -> None:
        self.source = source
        self.file_path = file_path

    def text(self, node: Any) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def extract(self, root: Any) -> GoFile:
        go_file = GoFile(path=self.file_path, package="")

        for node in root.children:
            kind = node.type
            if kind == "package_clause":
                for child in node.named_children:
                    if child.type == "package_identifier":
                        go_file.package = self.text(child)
            elif kind == "import_declaration":
                go_file.imports.extend(self._imports(node))
            elif kind == "type_declaration":
                go_file.types.extend(self._type_specs(node, enclosing=None))
                self._annotate(go_file, node, "type", self._first_spec_name(node))
            elif kind in ("var_declaration", "const_declaration"):
                self._annotate(
                    go_file, node, kind.split("_")[0], self._first_spec_name(node)
                )
            elif kind == "function_declaration":
                name_node = node.child_by_field_name("name")
                if name_node is None:
                    continue
                name = self.text(name_node)
                go_file.functions.append(name)
                self._annotate(go_file, node, "func", name)
                self._collect_local_types(go_file, node, name)
            elif kind == "method_declaration":
                name_node = node.child_by_field_name("name")
                if name_node is None:
                    continue
                name = self.text(name_node)
                receiver = self._receiver_type(node)
                self._annotate(go_file, node, "method", name, receiver)
                scope = f"{receiver}@{name}" if receiver else name
                self._collect_local_types(go_file, node, scope)

        go_file.comments = self._all_comment_lines(root)
        return go_file

    # -------------------------------------------------------------------------
    # Imports
    # -------------------------------------------------------------------------

    def _imports(self, node: Any) -> list[GoImport]:
        imports: list[GoImport] = []
        specs = [c for c in node.named_children if c.type == "import_spec"]
        for spec_list in (c for c in node.named_children if c.type == "import_spec_list"):
            specs.extend(c for c in spec_list.named_children if c.type == "import_spec")

        for spec in specs:
            path_node = spec.child_by_field_name("path")
            if path_node is None:
                continue
            name_node = spec.child_by_field_name("name")
            imports.append(
                GoImport(
                    path=_unquote(self.text(path_node)),
                    name=self.text(name_node) if name_node is not None else None,
                )
            )
        return imports

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def _first_spec_name(self, decl: Any) -> str:
        for spec in _iter_specs(decl):
            name_node = spec.child_by_field_name("name")
            if name_node is not None:
                return self.text(name_node)
        return ""

    def _type_specs(self, decl: Any, enclosing: str | None) -> list[TypeDeclaration]:
        group_doc = self.doc_comment(decl)
        declarations: list[TypeDeclaration] = []

        for spec in _iter_specs(decl):
            if spec.type not in ("type_spec", "type_alias"):
                continue
            name_node = spec.child_by_field_name("name")
            type_node = spec.child_by_field_name("type")
            if name_node is None or type_node is None:
                continue

            if spec.child_by_field_name("type_parameters") is not None:
                shape: TypeShape = UnsupportedType(self.text(spec))
            else:
                shape = self.type_shape(type_node)

            declarations.append(
                TypeDeclaration(
                    name=self.text(name_node),
                    shape=shape,
                    file_path=self.file_path,
                    line=spec.start_point[0] + 1,
                    enclosing=enclosing,
                    doc=self.doc_comment(spec) or group_doc,
                )
            )
        return declarations

    def _annotate(
        self,
        go_file: GoFile,
        node: Any,
        kind: str,
        name: str,
        receiver: str | None = None,
    ) -> None:
        comments = self.doc_comment(node)
        if not comments:
            return
        go_file.declarations.append(
            AnnotatedDeclaration(
                kind=kind,
                name=name,
                comments=comments,
                file_path=self.file_path,
                line=node.start_point[0] + 1,
                receiver=receiver,
            )
        )

    def _receiver_type(self, method: Any) -> str | None:
        receiver = method.child_by_field_name("receiver")
        if receiver is None:
            return None
        for param in receiver.named_children:
            if param.type != "parameter_declaration":
                continue
            type_node = param.child_by_field_name("type")
            ident = _first_descendant(type_node, "type_identifier")
            if ident is not None:
                return self.text(ident)
        return None

    def _collect_local_types(self, go_file: GoFile, func: Any, scope: str) -> None:
        body = func.child_by_field_name("body")
        if body is None:
            return
        stack = list(reversed(body.children))
        while stack:
            node = stack.pop()
            if node.type == "type_declaration":
                go_file.types.extend(self._type_specs(node, enclosing=scope))
                continue
            stack.extend(reversed(node.children))

    # -------------------------------------------------------------------------
    # Type Expressions
    # -------------------------------------------------------------------------

    def type_shape(self, node: Any) -> TypeShape:
        """Convert a type expression node into a TypeShape."""
        kind = node.type

        if kind == "type_identifier":
            name = self.text(node)
            return InterfaceType() if name == "any" else IdentType(name)

        if kind == "qualified_type":
            package = node.child_by_field_name("package")
            name = node.child_by_field_name("name")
            return SelectorType(package=self.text(package), name=self.text(name))

        if kind == "pointer_type":
            inner = node.named_children[0] if node.named_children else None
            if inner is None:
                return UnsupportedType(self.text(node))
            return PointerType(self.type_shape(inner))

        if kind in ("slice_type", "array_type", "implicit_length_array_type"):
            element = node.child_by_field_name("element")
            return ArrayType(self.type_shape(element))

        if kind == "map_type":
            key = node.child_by_field_name("key")
            value = node.child_by_field_name("value")
            return MapType(
                value=self.type_shape(value),
                key=self.type_shape(key) if key is not None else None,
            )

        if kind == "struct_type":
            return StructType(fields=tuple(self._struct_fields(node)))

        if kind == "interface_type":
            return InterfaceType()

        if kind == "parenthesized_type" and node.named_children:
            return self.type_shape(node.named_children[0])

        # channel_type, function_type, generic_type, ...
        return UnsupportedType(self.text(node))

    def _struct_fields(self, struct_node: Any) -> list[StructField]:
        fields: list[StructField] = []
        for field_list in struct_node.named_children:
            if field_list.type != "field_declaration_list":
                continue
            for decl in field_list.named_children:
                if decl.type != "field_declaration":
                    continue
                type_node = decl.child_by_field_name("type")
                if type_node is None:
                    continue
                names = tuple(self.text(n) for n in decl.children_by_field_name("name"))
                shape = self.type_shape(type_node)
                if not names and any(c.type == "*" for c in decl.children):
                    shape = PointerType(shape)
                tag_node = decl.child_by_field_name("tag")
                tag = _unquote(self.text(tag_node)) if tag_node is not None else None
                fields.append(StructField(names=names, type=shape, tag=tag))
        return fields

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def doc_comment(self, node: Any) -> tuple[str, ...]:
        """Return the cleaned comment lines directly above a declaration.

        Comments separated from the declaration by a blank line, and trailing
        comments that end a previous statement's line, are not part of it.
        """
        lines: list[str] = []
        next_row = node.start_point[0]
        prev = _previous(node)

        while prev is not None and prev.type == "comment" and prev.end_point[0] >= next_row - 1:
            before = _previous(prev)
            if (
                before is not None
                and before.type != "comment"
                and before.end_point[0] == prev.start_point[0]
            ):
                break
            lines[:0] = _comment_lines(self.text(prev))
            next_row = prev.start_point[0]
            prev = before

        return tuple(lines)

    def _all_comment_lines(self, root: Any) -> list[str]:
        lines: list[str] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "comment":
                lines.extend(_comment_lines(self.text(node)))
                continue
            stack.extend(reversed(node.children))
        return lines


def _iter_specs(decl: Any) -> list[Any]:
    """Return the type_spec nodes of a (possibly grouped) declaration."""
    specs: list[Any] = []
    for child in decl.named_children:
        if child.type.endswith("_spec") or child.type == "type_alias":
            specs.append(child)
        elif child.type.endswith("_spec_list"):
            specs.extend(
                c for c in child.named_children
                if c.type.endswith("_spec") or c.type == "type_alias"
            )
    return specs


def _previous(node: Any) -> Any:
    """Return the previous sibling, skipping statement terminators."""
    prev = node.prev_sibling
    while prev is not None and not prev.is_named and prev.type in ("\n", ";", "\r\n"):
        prev = prev.prev_sibling
    return prev


def _first_descendant(node: Any, node_type: str) -> Any:
    if node is None:
        return None
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == node_type:
            return current
        stack.extend(reversed(current.children))
    return None


def _unquote(literal: str) -> str:
    """Strip Go string literal quotes (raw or interpreted)."""
    if len(literal) >= 2 and literal[0] == literal[-1] == "`":
        return literal[1:-1]
    if len(literal) >= 2 and literal[0] == literal[-1] == '"':
        return literal[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return literal


def _comment_lines(text: str) -> list[str]:
    """Strip comment markers the way go/ast CommentGroup.Text does.

    Compiler directives (``//go:generate``, ``//nolint``-style lines without
    a space) are dropped.
    """
    if text.startswith("//"):
        body = text[2:]
        if body.startswith("go:") or body.startswith("line "):
            return []
        if body.startswith(" "):
            body = body[1:]
        return [body.rstrip()]

    if text.startswith("/*"):
        lines = []
        for line in text[2:-2].splitlines():
            line = line.strip()
            if line.startswith("*"):
                line = line[1:].lstrip()
            lines.append(line)
        return lines

    return [text]


# =============================================================================
# Annotation Type References
# =============================================================================

_COMPOUND_PATTERN = re.compile(r"^(oneOf|anyOf|allOf|not)\((.*)\)$", re.IGNORECASE | re.DOTALL)
_IDENTIFIER = re.compile(r"^[^\W\d]\w*$")


def parse_type_reference(text: str) -> TypeShape:
    """Parse a type reference written in a directive into a TypeShape.

    Accepts ``T``, ``pkg.T``, ``a.b/c.T``, ``*T``, ``[]T``, ``[N]T``,
    ``map[K]V``, ``map[]V``, ``interface{}``, ``any`` and the compositions
    ``oneOf(A,B)``, ``anyOf(...)``, ``allOf(...)`` and ``not(A)``.

    Args:
        text: Type reference as written in the annotation

    Returns:
        Parsed TypeShape

    Raises:
        ValueError: If the reference is malformed
    """
    ref = text.strip()
    if not ref:
        raise ValueError("empty type reference")

    match = _COMPOUND_PATTERN.match(ref)
    if match:
        operator = COMPOSITION_KEYWORDS[match.group(1).lower()]
        arguments = split_arguments(match.group(2))
        if not arguments:
            raise ValueError(f"{operator}() expects 1 or more arguments")
        if operator == "not" and len(arguments) != 1:
            raise ValueError(f"not() expects exactly 1 argument, got {len(arguments)}")
        return CompoundType(
            operator=operator,
            arguments=tuple(parse_type_reference(a) for a in arguments),
        )

    if ref.startswith("*"):
        return PointerType(parse_type_reference(ref[1:]))

    if ref.startswith("["):
        close = _matching_bracket(ref, 0)
        return ArrayType(parse_type_reference(ref[close + 1 :]))

    if ref.startswith("map["):
        close = _matching_bracket(ref, 3)
        key = ref[4:close].strip()
        return MapType(
            value=parse_type_reference(ref[close + 1 :]),
            key=parse_type_reference(key) if key else None,
        )

    if ref in FREE_FORM_NAMES:
        return InterfaceType()

    if "." in ref:
        package, _, name = ref.rpartition(".")
        if not package or not _IDENTIFIER.match(name):
            raise ValueError(f"malformed type reference {text!r}")
        return SelectorType(package=package, name=name)

    if not _IDENTIFIER.match(ref):
        raise ValueError(f"malformed type reference {text!r}")
    return IdentType(ref)


def split_arguments(text: str) -> list[str]:
    """Split a comma-separated argument list at top-level commas."""
    arguments: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
            if depth < 0:
                raise ValueError(f"unbalanced brackets in {text!r}")
        if char == "," and depth == 0:
            arguments.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    if depth != 0:
        raise ValueError(f"unbalanced brackets in {text!r}")
    tail = "".join(current).strip()
    if tail or arguments:
        arguments.append(tail)
    if any(not a for a in arguments):
        raise ValueError(f"empty argument in {text!r}")
    return arguments


def _matching_bracket(text: str, start: int) -> int:
    depth = 0
    for index in range(start, len(text)):
        if text[index] == "[":
            depth += 1
        elif text[index] == "]":
            depth -= 1
            if depth == 0:
                return index
    raise ValueError(f"unbalanced brackets in {text!r}")
