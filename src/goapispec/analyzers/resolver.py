"""Type resolution and schema synthesis.

The resolver turns type references (annotation text or parsed shapes) into
SchemaNodes. Named types are synthesized once per run: a placeholder is put
into the context's identity cache before the declaration is expanded, so a
type that reaches itself again (directly or through other types) resolves
to a reference instead of recursing. Callers always receive either a fresh
inline node or a fresh reference node; registered definitions live only in
``context.schemas`` and are published into the document in post-order.
"""

import logging
import re

from goapispec.analyzers.annotations import FieldTags, coerce_example, interpret_field_tags
from goapispec.analyzers.declaration_index import PackageParseError
from goapispec.analyzers.go_parser import parse_type_reference
from goapispec.context import ResolutionContext
from goapispec.errors import AnnotationSyntaxError, PackageNotFoundError, TypeNotFoundError
from goapispec.models.declarations import (
    ArrayType,
    CompoundType,
    IdentType,
    InterfaceType,
    MapType,
    Package,
    PointerType,
    SelectorType,
    StructField,
    StructType,
    TypeDeclaration,
    TypeShape,
    UnsupportedType,
    describe_shape,
    strip_pointers,
)
from goapispec.models.schema import SchemaNode, is_primitive

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_BYTE_NAMES = {"byte", "uint8"}
_SCALAR_KINDS = {"string", "integer", "number", "boolean"}


class TypeResolver:
    """Resolves type references against the packages of one run.

    Example:
        resolver = TypeResolver(context)
        node = resolver.resolve(package, "[]model.Pet")
        # node.kind == "array", node.items.ref == "github.com.acme.petstore.model.Pet"
    """

    def __init__(self, context: ResolutionContext) -> None:
        """Initialize the resolver.

        Args:
            context: Run-scoped caches, settings and diagnostics
        """
        self.context = context
        self._origins: dict[str, str] = {}
        self._in_progress: set[str] = set()
        self._publish_pending: set[str] = set()
        self._reported: set[tuple[str, str]] = set()

    # =========================================================================
    # Public API
    # =========================================================================

    def resolve(
        self,
        package: Package,
        reference: str | TypeShape,
        scope: str | None = None,
    ) -> SchemaNode:
        """Resolve a type reference to a schema node.

        Args:
            package: Package the reference is written in
            reference: Type reference text or an already parsed shape
            scope: ``Func`` or ``Recv@Func`` whose local types are searched first

        Returns:
            An inline node for basic and anonymous types, otherwise a
            reference node pointing at the registered definition

        Raises:
            AnnotationSyntaxError: If the reference text is malformed
            TypeNotFoundError: If a primary-module type (or, in strict mode,
                any type) has no declaration
            PackageNotFoundError: In strict mode, if a package cannot be located
        """
        shape = self.parse(reference) if isinstance(reference, str) else reference
        return self._resolve_shape(package, shape, scope, publish=True)

    def register(
        self,
        package: Package,
        reference: str | TypeShape,
        scope: str | None = None,
    ) -> str:
        """Resolve a reference and return the id of its registered schema.

        Returns:
            The schema id, or an empty string for inline types
        """
        return self.resolve(package, reference, scope).ref

    def definition(self, node: SchemaNode) -> SchemaNode:
        """Follow references until reaching an inline definition."""
        seen: set[str] = set()
        while node.ref and node.ref not in seen:
            seen.add(node.ref)
            target = self.context.schemas.get(node.ref)
            if target is None:
                break
            node = target
        return node

    @staticmethod
    def parse(reference: str) -> TypeShape:
        """Parse reference text, reporting malformed input as a grammar error."""
        try:
            return parse_type_reference(reference)
        except ValueError as e:
            raise AnnotationSyntaxError("", f"invalid type reference {reference!r}: {e}") from e

    def schema_id(self, package_name: str, type_name: str, enclosing: str | None = None) -> str:
        """Compute the component id of a named type.

        Args:
            package_name: Import name of the declaring package
            type_name: Declared type name
            enclosing: ``Func`` or ``Recv@Func`` for local types

        Returns:
            Dotted id such as ``github.com.acme.shop.model.User``
        """
        parts: list[str] = []
        if not self.context.settings.schema_without_package:
            prefix = self._package_prefix(package_name)
            if prefix:
                parts.append(prefix)
        if enclosing:
            parts.extend(enclosing.split("@"))
        parts.append(type_name)
        return _UNSAFE_ID_CHARS.sub("_", ".".join(parts))

    def _package_prefix(self, package_name: str) -> str:
        last = package_name.rsplit("/", 1)[-1]
        aliases = self.context.settings.package_aliases
        if last in aliases:
            return aliases[last].replace("/", ".")
        return package_name.replace("/", ".")

    # =========================================================================
    # Shape Dispatch
    # =========================================================================

    def _resolve_shape(
        self,
        package: Package,
        shape: TypeShape,
        scope: str | None,
        publish: bool,
    ) -> SchemaNode:
        if isinstance(shape, PointerType):
            return self._resolve_shape(package, strip_pointers(shape), scope, publish)

        if isinstance(shape, IdentType):
            if is_primitive(shape.name):
                return SchemaNode.primitive(shape.name)
            return self._resolve_named(package, shape.name, scope, publish)

        if isinstance(shape, SelectorType):
            return self._resolve_selector(package, shape, publish)

        if isinstance(shape, ArrayType):
            element = strip_pointers(shape.element)
            if isinstance(element, IdentType) and element.name in _BYTE_NAMES:
                return SchemaNode(kind="string", format="byte")
            return SchemaNode(
                kind="array",
                items=self._resolve_shape(package, element, scope, publish=True),
            )

        if isinstance(shape, MapType):
            return SchemaNode(
                kind="object",
                additional_properties=self._resolve_shape(package, shape.value, scope, publish=True),
            )

        if isinstance(shape, StructType):
            node = SchemaNode(kind="object")
            self._populate_struct(node, package, shape, scope)
            return node

        if isinstance(shape, InterfaceType):
            return SchemaNode.free_form()

        if isinstance(shape, CompoundType):
            return SchemaNode(
                composition=shape.operator,
                members=[
                    self._resolve_shape(package, argument, scope, publish=True)
                    for argument in shape.arguments
                ],
            )

        return self._fallback(package.name, shape.text, f"unsupported type {shape.text!r}")

    # =========================================================================
    # Named Types
    # =========================================================================

    def _resolve_selector(self, package: Package, shape: SelectorType, publish: bool) -> SchemaNode:
        import_name = self._import_name(package, shape.package)

        if import_name == "time" and shape.name == "Time":
            return SchemaNode.date_time()

        target = self.context.locator.package(import_name)
        if target is None:
            if self.context.strict:
                raise PackageNotFoundError(import_name)
            if self.context.locator.is_core(import_name):
                message = (
                    f"cannot locate standard library package {import_name!r} for {shape.qualified}; "
                    "set GOROOT to a Go installation with sources"
                )
            else:
                message = f"cannot locate package {import_name!r} for {shape.qualified}"
            return self._fallback(import_name, shape.name, message)
        return self._resolve_named(target, shape.name, None, publish)

    def _import_name(self, package: Package, prefix: str) -> str:
        """Map the qualifier of a selector to an import path.

        Full import paths are used as written. Single identifiers go
        through the package's import aliases first, then the known
        packages, then known packages whose last path element matches.
        """
        locator = self.context.locator
        if "/" in prefix:
            return prefix

        candidates = self._aliases(package).get(prefix, [])
        if candidates:
            if len(candidates) > 1:
                self._warn_once(
                    package.name,
                    f"alias:{prefix}",
                    "Import alias %r in %s refers to several packages %s; using %s",
                    prefix,
                    package.name,
                    candidates,
                    candidates[0],
                )
            return candidates[0]

        if locator.package(prefix) is not None:
            return prefix

        matches = locator.find_by_suffix(prefix)
        if matches:
            if len(matches) > 1:
                self._warn_once(
                    package.name,
                    f"suffix:{prefix}",
                    "Package name %r matches several packages %s; using %s",
                    prefix,
                    [m.name for m in matches],
                    matches[0].name,
                )
            return matches[0].name

        return prefix

    def _aliases(self, package: Package) -> dict[str, list[str]]:
        try:
            return self.context.index.import_aliases_for(package.path)
        except PackageParseError:
            return {}

    def _declarations(self, package: Package) -> dict[str, TypeDeclaration]:
        try:
            return self.context.index.declarations_for(package.path)
        except PackageParseError as e:
            if self.context.strict or self.context.locator.is_primary(package.name):
                raise
            self.context.report("resolver", e.message)
            return {}

    def _resolve_named(
        self,
        package: Package,
        name: str,
        scope: str | None,
        publish: bool,
    ) -> SchemaNode:
        declarations = self._declarations(package)
        declaration = declarations.get(f"{scope}@{name}") if scope else None
        if declaration is None:
            declaration = declarations.get(name)
        if declaration is None:
            return self._missing_type(package, name)

        schema_id = self.schema_id(package.name, declaration.name, declaration.enclosing)
        origin = f"{package.name}:{declaration.key}"

        cached = self.context.schemas.get(schema_id)
        if cached is not None:
            first = self._origins.get(schema_id)
            if first is not None and first != origin:
                self._warn_once(
                    origin,
                    f"collision:{schema_id}",
                    "Schema id %s of %s is already used by %s; keeping the first",
                    schema_id,
                    origin,
                    first,
                )
            if publish:
                if schema_id in self._in_progress:
                    self._publish_pending.add(schema_id)
                else:
                    self.context.publish(cached)
            logger.debug("Schema cache hit: %s", schema_id)
            return SchemaNode.reference(schema_id)

        node = SchemaNode(id=schema_id)
        self.context.schemas[schema_id] = node
        self._origins[schema_id] = origin
        self._in_progress.add(schema_id)
        try:
            self._populate(node, package, declaration)
        finally:
            self._in_progress.discard(schema_id)

        if publish or schema_id in self._publish_pending:
            self._publish_pending.discard(schema_id)
            self.context.publish(node)
        return SchemaNode.reference(schema_id)

    def _missing_type(self, package: Package, name: str) -> SchemaNode:
        if self.context.strict or self.context.locator.is_primary(package.name):
            raise TypeNotFoundError(name, package.name)
        return self._fallback(
            package.name, name, f"cannot find type {name!r} in package {package.name!r}"
        )

    def _fallback(
        self,
        package_name: str,
        what: str,
        message: str,
        file_path: str | None = None,
    ) -> SchemaNode:
        key = (package_name, what)
        if key not in self._reported:
            self._reported.add(key)
            self.context.report("resolver", f"{message}; using a free-form schema", file_path)
        return SchemaNode.free_form()

    def _warn_once(self, owner: str, key: str, message: str, *args: object) -> None:
        if (owner, key) in self._reported:
            return
        self._reported.add((owner, key))
        logger.warning(message, *args)

    # =========================================================================
    # Declaration Expansion
    # =========================================================================

    def _populate(self, node: SchemaNode, package: Package, declaration: TypeDeclaration) -> None:
        """Fill a placeholder node from its declaration shape."""
        shape = strip_pointers(declaration.shape)
        scope = declaration.enclosing

        if isinstance(shape, StructType):
            node.kind = "object"
            self._populate_struct(node, package, shape, scope)
            return

        if isinstance(shape, SelectorType):
            # The target is flattened into this id and published only on direct use
            target = self._resolve_shape(package, shape, scope, publish=False)
            node.copy_shape_from(self.definition(target))
            return

        if isinstance(shape, IdentType) and not is_primitive(shape.name):
            target = self._resolve_shape(package, shape, scope, publish=True)
            if target.ref:
                node.point_to(target.ref)
            else:
                node.copy_shape_from(target)
            return

        if isinstance(shape, UnsupportedType):
            node.copy_shape_from(
                self._fallback(
                    package.name,
                    declaration.key,
                    f"type {declaration.name} has unsupported shape {shape.text!r}",
                    str(declaration.file_path),
                )
            )
            return

        node.copy_shape_from(self._resolve_shape(package, shape, scope, publish=True))

    def _populate_struct(
        self,
        node: SchemaNode,
        package: Package,
        struct: StructType,
        scope: str | None,
    ) -> None:
        """Add struct fields as properties in declaration order.

        Fields promoted from an embedded type are inserted where the embed
        is declared. They never replace one of the struct's own fields,
        wherever that is declared, and never reintroduce a disabled name.
        """
        tag_key = self.context.settings.tag_key
        fields = [(f, interpret_field_tags(f.tag, tag_key)) for f in struct.fields]

        own_disabled: set[str] = set()
        own_names: set[str] = set()
        for struct_field, tags in fields:
            if struct_field.embedded and not tags.has_json_name:
                continue
            for go_name in struct_field.names or (_embedded_name(struct_field.type),):
                if tags.omit:
                    own_disabled.add(go_name)
                    if tags.name:
                        own_disabled.add(tags.name)
                else:
                    own_names.add(tags.name or go_name)
        node.disabled_field_names |= own_disabled

        for struct_field, tags in fields:
            if struct_field.embedded and not tags.has_json_name:
                if not tags.omit:
                    self._merge_embedded(node, package, struct_field, scope, own_names)
                continue
            if tags.omit:
                continue

            for go_name in struct_field.names or (_embedded_name(struct_field.type),):
                if go_name in own_disabled:
                    continue

                name = tags.name or go_name
                if name in node.properties:
                    logger.debug("Duplicate property %s in %s ignored", name, node.id or "inline struct")
                    continue

                prop = self._resolve_shape(package, struct_field.type, scope, publish=True)
                prop.field_name = go_name
                self._apply_field_tags(prop, tags, node.id or "inline struct", name)
                node.properties[name] = prop
                if tags.required:
                    node.add_required(name)

    def _merge_embedded(
        self,
        node: SchemaNode,
        package: Package,
        struct_field: StructField,
        scope: str | None,
        own_names: set[str],
    ) -> None:
        target = self._resolve_shape(package, struct_field.type, scope, publish=True)
        definition = self.definition(target)

        if definition.kind == "object" and definition.additional_properties is None:
            for name, prop in definition.properties.items():
                if name in node.properties or name in own_names:
                    continue
                if name in node.disabled_field_names or prop.field_name in node.disabled_field_names:
                    continue
                node.properties[name] = prop
                if name in definition.required:
                    node.add_required(name)
            node.disabled_field_names |= definition.disabled_field_names
            return

        name = _embedded_name(struct_field.type)
        if name in node.properties or name in own_names or name in node.disabled_field_names:
            return
        target.field_name = name
        node.properties[name] = target

    def _apply_field_tags(self, prop: SchemaNode, tags: FieldTags, owner: str, name: str) -> None:
        """Apply description, deprecation, enum and example tags to a property."""
        if tags.description:
            prop.description = tags.description
        if tags.deprecated:
            prop.deprecated = True

        if prop.ref and (tags.example is not None or tags.enum):
            definition = self.definition(prop)
            if definition.kind in _SCALAR_KINDS:
                # Scalars are inlined so the example and enum sit on a typed node
                prop.copy_shape_from(definition)

        kind = self.definition(prop).kind if prop.ref else prop.kind

        if tags.enum:
            holder = prop
            if prop.kind == "array" and prop.items is not None and not prop.items.ref:
                holder = prop.items
            holder_kind = holder.kind if holder is not prop else kind
            holder.enum = [self._coerce(value, holder_kind, owner, name) for value in tags.enum]

        if tags.example is not None:
            prop.example = self._coerce(tags.example, kind, owner, name)

    @staticmethod
    def _coerce(raw: str, kind: str | None, owner: str, name: str) -> object:
        try:
            return coerce_example(raw, kind)
        except ValueError:
            logger.warning(
                "Value %r of %s.%s is not a valid %s; keeping it as a string",
                raw,
                owner,
                name,
                kind,
            )
            return raw


def _embedded_name(shape: TypeShape) -> str:
    """Return the implicit field name of an embedded type."""
    shape = strip_pointers(shape)
    if isinstance(shape, (IdentType, SelectorType)):
        return shape.name
    return describe_shape(shape)
