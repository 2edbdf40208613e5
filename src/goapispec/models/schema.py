"""Schema nodes: the canonical unit of resolved type information.

A SchemaNode is either a reference (``ref`` names another registered node
by id) or an inline definition. The two are mutually exclusive: a
reference never carries ``kind``, ``format`` or ``items``.
"""

from dataclasses import dataclass, field
from typing import Any

SCHEMA_REF_PREFIX = "#/components/schemas/"
PARAMETER_REF_PREFIX = "#/components/parameters/"

COMPOSITION_KEYWORDS = {
    "oneof": "oneOf",
    "anyof": "anyOf",
    "allof": "allOf",
    "not": "not",
}

# Go builtin type -> (OpenAPI type, format)
PRIMITIVE_TYPES: dict[str, tuple[str, str]] = {
    "bool": ("boolean", ""),
    "string": ("string", ""),
    "error": ("string", ""),
    "byte": ("integer", ""),
    "int": ("integer", ""),
    "int8": ("integer", ""),
    "int16": ("integer", ""),
    "int32": ("integer", "int32"),
    "int64": ("integer", "int64"),
    "uint": ("integer", ""),
    "uint8": ("integer", ""),
    "uint16": ("integer", ""),
    "uint32": ("integer", "int32"),
    "uint64": ("integer", "int64"),
    "uintptr": ("integer", "int64"),
    "rune": ("integer", "int32"),
    "float32": ("number", "float"),
    "float64": ("number", "double"),
    "complex64": ("number", ""),
    "complex128": ("number", ""),
}

FREE_FORM_NAMES = frozenset({"any", "interface{}", "interface"})


def is_primitive(go_type: str) -> bool:
    """Return True if the name is a Go builtin scalar type."""
    return go_type in PRIMITIVE_TYPES


def schema_ref(schema_id: str) -> str:
    """Return the JSON pointer for a component schema id."""
    return SCHEMA_REF_PREFIX + schema_id


def parameter_ref(name: str) -> str:
    """Return the JSON pointer for a component parameter."""
    return PARAMETER_REF_PREFIX + name


@dataclass(eq=False)
class SchemaNode:
    """A resolved schema.

    Attributes:
        id: Component id for registered nodes, empty for inline nodes
        kind: object, array, string, integer, number, boolean or None (free-form)
        ref: Id of the registered node this one points at
        format: OpenAPI format qualifier
        description: Human description
        example: Example value (already coerced to the node's kind)
        deprecated: Whether the field or type is deprecated
        properties: Ordered field name -> schema mapping
        required: Required property names, in first-seen order
        items: Element schema for arrays
        additional_properties: Value schema for maps
        enum: Allowed values
        composition: oneOf/anyOf/allOf/not keyword for compound schemas
        members: Sub-schemas of a composition
        disabled_field_names: Go field names suppressed on this struct
        field_name: Go identifier of the field this property came from
    """

    id: str = ""
    kind: str | None = None
    ref: str = ""
    format: str = ""
    description: str = ""
    example: Any = None
    deprecated: bool = False
    properties: dict[str, "SchemaNode"] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    items: "SchemaNode | None" = None
    additional_properties: "SchemaNode | None" = None
    enum: list[Any] = field(default_factory=list)
    composition: str = ""
    members: list["SchemaNode"] = field(default_factory=list)
    disabled_field_names: set[str] = field(default_factory=set)
    field_name: str = ""

    def __post_init__(self) -> None:
        """Reject nodes that are both a reference and a definition."""
        if self.ref and (self.kind or self.format or self.items is not None):
            raise ValueError(f"schema reference {self.ref!r} cannot carry an inline type")

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def reference(cls, target_id: str) -> "SchemaNode":
        """Create a node pointing at a registered schema."""
        return cls(ref=target_id)

    @classmethod
    def primitive(cls, go_type: str) -> "SchemaNode":
        """Create an inline node for a Go builtin type.

        Raises:
            KeyError: If go_type is not a builtin scalar
        """
        kind, fmt = PRIMITIVE_TYPES[go_type]
        return cls(kind=kind, format=fmt)

    @classmethod
    def date_time(cls) -> "SchemaNode":
        return cls(kind="string", format="date-time")

    @classmethod
    def free_form(cls, description: str = "") -> "SchemaNode":
        """Create a node that accepts any JSON value."""
        return cls(description=description)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_free_form(self) -> bool:
        return (
            not self.ref
            and self.kind is None
            and not self.composition
            and not self.properties
            and self.additional_properties is None
        )

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_required(self, name: str) -> None:
        """Mark a property as required (idempotent)."""
        if name not in self.required:
            self.required.append(name)

    def point_to(self, target_id: str) -> None:
        """Turn this node into a reference, dropping any inline shape."""
        self.kind = None
        self.format = ""
        self.items = None
        self.additional_properties = None
        self.properties = {}
        self.required = []
        self.ref = target_id

    def copy_shape_from(self, other: "SchemaNode") -> None:
        """Copy the type-defining attributes of another node into this one.

        Descriptions, examples and the id stay untouched.
        """
        if other.ref:
            self.point_to(other.ref)
            return
        self.ref = ""
        self.kind = other.kind
        self.format = other.format
        self.items = other.items
        self.additional_properties = other.additional_properties
        self.properties = dict(other.properties)
        self.required = list(other.required)
        self.enum = list(other.enum)
        self.composition = other.composition
        self.members = list(other.members)
        self.disabled_field_names = set(other.disabled_field_names)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Convert to an OpenAPI schema object, omitting empty attributes."""
        data: dict[str, Any] = {}

        if self.ref:
            data["$ref"] = schema_ref(self.ref)
        else:
            if self.kind:
                data["type"] = self.kind
            if self.format:
                data["format"] = self.format

        if self.description:
            data["description"] = self.description

        if not self.ref:
            if self.enum:
                data["enum"] = list(self.enum)
            if self.required:
                data["required"] = list(self.required)
            if self.properties:
                data["properties"] = {
                    name: prop.to_dict() for name, prop in self.properties.items()
                }
            if self.items is not None:
                data["items"] = self.items.to_dict()
            if self.additional_properties is not None:
                data["additionalProperties"] = self.additional_properties.to_dict()
            if self.composition == "not" and self.members:
                data["not"] = self.members[0].to_dict()
            elif self.composition:
                data[self.composition] = [m.to_dict() for m in self.members]

        if self.example is not None:
            data["example"] = self.example
        if self.deprecated:
            data["deprecated"] = True

        return data
