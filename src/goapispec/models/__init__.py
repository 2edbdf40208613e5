"""goapispec data models.

This module exports the core entities used throughout the application:
- Package / TypeDeclaration / TypeShape variants: parsed Go declarations
- SchemaNode: a resolved schema
- Document and its parts: the assembled OpenAPI document
- Diagnostic / GenerationResult: run outcome
"""

from goapispec.models.declarations import (
    AnnotatedDeclaration,
    ArrayType,
    CompoundType,
    GoFile,
    GoImport,
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
)
from goapispec.models.diagnostics import Diagnostic, GenerationResult, GenerationStatus
from goapispec.models.document import (
    Components,
    Contact,
    Document,
    Info,
    License,
    MediaType,
    OAuthFlow,
    Operation,
    Parameter,
    PathItem,
    RequestBody,
    Response,
    SecurityScheme,
    Server,
    Tag,
)
from goapispec.models.schema import SchemaNode

__all__ = [
    "AnnotatedDeclaration",
    "ArrayType",
    "Components",
    "CompoundType",
    "Contact",
    "Diagnostic",
    "Document",
    "GenerationResult",
    "GenerationStatus",
    "GoFile",
    "GoImport",
    "IdentType",
    "Info",
    "InterfaceType",
    "License",
    "MapType",
    "MediaType",
    "OAuthFlow",
    "Operation",
    "Package",
    "Parameter",
    "PathItem",
    "PointerType",
    "RequestBody",
    "Response",
    "SchemaNode",
    "SecurityScheme",
    "SelectorType",
    "Server",
    "StructField",
    "StructType",
    "Tag",
    "TypeDeclaration",
    "TypeShape",
    "UnsupportedType",
]
