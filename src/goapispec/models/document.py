"""OpenAPI document entities.

The Document is the root aggregate assembled during a run. Every entity
serializes through ``to_dict()`` which omits unset optional fields, so the
output only contains what the annotations actually declared.
"""

from dataclasses import dataclass, field
from typing import Any

from goapispec.models.schema import SchemaNode, parameter_ref

OPENAPI_VERSION = "3.0.0"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_TEXT = "text/plain"
CONTENT_TYPE_FORM = "multipart/form-data"

# Serialization order of operations within a path item
HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

REMOTE_DESCRIPTION_PREFIX = "$ref:"


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is empty (None, "", [], {})."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}


# =============================================================================
# Info Block
# =============================================================================


@dataclass
class Contact:
    name: str = ""
    url: str = ""
    email: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact({"name": self.name, "url": self.url, "email": self.email})


@dataclass
class License:
    name: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact({"name": self.name, "url": self.url})


@dataclass
class Info:
    """The document info block.

    Attributes:
        title: API title (required)
        version: API version (required)
        description: Free text, or ``$ref:<url>`` to fetch remote text
        terms_of_service: Terms of service URL
        contact: Contact details
        license: License details
    """

    title: str = ""
    version: str = ""
    description: str = ""
    terms_of_service: str = ""
    contact: Contact | None = None
    license: License | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"title": self.title}
        if self.description:
            data["description"] = self.description
        if self.terms_of_service:
            data["termsOfService"] = self.terms_of_service
        if self.contact:
            data["contact"] = self.contact.to_dict()
        if self.license:
            data["license"] = self.license.to_dict()
        data["version"] = self.version
        return data


@dataclass
class Server:
    url: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = {"url": self.url}
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class Tag:
    name: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _compact({"name": self.name, "description": self.description})


# =============================================================================
# Operations
# =============================================================================


@dataclass
class Parameter:
    """An operation or component parameter.

    A parameter with ``ref`` set serializes as a ``$ref`` to
    ``#/components/parameters/<ref>`` and nothing else.
    """

    name: str = ""
    location: str = ""
    description: str = ""
    required: bool = False
    example: Any = None
    schema: SchemaNode | None = None
    ref: str = ""

    def to_dict(self) -> dict[str, Any]:
        if self.ref:
            return {"$ref": parameter_ref(self.ref)}
        data: dict[str, Any] = {"name": self.name, "in": self.location}
        if self.description:
            data["description"] = self.description
        if self.required:
            data["required"] = True
        if self.example is not None:
            data["example"] = self.example
        if self.schema is not None:
            data["schema"] = self.schema.to_dict()
        return data


@dataclass
class MediaType:
    schema: SchemaNode | None = None
    example: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.schema is not None:
            data["schema"] = self.schema.to_dict()
        if self.example is not None:
            data["example"] = self.example
        return data


@dataclass
class RequestBody:
    description: str = ""
    required: bool = False
    content: dict[str, MediaType] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.description:
            data["description"] = self.description
        if self.required:
            data["required"] = True
        data["content"] = {ct: mt.to_dict() for ct, mt in self.content.items()}
        return data


@dataclass
class Response:
    description: str = ""
    content: dict[str, MediaType] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"description": self.description}
        if self.content:
            data["content"] = {ct: mt.to_dict() for ct, mt in self.content.items()}
        return data


@dataclass
class Operation:
    """Operation metadata built from one annotated declaration."""

    summary: str = ""
    description: str = ""
    operation_id: str = ""
    tags: list[str] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    request_body: RequestBody | None = None
    responses: dict[str, Response] = field(default_factory=dict)
    deprecated: bool = False

    def add_tag(self, name: str) -> None:
        if name not in self.tags:
            self.tags.append(name)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.tags:
            data["tags"] = list(self.tags)
        if self.summary:
            data["summary"] = self.summary
        if self.description:
            data["description"] = self.description
        if self.operation_id:
            data["operationId"] = self.operation_id
        if self.parameters:
            data["parameters"] = [p.to_dict() for p in self.parameters]
        if self.request_body is not None:
            data["requestBody"] = self.request_body.to_dict()
        data["responses"] = {code: r.to_dict() for code, r in self.responses.items()}
        if self.deprecated:
            data["deprecated"] = True
        return data


@dataclass
class PathItem:
    operations: dict[str, Operation] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            method: self.operations[method].to_dict()
            for method in HTTP_METHODS
            if method in self.operations
        }


# =============================================================================
# Security
# =============================================================================


@dataclass
class OAuthFlow:
    authorization_url: str = ""
    token_url: str = ""
    scopes: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = _compact(
            {"authorizationUrl": self.authorization_url, "tokenUrl": self.token_url}
        )
        data["scopes"] = dict(self.scopes)
        return data


@dataclass
class SecurityScheme:
    """A component security scheme.

    ``flows`` maps the OpenAPI flow name (implicit, password,
    clientCredentials, authorizationCode) to its definition.
    """

    type: str
    description: str = ""
    scheme: str = ""
    location: str = ""
    name: str = ""
    open_id_connect_url: str = ""
    flows: dict[str, OAuthFlow] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = _compact(
            {
                "type": self.type,
                "description": self.description,
                "scheme": self.scheme,
                "in": self.location,
                "name": self.name,
                "openIdConnectUrl": self.open_id_connect_url,
            }
        )
        if self.flows:
            data["flows"] = {name: flow.to_dict() for name, flow in self.flows.items()}
        return data


@dataclass
class Components:
    schemas: dict[str, SchemaNode] = field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = field(default_factory=dict)
    parameters: dict[str, Parameter] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schemas": {sid: node.to_dict() for sid, node in self.schemas.items()}
        }
        if self.security_schemes:
            data["securitySchemes"] = {
                name: scheme.to_dict() for name, scheme in self.security_schemes.items()
            }
        if self.parameters:
            data["parameters"] = {
                name: param.to_dict() for name, param in self.parameters.items()
            }
        return data


# =============================================================================
# Document
# =============================================================================


@dataclass
class Document:
    """Root of the generated OpenAPI document."""

    info: Info = field(default_factory=Info)
    servers: list[Server] = field(default_factory=list)
    paths: dict[str, PathItem] = field(default_factory=dict)
    components: Components = field(default_factory=Components)
    security: list[dict[str, list[str]]] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    openapi: str = OPENAPI_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Convert to the serializable OpenAPI structure."""
        data: dict[str, Any] = {
            "openapi": self.openapi,
            "info": self.info.to_dict(),
            "servers": [s.to_dict() for s in self.servers],
            "paths": {path: item.to_dict() for path, item in self.paths.items()},
            "components": self.components.to_dict(),
        }
        if self.security:
            data["security"] = [dict(req) for req in self.security]
        if self.tags:
            data["tags"] = [t.to_dict() for t in self.tags]
        return data
