"""Operation metadata from handler doc comments.

An OperationBuilder turns the directives attached to one function or
method into an Operation plus the routes it should be installed under.
Nothing is attached to the document here: a declaration whose directives
fail to parse raises before any route is handed to the assembler, so a
malformed operation is never partially included.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from goapispec.analyzers.annotations import (
    Directive,
    ParamDirective,
    ResponseDirective,
    RouteDirective,
    coerce_example,
    iter_directives,
    parse_example_json,
    parse_param,
    parse_response,
    parse_route,
)
from goapispec.analyzers.resolver import TypeResolver
from goapispec.errors import AnnotationSyntaxError
from goapispec.models.declarations import (
    AnnotatedDeclaration,
    ArrayType,
    IdentType,
    Package,
    TypeShape,
    strip_pointers,
)
from goapispec.models.document import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_TEXT,
    MediaType,
    Operation,
    Parameter,
    RequestBody,
    Response,
)
from goapispec.models.schema import SchemaNode, is_primitive

logger = logging.getLogger(__name__)

OPERATION_DIRECTIVES = {
    "title",
    "description",
    "operationid",
    "param",
    "header",
    "success",
    "failure",
    "resource",
    "tag",
    "route",
    "router",
    "hidden",
}
DEFAULT_TAG = "others"


@dataclass
class BuiltOperation:
    """An operation ready to be attached.

    Attributes:
        operation: Operation metadata
        routes: Every route directive of the declaration, in order
        declaration: Declaration the operation was built from
    """

    operation: Operation
    routes: list[RouteDirective] = field(default_factory=list)
    declaration: AnnotatedDeclaration | None = None


@dataclass
class _ParsedParam:
    param: ParamDirective
    shape: TypeShape | None = None
    body_example: Any = None


@dataclass
class _ParsedResponse:
    response: ResponseDirective
    shape: TypeShape | None = None


@dataclass
class _ParsedHeaderRef:
    directive: Directive
    shape: TypeShape


class OperationBuilder:
    """Builds operations and header component parameters from directives."""

    def __init__(self, resolver: TypeResolver) -> None:
        self.resolver = resolver

    # =========================================================================
    # Operations
    # =========================================================================

    def build(self, package: Package, declaration: AnnotatedDeclaration) -> BuiltOperation | None:
        """Build the operation described by a declaration's doc comment.

        Every directive is parsed before any type is resolved, so a grammar
        error never leaves schemas behind in the document.

        Args:
            package: Package declaring the handler
            declaration: Documented function or method

        Returns:
            BuiltOperation, or None if the declaration is hidden, carries no
            operation directives, or never names a route

        Raises:
            AnnotationSyntaxError: If a directive does not match its grammar
            TypeNotFoundError: If a referenced type cannot be resolved
        """
        directives = [d for d in iter_directives(declaration.comments) if d.keyword in OPERATION_DIRECTIVES]
        if not directives:
            return None

        if any(d.keyword == "hidden" for d in directives):
            logger.debug("Skipping hidden declaration %s", declaration.name)
            return None

        operation = Operation()
        routes: list[RouteDirective] = []
        pending: list[_ParsedParam | _ParsedResponse | _ParsedHeaderRef] = []

        for directive in directives:
            keyword = directive.keyword
            if keyword == "title":
                operation.summary = directive.value
            elif keyword == "description":
                operation.description = " ".join(
                    part for part in (operation.description, directive.value) if part
                )
            elif keyword == "operationid":
                operation.operation_id = directive.value
            elif keyword == "param":
                pending.append(self._parse_param(directive))
            elif keyword == "header":
                pending.append(_ParsedHeaderRef(directive, self.resolver.parse(directive.value)))
            elif keyword in ("success", "failure"):
                pending.append(self._parse_response(directive))
            elif keyword in ("resource", "tag"):
                operation.add_tag(directive.value or DEFAULT_TAG)
            elif keyword in ("route", "router"):
                routes.append(parse_route(directive.value, directive.name))

        if not routes:
            logger.debug("Declaration %s has no route; operation discarded", declaration.name)
            return None

        scope = declaration.scope
        for item in pending:
            if isinstance(item, _ParsedParam):
                self._add_param(package, scope, operation, item)
            elif isinstance(item, _ParsedResponse):
                self._add_response(package, scope, operation, item)
            else:
                self._add_header_refs(package, scope, operation, item)

        return BuiltOperation(operation=operation, routes=routes, declaration=declaration)

    def _parse_param(self, directive: Directive) -> _ParsedParam:
        param = parse_param(directive.value)
        parsed = _ParsedParam(param)
        if param.location not in ("file", "files"):
            parsed.shape = self.resolver.parse(param.type_ref)
        if param.location == "body" and param.example is not None:
            parsed.body_example = parse_example_json(param.example, directive.name)
        return parsed

    def _parse_response(self, directive: Directive) -> _ParsedResponse:
        response = parse_response(directive.value, directive.name)
        parsed = _ParsedResponse(response)
        if response.type_ref:
            shape = self.resolver.parse(response.type_ref)
            if response.json_type in ("array", "{array}") and not isinstance(
                strip_pointers(shape), ArrayType
            ):
                shape = ArrayType(shape)
            parsed.shape = shape
        return parsed

    def _add_param(
        self,
        package: Package,
        scope: str | None,
        operation: Operation,
        parsed: _ParsedParam,
    ) -> None:
        param = parsed.param
        if param.location in ("file", "files", "form"):
            self._add_form_field(package, scope, operation, parsed)
            return

        schema = self.resolver.resolve(package, parsed.shape, scope)

        if param.location == "body":
            operation.request_body = RequestBody(
                description=param.description,
                required=param.required,
                content={CONTENT_TYPE_JSON: MediaType(schema=schema, example=parsed.body_example)},
            )
            return

        if not schema.ref and not schema.description:
            schema.description = param.description

        example = None
        if param.example is not None:
            kind = self.resolver.definition(schema).kind
            try:
                example = coerce_example(param.example, kind)
            except ValueError:
                logger.warning(
                    "Example %r of parameter %s is not a valid %s; keeping it as a string",
                    param.example,
                    param.name,
                    kind,
                )
                example = param.example

        operation.parameters.append(
            Parameter(
                name=param.name,
                location=param.location,
                description=param.description,
                required=param.required,
                example=example,
                schema=schema,
            )
        )

    def _add_form_field(
        self,
        package: Package,
        scope: str | None,
        operation: Operation,
        parsed: _ParsedParam,
    ) -> None:
        param = parsed.param
        body = operation.request_body
        if body is None or CONTENT_TYPE_FORM not in body.content:
            body = RequestBody(
                required=param.required,
                content={CONTENT_TYPE_FORM: MediaType(schema=SchemaNode(kind="object"))},
            )
            operation.request_body = body

        form = body.content[CONTENT_TYPE_FORM].schema
        if param.location == "file":
            prop = SchemaNode(kind="string", format="binary")
        elif param.location == "files":
            prop = SchemaNode(kind="array", items=SchemaNode(kind="string", format="binary"))
        else:
            prop = self.resolver.resolve(package, parsed.shape, scope)

        prop.description = param.description
        form.properties[param.name] = prop
        if param.required:
            form.add_required(param.name)
            body.required = True

    def _add_response(
        self,
        package: Package,
        scope: str | None,
        operation: Operation,
        parsed: _ParsedResponse,
    ) -> None:
        response = Response(description=parsed.response.description)

        if parsed.shape is not None:
            schema = self.resolver.resolve(package, parsed.shape, scope)
            bare = strip_pointers(parsed.shape)
            if isinstance(bare, IdentType) and is_primitive(bare.name):
                content_type = CONTENT_TYPE_TEXT
            else:
                content_type = CONTENT_TYPE_JSON
            response.content[content_type] = MediaType(schema=schema)

        status = str(parsed.response.status)
        if status in operation.responses:
            logger.debug("Response %s redeclared; the last declaration wins", status)
        operation.responses[status] = response

    def _add_header_refs(
        self,
        package: Package,
        scope: str | None,
        operation: Operation,
        parsed: _ParsedHeaderRef,
    ) -> None:
        directive = parsed.directive
        node = self.resolver.resolve(package, parsed.shape, scope)
        definition = self.resolver.definition(node)
        if not definition.properties:
            raise AnnotationSyntaxError(
                directive.name, f"{directive.value!r} does not resolve to an object with properties"
            )
        for name in definition.properties:
            operation.parameters.append(Parameter(ref=name))

    # =========================================================================
    # Header Component Parameters
    # =========================================================================

    def header_parameters(
        self, package: Package, declaration: AnnotatedDeclaration
    ) -> list[Parameter]:
        """Build component header parameters from ``@HeaderParameters``.

        Each property of the referenced struct becomes one header
        parameter named after the property.

        Raises:
            AnnotationSyntaxError: If the type does not resolve to an object
        """
        parameters: list[Parameter] = []
        for directive in iter_directives(declaration.comments):
            if directive.keyword != "headerparameters":
                continue
            node = self.resolver.resolve(package, directive.value)
            definition = self.resolver.definition(node)
            if not definition.properties:
                raise AnnotationSyntaxError(
                    directive.name,
                    f"{directive.value!r} does not resolve to an object with properties",
                )
            for name, prop in definition.properties.items():
                parameters.append(
                    Parameter(
                        name=name,
                        location="header",
                        description=prop.description,
                        required=name in definition.required,
                        example=prop.example,
                        schema=replace(prop, example=None),
                    )
                )
        return parameters
