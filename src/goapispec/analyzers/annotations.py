"""Annotation grammars: comment directives and struct field tags.

Everything here is pure text interpretation. Each function turns one
directive line (or one struct tag) into a small dataclass of resolver
inputs; resolution itself happens in the resolver and operation builder.

Directive grammars:
    @Param     name in type required "description" ["example"]
    @Success   status [jsonType] [type] ["description"]
    @Failure   status [jsonType] [type] ["description"]
    @Router    path [METHOD]
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any

from goapispec.errors import AnnotationSyntaxError

PARAM_LOCATIONS = {"path", "query", "header", "cookie", "body", "form", "file", "files"}
JSON_TYPES = {"object", "array", "{object}", "{array}"}
ROUTE_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD", "TRACE"}

_PARAM_PATTERN = re.compile(
    r'^(?P<name>[-\w.\[\]]+)\s+(?P<location>\w+)\s+(?P<type>\S+)\s+(?P<required>\w+)'
    r'\s+"(?P<description>[^"]*)"(?:\s+"(?P<example>(?:[^"\\]|\\.)*)")?\s*$'
)
_STATUS_PATTERN = re.compile(r"^(?P<status>\S+)\s*(?P<rest>.*)$", re.DOTALL)
_ROUTE_PATTERN = re.compile(r"^(?P<path>[\w./\-{}:*~]+)\s*\[(?P<method>\w+)\]\s*$")
_QUOTED_PATTERN = re.compile(r'"((?:[^"\\]|\\.)*)"')

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not representable in JSON")


def _loads(raw: str) -> Any:
    return json.loads(raw, parse_constant=_reject_constant)


# =============================================================================
# Directive Lines
# =============================================================================


@dataclass(frozen=True)
class Directive:
    """One ``@Keyword value`` comment line.

    Attributes:
        keyword: Lowercased keyword without the ``@``
        name: Keyword as written
        value: Everything after the keyword, stripped
    """

    keyword: str
    name: str
    value: str


def iter_directives(lines: tuple[str, ...] | list[str]) -> list[Directive]:
    """Extract directives from cleaned comment lines.

    Lines that do not start with ``@`` are ignored.
    """
    directives: list[Directive] = []
    for line in lines:
        text = line.strip()
        if not text.startswith("@") or len(text) == 1:
            continue
        name, _, value = text[1:].partition(" ")
        name = name.strip()
        if not name:
            continue
        directives.append(Directive(keyword=name.lower(), name=name, value=value.strip()))
    return directives


def quoted_values(value: str) -> list[str]:
    """Return the double-quoted strings of a directive value, unescaped."""
    return [m.replace('\\"', '"') for m in _QUOTED_PATTERN.findall(value)]


# =============================================================================
# Operation Directives
# =============================================================================


@dataclass(frozen=True)
class ParamDirective:
    """Parsed ``@Param``.

    Attributes:
        name: Parameter or form field name
        location: path, query, header, cookie, body, form, file or files
        type_ref: Type reference text (``[N]`` normalized to ``[]``)
        required: Whether the parameter is required
        description: Quoted description
        example: Raw example text, unescaped
    """

    name: str
    location: str
    type_ref: str
    required: bool
    description: str
    example: str | None = None


def normalize_type_ref(type_ref: str) -> str:
    """Replace array lengths and map keys with ``[]``."""
    return re.sub(r"\[[\w*.]*\]", "[]", type_ref)


def parse_param(value: str) -> ParamDirective:
    """Parse a ``@Param`` value.

    Raises:
        AnnotationSyntaxError: If the value does not match the grammar
    """
    match = _PARAM_PATTERN.match(value.strip())
    if not match:
        raise AnnotationSyntaxError(
            "Param", f'expected: name in type required "description" ["example"], got {value!r}'
        )

    location = match.group("location").lower()
    if location not in PARAM_LOCATIONS:
        raise AnnotationSyntaxError(
            "Param", f"unknown location {match.group('location')!r} (valid: {sorted(PARAM_LOCATIONS)})"
        )

    required = match.group("required").lower() in ("true", "required") or location == "path"
    example = match.group("example")
    return ParamDirective(
        name=match.group("name"),
        location=location,
        type_ref=normalize_type_ref(match.group("type")),
        required=required,
        description=match.group("description"),
        example=example.replace('\\"', '"') if example is not None else None,
    )


@dataclass(frozen=True)
class ResponseDirective:
    """Parsed ``@Success`` or ``@Failure``."""

    status: int
    json_type: str = ""
    type_ref: str = ""
    description: str = ""


def parse_response(value: str, directive: str = "Success") -> ResponseDirective:
    """Parse a ``@Success``/``@Failure`` value.

    Raises:
        AnnotationSyntaxError: If the status is not an integer, the JSON type
            is unknown, or there are too many tokens
    """
    match = _STATUS_PATTERN.match(value.strip())
    if not match:
        raise AnnotationSyntaxError(directive, "missing status code")

    try:
        status = int(match.group("status"))
    except ValueError as e:
        raise AnnotationSyntaxError(
            directive, f"status code must be an integer, got {match.group('status')!r}"
        ) from e

    rest = match.group("rest").strip()
    description = ""
    quote = rest.find('"')
    if quote >= 0:
        description = rest[quote:].strip().strip('"')
        rest = rest[:quote].strip()

    tokens = rest.split()
    json_type = ""
    type_ref = ""
    if len(tokens) == 2:
        json_type, type_ref = tokens
    elif len(tokens) == 1:
        if tokens[0] in JSON_TYPES:
            json_type = tokens[0]
        else:
            type_ref = tokens[0]
    elif len(tokens) > 2:
        raise AnnotationSyntaxError(
            directive, f'expected: status [jsonType] [type] ["description"], got {value!r}'
        )

    if json_type and json_type not in JSON_TYPES:
        raise AnnotationSyntaxError(
            directive, f"invalid JSON type {json_type!r} (valid: {sorted(JSON_TYPES)})"
        )

    return ResponseDirective(
        status=status,
        json_type=json_type,
        type_ref=normalize_type_ref(type_ref),
        description=description,
    )


@dataclass(frozen=True)
class RouteDirective:
    path: str
    method: str


def parse_route(value: str, directive: str = "Router") -> RouteDirective:
    """Parse a ``@Router``/``@Route`` value.

    Raises:
        AnnotationSyntaxError: If the path or method is malformed
    """
    match = _ROUTE_PATTERN.match(value.strip())
    if not match:
        raise AnnotationSyntaxError(directive, f"expected: path [METHOD], got {value!r}")

    method = match.group("method").upper()
    if method not in ROUTE_METHODS:
        raise AnnotationSyntaxError(
            directive, f"unsupported method {match.group('method')!r}"
        )
    return RouteDirective(path=match.group("path"), method=method)


def parse_example_json(raw: str, directive: str = "Param") -> Any:
    """Parse an example written as JSON.

    Raises:
        AnnotationSyntaxError: If the text is not valid JSON
    """
    try:
        return _loads(raw)
    except ValueError as e:
        reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
        raise AnnotationSyntaxError(directive, f"invalid JSON example {raw!r}: {reason}") from e


# =============================================================================
# Struct Tags
# =============================================================================


def parse_struct_tag(tag: str) -> dict[str, str]:
    """Parse a struct tag following the ``key:"value"`` convention.

    Malformed trailing content is ignored, the way reflect.StructTag does.
    The first occurrence of a key wins.
    """
    values: dict[str, str] = {}
    index = 0
    length = len(tag)

    while index < length:
        while index < length and tag[index] == " ":
            index += 1
        start = index
        while index < length and tag[index] > " " and tag[index] not in ':"' and ord(tag[index]) != 0x7F:
            index += 1
        if index == start or index + 1 >= length or tag[index] != ":" or tag[index + 1] != '"':
            break
        key = tag[start:index]
        index += 2

        chars: list[str] = []
        closed = False
        while index < length:
            char = tag[index]
            if char == "\\" and index + 1 < length:
                chars.append(_ESCAPES.get(tag[index + 1], tag[index + 1]))
                index += 2
                continue
            if char == '"':
                closed = True
                index += 1
                break
            chars.append(char)
            index += 1
        if not closed:
            break
        values.setdefault(key, "".join(chars))

    return values


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}


@dataclass
class FieldTags:
    """Field directives read from a struct tag.

    Attributes:
        name: JSON name override (empty keeps the Go name)
        omit: Field is excluded from the schema
        required: Field is required
        description: Description override
        example: Raw example text
        enum: Raw enum values
        deprecated: Field is deprecated
        has_json_name: The json tag names the field explicitly
    """

    name: str = ""
    omit: bool = False
    required: bool = False
    description: str = ""
    example: str | None = None
    enum: list[str] = field(default_factory=list)
    deprecated: bool = False
    has_json_name: bool = False


def interpret_field_tags(tag: str | None, tool_key: str = "goas") -> FieldTags:
    """Interpret the keys of a struct tag that affect schemas.

    Recognized keys: ``json``, ``example``, ``required``, ``description``,
    ``enum`` and the tool key (``-``, ``enum=a b c``, ``required``,
    ``deprecated``).
    """
    result = FieldTags()
    if not tag:
        return result

    values = parse_struct_tag(tag)

    tool_value = values.get(tool_key)
    if tool_value is not None:
        for option in _split_tool_options(tool_value):
            if option == "-":
                result.omit = True
            elif option.startswith("enum="):
                result.enum = option[len("enum="):].split()
            elif option == "required":
                result.required = True
            elif option == "deprecated":
                result.deprecated = True

    json_value = values.get("json")
    if json_value is not None:
        name, _, options = json_value.partition(",")
        if json_value == "-":
            result.omit = True
        elif name:
            result.name = name
            result.has_json_name = True
        if "required" in options.split(","):
            result.required = True

    if "required" in values and values["required"].lower() not in _FALSE_VALUES:
        result.required = True

    if values.get("description"):
        result.description = values["description"]

    if "example" in values:
        result.example = values["example"]

    if not result.enum and values.get("enum"):
        result.enum = [v for v in re.split(r"[,\s]+", values["enum"]) if v]

    return result


def _split_tool_options(value: str) -> list[str]:
    # "enum=a b c" keeps its spaces; other options are comma-separated
    options: list[str] = []
    for part in value.split(","):
        part = part.strip()
        if part:
            options.append(part)
    return options


def coerce_example(raw: str, kind: str | None) -> Any:
    """Convert example text to a value of the schema's kind.

    Args:
        raw: Example text from a tag or directive
        kind: Resolved schema kind (boolean, integer, number, array, object, ...)

    Returns:
        The coerced value; strings and free-form kinds return the text unchanged

    Raises:
        ValueError: If the text is not valid for the kind
    """
    if kind == "boolean":
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        raise ValueError(f"invalid boolean {raw!r}")
    if kind == "integer":
        return int(raw, 0) if raw.lower().startswith(("0x", "0o", "0b")) else int(raw)
    if kind == "number":
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError(f"{raw!r} is not a finite number")
        return value
    if kind in ("array", "object"):
        value = _loads(raw)
        expected = list if kind == "array" else dict
        if not isinstance(value, expected):
            raise ValueError(f"expected a JSON {kind}, got {raw!r}")
        return value
    return raw
