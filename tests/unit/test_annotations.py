"""Unit tests for directive and struct tag grammars."""

import pytest

from goapispec.analyzers.annotations import (
    coerce_example,
    interpret_field_tags,
    iter_directives,
    normalize_type_ref,
    parse_example_json,
    parse_param,
    parse_response,
    parse_route,
    parse_struct_tag,
    quoted_values,
)
from goapispec.errors import AnnotationSyntaxError


class TestIterDirectives:
    """Tests for directive line extraction."""

    def test_keywords_are_lowercased(self) -> None:
        """Test keywords are case-insensitive but the written name is kept."""
        directives = iter_directives(["Summary text", "@Router /a [get]", "@SUCCESS 200", "@"])

        assert [(d.keyword, d.name, d.value) for d in directives] == [
            ("router", "Router", "/a [get]"),
            ("success", "SUCCESS", "200"),
        ]

    def test_quoted_values(self) -> None:
        """Test quoted strings are unescaped."""
        assert quoted_values('"pets" "The \\"pet\\" API"') == ["pets", 'The "pet" API']


class TestParseParam:
    """Tests for @Param."""

    def test_full_param(self) -> None:
        """Test all five fields plus an example."""
        param = parse_param('limit query int false "Page size" "20"')

        assert param.name == "limit"
        assert param.location == "query"
        assert param.type_ref == "int"
        assert param.required is False
        assert param.description == "Page size"
        assert param.example == "20"

    def test_path_params_always_required(self) -> None:
        """Test path parameters are required even when declared false."""
        assert parse_param('id path string false "ID"').required is True

    def test_escaped_example(self) -> None:
        """Test escaped quotes inside the example are unescaped."""
        param = parse_param('pet body model.Pet true "Pet" "{\\"name\\":\\"Rex\\"}"')

        assert param.example == '{"name":"Rex"}'

    def test_array_length_normalized(self) -> None:
        """Test [N] becomes [] in the type reference."""
        assert parse_param('ids query [5]int true "IDs"').type_ref == "[]int"

    def test_unknown_location(self) -> None:
        """Test an unknown location is a grammar error."""
        with pytest.raises(AnnotationSyntaxError, match="unknown location"):
            parse_param('id somewhere string true "ID"')

    def test_missing_description(self) -> None:
        """Test a param without quoted description is rejected."""
        with pytest.raises(AnnotationSyntaxError, match="@Param"):
            parse_param("id path string true")


class TestParseResponse:
    """Tests for @Success and @Failure."""

    def test_json_type_and_type(self) -> None:
        """Test status, JSON type, type and description."""
        response = parse_response('200 {array} model.Pet "The pets"')

        assert response.status == 200
        assert response.json_type == "{array}"
        assert response.type_ref == "model.Pet"
        assert response.description == "The pets"

    def test_single_json_type(self) -> None:
        """Test a single token that is a JSON type."""
        response = parse_response('200 object "ok"')

        assert response.json_type == "object"
        assert response.type_ref == ""

    def test_single_type(self) -> None:
        """Test a single token that is not a JSON type is the Go type."""
        response = parse_response('200 string "pong"')

        assert response.json_type == ""
        assert response.type_ref == "string"

    def test_status_only(self) -> None:
        """Test a bare status with description."""
        response = parse_response('204 "No content"')

        assert response.status == 204
        assert response.type_ref == ""
        assert response.description == "No content"

    def test_non_integer_status(self) -> None:
        """Test the status must be an integer."""
        with pytest.raises(AnnotationSyntaxError, match="@Failure: status code must be an integer"):
            parse_response('default {object} model.Error "err"', "Failure")

    def test_invalid_json_type(self) -> None:
        """Test an unknown JSON type with a Go type is rejected."""
        with pytest.raises(AnnotationSyntaxError, match="invalid JSON type"):
            parse_response('200 {list} model.Pet "pets"')

    def test_too_many_tokens(self) -> None:
        """Test more than two tokens before the description."""
        with pytest.raises(AnnotationSyntaxError, match="expected"):
            parse_response('200 {object} model.Pet extra "pets"')


class TestParseRoute:
    """Tests for @Router."""

    def test_route(self) -> None:
        """Test path and method are split and the method upper-cased."""
        route = parse_route("/pets/{id} [delete]")

        assert route.path == "/pets/{id}"
        assert route.method == "DELETE"

    def test_missing_method(self) -> None:
        """Test a route without method is rejected."""
        with pytest.raises(AnnotationSyntaxError, match="expected: path"):
            parse_route("/pets")

    def test_unsupported_method(self) -> None:
        """Test unknown HTTP methods are rejected."""
        with pytest.raises(AnnotationSyntaxError, match="unsupported method"):
            parse_route("/pets [fetch]")


class TestStructTags:
    """Tests for struct tag parsing and interpretation."""

    def test_parse_struct_tag(self) -> None:
        """Test key:"value" pairs with escapes; the first key wins."""
        values = parse_struct_tag('json:"id,omitempty" description:"say \\"hi\\"" json:"other"')

        assert values == {"json": "id,omitempty", "description": 'say "hi"'}

    def test_malformed_tail_ignored(self) -> None:
        """Test parsing stops at malformed content."""
        assert parse_struct_tag('json:"id" broken') == {"json": "id"}

    def test_json_name_and_required(self) -> None:
        """Test json name and the required option."""
        tags = interpret_field_tags('json:"user_id,required" example:"7"')

        assert tags.name == "user_id"
        assert tags.has_json_name is True
        assert tags.required is True
        assert tags.example == "7"

    def test_json_dash_omits(self) -> None:
        """Test json:"-" omits the field."""
        assert interpret_field_tags('json:"-"').omit is True

    def test_omitempty_keeps_go_name(self) -> None:
        """Test json:",omitempty" does not rename the field."""
        tags = interpret_field_tags('json:",omitempty"')

        assert tags.name == ""
        assert tags.has_json_name is False

    def test_tool_key_options(self) -> None:
        """Test the tool key carries omit, enum, required and deprecated."""
        tags = interpret_field_tags('goas:"enum=red green blue,required,deprecated"')

        assert tags.enum == ["red", "green", "blue"]
        assert tags.required is True
        assert tags.deprecated is True
        assert interpret_field_tags('goas:"-"').omit is True

    def test_enum_tag_split_on_commas_and_spaces(self) -> None:
        """Test the enum tag accepts both separators."""
        assert interpret_field_tags('enum:"a,b c"').enum == ["a", "b", "c"]

    def test_required_false(self) -> None:
        """Test required:"false" leaves the field optional."""
        assert interpret_field_tags('required:"false"').required is False

    def test_custom_tool_key(self) -> None:
        """Test a different tool key is honored."""
        assert interpret_field_tags('api:"-"', tool_key="api").omit is True
        assert interpret_field_tags('api:"-"').omit is False

    def test_no_tag(self) -> None:
        """Test a missing tag yields defaults."""
        tags = interpret_field_tags(None)

        assert tags.name == ""
        assert tags.omit is False
        assert tags.example is None


class TestCoerceExample:
    """Tests for example coercion."""

    @pytest.mark.parametrize(
        ("raw", "kind", "expected"),
        [
            ("true", "boolean", True),
            ("F", "boolean", False),
            ("42", "integer", 42),
            ("0x1F", "integer", 31),
            ("1.5", "number", 1.5),
            ("[1, 2]", "array", [1, 2]),
            ('{"a": 1}', "object", {"a": 1}),
            ("hello", "string", "hello"),
            ("anything", None, "anything"),
        ],
    )
    def test_coerce(self, raw: str, kind: str | None, expected: object) -> None:
        """Test each kind converts its text."""
        assert coerce_example(raw, kind) == expected

    @pytest.mark.parametrize(
        ("raw", "kind"),
        [("yes", "boolean"), ("4.2", "integer"), ("abc", "number"), ('{"a": 1}', "array")],
    )
    def test_invalid(self, raw: str, kind: str) -> None:
        """Test invalid text raises ValueError."""
        with pytest.raises(ValueError):
            coerce_example(raw, kind)

    @pytest.mark.parametrize(
        ("raw", "kind"),
        [("NaN", "number"), ("inf", "number"), ("-Infinity", "number"), ("[1, NaN]", "array")],
    )
    def test_non_finite_rejected(self, raw: str, kind: str) -> None:
        """Test values with no JSON representation are invalid."""
        with pytest.raises(ValueError):
            coerce_example(raw, kind)

    def test_parse_example_json(self) -> None:
        """Test JSON examples parse and bad JSON is a grammar error."""
        assert parse_example_json('{"name": "Rex"}') == {"name": "Rex"}
        with pytest.raises(AnnotationSyntaxError, match="invalid JSON example"):
            parse_example_json("{name}")
        with pytest.raises(AnnotationSyntaxError, match="not representable"):
            parse_example_json('{"ratio": NaN}')

    def test_normalize_type_ref(self) -> None:
        """Test array lengths and map keys are normalized."""
        assert normalize_type_ref("map[string][3]model.Pet") == "map[][]model.Pet"
