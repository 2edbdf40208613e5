"""Unit tests for the tree-sitter Go source parser."""

from pathlib import Path

import pytest

from goapispec.analyzers.go_parser import GoSourceParser, parse_type_reference, split_arguments
from goapispec.models.declarations import (
    ArrayType,
    CompoundType,
    GoFile,
    IdentType,
    InterfaceType,
    MapType,
    PointerType,
    SelectorType,
    StructType,
    UnsupportedType,
)

SOURCE = '''package model

import (
	"time"

	db "example.com/app/storage"
	_ "example.com/app/driver"
)

// User is an account.
// @Deprecated
type User struct {
	ID      int64             `json:"id"`
	Name    string            `json:"name" example:"ann"`
	Tags    []string
	Meta    map[string]any
	Created time.Time
	Store   *db.Handle
	Base
	*Audit
}

type (
	// Role groups permissions.
	Role  string
	Flags [4]bool
)

type Box[T any] struct {
	Value T
}

// Handle serves requests.
// @Router /users [get]
func (s *Server) Handle() {
	type reply struct {
		OK bool
	}
}

// main starts the server
func main() {}

func helper() {} // trailing comment
'''


class TestGoSourceParser:
    """Tests for GoSourceParser."""

    @pytest.fixture
    def parsed(self, go_parser: GoSourceParser, tmp_path: Path) -> GoFile:
        """Parse the sample source."""
        path = tmp_path / "user.go"
        path.write_text(SOURCE)
        result = go_parser.parse_file(path)
        assert result.success, result.error
        return result.file

    def test_package_and_imports(self, parsed: GoFile) -> None:
        """Test package clause and import specs are extracted."""
        assert parsed.package == "model"
        imports = {i.path: i for i in parsed.imports}
        assert imports["time"].alias == "time"
        assert imports["example.com/app/storage"].alias == "db"
        assert imports["example.com/app/driver"].alias is None

    def test_struct_fields(self, parsed: GoFile) -> None:
        """Test struct fields keep names, shapes and tags."""
        user = next(t for t in parsed.types if t.name == "User")
        assert isinstance(user.shape, StructType)
        fields = user.shape.fields

        assert fields[0].names == ("ID",)
        assert fields[0].type == IdentType("int64")
        assert fields[0].tag == 'json:"id"'
        assert fields[2].type == ArrayType(IdentType("string"))
        assert fields[3].type == MapType(value=InterfaceType(), key=IdentType("string"))
        assert fields[4].type == SelectorType("time", "Time")
        assert fields[5].type == PointerType(SelectorType("db", "Handle"))

    def test_embedded_fields(self, parsed: GoFile) -> None:
        """Test embedded fields have no names and keep their pointer."""
        user = next(t for t in parsed.types if t.name == "User")
        embedded = [f for f in user.shape.fields if f.embedded]

        assert [f.type for f in embedded] == [IdentType("Base"), PointerType(IdentType("Audit"))]

    def test_grouped_types_and_docs(self, parsed: GoFile) -> None:
        """Test grouped type declarations and their doc comments."""
        types = {t.key: t for t in parsed.types}

        assert types["Role"].shape == IdentType("string")
        assert types["Role"].doc == ("Role groups permissions.",)
        assert types["Flags"].shape == ArrayType(IdentType("bool"))
        assert types["User"].doc == ("User is an account.", "@Deprecated")

    def test_generic_type_is_unsupported(self, parsed: GoFile) -> None:
        """Test that parameterized declarations are not expanded."""
        box = next(t for t in parsed.types if t.name == "Box")
        assert isinstance(box.shape, UnsupportedType)

    def test_local_types_are_scoped(self, parsed: GoFile) -> None:
        """Test types declared in a method body are keyed by receiver and method."""
        local = next(t for t in parsed.types if t.name == "reply")

        assert local.enclosing == "Server@Handle"
        assert local.key == "Server@Handle@reply"

    def test_annotated_declarations(self, parsed: GoFile) -> None:
        """Test only declarations with a doc comment are reported."""
        declarations = {d.name: d for d in parsed.declarations}

        assert declarations["Handle"].kind == "method"
        assert declarations["Handle"].receiver == "Server"
        assert declarations["Handle"].scope == "Server@Handle"
        assert declarations["Handle"].comments == ("Handle serves requests.", "@Router /users [get]")
        assert declarations["main"].kind == "func"
        assert "helper" not in declarations

    def test_declares_main(self, parsed: GoFile) -> None:
        """Test main detection requires package main."""
        assert "main" in parsed.functions
        assert parsed.declares_main() is False

    def test_all_comments_collected(self, parsed: GoFile) -> None:
        """Test every comment line of the file is available."""
        assert "@Router /users [get]" in parsed.comments
        assert "trailing comment" in parsed.comments

    def test_missing_file(self, go_parser: GoSourceParser, tmp_path: Path) -> None:
        """Test that an unreadable file yields a failed result."""
        result = go_parser.parse_file(tmp_path / "absent.go")

        assert result.success is False
        assert result.error

    def test_syntax_errors_are_flagged(self, go_parser: GoSourceParser, tmp_path: Path) -> None:
        """Test that broken files still parse, with has_errors set."""
        path = tmp_path / "broken.go"
        path.write_text("package broken\n\ntype Ok struct { A int }\n\nfunc (\n")

        result = go_parser.parse_file(path)

        assert result.success is True
        assert result.file.has_errors is True
        assert any(t.name == "Ok" for t in result.file.types)


class TestParseTypeReference:
    """Tests for annotation type reference parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("string", IdentType("string")),
            ("model.User", SelectorType("model", "User")),
            ("github.com/acme/shop/model.User", SelectorType("github.com/acme/shop/model", "User")),
            ("*User", PointerType(IdentType("User"))),
            ("[]User", ArrayType(IdentType("User"))),
            ("[3]int", ArrayType(IdentType("int"))),
            ("map[string]int", MapType(value=IdentType("int"), key=IdentType("string"))),
            ("map[]int", MapType(value=IdentType("int"))),
            ("interface{}", InterfaceType()),
            ("any", InterfaceType()),
        ],
    )
    def test_simple_references(self, text: str, expected: object) -> None:
        """Test the reference forms accepted in directives."""
        assert parse_type_reference(text) == expected

    def test_compound_reference(self) -> None:
        """Test compositions with nested arguments."""
        shape = parse_type_reference("oneOf(model.Cat, []model.Dog, map[string]int)")

        assert isinstance(shape, CompoundType)
        assert shape.operator == "oneOf"
        assert shape.arguments == (
            SelectorType("model", "Cat"),
            ArrayType(SelectorType("model", "Dog")),
            MapType(value=IdentType("int"), key=IdentType("string")),
        )

    def test_compound_keyword_is_case_insensitive(self) -> None:
        """Test ALLOF(...) is normalized to allOf."""
        assert parse_type_reference("ALLOF(A,B)").operator == "allOf"

    def test_not_takes_one_argument(self) -> None:
        """Test not() with two arguments is rejected."""
        with pytest.raises(ValueError, match="exactly 1"):
            parse_type_reference("not(A,B)")

    @pytest.mark.parametrize("text", ["", "model.", "[]", "map[string", "9lives", "oneOf()"])
    def test_malformed_references(self, text: str) -> None:
        """Test malformed references raise ValueError."""
        with pytest.raises(ValueError):
            parse_type_reference(text)

    def test_split_arguments_respects_brackets(self) -> None:
        """Test commas inside brackets do not split."""
        assert split_arguments("A, oneOf(B,C), map[string]D") == ["A", "oneOf(B,C)", "map[string]D"]
