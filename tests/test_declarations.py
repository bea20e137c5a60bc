import unittest
from decimal import Decimal

from modalfields.declarations import DeclarationsBuilder, FieldDeclaration, parse_declaration
from modalfields.errors import DeclarationSyntaxError, UnknownType
from modalfields.literals import RawExpression, Symbol, format_literal, parse_literal, split_args, strip_comment
from modalfields.registry import standard_registry


class TestLiterals(unittest.TestCase):
    def test_formats_ruby_literals(self) -> None:
        self.assertEqual(format_literal(None), "nil")
        self.assertEqual(format_literal(True), "true")
        self.assertEqual(format_literal(False), "false")
        self.assertEqual(format_literal(4), "4")
        self.assertEqual(format_literal(1.5), "1.5")
        self.assertEqual(format_literal(Symbol("foo")), ":foo")
        self.assertEqual(format_literal('say "hi"\n'), '"say \\"hi\\"\\n"')
        self.assertEqual(format_literal(Decimal("1.2")), "BigDecimal('1.2')")

    def test_parses_ruby_literals(self) -> None:
        self.assertIsNone(parse_literal("nil"))
        self.assertIs(parse_literal("false"), False)
        self.assertEqual(parse_literal("-12"), -12)
        self.assertEqual(parse_literal("2.5"), 2.5)
        self.assertEqual(parse_literal("'it\\'s'"), "it's")
        self.assertEqual(parse_literal('"a\\tb"'), "a\tb")
        self.assertEqual(parse_literal(":unique"), Symbol("unique"))
        self.assertIsInstance(parse_literal(":unique"), Symbol)
        self.assertEqual(parse_literal("BigDecimal('10.125')"), Decimal("10.125"))
        self.assertEqual(parse_literal("[1, :a]"), [1, Symbol("a")])

    def test_line_breaking_characters_are_escaped(self) -> None:
        text = format_literal("a\x0bb\u2028c")
        self.assertEqual(text, '"a\\u000bb\\u2028c"')
        self.assertEqual(len(text.splitlines()), 1)
        self.assertEqual(parse_literal(text), "a\x0bb\u2028c")
        self.assertEqual(parse_literal('"\\#{x}"'), "#{x}")

    def test_unknown_expressions_are_kept_verbatim(self) -> None:
        value = parse_literal("Date.today")
        self.assertIsInstance(value, RawExpression)
        self.assertEqual(format_literal(value), "Date.today")

    def test_split_args_ignores_commas_in_strings_and_brackets(self) -> None:
        self.assertEqual(
            split_args(":string, :default=>\"a, b\", :in=>[1, 2]"),
            [":string", ':default=>"a, b"', ":in=>[1, 2]"],
        )

    def test_strip_comment_skips_hashes_in_strings(self) -> None:
        code, comment = strip_comment('code :string, :default=>"#1" # the code\n')
        self.assertEqual(code, 'code :string, :default=>"#1" ')
        self.assertEqual(comment, "# the code")


class TestFieldDeclaration(unittest.TestCase):
    def test_canonical_text(self) -> None:
        field = FieldDeclaration("decnum", "decimal", ["unique", "indexed"], {"scale": 3, "precision": 10})
        self.assertEqual(field.to_text(), "decnum :decimal, :unique, :indexed, :precision=>10, :scale=>3")

    def test_decimal_default_renders_constructor(self) -> None:
        field = FieldDeclaration("decnum", "decimal", [], {"default": Decimal("1.2")})
        self.assertEqual(str(field), "decnum :decimal, :default=>BigDecimal('1.2')")

    def test_equality_is_structural(self) -> None:
        a = FieldDeclaration("flag", "boolean", [], {"default": False})
        self.assertEqual(a, FieldDeclaration("flag", "boolean", [], {"default": False}))
        self.assertNotEqual(a, FieldDeclaration("flag", "boolean", [], {"default": 0}))
        self.assertNotEqual(a, FieldDeclaration("flag", "boolean", ["required"], {"default": False}))

    def test_mutators_chain(self) -> None:
        field = FieldDeclaration("code", "string", [], {"limit": 4, "null": False})
        same = field.replace(type="text").merge_attributes({"default": "x"}).remove_attributes("null")
        self.assertIs(same, field)
        self.assertEqual(field, FieldDeclaration("code", "text", [], {"limit": 4, "default": "x"}))

    def test_replace_rejects_unknown_members(self) -> None:
        with self.assertRaises(AttributeError):
            FieldDeclaration("code", "string").replace(color="red")

    def test_reserved_and_unusual_names_use_field_call(self) -> None:
        cases = [
            (FieldDeclaration("end", "datetime"), "field :end, :datetime"),
            (FieldDeclaration("field", "string", [], {"limit": 10}), "field :field, :string, :limit=>10"),
            (FieldDeclaration("belongs_to", "integer"), "field :belongs_to, :integer"),
            (FieldDeclaration("two words", "string"), 'field "two words", :string'),
        ]
        for field, text in cases:
            self.assertEqual(field.to_text(), text)
            self.assertEqual(parse_declaration("    " + text + "\n"), [field])

    def test_declare_with_registry_drops_defaults(self) -> None:
        field = FieldDeclaration.declare("name", "string", (), {"limit": 255, "null": False}, registry=standard_registry())
        self.assertEqual(field.attributes, {"null": False})


class TestParseDeclaration(unittest.TestCase):
    def test_shorthand_line(self) -> None:
        (field,) = parse_declaration("    birthdate :date, :unique # specifications...\n")
        self.assertEqual(field, FieldDeclaration("birthdate", "date", ["unique"], {}))

    def test_attribute_styles(self) -> None:
        (field,) = parse_declaration("    price :decimal, :precision=>8, scale: 2, \"default\"=>BigDecimal('0.5')\n")
        self.assertEqual(field.attributes, {"precision": 8, "scale": 2, "default": Decimal("0.5")})

    def test_field_call_forms(self) -> None:
        (a,) = parse_declaration("  field :title, :string, :limit=>40\n")
        (b,) = parse_declaration("  field 'title', :string, :limit=>40\n")
        (c,) = parse_declaration("  title(:string, limit: 40)\n")
        self.assertEqual(a, b)
        self.assertEqual(a, c)
        self.assertEqual(a.name, "title")

    def test_timestamps_expand(self) -> None:
        fields = parse_declaration("    timestamps\n")
        self.assertEqual([f.name for f in fields], ["created_at", "updated_at"])
        self.assertTrue(all(f.type == "datetime" for f in fields))

    def test_lines_without_declaration(self) -> None:
        for line in ["\n", "    # just a comment\n", "  end\n", "    something\n"]:
            self.assertEqual(parse_declaration(line), [], line)

    def test_unexpected_positional_argument(self) -> None:
        with self.assertRaises(DeclarationSyntaxError):
            parse_declaration("    name :string, 5\n")

    def test_rendered_text_parses_back(self) -> None:
        field = FieldDeclaration(
            "decnum", "decimal", ["indexed"], {"default": Decimal("1.20"), "precision": 10, "null": False}
        )
        self.assertEqual(parse_declaration("    " + field.to_text() + " # PK\n"), [field])


class TestDeclarationsBuilder(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = standard_registry()

    def test_runs_type_hook_then_all_fields_hook(self) -> None:
        calls = []
        self.registry.register_hook("string", lambda model, f: calls.append(("string", model, f.name)))
        self.registry.register_all_fields_hook(lambda model, f: calls.append(("all", model, f.name)))
        builder = DeclarationsBuilder("Author", self.registry)
        builder.field("name", "string")
        builder.field("age", "integer")
        self.assertEqual(
            calls,
            [("string", "Author", "name"), ("all", "Author", "name"), ("all", "Author", "age")],
        )

    def test_hooks_may_change_the_declaration(self) -> None:
        self.registry.register_hook("string", lambda model, f: f.specifiers.append("required"))
        builder = DeclarationsBuilder(None, self.registry)
        builder.line("    name :string, :limit=>255\n")
        self.assertEqual(builder.fields, [FieldDeclaration("name", "string", ["required"], {})])

    def test_unknown_type_is_rejected(self) -> None:
        builder = DeclarationsBuilder(None, self.registry)
        with self.assertRaises(UnknownType) as ctx:
            builder.line("    validates :presence\n")
        self.assertEqual(ctx.exception.type_name, "presence")
        self.assertEqual(builder.fields, [])

    def test_hook_errors_propagate(self) -> None:
        def failing(model, field):
            raise RuntimeError("hook failed")

        self.registry.register_all_fields_hook(failing)
        with self.assertRaises(RuntimeError):
            DeclarationsBuilder(None, self.registry).timestamps()


if __name__ == "__main__":
    unittest.main()
