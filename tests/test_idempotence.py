import unittest
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from modalfields.blocks import parse_block, render, update_text
from modalfields.declarations import DeclarationsBuilder
from modalfields.diff import PrimaryKeyPolicy, column_to_declaration, diff
from modalfields.registry import standard_registry
from modalfields.schema import AssociationDescriptor, SchemaColumn

NAMES = [
    "id", "name", "title", "number", "price", "code", "body", "flag", "born_on", "created_at", "updated_at", "author_id",
    "end", "field", "class", "belongs_to", "two words",
]
TYPES = ["string", "text", "integer", "float", "decimal", "datetime", "date", "time", "boolean", "binary"]
TEXT = st.text(alphabet=st.sampled_from("ab Z#\"'\\{\n\u2028"), max_size=6)

REGISTRY = standard_registry()


def default_values(type_name: str):
    values = {
        "string": TEXT,
        "text": TEXT,
        "integer": st.integers(-10**6, 10**6),
        "float": st.floats(allow_nan=False, allow_infinity=False),
        "decimal": st.decimals(min_value=-1000, max_value=1000, places=2, allow_nan=False, allow_infinity=False),
        "date": st.sampled_from(["2020-01-01", "1999-12-31"]),
        "boolean": st.booleans(),
    }.get(type_name)
    if values is None:
        return st.none()
    return st.none() | values


@st.composite
def columns(draw, names=st.lists(st.sampled_from(NAMES), unique=True, max_size=7)):
    out = []
    for name in draw(names):
        type_name = draw(st.sampled_from(TYPES))
        limit = draw(st.sampled_from([None, 40, 255])) if type_name in ("string", "integer") else None
        precision = draw(st.sampled_from([None, 8, 10])) if type_name == "decimal" else None
        scale = draw(st.sampled_from([None, 2])) if precision else None
        out.append(
            SchemaColumn(
                name,
                type_name,
                null=draw(st.booleans()),
                default=draw(default_values(type_name)),
                limit=limit,
                precision=precision,
                scale=scale,
            )
        )
    return out


@st.composite
def model_texts(draw):
    style = draw(st.sampled_from(["do", "brace", "none"]))
    header = ["class Sample < ActiveRecord::Base\n"]
    if draw(st.booleans()):
        header.append("  belongs_to :author\n")
    footer = ["\n", "  has_many :things\n", "end\n"]
    if style == "none":
        return "".join(header + footer)
    lines = []
    for column in draw(columns()):
        line = "    " + column_to_declaration(column, REGISTRY).to_text()
        if draw(st.booleans()):
            line += " # note"
        lines.append(line + "\n")
    if draw(st.booleans()):
        lines.insert(0, "    # kept as it is\n")
    if draw(st.booleans()):
        lines.append("    timestamps\n")
    opener, closer = ("  fields do\n", "  end\n") if style == "do" else ("  fields {\n", "  }\n")
    return "".join(header + [opener] + lines + [closer] + footer)


def declared_fields(text: str):
    block = parse_block(text)
    if block.synthesized:
        return None
    builder = DeclarationsBuilder(None, REGISTRY)
    for line in block.lines:
        builder.line(line)
    return builder.fields


def update_pass(text, table_columns, associations, policy):
    result = diff(declared_fields(text), table_columns, associations, ["id"], policy, REGISTRY)
    if result.is_empty:
        return text, result
    return update_text(text, result, ["id"]), result


class TestIdempotence(unittest.TestCase):
    @settings(max_examples=300, deadline=None)
    @given(
        text=model_texts(),
        table_columns=columns(),
        with_author=st.booleans(),
        policy=st.sampled_from(list(PrimaryKeyPolicy)),
    )
    def test_second_update_is_a_no_op(self, text, table_columns, with_author, policy) -> None:
        associations = [AssociationDescriptor("author")] if with_author else []
        first, _ = update_pass(text, table_columns, associations, policy)
        second, result = update_pass(first, table_columns, associations, policy)
        self.assertEqual(second, first)
        self.assertEqual(result.new_fields, [])

    @settings(max_examples=200, deadline=None)
    @given(text=model_texts())
    def test_parse_then_render_gives_back_the_text(self, text) -> None:
        block = parse_block(text)
        if not block.synthesized:
            self.assertEqual(render(block), text)


class TestEndToEnd(unittest.TestCase):
    def test_schema_change_round_trip(self) -> None:
        text = (
            "class Author < ActiveRecord::Base\n"
            "  fields do\n"
            "    name :string # who\n"
            "    age :integer\n"
            "  end\n"
            "end\n"
        )
        table_columns = [
            SchemaColumn("id", "integer", null=False),
            SchemaColumn("name", "string", limit=80),
            SchemaColumn("price", "decimal", default=Decimal("1.5"), precision=8, scale=2),
        ]
        first, result = update_pass(text, table_columns, [], PrimaryKeyPolicy.NEVER)
        self.assertEqual([f.name for f in result.deleted_fields], ["age"])
        self.assertEqual(
            first,
            "class Author < ActiveRecord::Base\n"
            "  fields do\n"
            "    name :string, :limit=>80 # who\n"
            "    price :decimal, :default=>BigDecimal('1.5'), :precision=>8, :scale=>2\n"
            "  end\n"
            "end\n",
        )
        second, result = update_pass(first, table_columns, [], PrimaryKeyPolicy.NEVER)
        self.assertTrue(result.is_empty)
        self.assertEqual(second, first)


if __name__ == "__main__":
    unittest.main()
