"""Field declarations: the value type, its canonical text and the line parser."""

from __future__ import annotations

import copy
import dataclasses
import enum
import re
from typing import TYPE_CHECKING, Any, Iterable

from modalfields.errors import DeclarationSyntaxError
from modalfields.literals import (
    RawExpression,
    Symbol,
    attributes_equal,
    format_literal,
    format_symbol,
    parse_literal,
    quote_string,
    split_args,
    split_pair,
    strip_comment,
)

if TYPE_CHECKING:
    from modalfields.registry import Registry

SPECIFIERS = ("indexed", "unique", "required")

TIMESTAMPS_RE = re.compile(r"timestamps(?:\s*\(\s*\))?")
CALL_RE = re.compile(r"([A-Za-z_]\w*)(?:\s*\((.*)\)|\s+(.*))", re.S)
SHORTHAND_NAME_RE = re.compile(r"[A-Za-z_]\w*")

# Names that cannot start a shorthand line: Ruby keywords and the calls
# read inside and around a fields block.
RESERVED_NAMES = frozenset(
    """
    BEGIN END __ENCODING__ __FILE__ __LINE__ alias and begin break case class def defined do else elsif
    end ensure false for if in module next nil not or redo rescue retry return self super then true
    undef unless until when while yield field fields belongs_to
    """.split()
)


class Omitted(enum.Enum):
    """Marker returned for models that opt out with ``fields :omitted``."""

    OMITTED = "omitted"


OMITTED = Omitted.OMITTED


@dataclasses.dataclass(eq=False)
class FieldDeclaration:
    name: str
    type: str
    specifiers: list[str] = dataclasses.field(default_factory=list)
    attributes: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def declare(
        cls,
        name: str,
        type: str,
        specifiers: Iterable[str] = (),
        attributes: dict[str, Any] | None = None,
        registry: Registry | None = None,
    ) -> FieldDeclaration:
        attributes = dict(attributes or {})
        if registry is not None:
            attributes = registry.canonical_attributes(str(type), attributes)
        return cls(str(name), str(type), [str(s) for s in specifiers], attributes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldDeclaration):
            return NotImplemented
        return (
            self.name == other.name
            and self.type == other.type
            and self.specifiers == other.specifiers
            and attributes_equal(self.attributes, other.attributes)
        )

    __hash__ = None  # type: ignore[assignment]

    def replace(self, **changes: Any) -> FieldDeclaration:
        for key, value in changes.items():
            if key not in ("name", "type", "specifiers", "attributes"):
                raise AttributeError(f"FieldDeclaration has no member {key!r}")
            setattr(self, key, value)
        return self

    def merge_attributes(self, attributes: dict[str, Any]) -> FieldDeclaration:
        self.attributes.update(attributes)
        return self

    def remove_attributes(self, *names: str) -> FieldDeclaration:
        self.attributes = {k: v for k, v in self.attributes.items() if k not in names}
        return self

    def copy(self) -> FieldDeclaration:
        return FieldDeclaration(self.name, self.type, list(self.specifiers), copy.deepcopy(self.attributes))

    def to_text(self) -> str:
        type_symbol = format_symbol(self.type)
        if SHORTHAND_NAME_RE.fullmatch(self.name) and self.name not in RESERVED_NAMES:
            code = f"{self.name} {type_symbol}"
        elif SHORTHAND_NAME_RE.fullmatch(self.name):
            code = f"field :{self.name}, {type_symbol}"
        else:
            code = f"field {quote_string(self.name)}, {type_symbol}"
        if self.specifiers:
            code += ", " + ", ".join(format_symbol(s) for s in self.specifiers)
        if self.attributes:
            code += ", " + ", ".join(
                f"{format_symbol(key)}=>{format_literal(self.attributes[key])}" for key in sorted(self.attributes)
            )
        return code

    def __str__(self) -> str:
        return self.to_text()


def timestamp_fields() -> list[FieldDeclaration]:
    return [FieldDeclaration("created_at", "datetime"), FieldDeclaration("updated_at", "datetime")]


def parse_declaration(line: str) -> list[FieldDeclaration]:
    """Read the declarations written on one line of a fields block.

    Blank lines, comments and lines that are not a call with a type
    argument yield nothing.
    """
    code, _ = strip_comment(line)
    code = code.strip()
    if not code:
        return []
    if TIMESTAMPS_RE.fullmatch(code):
        return timestamp_fields()
    m = CALL_RE.fullmatch(code)
    if not m:
        return []
    method = m.group(1)
    args = split_args(m.group(2) if m.group(2) is not None else m.group(3))

    if method == "field":
        if not args:
            return []
        name = parse_literal(args[0])
        if not isinstance(name, str) or isinstance(name, RawExpression):
            return []
        args = args[1:]
    else:
        name = method
    if not args:
        return []
    type_name = parse_literal(args[0])
    if not isinstance(type_name, str) or isinstance(type_name, RawExpression):
        return []

    specifiers: list[str] = []
    attributes: dict[str, Any] = {}
    for token in args[1:]:
        pair = split_pair(token)
        if pair:
            attributes[pair[0]] = pair[1]
            continue
        value = parse_literal(token)
        if not isinstance(value, Symbol):
            raise DeclarationSyntaxError(f"Unexpected argument {token!r} in field declaration: {line.strip()}")
        specifiers.append(str(value))
    return [FieldDeclaration(str(name), str(type_name), specifiers, attributes)]


class DeclarationsBuilder:
    """Collect the declared fields of a model, running the registered hooks."""

    def __init__(self, model: Any, registry: Registry) -> None:
        self.model = model
        self.registry = registry
        self.fields: list[FieldDeclaration] = []

    def add(self, declaration: FieldDeclaration) -> FieldDeclaration:
        for hook in (self.registry.hook_for(declaration.type), self.registry.all_fields_hook):
            if hook is not None:
                hook(self.model, declaration)
        self.registry.validate(declaration)
        declaration.attributes = self.registry.canonical_attributes(declaration.type, declaration.attributes)
        self.fields.append(declaration)
        return declaration

    def field(self, name: str, type: str, *specifiers: str, **attributes: Any) -> FieldDeclaration:
        return self.add(FieldDeclaration.declare(name, type, specifiers, attributes))

    def timestamps(self) -> None:
        for declaration in timestamp_fields():
            self.add(declaration)

    def line(self, text: str) -> list[FieldDeclaration]:
        return [self.add(declaration) for declaration in parse_declaration(text)]
