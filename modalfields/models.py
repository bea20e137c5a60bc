"""Model source files: what the fields tooling learns from reading them."""

from __future__ import annotations

import dataclasses
import re
from pathlib import Path
from typing import Any

from modalfields.blocks import DeclarationBlock, parse_block
from modalfields.declarations import OMITTED, DeclarationsBuilder, FieldDeclaration, Omitted
from modalfields.errors import ModelDeclarationNotFound
from modalfields.literals import parse_literal, split_args, split_pair, strip_comment
from modalfields.registry import Registry
from modalfields.schema import AssociationDescriptor, SchemaColumn, SchemaSource, TableSchema

CLASS_RE = re.compile(r"^\s*class\s+((?:\w+::)*\w+)(?:\s*<\s*((?:::)?(?:\w+::)*\w+))?")
TABLE_NAME_RE = re.compile(r"^\s*(?:self\.table_name\s*=|set_table_name\b)\s*\(?\s*:?['\"]?(\w+)")
ABSTRACT_RE = re.compile(r"^\s*self\.abstract_class\s*=\s*true\b")
OMITTED_RE = re.compile(r"^\s*fields\s*\(?\s*:omitted\b")
BELONGS_TO_RE = re.compile(r"^\s*belongs_to\b\s*\(?(.*?)\)?\s*$")

SIBLING_SUFFIX = "_with_fields.rb"


def read_source(path: Path) -> str:
    # newline="" keeps CRLF terminators as they are
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def underscore(name: str) -> str:
    name = name.split("::")[-1]
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.lower()


def pluralize(word: str) -> str:
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    return word + "s"


def tableize(class_name: str) -> str:
    return pluralize(underscore(class_name))


def parse_association(line: str) -> AssociationDescriptor | None:
    code, _ = strip_comment(line)
    m = BELONGS_TO_RE.match(code)
    if not m:
        return None
    args = split_args(m.group(1))
    if not args:
        return None
    name = parse_literal(args[0])
    if not isinstance(name, str):
        return None
    options: dict[str, Any] = {}
    for token in args[1:]:
        pair = split_pair(token)
        if pair:
            options[pair[0]] = pair[1]
    foreign_key = options.get("foreign_key")
    foreign_type = options.get("foreign_type")
    return AssociationDescriptor(
        name=str(name),
        foreign_key=str(foreign_key) if foreign_key else None,
        polymorphic=options.get("polymorphic") is True,
        foreign_type=str(foreign_type) if foreign_type else None,
    )


@dataclasses.dataclass
class ModelSource:
    path: Path
    class_name: str
    superclass: str | None
    block: DeclarationBlock
    explicit_table_name: str | None = None
    abstract: bool = False
    omitted: bool = False
    associations: list[AssociationDescriptor] = dataclasses.field(default_factory=list)

    @property
    def table_name(self) -> str:
        return self.explicit_table_name or tableize(self.class_name)

    @property
    def has_fields_block(self) -> bool:
        return not self.block.synthesized

    def __str__(self) -> str:
        return self.class_name


def parse_model_source(path: Path, text: str | None = None) -> ModelSource | None:
    """Read a model file; None when it declares no class."""
    if text is None:
        text = read_source(path)
    class_name = superclass = table_name = None
    abstract = omitted = False
    associations: list[AssociationDescriptor] = []
    for line in text.splitlines():
        if class_name is None:
            m = CLASS_RE.match(line)
            if m:
                class_name = m.group(1)
                superclass = m.group(2).lstrip(":") if m.group(2) else None
            continue
        m = TABLE_NAME_RE.match(line)
        if m:
            table_name = m.group(1)
        elif ABSTRACT_RE.match(line):
            abstract = True
        elif OMITTED_RE.match(line):
            omitted = True
        else:
            association = parse_association(line)
            if association is not None:
                associations.append(association)
    if class_name is None:
        return None
    try:
        block = parse_block(text, path)
    except ModelDeclarationNotFound:
        return None
    return ModelSource(
        path=path,
        class_name=class_name,
        superclass=superclass,
        block=block,
        explicit_table_name=table_name,
        abstract=abstract,
        omitted=omitted,
        associations=associations,
    )


class Model:
    """A model backed by a table, together with its single-table subclasses."""

    def __init__(
        self,
        source: ModelSource,
        schema: SchemaSource,
        registry: Registry,
        submodels: list[ModelSource] | None = None,
    ) -> None:
        self.source = source
        self.schema = schema
        self.registry = registry
        self.submodels = submodels or []
        self._table: TableSchema | None = None
        self._table_loaded = False

    @property
    def name(self) -> str:
        return self.source.class_name

    @property
    def path(self) -> Path:
        return self.source.path

    @property
    def table_name(self) -> str:
        return self.source.table_name

    def table(self) -> TableSchema | None:
        if not self._table_loaded:
            self._table = self.schema.table(self.table_name)
            self._table_loaded = True
        return self._table

    def columns(self) -> list[SchemaColumn]:
        table = self.table()
        return list(table.columns) if table is not None else []

    def belongs_to_associations(self) -> list[AssociationDescriptor]:
        associations = list(self.source.associations)
        for submodel in self.submodels:
            associations.extend(submodel.associations)
        return associations

    def primary_key_names(self) -> list[str]:
        table = self.table()
        return list(table.primary_key) if table is not None else []

    def declared_fields(self) -> list[FieldDeclaration] | Omitted | None:
        if self.source.omitted:
            return OMITTED
        sources = [s for s in [self.source, *self.submodels] if s.has_fields_block]
        if not sources:
            return None
        fields: list[FieldDeclaration] = []
        for source in sources:
            builder = DeclarationsBuilder(source, self.registry)
            for line in source.block.lines:
                builder.line(line)
            fields.extend(builder.fields)
        return fields

    def __repr__(self) -> str:
        return f"Model({self.name!r}, {str(self.path)!r})"


def discover_models(
    models_dir: Path,
    schema: SchemaSource,
    registry: Registry,
    pattern: str = "**/*.rb",
) -> list[Model]:
    """Find the table-backed models below ``models_dir``.

    Subclasses of another discovered model share its table and are folded
    into it; abstract classes are skipped.
    """
    sources: list[ModelSource] = []
    for path in sorted(models_dir.glob(pattern)):
        if not path.is_file() or path.name.endswith(SIBLING_SUFFIX):
            continue
        source = parse_model_source(path)
        if source is not None:
            sources.append(source)

    by_name = {s.class_name.split("::")[-1]: s for s in sources}

    def base_of(source: ModelSource) -> ModelSource | None:
        seen = {source.class_name}
        parent = by_name.get((source.superclass or "").split("::")[-1])
        base = None
        while parent is not None and not parent.abstract and parent.class_name not in seen:
            base = parent
            seen.add(parent.class_name)
            parent = by_name.get((parent.superclass or "").split("::")[-1])
        return base

    roots: dict[str, ModelSource] = {}
    children: dict[str, list[ModelSource]] = {}
    for source in sources:
        if source.abstract:
            continue
        base = base_of(source)
        if base is None:
            roots[source.class_name] = source
            children.setdefault(source.class_name, [])
        else:
            children.setdefault(base.class_name, []).append(source)

    return [Model(source, schema, registry, children.get(name)) for name, source in roots.items()]
