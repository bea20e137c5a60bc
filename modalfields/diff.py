"""Compare declared fields with the columns actually present in the schema."""

from __future__ import annotations

import dataclasses
import enum
from typing import Any, Iterable, Sequence

from modalfields.declarations import FieldDeclaration
from modalfields.literals import values_equal
from modalfields.registry import Registry
from modalfields.schema import AssociationDescriptor, SchemaColumn


class PrimaryKeyPolicy(enum.Enum):
    """Which primary key columns get a field declaration."""

    NEVER = "never"
    ALWAYS = "always"
    ONLY_IF_NAMED_ID = "id"
    EXCEPT_IF_NAMED_ID = "except_id"

    @classmethod
    def from_setting(cls, value: Any) -> PrimaryKeyPolicy:
        if value is None or value is False:
            return cls.NEVER
        if value is True:
            return cls.ALWAYS
        text = str(value).strip().lower()
        aliases = {"false": cls.NEVER, "true": cls.ALWAYS, "only_if_named_id": cls.ONLY_IF_NAMED_ID}
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Invalid show_primary_keys setting: {value!r}") from None

    def hidden(self, primary_keys: Iterable[str]) -> list[str]:
        """Primary keys left out of the comparison."""
        primary_keys = [str(pk) for pk in primary_keys]
        if self is PrimaryKeyPolicy.ALWAYS:
            return []
        if self is PrimaryKeyPolicy.ONLY_IF_NAMED_ID:
            return [pk for pk in primary_keys if pk != "id"]
        if self is PrimaryKeyPolicy.EXCEPT_IF_NAMED_ID:
            return [pk for pk in primary_keys if pk == "id"]
        return primary_keys


@dataclasses.dataclass
class DiffResult:
    new_fields: list[FieldDeclaration] = dataclasses.field(default_factory=list)
    modified_fields: list[FieldDeclaration] = dataclasses.field(default_factory=list)
    deleted_fields: list[FieldDeclaration] = dataclasses.field(default_factory=list)
    model_deleted: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.new_fields or self.modified_fields or self.deleted_fields)


def association_columns(associations: Iterable[AssociationDescriptor]) -> list[str]:
    names: list[str] = []
    for association in associations:
        names.extend(association.columns())
    return list(dict.fromkeys(names))


def column_to_declaration(column: SchemaColumn, registry: Registry) -> FieldDeclaration:
    if registry.column_conversion is not None:
        return registry.column_conversion(column)
    defaults = registry.lookup_type(column.type)
    attributes: dict[str, Any] = {}
    for attr, default in defaults.items():
        value = column.attribute(attr)
        if not values_equal(value, default):
            attributes[attr] = value
    return FieldDeclaration(column.name, column.type, [], attributes)


def normalized_attributes(attributes: dict[str, Any], defaults: dict[str, Any]) -> list[Any]:
    # false counts as unset even where the default is something else
    out: list[Any] = []
    for attr, default in defaults.items():
        value = attributes.get(attr)
        out.append(None if value is False or values_equal(value, default) else value)
    return out


def same_attributes(a: Sequence[Any], b: Sequence[Any]) -> bool:
    return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))


def diff(
    declared: Sequence[FieldDeclaration] | None,
    columns: Sequence[SchemaColumn],
    associations: Iterable[AssociationDescriptor],
    primary_keys: Iterable[str],
    policy: PrimaryKeyPolicy,
    registry: Registry,
) -> DiffResult:
    """Compute new, modified and deleted fields of a model.

    * new fields: columns not declared (nor primary/foreign keys).
    * modified fields: declarations whose column differs in type or attributes;
      the column version is returned, carrying the declared specifiers.
    * deleted fields: declarations with no column, plus association keys
      whose column is gone.

    ``declared=None`` stands for a model without a fields block.
    """
    model_deleted = not columns
    hidden_keys = set(policy.hidden(primary_keys))
    assoc_columns = association_columns(associations)
    skipped = hidden_keys.union(assoc_columns)

    if declared is None:
        new_columns = [c for c in columns if c.name not in skipped]
        return DiffResult(
            new_fields=[column_to_declaration(c, registry) for c in new_columns],
            model_deleted=model_deleted,
        )

    for field in declared:
        registry.validate(field)

    declared_names = {f.name for f in declared}
    by_name: dict[str, SchemaColumn] = {}
    unaccounted: list[SchemaColumn] = []
    for column in columns:
        by_name.setdefault(column.name, column)
        if column.name not in declared_names and column.name not in skipped:
            unaccounted.append(column)

    deleted = [f for f in declared if f.name not in by_name]
    deleted_names = {f.name for f in deleted}
    for name in assoc_columns:
        if name not in by_name and name not in deleted_names:
            deleted.append(FieldDeclaration(name, "integer", [], {}))

    modified: list[FieldDeclaration] = []
    for field in declared:
        if field.name in deleted_names:
            continue
        converted = column_to_declaration(by_name[field.name], registry)
        if registry.canonical_type(field.type) == registry.canonical_type(converted.type):
            defaults = registry.lookup_type(converted.type)
            if same_attributes(
                normalized_attributes(field.attributes, defaults),
                normalized_attributes(converted.attributes, defaults),
            ):
                continue
        # specifiers only exist in declarations
        modified.append(converted.copy().replace(specifiers=list(field.specifiers)))

    return DiffResult(
        new_fields=[column_to_declaration(c, registry) for c in unaccounted],
        modified_fields=modified,
        deleted_fields=deleted,
        model_deleted=model_deleted,
    )
