"""Generate migration statements that bring the schema to the declared fields."""

from __future__ import annotations

from typing import Any, Iterable

from modalfields.declarations import FieldDeclaration
from modalfields.diff import PrimaryKeyPolicy
from modalfields.literals import format_literal, format_symbol
from modalfields.models import Model
from modalfields.registry import Registry
from modalfields.tasks import ModelDiff, model_diffs


def render_attributes(attributes: dict[str, Any]) -> str:
    if not attributes:
        return ""
    return ", " + ", ".join(f"{format_symbol(k)}=>{format_literal(v)}" for k, v in sorted(attributes.items()))


def migration_field(field: FieldDeclaration, registry: Registry) -> FieldDeclaration:
    hook = registry.migration_hook_for(field.type)
    if hook is None:
        return field
    return hook(field.copy())


def column_arguments(table: str, field: FieldDeclaration) -> str:
    return f"{format_symbol(table)}, {format_symbol(field.name)}, {format_symbol(field.type)}{render_attributes(field.attributes)}"


def render_model_migration(model_diff: ModelDiff, registry: Registry) -> tuple[list[str], list[str]]:
    """Return the up and down statements for one model."""
    result = model_diff.result
    table = model_diff.model.table_name
    up: list[str] = []
    down: list[str] = []

    def field_for(field: FieldDeclaration) -> FieldDeclaration:
        return migration_field(field, registry)

    if result.model_deleted and not result.modified_fields and not result.new_fields:
        up.append(f"  create_table {format_symbol(table)} do |t|")
        for field in map(field_for, result.deleted_fields):
            up.append(f"    t.{field.type} {format_symbol(field.name)}{render_attributes(field.attributes)}")
        up.append("  end")
        down.append(f"  drop_table {format_symbol(table)}")
        return up, down

    for field in map(field_for, result.deleted_fields):
        up.append(f"  add_column {column_arguments(table, field)}")
        down.append(f"  remove_column {format_symbol(table)}, {format_symbol(field.name)}")

    declared = {f.name: f for f in model_diff.declared or []}
    for field in result.modified_fields:
        changed = declared.get(field.name)
        if changed is not None:
            up.append(f"  change_column {column_arguments(table, field_for(changed))}")
        down.append(f"  change_column {column_arguments(table, field_for(field))}")

    for field in map(field_for, result.new_fields):
        up.append(f"  remove_column {format_symbol(table)}, {format_symbol(field.name)}")
        down.append(f"  add_column {column_arguments(table, field)}")
    return up, down


def generate_migration(models: Iterable[Model], registry: Registry, policy: PrimaryKeyPolicy) -> str:
    up: list[str] = []
    down: list[str] = []
    for model_diff in model_diffs(models, registry, policy):
        model_up, model_down = render_model_migration(model_diff, registry)
        up.append("")
        up.extend(model_up)
        down.append("")
        down.extend(model_down)

    lines: list[str] = []
    if any(line.strip() for line in up):
        lines.append("# up:")
        lines.extend(up)
        lines.append("")
    if any(line.strip() for line in down):
        lines.append("# down:")
        lines.extend(down)
        lines.append("")
    return "\n".join(lines)
