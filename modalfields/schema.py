"""Schema snapshots: table columns, associations and the YAML snapshot file."""

from __future__ import annotations

import dataclasses
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Protocol

try:
    import yaml
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required. Install with: pip install pyyaml") from exc

from modalfields.declarations import FieldDeclaration, Omitted
from modalfields.errors import SchemaError

COLUMN_ATTRIBUTES = ("null", "default", "limit", "precision", "scale")


@dataclasses.dataclass
class SchemaColumn:
    name: str
    type: str
    sql_type: str = ""
    null: bool = True
    default: Any = None
    limit: int | None = None
    precision: int | None = None
    scale: int | None = None
    extra: dict[str, Any] = dataclasses.field(default_factory=dict)

    def attribute(self, name: str) -> Any:
        if name in COLUMN_ATTRIBUTES:
            return getattr(self, name)
        return self.extra.get(name)


@dataclasses.dataclass
class AssociationDescriptor:
    name: str
    foreign_key: str | None = None
    polymorphic: bool = False
    foreign_type: str | None = None

    @property
    def key_column(self) -> str:
        return self.foreign_key or f"{self.name}_id"

    def columns(self) -> list[str]:
        cols = [self.key_column]
        if self.polymorphic:
            cols.append(self.foreign_type or re.sub(r"_id\Z", "_type", self.key_column))
        return cols


@dataclasses.dataclass
class TableSchema:
    name: str
    columns: list[SchemaColumn]
    primary_key: list[str] = dataclasses.field(default_factory=list)


class SchemaSource(Protocol):
    def table(self, name: str) -> TableSchema | None:
        """Return the table, or None when it does not exist."""
        ...


class SchemaIntrospectable(Protocol):
    """What the diff needs to know about one model."""

    def columns(self) -> list[SchemaColumn]: ...

    def belongs_to_associations(self) -> list[AssociationDescriptor]: ...

    def primary_key_names(self) -> list[str]: ...

    def declared_fields(self) -> list[FieldDeclaration] | Omitted | None: ...


def cast_value(type_name: str, value: Any) -> Any:
    """Cast a stored default to the Python value the column type implies."""
    if value is None:
        return None
    try:
        if type_name == "decimal":
            return value if isinstance(value, Decimal) else Decimal(str(value))
        if type_name == "integer":
            return int(value)
        if type_name == "float":
            return float(value)
        if type_name == "boolean":
            if isinstance(value, str):
                return value.strip().lower() in ("t", "true", "1", "y", "yes")
            return bool(value)
    except (ValueError, InvalidOperation) as exc:
        raise SchemaError(f"Invalid {type_name} default: {value!r}") from exc
    return value


def column_from_dict(data: dict[str, Any]) -> SchemaColumn:
    if "name" not in data or "type" not in data:
        raise SchemaError(f"Column needs a name and a type: {data!r}")
    type_name = str(data["type"])
    extra = {k: v for k, v in data.items() if k not in ("name", "type", "sql_type", *COLUMN_ATTRIBUTES)}
    return SchemaColumn(
        name=str(data["name"]),
        type=type_name,
        sql_type=str(data.get("sql_type") or ""),
        null=bool(data.get("null", True)),
        default=cast_value(type_name, data.get("default")),
        limit=data.get("limit"),
        precision=data.get("precision"),
        scale=data.get("scale"),
        extra=extra,
    )


def column_to_dict(column: SchemaColumn) -> dict[str, Any]:
    data: dict[str, Any] = {"name": column.name, "type": column.type}
    if column.sql_type:
        data["sql_type"] = column.sql_type
    data["null"] = column.null
    default = column.default
    if isinstance(default, Decimal):
        default = str(default)
    if default is not None:
        data["default"] = default
    for attr in ("limit", "precision", "scale"):
        value = getattr(column, attr)
        if value is not None:
            data[attr] = value
    data.update(column.extra)
    return data


def table_from_dict(name: str, data: dict[str, Any]) -> TableSchema:
    data = data or {}
    primary_key = data.get("primary_key") or []
    if isinstance(primary_key, str):
        primary_key = [primary_key]
    columns = [column_from_dict(c) for c in data.get("columns") or []]
    return TableSchema(name=name, columns=columns, primary_key=[str(pk) for pk in primary_key])


def table_to_dict(table: TableSchema) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if table.primary_key:
        data["primary_key"] = table.primary_key[0] if len(table.primary_key) == 1 else list(table.primary_key)
    data["columns"] = [column_to_dict(c) for c in table.columns]
    return data


def load_snapshot(path: Path) -> dict[str, TableSchema]:
    if not path.exists():
        raise SchemaError(f"Schema snapshot not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise SchemaError(f"Expected a mapping in schema snapshot {path}")
    tables = raw.get("tables") or {}
    return {str(name): table_from_dict(str(name), data) for name, data in tables.items()}


def render_snapshot(tables: dict[str, TableSchema]) -> str:
    payload = {"tables": {name: table_to_dict(tables[name]) for name in sorted(tables)}}
    return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False)


class SnapshotSchemaSource:
    """Tables read from a YAML snapshot written by ``modalfields dump``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._tables: dict[str, TableSchema] | None = None

    @property
    def tables(self) -> dict[str, TableSchema]:
        if self._tables is None:
            self._tables = load_snapshot(self.path)
        return self._tables

    def table(self, name: str) -> TableSchema | None:
        return self.tables.get(name)
