"""Read table schemas from a SQLite database and dump them to a YAML snapshot.

The snapshot (db/schema.yml by default) is what ``modalfields check`` and
``modalfields update`` compare the model declarations against when no
database is configured.
"""

from __future__ import annotations

import contextlib
import re
import sqlite3
from pathlib import Path

from modalfields.errors import SchemaError
from modalfields.schema import SchemaColumn, TableSchema, cast_value, render_snapshot

# Checked in order: datetime before time and date.
TYPE_PATTERNS = [
    (re.compile(r"int", re.I), "integer"),
    (re.compile(r"float|double|real", re.I), "float"),
    (re.compile(r"decimal|numeric|number", re.I), "decimal"),
    (re.compile(r"datetime|timestamp", re.I), "datetime"),
    (re.compile(r"time", re.I), "time"),
    (re.compile(r"date", re.I), "date"),
    (re.compile(r"clob|text", re.I), "text"),
    (re.compile(r"blob|binary", re.I), "binary"),
    (re.compile(r"char|string", re.I), "string"),
    (re.compile(r"bool", re.I), "boolean"),
]

LIMITED_TYPES = ("string", "text", "integer", "binary")


def simplified_type(sql_type: str) -> str:
    for pattern, type_name in TYPE_PATTERNS:
        if pattern.search(sql_type):
            return type_name
    base = re.match(r"\s*(\w+)", sql_type)
    return base.group(1).lower() if base else "string"


def extract_limit(sql_type: str) -> int | None:
    m = re.search(r"\(\s*(\d+)", sql_type)
    return int(m.group(1)) if m else None


def extract_precision_scale(sql_type: str) -> tuple[int | None, int | None]:
    m = re.search(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)", sql_type)
    if not m:
        return None, None
    precision = int(m.group(1))
    scale = int(m.group(2)) if m.group(2) is not None else 0
    return precision, scale


def parse_sql_default(raw: str | None) -> str | None:
    if raw is None:
        return None
    text = raw.strip()
    while text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()
    if text.upper() == "NULL":
        return None
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)
    return text


def column_from_row(row: sqlite3.Row) -> SchemaColumn:
    sql_type = str(row["type"] or "")
    type_name = simplified_type(sql_type)
    column = SchemaColumn(
        name=str(row["name"]),
        type=type_name,
        sql_type=sql_type,
        null=not row["notnull"],
        default=cast_value(type_name, parse_sql_default(row["dflt_value"])),
    )
    if type_name == "decimal":
        column.precision, column.scale = extract_precision_scale(sql_type)
    elif type_name in LIMITED_TYPES:
        column.limit = extract_limit(sql_type)
    return column


def list_tables(conn: sqlite3.Connection) -> list[str]:
    sql = (
        "SELECT name FROM sqlite_master "
        "WHERE type = 'table' "
        "AND name NOT LIKE 'sqlite_%' "
        "ORDER BY name"
    )
    return [str(row["name"]) for row in conn.execute(sql)]


def show_table(conn: sqlite3.Connection, table: str) -> TableSchema | None:
    quoted = table.replace('"', '""')
    rows = conn.execute(f'PRAGMA table_info("{quoted}")').fetchall()
    if not rows:
        return None
    columns = [column_from_row(row) for row in rows]
    keyed = sorted((row["pk"], str(row["name"])) for row in rows if row["pk"])
    return TableSchema(name=table, columns=columns, primary_key=[name for _, name in keyed])


def connect(database: Path) -> sqlite3.Connection:
    if not database.exists():
        raise SchemaError(f"Database not found: {database}")
    try:
        conn = sqlite3.connect(f"{database.resolve().as_uri()}?mode=ro", uri=True)
    except sqlite3.Error as exc:
        raise SchemaError(f"Cannot open database {database}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    return conn


class SqliteSchemaSource:
    """Tables read live from a SQLite database file."""

    def __init__(self, database: Path) -> None:
        self.database = database
        self._cache: dict[str, TableSchema | None] = {}

    def table(self, name: str) -> TableSchema | None:
        if name not in self._cache:
            with contextlib.closing(connect(self.database)) as conn:
                self._cache[name] = show_table(conn, name)
        return self._cache[name]

    def tables(self) -> dict[str, TableSchema]:
        out: dict[str, TableSchema] = {}
        with contextlib.closing(connect(self.database)) as conn:
            for name in list_tables(conn):
                table = show_table(conn, name)
                if table is not None:
                    out[name] = table
        return out


def dump_schema(database: Path, output: Path) -> int:
    tables = SqliteSchemaSource(database).tables()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_snapshot(tables), encoding="utf-8")
    return len(tables)
