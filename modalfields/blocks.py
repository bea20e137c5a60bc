"""Parse, patch and rewrite the fields block of a model source file.

A model file is broken up into these parts:

* prefix: lines before the fields block
* open marker: the line opening the block (``fields do`` or ``fields {``)
* entries: the lines inside the block, each with the name of the field it
  declares and its trailing comment, when they can be recognised
* close marker: the line closing the block (``end`` or ``}``)
* suffix: lines after the block

All lines keep their own end-of-line terminator, so rendering the parts
back gives the original text.
"""

from __future__ import annotations

import dataclasses
import re
from pathlib import Path
from typing import Iterable

from modalfields.declarations import TIMESTAMPS_RE, FieldDeclaration, timestamp_fields
from modalfields.diff import DiffResult
from modalfields.errors import ModelDeclarationNotFound
from modalfields.literals import strip_comment

OPEN_MARKERS = [
    (re.compile(r"^\s*fields\s+do(?:\s(.+))?\s*$"), re.compile(r"^\s*end(?:\s(.+))?\s*$")),
    (re.compile(r"^\s*fields\s+\{(?:\s(.+))?\s*$"), re.compile(r"^\s*\}(?:\s(.+))?\s*$")),
]

# First match wins. The last one also catches lines that merely start with a word.
ENTRY_PATTERNS = [
    re.compile(r"^\s*field\s+:(\w+)."),
    re.compile(r"^\s*field\s+['\"](.+?)['\"]."),
    re.compile(r"^\s*(\w+)."),
]

CLASS_RE = re.compile(r"^\s*class\b")

INDENT = "    "
OPEN_MARKER = "  fields do\n"
CLOSE_MARKER = "  end\n"
TIMESTAMPS_LINE = INDENT + "timestamps\n"
PK_COMMENT = "# PK"


@dataclasses.dataclass
class BlockEntry:
    raw_line: str
    name: str | None = None
    comment: str | None = None


@dataclasses.dataclass
class DeclarationBlock:
    prefix: list[str]
    open_marker: str
    entries: list[BlockEntry]
    close_marker: str
    suffix: list[str]
    synthesized: bool = False

    @property
    def lines(self) -> list[str]:
        return [entry.raw_line for entry in self.entries]


def parse_entry(line: str) -> BlockEntry:
    for pattern in ENTRY_PATTERNS:
        m = pattern.match(line)
        if m:
            return BlockEntry(line, m.group(1), strip_comment(line)[1])
    return BlockEntry(line)


def line_ending(line: str) -> str:
    return "\r\n" if line.endswith("\r\n") else "\n"


def synthesize_block(lines: list[str], path: Path | str | None = None) -> DeclarationBlock:
    """Make room for an empty fields block right after the class declaration."""
    for idx, line in enumerate(lines):
        if CLASS_RE.match(line):
            break
    else:
        raise ModelDeclarationNotFound(path)
    eol = line_ending(lines[idx])
    header = lines[idx] if lines[idx].endswith("\n") else lines[idx] + eol
    suffix = lines[idx + 1 :]
    if suffix and suffix[0].strip():
        suffix.insert(0, eol)
    return DeclarationBlock(
        prefix=lines[:idx] + [header, eol],
        open_marker=OPEN_MARKER.replace("\n", eol),
        entries=[],
        close_marker=CLOSE_MARKER.replace("\n", eol),
        suffix=suffix,
        synthesized=True,
    )


def parse_block(text: str, path: Path | str | None = None) -> DeclarationBlock:
    prefix: list[str] = []
    entries: list[BlockEntry] = []
    suffix: list[str] = []
    open_marker: str | None = None
    close_marker: str | None = None
    block_end = OPEN_MARKERS[0][1]

    for line in text.splitlines(keepends=True):
        if open_marker is None:
            for start, end in OPEN_MARKERS:
                if start.match(line):
                    open_marker = line
                    block_end = end
                    break
            else:
                prefix.append(line)
        elif close_marker is None:
            if block_end.match(line):
                close_marker = line
            else:
                entries.append(parse_entry(line))
        else:
            suffix.append(line)

    if open_marker is None:
        return synthesize_block(prefix, path)
    if close_marker is None:
        # unterminated block: keep the text as it is
        close_marker = ""
    return DeclarationBlock(prefix, open_marker, entries, close_marker, suffix)


def render_field(field: FieldDeclaration, comment: str | None = None, eol: str = "\n") -> str:
    line = INDENT + field.to_text()
    if comment:
        line += f" {comment}"
    return line + eol


def is_timestamps_line(line: str) -> bool:
    return TIMESTAMPS_RE.fullmatch(strip_comment(line)[0].strip()) is not None


def expand_timestamps(
    entry: BlockEntry,
    deleted_names: set[str],
    modified: dict[str, FieldDeclaration],
    eol: str,
) -> list[BlockEntry]:
    """Replace a timestamps line by the fields it declares that are still there."""
    comment = entry.comment
    out: list[BlockEntry] = []
    for field in timestamp_fields():
        if field.name in deleted_names:
            continue
        field = modified.get(field.name, field)
        out.append(BlockEntry(render_field(field, comment, eol), field.name, comment))
        comment = None
    return out


def apply_diff(
    block: DeclarationBlock,
    result: DiffResult,
    primary_keys: Iterable[str] = (),
) -> DeclarationBlock:
    eol = line_ending(block.open_marker)
    deleted_names = {f.name for f in result.deleted_fields}
    modified = {}
    for field in result.modified_fields:
        modified.setdefault(field.name, field)
    stamp_changes = {"created_at", "updated_at"}.intersection(deleted_names.union(modified))

    entries: list[BlockEntry] = []
    for entry in block.entries:
        if stamp_changes and is_timestamps_line(entry.raw_line):
            entries.extend(expand_timestamps(entry, deleted_names, modified, eol))
            continue
        if entry.name is not None and entry.name in deleted_names:
            continue
        field = modified.get(entry.name) if entry.name is not None else None
        if field is not None:
            entry = BlockEntry(render_field(field, entry.comment, eol), entry.name, entry.comment)
        entries.append(entry)

    new_fields = list(result.new_fields)
    created_at = next((f for f in new_fields if f.name == "created_at"), None)
    updated_at = next((f for f in new_fields if f.name == "updated_at"), None)
    with_timestamps = (
        created_at is not None
        and updated_at is not None
        and created_at.type == "datetime"
        and updated_at.type == "datetime"
    )
    if with_timestamps:
        new_fields = [f for f in new_fields if f is not created_at and f is not updated_at]

    pk_names = {str(pk) for pk in primary_keys}
    for field in new_fields:
        comment = PK_COMMENT if field.name in pk_names else None
        entries.append(BlockEntry(render_field(field, comment, eol), field.name, comment))
    if with_timestamps:
        entries.append(BlockEntry(TIMESTAMPS_LINE.replace("\n", eol)))

    return dataclasses.replace(block, entries=entries)


def render(block: DeclarationBlock) -> str:
    return "".join([*block.prefix, block.open_marker, *block.lines, block.close_marker, *block.suffix])


def update_text(
    text: str,
    result: DiffResult,
    primary_keys: Iterable[str] = (),
    path: Path | str | None = None,
) -> str:
    return render(apply_diff(parse_block(text, path), result, primary_keys))
