"""Run the diff over every model: report it, or rewrite the model files."""

from __future__ import annotations

import dataclasses
import difflib
import sys
from pathlib import Path
from typing import Iterable

from modalfields.blocks import update_text
from modalfields.declarations import OMITTED, FieldDeclaration
from modalfields.diff import DiffResult, PrimaryKeyPolicy, diff
from modalfields.errors import ModelDeclarationNotFound
from modalfields.models import SIBLING_SUFFIX, Model, read_source
from modalfields.registry import Registry


@dataclasses.dataclass
class ModelDiff:
    model: Model
    declared: list[FieldDeclaration] | None
    result: DiffResult


@dataclasses.dataclass
class FileUpdate:
    model: Model
    path: Path
    original: str
    updated: str


def diff_model(model: Model, registry: Registry, policy: PrimaryKeyPolicy) -> ModelDiff:
    declared = model.declared_fields()
    if declared is OMITTED:
        return ModelDiff(model, None, DiffResult())
    result = diff(
        declared,
        model.columns(),
        model.belongs_to_associations(),
        model.primary_key_names(),
        policy,
        registry,
    )
    return ModelDiff(model, declared, result)


def model_diffs(models: Iterable[Model], registry: Registry, policy: PrimaryKeyPolicy) -> list[ModelDiff]:
    """Diffs of the models that are out of date."""
    out: list[ModelDiff] = []
    for model in models:
        model_diff = diff_model(model, registry, policy)
        if not model_diff.result.is_empty:
            out.append(model_diff)
    return out


def output_path(path: Path, modify: bool = True) -> Path:
    if modify:
        return path
    return path.with_name(path.stem + SIBLING_SUFFIX)


def plan_updates(
    models: Iterable[Model],
    registry: Registry,
    policy: PrimaryKeyPolicy,
) -> tuple[list[FileUpdate], list[ModelDeclarationNotFound]]:
    updates: list[FileUpdate] = []
    failures: list[ModelDeclarationNotFound] = []
    for model_diff in model_diffs(models, registry, policy):
        model = model_diff.model
        original = read_source(model.path)
        try:
            updated = update_text(original, model_diff.result, model.primary_key_names(), path=model.path)
        except ModelDeclarationNotFound as exc:
            failures.append(exc)
            continue
        updates.append(FileUpdate(model, model.path, original, updated))
    return updates, failures


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def update(
    models: Iterable[Model],
    registry: Registry,
    policy: PrimaryKeyPolicy,
    modify: bool = True,
) -> list[Path]:
    """Rewrite the fields block of every out of date model.

    Run it on a clean working tree so the changes can be reviewed.
    With ``modify=False`` each result goes to a sibling ``*_with_fields.rb``
    file instead of replacing the model source.
    """
    updates, failures = plan_updates(models, registry, policy)
    for failure in failures:
        print(f"[skip] {failure}", file=sys.stderr)
    written: list[Path] = []
    for item in updates:
        target = output_path(item.path, modify)
        write_text(target, item.updated)
        written.append(target)
    return written


def relative_path(path: Path, root: Path | None) -> str:
    if root is not None:
        try:
            return str(path.relative_to(root))
        except ValueError:
            pass
    return str(path)


def check_report(
    models: Iterable[Model],
    registry: Registry,
    policy: PrimaryKeyPolicy,
    root: Path | None = None,
) -> str:
    lines: list[str] = []
    for model_diff in model_diffs(models, registry, policy):
        model = model_diff.model
        result = model_diff.result
        lines.append(f"{model.name} ({relative_path(model.path, root)}):")
        if result.model_deleted:
            lines.append("  (deleted)")
        for prefix, fields in (
            ("+", result.new_fields),
            ("*", result.modified_fields),
            ("-", result.deleted_fields),
        ):
            lines.extend(f"  {prefix} {field}" for field in fields)
        lines.append("")
    return "\n".join(lines)


def check_equal(path: Path, generated: str) -> bool:
    if not path.exists():
        print(f"[check] missing file: {path}", file=sys.stderr)
        return False

    existing = read_source(path)
    if existing == generated:
        return True

    print(f"[check] drift detected: {path}", file=sys.stderr)
    diff_lines = difflib.unified_diff(
        existing.splitlines(),
        generated.splitlines(),
        fromfile=str(path),
        tofile=f"updated:{path}",
        lineterm="",
    )
    for idx, line in enumerate(diff_lines):
        if idx > 200:
            print("... (diff truncated)", file=sys.stderr)
            break
        print(line, file=sys.stderr)
    return False
