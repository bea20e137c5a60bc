"""Project settings loaded from ``modalfields.yml``."""

from __future__ import annotations

import dataclasses
import importlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any

try:
    import yaml
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required. Install with: pip install pyyaml") from exc

from modalfields.diff import PrimaryKeyPolicy
from modalfields.dump_schemas import SqliteSchemaSource
from modalfields.errors import ConfigError
from modalfields.registry import Registry, standard_registry
from modalfields.schema import SchemaSource, SnapshotSchemaSource

DEFAULT_CONFIG = "modalfields.yml"
DEFAULT_MODELS_DIR = "app/models"
DEFAULT_SCHEMA = "db/schema.yml"


@dataclasses.dataclass
class Settings:
    root: Path
    models_dir: Path
    pattern: str = "**/*.rb"
    schema_path: Path | None = None
    database_path: Path | None = None
    primary_key_policy: PrimaryKeyPolicy = PrimaryKeyPolicy.NEVER
    types: dict[str, dict[str, Any]] = dataclasses.field(default_factory=dict)
    aliases: dict[str, str] = dataclasses.field(default_factory=dict)
    initializers: list[str] = dataclasses.field(default_factory=list)


def type_defaults(name: Any, defaults: Any) -> dict[str, Any]:
    if defaults is None:
        return {}
    if not isinstance(defaults, dict):
        raise ConfigError(f"Defaults of type {name} must be a mapping, got {defaults!r}")
    return {str(k): v for k, v in defaults.items()}


def load_settings(path: Path | None = None, root: Path | None = None) -> Settings:
    """Read the settings file; a missing file gives the defaults."""
    raw: dict[str, Any] = {}
    if path is not None and path.exists():
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Expected a mapping in {path}")
        raw = loaded or {}
    if root is None:
        root = path.parent if path is not None else Path.cwd()

    def resolve(value: Any) -> Path | None:
        if not value:
            return None
        p = Path(str(value))
        return p if p.is_absolute() else root / p

    schema_path = resolve(raw.get("schema"))
    database_path = resolve(raw.get("database"))
    if schema_path is None and database_path is None:
        schema_path = root / DEFAULT_SCHEMA

    types = raw.get("types") or {}
    if not isinstance(types, dict):
        raise ConfigError(f"'types' must be a mapping of type name to default attributes, got {types!r}")
    aliases = raw.get("aliases") or {}
    if not isinstance(aliases, dict):
        raise ConfigError(f"'aliases' must be a mapping, got {aliases!r}")
    initializers = raw.get("initializers") or []
    if isinstance(initializers, str):
        initializers = [initializers]

    try:
        policy = PrimaryKeyPolicy.from_setting(raw.get("show_primary_keys"))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return Settings(
        root=root,
        models_dir=resolve(raw.get("models")) or root / DEFAULT_MODELS_DIR,
        pattern=str(raw.get("pattern") or "**/*.rb"),
        schema_path=schema_path,
        database_path=database_path,
        primary_key_policy=policy,
        types={str(k): type_defaults(k, v) for k, v in types.items()},
        aliases={str(k): str(v) for k, v in aliases.items()},
        initializers=[str(name) for name in initializers],
    )


def load_initializer(name: str, root: Path) -> ModuleType:
    """Import an initializer given as a module name or as a .py file under the root."""
    if not name.endswith(".py"):
        try:
            return importlib.import_module(name)
        except ImportError as exc:
            raise ConfigError(f"Cannot import initializer {name}: {exc}") from exc
    path = Path(name)
    if not path.is_absolute():
        path = root / path
    if not path.exists():
        raise ConfigError(f"Initializer not found: {path}")
    spec = importlib.util.spec_from_file_location(f"modalfields_initializer_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def build_registry(settings: Settings) -> Registry:
    registry = standard_registry()
    for name, defaults in settings.types.items():
        registry.register_type(name, defaults)
    for name, canonical in settings.aliases.items():
        registry.register_alias(name, canonical)
    for name in settings.initializers:
        module = load_initializer(name, settings.root)
        register = getattr(module, "register", None)
        if register is None:
            raise ConfigError(f"Initializer {name} has no register(registry) function")
        register(registry)
    return registry


def schema_source(settings: Settings) -> SchemaSource:
    if settings.database_path is not None:
        return SqliteSchemaSource(settings.database_path)
    if settings.schema_path is None:
        raise ConfigError("No schema snapshot or database configured")
    return SnapshotSchemaSource(settings.schema_path)
