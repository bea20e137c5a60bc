"""Field type definitions, type aliases and declaration hooks."""

from __future__ import annotations

from typing import Any, Callable

from modalfields.errors import UnknownType
from modalfields.literals import values_equal

COMMON_ATTRIBUTES: dict[str, Any] = {"default": None, "null": True}

STANDARD_TYPES: dict[str, dict[str, Any]] = {
    "string": {"limit": 255},
    "text": {"limit": None},
    "integer": {"limit": None},
    "float": {},
    "decimal": {"scale": None, "precision": None},
    "datetime": {},
    "time": {},
    "date": {},
    "binary": {"limit": None},
    "boolean": {},
}

STANDARD_ALIASES: dict[str, str] = {"timestamp": "datetime"}

DeclarationHook = Callable[[Any, Any], Any]
MigrationHook = Callable[[Any], Any]
ColumnConversion = Callable[[Any], Any]


class Registry:
    """Process configuration consulted by the diff and the declaration builder.

    Populate it once at startup and pass it around; nothing reads it as a
    global. Every registration overwrites a previous one with the same key.
    """

    def __init__(self) -> None:
        self.definitions: dict[str, dict[str, Any]] = {}
        self.aliases: dict[str, str] = {}
        self.hooks: dict[str, DeclarationHook] = {}
        self.all_fields_hook: DeclarationHook | None = None
        self.migration_hooks: dict[str, MigrationHook] = {}
        self.column_conversion: ColumnConversion | None = None

    def register_type(self, name: str, defaults: dict[str, Any] | None = None) -> None:
        self.definitions[str(name)] = {**COMMON_ATTRIBUTES, **(defaults or {})}

    def register_alias(self, name: str, canonical: str) -> None:
        self.aliases[str(name)] = str(canonical)

    def register_hook(self, type_name: str, callback: DeclarationHook) -> None:
        self.hooks[str(type_name)] = callback

    def register_all_fields_hook(self, callback: DeclarationHook) -> None:
        self.all_fields_hook = callback

    def register_migration_hook(self, type_name: str, callback: MigrationHook) -> None:
        self.migration_hooks[str(type_name)] = callback

    def set_column_conversion(self, callback: ColumnConversion | None) -> None:
        self.column_conversion = callback

    def lookup_type(self, name: str) -> dict[str, Any]:
        """Default attributes of a type; an alias gets those of its canonical type."""
        name = str(name)
        definition = self.definitions.get(name)
        if definition is None:
            definition = self.definitions.get(self.canonical_type(name))
        if definition is None:
            raise UnknownType(name)
        return definition

    def canonical_type(self, name: str) -> str:
        # One level only: an alias of an alias is not followed.
        name = str(name)
        return self.aliases.get(name, name)

    def hook_for(self, type_name: str) -> DeclarationHook | None:
        return self.hooks.get(str(type_name))

    def migration_hook_for(self, type_name: str) -> MigrationHook | None:
        return self.migration_hooks.get(str(type_name))

    def validate(self, declaration: Any) -> bool:
        try:
            self.lookup_type(declaration.type)
        except UnknownType:
            raise UnknownType(str(declaration.type), declaration) from None
        return True

    def canonical_attributes(self, type_name: str, attributes: dict[str, Any]) -> dict[str, Any]:
        """Drop the attributes whose value is the default of the type."""
        defaults = self.lookup_type(type_name)
        return {
            key: value
            for key, value in attributes.items()
            if not (key in defaults and values_equal(value, defaults[key]))
        }


def standard_registry() -> Registry:
    registry = Registry()
    for name, defaults in STANDARD_TYPES.items():
        registry.register_type(name, defaults)
    for name, canonical in STANDARD_ALIASES.items():
        registry.register_alias(name, canonical)
    return registry
