from __future__ import annotations

from pathlib import Path


class UnknownType(ValueError):
    def __init__(self, type_name: str, declaration: object | None = None) -> None:
        self.type_name = type_name
        detail = f" ({declaration})" if declaration is not None else ""
        super().__init__(f"Field type {type_name} not defined{detail}")


class ModelDeclarationNotFound(ValueError):
    def __init__(self, path: Path | str | None = None) -> None:
        self.path = path
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Model declaration not found{where}")


class DeclarationSyntaxError(ValueError):
    pass


class SchemaError(ValueError):
    pass


class ConfigError(ValueError):
    pass
