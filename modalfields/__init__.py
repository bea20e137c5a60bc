"""Keep the fields declarations of model source files in sync with the schema."""

from modalfields.blocks import BlockEntry, DeclarationBlock, apply_diff, parse_block, render, update_text
from modalfields.declarations import OMITTED, DeclarationsBuilder, FieldDeclaration, parse_declaration
from modalfields.diff import DiffResult, PrimaryKeyPolicy, column_to_declaration, diff
from modalfields.errors import ModelDeclarationNotFound, UnknownType
from modalfields.registry import Registry, standard_registry
from modalfields.schema import AssociationDescriptor, SchemaColumn, SchemaIntrospectable, TableSchema

__all__ = [
    "OMITTED",
    "AssociationDescriptor",
    "BlockEntry",
    "DeclarationBlock",
    "DeclarationsBuilder",
    "DiffResult",
    "FieldDeclaration",
    "ModelDeclarationNotFound",
    "PrimaryKeyPolicy",
    "Registry",
    "SchemaColumn",
    "SchemaIntrospectable",
    "TableSchema",
    "UnknownType",
    "apply_diff",
    "column_to_declaration",
    "diff",
    "parse_block",
    "parse_declaration",
    "render",
    "standard_registry",
    "update_text",
]
