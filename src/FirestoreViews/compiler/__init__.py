"""Schema-to-view compiler: type resolver, field flattener, view SQL, factory."""

from FirestoreViews.compiler.factory import (
    FirestoreSchemaViewFactory,
    SchemaViewResult,
    SchemaViewState,
    SchemaViews,
    ViewDefinition,
)
from FirestoreViews.compiler.flattener import flatten
from FirestoreViews.compiler.type_resolver import get_dialect
from FirestoreViews.compiler.view_sql import ChangelogLayout

__all__ = [
    "ChangelogLayout",
    "FirestoreSchemaViewFactory",
    "SchemaViewResult",
    "SchemaViewState",
    "SchemaViews",
    "ViewDefinition",
    "flatten",
    "get_dialect",
]
