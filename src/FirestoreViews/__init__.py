"""Typed SQL views over a Cloud Firestore document changelog."""

from FirestoreViews.compiler import (
    FirestoreSchemaViewFactory,
    SchemaViewResult,
    SchemaViewState,
    ViewDefinition,
    get_dialect,
)
from FirestoreViews.errors import (
    FirestoreViewsError,
    InvalidSchemaStructure,
    UnsupportedFieldType,
    ViewCreationFailed,
    ViewManagerUnavailable,
)
from FirestoreViews.schema import Field, FieldType, FirestoreSchema, read_schemas

__all__ = [
    "Field",
    "FieldType",
    "FirestoreSchema",
    "FirestoreSchemaViewFactory",
    "FirestoreViewsError",
    "InvalidSchemaStructure",
    "SchemaViewResult",
    "SchemaViewState",
    "UnsupportedFieldType",
    "ViewCreationFailed",
    "ViewDefinition",
    "ViewManagerUnavailable",
    "get_dialect",
    "read_schemas",
]
