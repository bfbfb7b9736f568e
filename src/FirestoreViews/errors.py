"""Error taxonomy for schema view compilation and installation.

Every error carries optional context (schema name, view name, nested field
path) that is filled in as it propagates from the flattener up to the
factory, so the final message locates the offending declaration.
"""

from typing import Optional


class FirestoreViewsError(Exception):
    """Base class for all errors raised while compiling or creating views."""

    def __init__(
        self,
        message: str,
        *,
        schema_name: Optional[str] = None,
        view_name: Optional[str] = None,
        field_path: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.schema_name = schema_name
        self.view_name = view_name
        self.field_path = field_path

    def add_context(
        self,
        *,
        schema_name: Optional[str] = None,
        view_name: Optional[str] = None,
        field_path: Optional[str] = None,
    ) -> "FirestoreViewsError":
        """Fill in context the raiser did not know. Existing values win."""
        self.schema_name = self.schema_name or schema_name
        self.view_name = self.view_name or view_name
        self.field_path = self.field_path or field_path
        return self

    def __str__(self) -> str:
        context = []
        if self.schema_name:
            context.append(f"schema={self.schema_name}")
        if self.view_name:
            context.append(f"view={self.view_name}")
        if self.field_path:
            context.append(f"field={self.field_path}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class InvalidSchemaStructure(FirestoreViewsError):
    """Malformed field tree: duplicate siblings, bad names, name collisions."""


class UnsupportedFieldType(FirestoreViewsError):
    """A field type with no resolution rule in the target dialect."""

    def __init__(self, field_type: object, message: Optional[str] = None, **context):
        self.field_type = field_type
        super().__init__(message or f"Unsupported field type: {field_type!r}", **context)


class SchemaLoadError(InvalidSchemaStructure):
    """A schema file could not be read or parsed."""


class ViewCreationFailed(FirestoreViewsError):
    """The database rejected a generated view."""

    def __init__(self, message: str, *, statement: Optional[str] = None, **context):
        super().__init__(message, **context)
        self.statement = statement


class ViewManagerUnavailable(FirestoreViewsError):
    """Views were to be installed but no database connection was configured."""


__all__ = [
    "FirestoreViewsError",
    "InvalidSchemaStructure",
    "SchemaLoadError",
    "UnsupportedFieldType",
    "ViewCreationFailed",
    "ViewManagerUnavailable",
]
