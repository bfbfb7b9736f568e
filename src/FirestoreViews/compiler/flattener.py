"""
Flattening of a schema's field tree into ordered view columns.

Maps are expanded inline (``address.city`` becomes column ``address_city``),
geopoints expand to a latitude/longitude pair, and arrays are split off as
child schemas that get their own view.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from FirestoreViews.compiler.type_resolver import SqlDialect
from FirestoreViews.errors import InvalidSchemaStructure, UnsupportedFieldType
from FirestoreViews.schema.model import Field, FieldType, FirestoreSchema

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Column:
    name: str  # dotted, e.g. "last_location.latitude"
    alias: str  # SQL column name, e.g. "last_location_latitude"
    expression: str
    sql_type: str


@dataclass(frozen=True)
class ChildSchema:
    """Element schema synthesized for one array field.

    ``path`` is the field path relative to the schema that declared the
    array; ``json_path`` locates the array inside that schema's JSON source
    (empty when the array is itself the element of an enclosing array).
    When ``element_at_root`` is set the schema holds a single field whose
    value is the element itself rather than a member of it.
    """

    path: Tuple[str, ...]
    json_path: Tuple[str, ...]
    schema: FirestoreSchema
    element_at_root: bool = False

    @property
    def key(self) -> str:
        return ".".join(self.path)


@dataclass
class FlattenResult:
    columns: List[Column] = field(default_factory=list)
    children: Dict[str, ChildSchema] = field(default_factory=dict)


def flatten(
    fields: Iterable[Field],
    dialect: SqlDialect,
    source: str,
    path_prefix: Tuple[str, ...] = (),
    reserved: Iterable[str] = (),
) -> FlattenResult:
    """Flatten ``fields`` into columns extracted from the JSON in ``source``.

    Args:
        fields: Declared fields, in order
        dialect: Target dialect used to resolve primitive types
        source: SQL expression holding the JSON text the fields live in
        path_prefix: Path of the enclosing map (its JSON location as well)
        reserved: Column aliases already taken by the view (document path,
            ordinals)

    Raises:
        InvalidSchemaStructure: duplicate or invalid names, misplaced
            children, two fields mapping to the same column alias
        UnsupportedFieldType: a field type with no resolution rule
    """
    flattener = _Flattener(dialect, source, reserved)
    flattener.visit_fields(fields, path_prefix, path_prefix)
    return flattener.result


def flatten_child(
    child: ChildSchema,
    dialect: SqlDialect,
    source: str,
    reserved: Iterable[str] = (),
) -> FlattenResult:
    """Flatten a child schema against ``source``, the SQL expression of one element."""
    flattener = _Flattener(dialect, source, reserved)
    if child.element_at_root:
        (element,) = child.schema.fields
        flattener.visit_field(element, (element.name,), ())
    else:
        flattener.visit_fields(child.schema.fields, (), ())
    return flattener.result


def child_schema_for(array_field: Field, path: Tuple[str, ...], json_path: Tuple[str, ...]) -> ChildSchema:
    element = array_field.element_field()
    if element.type == FieldType.MAP:
        return ChildSchema(path, json_path, FirestoreSchema(fields=element.fields or ()))
    # Scalar (or nested array) elements become one field named after the array.
    renamed = element.model_copy(update={"name": array_field.name})
    return ChildSchema(path, json_path, FirestoreSchema(fields=(renamed,)), element_at_root=True)


class _Flattener:
    def __init__(self, dialect: SqlDialect, source: str, reserved: Iterable[str]):
        self.dialect = dialect
        self.source = source
        self.result = FlattenResult()
        self._aliases: Dict[str, str] = {alias: "" for alias in reserved}

    def visit_fields(
        self,
        fields: Iterable[Field],
        name_prefix: Tuple[str, ...],
        json_prefix: Tuple[str, ...],
    ) -> None:
        seen: Set[str] = set()
        for f in fields:
            path = name_prefix + (f.name,)
            if f.name in seen:
                raise InvalidSchemaStructure(
                    f"Duplicate field name {f.name!r}", field_path=_dotted(path)
                )
            seen.add(f.name)
            self.visit_field(f, path, json_prefix + (f.name,))

    def visit_field(self, f: Field, path: Tuple[str, ...], json_path: Tuple[str, ...]) -> None:
        dotted = _dotted(path)
        if not IDENTIFIER.match(f.name):
            raise InvalidSchemaStructure(
                f"Field name {f.name!r} is not a valid column identifier",
                field_path=dotted,
            )

        if f.type == FieldType.MAP:
            if f.element is not None:
                raise InvalidSchemaStructure("A map field cannot declare an element", field_path=dotted)
            self.visit_fields(f.fields or (), path, json_path)
            return

        if f.type == FieldType.ARRAY:
            if f.element is not None and f.fields is not None:
                raise InvalidSchemaStructure(
                    "An array field cannot declare both an element and fields", field_path=dotted
                )
            self.result.children[dotted] = child_schema_for(f, path, json_path)
            return

        if f.fields is not None or f.element is not None:
            raise InvalidSchemaStructure(
                f"Field of type {getattr(f.type, 'value', f.type)!r} cannot declare nested fields",
                field_path=dotted,
            )

        try:
            resolved = self.dialect.resolve(f.type)
        except UnsupportedFieldType as exc:
            exc.add_context(field_path=dotted)
            raise

        json_text = self.dialect.json_path(json_path)
        for column in resolved:
            name_path = path + column.suffix
            self._append(
                Column(
                    name=_dotted(name_path),
                    alias="_".join(name_path),
                    expression=column.render(self.source, json_text),
                    sql_type=column.sql_type,
                )
            )

    def _append(self, column: Column) -> None:
        owner: Optional[str] = self._aliases.get(column.alias)
        if owner is not None:
            clash = f"field {owner!r}" if owner else "a reserved column"
            raise InvalidSchemaStructure(
                f"Column {column.alias!r} collides with {clash}",
                field_path=column.name,
            )
        self._aliases[column.alias] = column.name
        self.result.columns.append(column)


def _dotted(path: Tuple[str, ...]) -> str:
    return ".".join(path)


__all__ = [
    "ChildSchema",
    "Column",
    "FlattenResult",
    "IDENTIFIER",
    "child_schema_for",
    "flatten",
    "flatten_child",
]
