"""Declarative description of the documents stored in a Firestore collection.

A schema file looks like::

    {
      "fields": [
        {"name": "name", "type": "string"},
        {"name": "last_location", "type": "geopoint"},
        {"name": "address", "type": "map", "fields": [
          {"name": "city", "type": "string"}
        ]},
        {"name": "tags", "type": "array"},
        {"name": "friends", "type": "array", "element": {
          "type": "map", "fields": [{"name": "name", "type": "string"}]
        }}
      ]
    }
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    GEOPOINT = "geopoint"
    REFERENCE = "reference"
    NULL = "null"
    MAP = "map"
    ARRAY = "array"
    STRINGIFIED_MAP = "stringified_map"


class Field(BaseModel):
    """One declared field.

    ``type`` keeps unknown type names as plain strings; they are reported
    as ``UnsupportedFieldType`` when the schema is compiled.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    type: Annotated[Union[FieldType, str], PydanticField(union_mode="left_to_right")]
    description: Optional[str] = None
    # Children of a map. On an array, shorthand for an element of type map.
    fields: Optional[Tuple[Field, ...]] = None
    element: Optional[Field] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @property
    def is_map(self) -> bool:
        return self.type == FieldType.MAP

    @property
    def is_array(self) -> bool:
        return self.type == FieldType.ARRAY

    def element_field(self) -> Field:
        """Return the element of an array field.

        An array declared without ``element`` holds maps when it lists
        ``fields`` and strings otherwise.
        """
        if not self.is_array:
            raise ValueError(f"Field {self.name!r} is not an array")
        if self.element is not None:
            return self.element
        if self.fields is not None:
            return Field(name=self.name, type=FieldType.MAP, fields=self.fields)
        return Field(name=self.name, type=FieldType.STRING)


class FirestoreSchema(BaseModel):
    """Ordered field list for one collection. The name is owned by the caller."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    fields: Tuple[Field, ...] = ()


__all__ = ["Field", "FieldType", "FirestoreSchema"]
