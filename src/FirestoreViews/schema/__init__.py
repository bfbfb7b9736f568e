from FirestoreViews.schema.loader import read_schemas
from FirestoreViews.schema.model import Field, FieldType, FirestoreSchema

__all__ = ["Field", "FieldType", "FirestoreSchema", "read_schemas"]
