"""
Pytest configuration for FirestoreViews tests.

This configuration provides:
- Sample schemas mirroring what schema files declare
- An in-memory DuckDB database holding a raw changelog table
- A helper to append writes to that changelog
- A recording view manager for factory tests
"""

import json
from typing import Any, Dict, Optional

import duckdb
import pytest

from FirestoreViews.schema.model import FirestoreSchema
from helpers.recording_manager import RecordingViewManager


# ============================================================================
# Schema Fixtures
# ============================================================================

@pytest.fixture
def users_schema() -> FirestoreSchema:
    """A schema using every field type, nested maps and arrays."""
    return FirestoreSchema.model_validate({
        "fields": [
            {"name": "name", "type": "string"},
            {"name": "age", "type": "number"},
            {"name": "active", "type": "boolean"},
            {"name": "last_login", "type": "timestamp"},
            {"name": "last_location", "type": "geopoint"},
            {"name": "manager", "type": "reference"},
            {"name": "legacy", "type": "null"},
            {"name": "settings", "type": "stringified_map"},
            {"name": "address", "type": "map", "fields": [
                {"name": "city", "type": "string"},
                {"name": "geo", "type": "map", "fields": [
                    {"name": "zip", "type": "string"},
                ]},
            ]},
            {"name": "tags", "type": "array"},
            {"name": "friends", "type": "array", "element": {
                "type": "map", "fields": [
                    {"name": "name", "type": "string"},
                    {"name": "score", "type": "number"},
                    {"name": "nicknames", "type": "array"},
                ],
            }},
        ]
    })


@pytest.fixture
def primitive_schema() -> FirestoreSchema:
    return FirestoreSchema.model_validate({
        "fields": [
            {"name": "title", "type": "string"},
            {"name": "price", "type": "number"},
            {"name": "in_stock", "type": "boolean"},
        ]
    })


# ============================================================================
# DuckDB Fixtures
# ============================================================================

DATASET = "analytics"
PREFIX = "users"


@pytest.fixture
def duckdb_con():
    """In-memory DuckDB with an empty ``analytics.users_raw_changelog`` table."""
    con = duckdb.connect(":memory:")
    con.execute(f"CREATE SCHEMA {DATASET}")
    con.execute(f"""
        CREATE TABLE {DATASET}.{PREFIX}_raw_changelog (
            "timestamp" TIMESTAMP,
            event_id VARCHAR,
            document_name VARCHAR,
            document_id VARCHAR,
            operation VARCHAR,
            data VARCHAR
        )
    """)
    yield con
    con.close()


@pytest.fixture
def write_change(duckdb_con):
    """Append one write to the raw changelog."""
    def _write(
        document_id: str,
        timestamp: str,
        event_id: str,
        operation: str = "UPDATE",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        duckdb_con.execute(
            f"INSERT INTO {DATASET}.{PREFIX}_raw_changelog VALUES (?, ?, ?, ?, ?, ?)",
            [
                timestamp,
                event_id,
                f"projects/demo/databases/(default)/documents/users/{document_id}",
                document_id,
                operation,
                json.dumps(data) if data is not None else None,
            ],
        )
    return _write


# ============================================================================
# View Manager Fixtures
# ============================================================================

@pytest.fixture
def recording_manager() -> RecordingViewManager:
    return RecordingViewManager()
