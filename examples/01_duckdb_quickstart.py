"""Example 01: DuckDB Quickstart

Demonstrates:
- Creating a raw changelog table and writing a few document changes
- Generating the schema views for every file in examples/schemas/
- Querying the latest typed rows and the per-element array view
"""
import json
from pathlib import Path

from FirestoreViews import FirestoreSchemaViewFactory, get_dialect, read_schemas
from FirestoreViews.infra.db.duckdb_views import DuckDBViewManager, connect_db

SCHEMA_DIR = Path(__file__).parent / "schemas"


def write_change(con, document_id, timestamp, event_id, operation, data):
    con.execute(
        "INSERT INTO firestore_export.users_raw_changelog VALUES (?, ?, ?, ?, ?, ?)",
        [
            timestamp,
            event_id,
            f"projects/demo/databases/(default)/documents/users/{document_id}",
            document_id,
            operation,
            json.dumps(data) if data is not None else None,
        ],
    )


def main():
    con = connect_db(":memory:")
    con.execute("CREATE SCHEMA firestore_export")
    con.execute("""
        CREATE TABLE firestore_export.users_raw_changelog (
            "timestamp" TIMESTAMP,
            event_id VARCHAR,
            document_name VARCHAR,
            document_id VARCHAR,
            operation VARCHAR,
            data VARCHAR
        )
    """)

    write_change(con, "ada", "2024-03-01 09:00:00", "1", "CREATE", {
        "name": "Ada",
        "age": 36,
        "last_login": {"_seconds": 1709283600, "_nanoseconds": 0},
        "last_location": {"_latitude": 51.5, "_longitude": -0.12},
        "address": {"city": "London", "zip": "N1"},
        "tags": ["admin", "early-adopter"],
        "friends": [{"name": "Charles", "since": "1833-06-05T00:00:00"}],
    })
    write_change(con, "ada", "2024-03-02 09:00:00", "2", "UPDATE", {"name": "Ada", "age": 37, "tags": ["admin"]})
    write_change(con, "grace", "2024-03-01 10:00:00", "3", "CREATE", {"name": "Grace"})
    write_change(con, "grace", "2024-03-03 10:00:00", "4", "DELETE", None)

    factory = FirestoreSchemaViewFactory(DuckDBViewManager(con), get_dialect("duckdb"), project_id="")
    results = factory.initialize_all("firestore_export", "users", read_schemas([str(SCHEMA_DIR)]))
    for schema_name, result in results.items():
        status = "ok" if result.ok else f"failed: {result.error}"
        print(f"{schema_name}: {status} ({len(result.created_views)} views)")

    print("\nLatest users:")
    for row in con.execute(
        "SELECT document_name, name, age FROM firestore_export.users_schema_users_latest"
    ).fetchall():
        print(f"  {row}")

    print("\nTags:")
    for row in con.execute(
        "SELECT document_name, tags_index, tags FROM firestore_export.users_schema_users_latest_tags "
        "ORDER BY document_name, tags_index"
    ).fetchall():
        print(f"  {row}")

    con.close()


if __name__ == "__main__":
    main()
