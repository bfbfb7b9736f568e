"""
DuckDB view management.

The dataset id is a DuckDB schema holding the raw changelog table; views
are created next to it with ``CREATE OR REPLACE VIEW``.
"""

from __future__ import annotations

import logging

import duckdb

from FirestoreViews.compiler.type_resolver import DuckDBDialect
from FirestoreViews.compiler.view_sql import create_view_statement
from FirestoreViews.errors import ViewCreationFailed

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "firestore-views.duckdb"


def connect_db(db_path: str = DEFAULT_DB_PATH) -> duckdb.DuckDBPyConnection:
    """Open or create the DuckDB database."""
    return duckdb.connect(db_path)


class DuckDBViewManager:
    """Creates views on a DuckDB connection."""

    dialect = DuckDBDialect()

    def __init__(self, con: duckdb.DuckDBPyConnection):
        self.con = con

    def create_or_replace_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        """
        Create or replace ``dataset_id.view_name`` as ``sql``.

        Args:
            dataset_id: DuckDB schema the view lives in (must exist)
            view_name: View name
            sql: SELECT statement defining the view

        Raises:
            ViewCreationFailed: if DuckDB rejects the statement, e.g. when a
                table of the same name exists
        """
        view_ref = self.dialect.table_ref("", dataset_id, view_name)
        statement = create_view_statement(self.dialect, view_ref, sql)
        try:
            self.con.execute(statement)
        except duckdb.Error as e:
            raise ViewCreationFailed(
                f"DuckDB rejected view {dataset_id}.{view_name}: {e}",
                view_name=view_name,
                statement=statement,
            ) from e
        logger.info("Created or replaced view %s.%s", dataset_id, view_name)


__all__ = ["DEFAULT_DB_PATH", "DuckDBViewManager", "connect_db"]
