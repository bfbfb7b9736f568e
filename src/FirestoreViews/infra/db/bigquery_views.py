"""
BigQuery view management through the google-cloud-bigquery client.

An existing view is updated in place (its ``view_query``), a missing one is
created. Anything else occupying the name is reported, never replaced.
"""

from __future__ import annotations

import logging
from typing import Optional

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from FirestoreViews.errors import ViewCreationFailed

logger = logging.getLogger(__name__)


class BigQueryViewManager:
    """Creates standard-SQL views in a BigQuery project.

    The client is created on first use, so missing credentials surface as a
    failed view of the schema being installed.
    """

    def __init__(self, project_id: str, client: Optional[bigquery.Client] = None):
        self.project_id = project_id
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            self._client = bigquery.Client(project=self.project_id)
        return self._client

    def create_or_replace_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        """
        Create ``project.dataset.view_name`` defined by ``sql``, or update it.

        Raises:
            ViewCreationFailed: if the name belongs to a table, or the API
                rejects the request (syntax, permissions, missing dataset)
                or no credentials can be found
        """
        table_id = f"{self.project_id}.{dataset_id}.{view_name}"
        try:
            try:
                existing = self.client.get_table(table_id)
            except NotFound:
                view = bigquery.Table(table_id)
                view.view_query = sql
                self.client.create_table(view)
                logger.info("Created view %s", table_id)
                return

            if existing.table_type != "VIEW":
                raise ViewCreationFailed(
                    f"{table_id} exists as {existing.table_type}, not a view",
                    view_name=view_name,
                    statement=sql,
                )
            existing.view_query = sql
            self.client.update_table(existing, ["view_query"])
            logger.info("Updated view %s", table_id)
        except (GoogleAPICallError, GoogleAuthError) as e:
            raise ViewCreationFailed(
                f"BigQuery rejected view {table_id}: {e}",
                view_name=view_name,
                statement=sql,
            ) from e


__all__ = ["BigQueryViewManager"]
