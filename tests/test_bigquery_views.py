"""
Tests for BigQuery view management against a mocked client.
"""

from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import BadRequest, NotFound
from google.auth.exceptions import DefaultCredentialsError, TransportError

from FirestoreViews.errors import ViewCreationFailed
from FirestoreViews.infra.db import bigquery_views
from FirestoreViews.infra.db.bigquery_views import BigQueryViewManager

SQL = "SELECT 1 AS one"


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def manager(client):
    return BigQueryViewManager("proj", client=client)


def test_creates_missing_view(manager, client):
    client.get_table.side_effect = NotFound("missing")

    manager.create_or_replace_view("ds", "v", SQL)

    client.get_table.assert_called_once_with("proj.ds.v")
    (table,), _ = client.create_table.call_args
    assert table.view_query == SQL
    assert table.table_id == "v"
    client.update_table.assert_not_called()


def test_updates_existing_view(manager, client):
    existing = MagicMock(table_type="VIEW")
    client.get_table.return_value = existing

    manager.create_or_replace_view("ds", "v", SQL)

    assert existing.view_query == SQL
    client.update_table.assert_called_once_with(existing, ["view_query"])
    client.create_table.assert_not_called()


def test_refuses_to_replace_a_table(manager, client):
    client.get_table.return_value = MagicMock(table_type="TABLE")

    with pytest.raises(ViewCreationFailed, match="not a view") as excinfo:
        manager.create_or_replace_view("ds", "v", SQL)

    assert excinfo.value.statement == SQL
    client.update_table.assert_not_called()


def test_api_errors_become_view_creation_failed(manager, client):
    client.get_table.side_effect = NotFound("missing")
    client.create_table.side_effect = BadRequest("Syntax error")

    with pytest.raises(ViewCreationFailed) as excinfo:
        manager.create_or_replace_view("ds", "v", SQL)

    assert excinfo.value.view_name == "v"
    assert isinstance(excinfo.value.__cause__, BadRequest)


def test_auth_errors_become_view_creation_failed(manager, client):
    client.get_table.side_effect = TransportError("connection reset")

    with pytest.raises(ViewCreationFailed) as excinfo:
        manager.create_or_replace_view("ds", "v", SQL)

    assert isinstance(excinfo.value.__cause__, TransportError)


def test_missing_credentials_fail_the_view(monkeypatch):
    client_class = MagicMock(side_effect=DefaultCredentialsError("no credentials"))
    monkeypatch.setattr(bigquery_views.bigquery, "Client", client_class)
    manager = BigQueryViewManager("proj")

    with pytest.raises(ViewCreationFailed, match="no credentials"):
        manager.create_or_replace_view("ds", "v", SQL)

    client_class.assert_called_once_with(project="proj")
