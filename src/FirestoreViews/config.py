"""Configuration for generating schema views.

Values come from (highest priority first) explicit arguments such as CLI
flags, ``FIRESTORE_VIEWS_*`` environment variables, then a ``.env`` file in
the working directory. ``PROJECT_ID`` is honoured as the Firebase project
like the extension's own scripts do.
"""
import enum
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from FirestoreViews.compiler.factory import raw_changelog_table_name
from FirestoreViews.compiler.view_sql import ChangelogLayout

BIGQUERY_VALID_CHARACTERS = r"^[a-zA-Z0-9_]+$"
FIRESTORE_VALID_CHARACTERS = r"^[^/]+$"
GCP_PROJECT_VALID_CHARACTERS = r"^[a-z][a-z0-9-]{0,29}$"


class Backend(enum.Enum):
    BIGQUERY = "bigquery"
    DUCKDB = "duckdb"


class SchemaViewsConfig(BaseSettings):
    """Target database and schema sources for one generation run.

    Example:
        >>> config = SchemaViewsConfig(project_id="my-app", dataset_id="firestore_export",
        ...                            table_name_prefix="users", schema_files=["schemas/"])
        >>> config.raw_changelog_table()
        'users_raw_changelog'
    """
    model_config = SettingsConfigDict(
        env_prefix="FIRESTORE_VIEWS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    project_id: Optional[str] = Field(
        default=None,
        pattern=FIRESTORE_VALID_CHARACTERS,
        validation_alias=AliasChoices("project_id", "FIRESTORE_VIEWS_PROJECT_ID", "PROJECT_ID"),
        description="Firebase project containing the Cloud Firestore database",
    )
    bigquery_project_id: Optional[str] = Field(
        default=None,
        pattern=GCP_PROJECT_VALID_CHARACTERS,
        description="Google Cloud project for BigQuery (defaults to project_id)",
    )
    dataset_id: Optional[str] = Field(
        default=None,
        pattern=BIGQUERY_VALID_CHARACTERS,
        description="Dataset holding the raw changelog; views are created there too",
    )
    table_name_prefix: Optional[str] = Field(
        default=None,
        pattern=BIGQUERY_VALID_CHARACTERS,
        description="Common prefix of the raw changelog and every generated view",
    )
    schema_files: List[str] = Field(
        default_factory=list,
        description="Schema files or directories, optionally globbed",
    )

    backend: Backend = Backend.BIGQUERY
    duckdb_path: Path = Field(
        default=Path("firestore-views.duckdb"),
        description="Database file used by the duckdb backend",
    )
    changelog: ChangelogLayout = Field(default_factory=ChangelogLayout)

    @model_validator(mode="after")
    def default_bigquery_project(self):
        """BigQuery lives in the Firebase project unless told otherwise."""
        if self.bigquery_project_id is None and self.project_id is not None:
            self.bigquery_project_id = self.project_id
        return self

    def raw_changelog_table(self) -> str:
        return raw_changelog_table_name(self.table_name_prefix)

    def missing_required(self) -> List[str]:
        """Names of the options a generation run cannot do without."""
        required = {}
        if self.backend is Backend.BIGQUERY:
            required["project"] = self.project_id
            required["big-query-project"] = self.bigquery_project_id
        required["dataset"] = self.dataset_id
        required["table-name-prefix"] = self.table_name_prefix
        missing = [name for name, value in required.items() if not value]
        if not self.schema_files:
            missing.append("schema-files")
        return missing
