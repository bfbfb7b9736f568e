#!/usr/bin/env python3
"""
gen-schema-views - generate typed views over a Firestore changelog.

Reads schema files, then creates a latest-snapshot view, a typed view and
one view per array field for every schema.
"""

import argparse
import logging
import re
import sys
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .compiler.factory import FirestoreSchemaViewFactory, render_create_statements
from .compiler.type_resolver import get_dialect
from .config import (
    BIGQUERY_VALID_CHARACTERS,
    FIRESTORE_VALID_CHARACTERS,
    GCP_PROJECT_VALID_CHARACTERS,
    Backend,
    SchemaViewsConfig,
)
from .errors import FirestoreViewsError
from .schema.loader import read_schemas
from .utils.logging_utils import enable_logging

InputFn = Callable[[str], str]


def validate_input(value: Optional[str], name: str, pattern: str) -> Optional[str]:
    """Return an error message for an invalid answer, None when it is fine."""
    if value is None or value.strip() == "":
        return f"Please supply a {name}"
    if not re.match(pattern, value):
        return f"The {name} must only contain letters or spaces"
    return None


def prompt(
    message: str,
    name: str,
    pattern: Optional[str] = None,
    default: Optional[str] = None,
    input_fn: InputFn = input,
) -> str:
    """Ask until the answer validates. An empty answer takes the default."""
    suffix = f" ({default})" if default else ""
    while True:
        answer = input_fn(f"? {message}{suffix} ").strip() or (default or "")
        if pattern is None:
            return answer
        error = validate_input(answer, name, pattern)
        if error is None:
            return answer
        print(f">> {error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gen-schema-views",
        description="Generate typed BigQuery (or DuckDB) views over a raw Cloud Firestore document changelog.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--non-interactive", action="store_true",
                        help="Parse all input from command line flags instead of prompting the caller.")
    parser.add_argument("-P", "--project",
                        help="Firebase Project ID for project containing Cloud Firestore database.")
    parser.add_argument("-B", "--big-query-project",
                        help="Google Cloud Project ID for BigQuery (can be the same as the Firebase project ID).")
    parser.add_argument("-d", "--dataset",
                        help="The ID of the BigQuery dataset containing a raw Cloud Firestore document changelog.")
    parser.add_argument("-t", "--table-name-prefix",
                        help="A common prefix for the names of all views generated by this script.")
    parser.add_argument("-f", "--schema-files", action="append", default=[],
                        help="A collection of files from which to read schemas.")
    parser.add_argument("--backend", choices=[b.value for b in Backend],
                        help="Database to create the views in (default: bigquery).")
    parser.add_argument("--duckdb-path", help="DuckDB database file for --backend duckdb.")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print the CREATE VIEW statements instead of executing them.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _overrides(args: argparse.Namespace) -> Dict[str, object]:
    values = {
        "project_id": args.project,
        "bigquery_project_id": args.big_query_project,
        "dataset_id": args.dataset,
        "table_name_prefix": args.table_name_prefix,
        "schema_files": args.schema_files or None,
        "backend": args.backend,
        "duckdb_path": args.duckdb_path,
    }
    return {key: value for key, value in values.items() if value is not None}


def ask_config(defaults: SchemaViewsConfig, input_fn: InputFn = input) -> Dict[str, object]:
    """Prompt for every target identifier, defaulting to configured values."""
    project = prompt(
        "What is your Firebase project ID?",
        "project ID", FIRESTORE_VALID_CHARACTERS, defaults.project_id, input_fn,
    )
    answers: Dict[str, object] = {"project_id": project}
    answers["bigquery_project_id"] = prompt(
        "What is your Google Cloud Project ID for BigQuery? (can be the same as the Firebase project ID)",
        "BigQuery project ID", GCP_PROJECT_VALID_CHARACTERS,
        defaults.bigquery_project_id or project, input_fn,
    )
    answers["dataset_id"] = prompt(
        "What is the ID of the BigQuery dataset the raw changelog lives in? "
        "(The dataset and the raw changelog must already exist!)",
        "dataset ID", BIGQUERY_VALID_CHARACTERS, defaults.dataset_id, input_fn,
    )
    answers["table_name_prefix"] = prompt(
        "What is the name of the Cloud Firestore collection for which you want to generate a schema view?",
        "table name prefix", BIGQUERY_VALID_CHARACTERS, defaults.table_name_prefix, input_fn,
    )
    schema_files = prompt(
        "Where should this script look for schema definitions? "
        "(Enter a comma-separated list of, optionally globbed, paths to files or directories).",
        "schema files", None, ",".join(defaults.schema_files), input_fn,
    )
    answers["schema_files"] = [path.strip() for path in schema_files.split(",") if path.strip()]
    return answers


def parse_config(args: argparse.Namespace, input_fn: InputFn = input) -> SchemaViewsConfig:
    """Merge flags, environment and (in interactive mode) prompted answers."""
    config = SchemaViewsConfig(**_overrides(args))
    if args.non_interactive:
        return config
    answers = ask_config(config, input_fn)
    return SchemaViewsConfig(**{**_overrides(args), **answers})


def make_factory(config: SchemaViewsConfig, dry_run: bool = False) -> FirestoreSchemaViewFactory:
    """Factory wired to the configured backend; no connection for dry runs."""
    view_manager = None
    if not dry_run:
        if config.backend is Backend.DUCKDB:
            from .infra.db.duckdb_views import DuckDBViewManager, connect_db
            view_manager = DuckDBViewManager(connect_db(str(config.duckdb_path)))
        else:
            from .infra.db.bigquery_views import BigQueryViewManager
            view_manager = BigQueryViewManager(config.bigquery_project_id)
    return FirestoreSchemaViewFactory(
        view_manager,
        get_dialect(config.backend.value),
        project_id=config.bigquery_project_id or config.project_id or "",
        layout=config.changelog,
    )


def print_statements(factory: FirestoreSchemaViewFactory, config: SchemaViewsConfig, schemas) -> int:
    failed = False
    for schema_name, schema in schemas.items():
        try:
            views = factory.compile_schema_views(
                config.dataset_id, config.table_name_prefix, schema_name, schema
            )
        except FirestoreViewsError as e:
            print(f"❌ {e}", file=sys.stderr)
            failed = True
            continue
        print(f"-- schema {schema_name}")
        for statement in render_create_statements(factory, config.dataset_id, views):
            print(statement + ";\n")
    return 1 if failed else 0


def run(config: SchemaViewsConfig, dry_run: bool = False) -> int:
    """Generate views for every configured schema. Returns the exit status."""
    schemas = read_schemas(config.schema_files)
    if not schemas:
        print("No schema files found!")
        return 0

    factory = make_factory(config, dry_run)
    if dry_run:
        return print_statements(factory, config, schemas)

    print(f"📦 Reading changelog {config.dataset_id}.{config.raw_changelog_table()}")
    try:
        results = factory.initialize_all(config.dataset_id, config.table_name_prefix, schemas)
    finally:
        con = getattr(factory.view_manager, "con", None)
        if con is not None:
            con.close()

    failures: List[str] = []
    for schema_name, result in results.items():
        if result.ok:
            print(f"✅ {schema_name}: {len(result.created_views)} view(s)")
        else:
            failures.append(schema_name)
            print(f"❌ {schema_name}: {result.error} (reached {result.state.value})", file=sys.stderr)
    print("done.")
    return 1 if failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    enable_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = parse_config(args)
        if config.missing_required():
            if args.non_interactive:
                parser.print_help()
                return 1
            print(f"Error: missing {', '.join(config.missing_required())}", file=sys.stderr)
            return 1
        return run(config, dry_run=args.dry_run)
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except FirestoreViewsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
