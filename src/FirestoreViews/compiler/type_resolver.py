"""
Resolution of declared field types into SQL extraction expressions.

The raw changelog stores each document as JSON text. Every dialect knows
how to pull a typed value out of that text at a JSONPath, how to quote
identifiers and how to address tables. Nothing outside this module spells
out a JSON function name, so the compiler stays portable across SQL
dialects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Tuple, Union

from FirestoreViews.errors import UnsupportedFieldType
from FirestoreViews.schema.model import FieldType

# 9999-12-31T23:59:59Z plus one second.
MAX_EPOCH_SECONDS = 253402300800
# ISO-8601 time of day followed by Z or a numeric offset.
UTC_OFFSET_PATTERN = "[0-9]:[0-9][0-9](:[0-9][0-9]([.][0-9]+)?)? ?([Zz]|[+-][0-9][0-9](:?[0-9][0-9])?)$"


@dataclass(frozen=True)
class ResolvedColumn:
    """One output column of a resolved field.

    ``template`` is formatted with ``source`` (SQL expression holding JSON
    text) and ``path`` (JSONPath of the field inside that text).
    """

    suffix: Tuple[str, ...]
    sql_type: str
    template: str

    def render(self, source: str, path: str) -> str:
        return self.template.format(source=source, path=path)


class SqlDialect:
    """Base class for a target SQL dialect."""

    name: str = ""
    # "cross_join": UNNEST in the FROM clause with an ordinal (BigQuery).
    # "select_list": unnest() in nested sub-selects (DuckDB).
    unnest_style: str = ""
    resolutions: Dict[FieldType, Tuple[ResolvedColumn, ...]] = {}

    def resolve(self, field_type: Union[FieldType, str]) -> Tuple[ResolvedColumn, ...]:
        """Return the columns a field of ``field_type`` contributes.

        Raises:
            UnsupportedFieldType: for map/array (never resolved directly) and
                for any type without a rule in this dialect
        """
        if field_type in (FieldType.MAP, FieldType.ARRAY):
            raise UnsupportedFieldType(
                field_type,
                f"Field type {_type_name(field_type)!r} is flattened, not resolved to a column",
            )
        try:
            return self.resolutions[field_type]
        except (KeyError, TypeError):
            raise UnsupportedFieldType(
                field_type,
                f"Unsupported field type {_type_name(field_type)!r} for dialect {self.name}",
            ) from None

    def json_path(self, parts: Iterable[str]) -> str:
        return "$" + "".join(f".{part}" for part in parts)

    def quote(self, identifier: str) -> str:
        raise NotImplementedError

    def table_ref(self, project_id: str, dataset_id: str, table_name: str) -> str:
        raise NotImplementedError

    def extract_array(self, source: str, path: str) -> str:
        """SQL expression turning the JSON array at ``path`` into an unnestable array."""
        raise NotImplementedError


def _type_name(field_type: Union[FieldType, str]) -> str:
    return field_type.value if isinstance(field_type, FieldType) else str(field_type)


def _single(sql_type: str, template: str) -> Tuple[ResolvedColumn, ...]:
    return (ResolvedColumn((), sql_type, template),)


class BigQueryDialect(SqlDialect):
    name = "bigquery"
    unnest_style = "cross_join"

    _scalar = "JSON_EXTRACT_SCALAR({source}, '{path}')"
    _float = "SAFE_CAST(JSON_EXTRACT_SCALAR({source}, '{path}%s') AS FLOAT64)"

    resolutions = {
        FieldType.STRING: _single("STRING", _scalar),
        FieldType.NUMBER: _single("FLOAT64", _float % ""),
        FieldType.BOOLEAN: _single(
            "BOOL", "SAFE_CAST(JSON_EXTRACT_SCALAR({source}, '{path}') AS BOOL)"
        ),
        FieldType.TIMESTAMP: _single(
            "TIMESTAMP",
            "COALESCE("
            "SAFE_CAST(JSON_EXTRACT_SCALAR({source}, '{path}') AS TIMESTAMP), "
            "SAFE.TIMESTAMP_MICROS(SAFE_ADD("
            "SAFE_MULTIPLY(SAFE_CAST(JSON_EXTRACT_SCALAR({source}, '{path}._seconds') AS INT64), 1000000), "
            "DIV(IFNULL(SAFE_CAST(JSON_EXTRACT_SCALAR({source}, '{path}._nanoseconds') AS INT64), 0), 1000))), "
            "SAFE.TIMESTAMP_MILLIS(SAFE_CAST("
            "SAFE_MULTIPLY(SAFE_CAST(JSON_EXTRACT_SCALAR({source}, '{path}') AS FLOAT64), 1000) AS INT64)))",
        ),
        FieldType.GEOPOINT: (
            ResolvedColumn(
                ("latitude",),
                "FLOAT64",
                f"COALESCE({_float % '._latitude'}, {_float % '.latitude'})",
            ),
            ResolvedColumn(
                ("longitude",),
                "FLOAT64",
                f"COALESCE({_float % '._longitude'}, {_float % '.longitude'})",
            ),
        ),
        FieldType.REFERENCE: _single("STRING", _scalar),
        FieldType.NULL: _single("STRING", "CAST(NULL AS STRING)"),
        FieldType.STRINGIFIED_MAP: _single("STRING", "JSON_EXTRACT({source}, '{path}')"),
    }

    def quote(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "\\`") + "`"

    def table_ref(self, project_id: str, dataset_id: str, table_name: str) -> str:
        return self.quote(f"{project_id}.{dataset_id}.{table_name}")

    def extract_array(self, source: str, path: str) -> str:
        return f"JSON_EXTRACT_ARRAY({source}, '{path}')"


class DuckDBDialect(SqlDialect):
    """DuckDB over a changelog whose ``data`` column is VARCHAR JSON text.

    The dataset id maps to a DuckDB schema; the project id is not used.
    """

    name = "duckdb"
    unnest_style = "select_list"

    _scalar = "json_extract_string({source}, '{path}')"
    _double = "TRY_CAST(json_extract_string({source}, '{path}%s') AS DOUBLE)"

    resolutions = {
        FieldType.STRING: _single("VARCHAR", _scalar),
        FieldType.NUMBER: _single("DOUBLE", _double % ""),
        FieldType.BOOLEAN: _single(
            "BOOLEAN", "TRY_CAST(json_extract_string({source}, '{path}') AS BOOLEAN)"
        ),
        # Strings with an explicit offset are converted to UTC; naive ones are
        # taken as UTC. Epoch values outside years 0001-9999 give NULL.
        FieldType.TIMESTAMP: _single(
            "TIMESTAMP",
            "COALESCE("
            "CASE WHEN regexp_matches(json_extract_string({source}, '{path}'), '%s') "
            "THEN timezone('UTC', TRY_CAST(json_extract_string({source}, '{path}') AS TIMESTAMPTZ)) END, "
            "TRY_CAST(json_extract_string({source}, '{path}') AS TIMESTAMP), "
            "CASE WHEN abs(TRY_CAST(json_extract_string({source}, '{path}._seconds') AS BIGINT)) < %d "
            "THEN epoch_ms("
            "(TRY_CAST(json_extract_string({source}, '{path}._seconds') AS BIGINT) * 1000)"
            " + (COALESCE(TRY_CAST(json_extract_string({source}, '{path}._nanoseconds') AS BIGINT), 0) // 1000000)) END, "
            "CASE WHEN abs(TRY_CAST(json_extract_string({source}, '{path}') AS DOUBLE)) < %d "
            "THEN epoch_ms(CAST("
            "TRY_CAST(json_extract_string({source}, '{path}') AS DOUBLE) * 1000 AS BIGINT)) END)"
            % (UTC_OFFSET_PATTERN, MAX_EPOCH_SECONDS, MAX_EPOCH_SECONDS),
        ),
        FieldType.GEOPOINT: (
            ResolvedColumn(
                ("latitude",),
                "DOUBLE",
                f"COALESCE({_double % '._latitude'}, {_double % '.latitude'})",
            ),
            ResolvedColumn(
                ("longitude",),
                "DOUBLE",
                f"COALESCE({_double % '._longitude'}, {_double % '.longitude'})",
            ),
        ),
        FieldType.REFERENCE: _single("VARCHAR", _scalar),
        FieldType.NULL: _single("VARCHAR", "CAST(NULL AS VARCHAR)"),
        FieldType.STRINGIFIED_MAP: _single(
            "VARCHAR", "CAST(json_extract({source}, '{path}') AS VARCHAR)"
        ),
    }

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def table_ref(self, project_id: str, dataset_id: str, table_name: str) -> str:
        return f"{self.quote(dataset_id)}.{self.quote(table_name)}"

    def extract_array(self, source: str, path: str) -> str:
        return f"TRY_CAST(json_extract({source}, '{path}') AS JSON[])"


DIALECTS: Dict[str, SqlDialect] = {
    BigQueryDialect.name: BigQueryDialect(),
    DuckDBDialect.name: DuckDBDialect(),
}


def get_dialect(name: str) -> SqlDialect:
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown SQL dialect {name!r}; expected one of {sorted(DIALECTS)}"
        ) from None


__all__ = [
    "BigQueryDialect",
    "DIALECTS",
    "DuckDBDialect",
    "ResolvedColumn",
    "SqlDialect",
    "get_dialect",
]
