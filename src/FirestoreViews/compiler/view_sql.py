"""
SQL text for the views layered over the raw changelog.

Like any schema-on-read projection, the physical changelog keeps raw JSON
and the views expose typed shapes:

    <prefix>_raw_changelog            append-only writes
      -> ..._latest_snapshot          one live row per document
        -> ..._latest                 typed columns
        -> ..._latest_<array path>    one row per array element

All builders are pure string assembly so identical inputs always give
byte-identical SQL.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from FirestoreViews.compiler.flattener import Column
from FirestoreViews.compiler.type_resolver import SqlDialect

INDENT = "  "
RANK_COLUMN = "changelog_rank"


class ChangelogLayout(BaseModel):
    """Column names of the raw changelog table written by the ingestion pipeline."""

    model_config = ConfigDict(frozen=True)

    document_name: str = "document_name"
    document_id: Optional[str] = "document_id"
    timestamp: str = "timestamp"
    # Tie-break for writes sharing a timestamp; must increase per write.
    sequence: str = "event_id"
    operation: str = "operation"
    data: str = "data"
    delete_operation: str = "DELETE"

    def snapshot_columns(self) -> Tuple[str, ...]:
        columns = [self.document_name]
        if self.document_id:
            columns.append(self.document_id)
        columns += [self.timestamp, self.sequence, self.operation, self.data]
        return tuple(columns)


@dataclass(frozen=True)
class UnnestLevel:
    """One array decomposed into rows.

    ``source`` is the SQL expression of the JSON text holding the array
    (the snapshot's data column or the member of the enclosing level).
    """

    source: str
    json_path: str
    member_alias: str
    index_alias: str


def latest_snapshot_sql(dialect: SqlDialect, changelog_ref: str, layout: ChangelogLayout) -> str:
    """Latest live row per document path.

    Rows are ranked per document by timestamp, then sequence, newest first.
    The winner is dropped when it is a delete, so deleted documents vanish
    even though older writes for them exist.
    """
    q = dialect.quote
    columns = [q(name) for name in layout.snapshot_columns()]
    rank = (
        f"ROW_NUMBER() OVER (PARTITION BY {q(layout.document_name)} "
        f"ORDER BY {q(layout.timestamp)} DESC, {q(layout.sequence)} DESC) "
        f"AS {q(RANK_COLUMN)}"
    )
    ranked = "\n".join(
        [
            "SELECT",
            _select_list(columns + [rank]),
            f"FROM {changelog_ref}",
        ]
    )
    return "\n".join(
        [
            "SELECT",
            _select_list(columns),
            "FROM (",
            textwrap.indent(ranked, INDENT),
            f") AS {q('ranked')}",
            f"WHERE {q(RANK_COLUMN)} = 1",
            f"{INDENT}AND {q(layout.operation)} IS DISTINCT FROM {_literal(layout.delete_operation)}",
        ]
    )


def typed_view_sql(
    dialect: SqlDialect,
    snapshot_ref: str,
    layout: ChangelogLayout,
    columns: Sequence[Column],
) -> str:
    """Document path plus every flattened column, read from the snapshot view."""
    items = [dialect.quote(layout.document_name)] + _column_items(dialect, columns)
    return "\n".join(["SELECT", _select_list(items), f"FROM {snapshot_ref}"])


def child_view_sql(
    dialect: SqlDialect,
    snapshot_ref: str,
    layout: ChangelogLayout,
    levels: Sequence[UnnestLevel],
    columns: Sequence[Column],
) -> str:
    """One row per element of the innermost array in ``levels``.

    Each row keeps the document path and a 0-based ordinal per array level,
    outermost first, so elements can be re-queried deterministically.
    """
    if not levels:
        raise ValueError("child_view_sql requires at least one unnest level")
    q = dialect.quote
    head = [q(layout.document_name)] + [q(level.index_alias) for level in levels]
    items = head + _column_items(dialect, columns)

    if dialect.unnest_style == "cross_join":
        lines = ["SELECT", _select_list(items), f"FROM {snapshot_ref}"]
        for level in levels:
            lines.append(
                f"CROSS JOIN UNNEST({dialect.extract_array(level.source, level.json_path)}) "
                f"AS {q(level.member_alias)} WITH OFFSET AS {q(level.index_alias)}"
            )
        return "\n".join(lines)

    if dialect.unnest_style == "select_list":
        relation = snapshot_ref
        carried = [q(layout.document_name)]
        for level in levels:
            array = dialect.extract_array(level.source, level.json_path)
            inner = "\n".join(
                [
                    "SELECT",
                    _select_list(
                        carried
                        + [
                            f"unnest({array}) AS {q(level.member_alias)}",
                            f"unnest(range(len({array}))) AS {q(level.index_alias)}",
                        ]
                    ),
                    f"FROM {relation}",
                ]
            )
            relation = "(\n" + textwrap.indent(inner, INDENT) + f"\n) AS {q(level.member_alias + '_rows')}"
            carried = carried + [q(level.index_alias)]
        return "\n".join(["SELECT", _select_list(items), f"FROM {relation}"])

    raise ValueError(f"Dialect {dialect.name!r} has unknown unnest style {dialect.unnest_style!r}")


def create_view_statement(dialect: SqlDialect, view_ref: str, select_sql: str) -> str:
    return f"CREATE OR REPLACE VIEW {view_ref} AS\n{select_sql}"


def _column_items(dialect: SqlDialect, columns: Iterable[Column]) -> List[str]:
    return [f"{column.expression} AS {dialect.quote(column.alias)}" for column in columns]


def _select_list(items: Sequence[str]) -> str:
    return ",\n".join(INDENT + item for item in items)


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


__all__ = [
    "ChangelogLayout",
    "RANK_COLUMN",
    "UnnestLevel",
    "child_view_sql",
    "create_view_statement",
    "latest_snapshot_sql",
    "typed_view_sql",
]
