"""
Schema view factory: compiles a schema into view definitions and installs
them through a view manager, in dependency order.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol, Tuple

from FirestoreViews.compiler.flattener import ChildSchema, flatten, flatten_child
from FirestoreViews.compiler.type_resolver import SqlDialect
from FirestoreViews.compiler.view_sql import (
    ChangelogLayout,
    UnnestLevel,
    child_view_sql,
    create_view_statement,
    latest_snapshot_sql,
    typed_view_sql,
)
from FirestoreViews.errors import FirestoreViewsError, InvalidSchemaStructure, ViewManagerUnavailable
from FirestoreViews.schema.model import FirestoreSchema

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


class ViewManager(Protocol):
    def create_or_replace_view(self, dataset_id: str, view_name: str, sql: str) -> None: ...


@dataclass(frozen=True)
class ViewDefinition:
    view_name: str
    sql: str
    depends_on: frozenset = frozenset()


@dataclass(frozen=True)
class SchemaViews:
    """Every view compiled for one schema, in creation order."""

    schema_name: str
    snapshot: ViewDefinition
    top: ViewDefinition
    children: Tuple[ViewDefinition, ...] = ()

    @property
    def definitions(self) -> Tuple[ViewDefinition, ...]:
        return (self.snapshot, self.top) + self.children


class SchemaViewState(enum.Enum):
    NOT_STARTED = "not_started"
    LATEST_VIEW_CREATED = "latest_view_created"
    TOP_VIEW_CREATED = "top_view_created"
    CHILD_VIEWS_CREATED = "child_views_created"
    DONE = "done"


@dataclass
class SchemaViewResult:
    schema_name: str
    state: SchemaViewState = SchemaViewState.NOT_STARTED
    created_views: List[str] = field(default_factory=list)
    error: Optional[FirestoreViewsError] = None

    @property
    def ok(self) -> bool:
        return self.state is SchemaViewState.DONE


def raw_changelog_table_name(table_name_prefix: str) -> str:
    return f"{table_name_prefix}_raw_changelog"


def snapshot_view_name(table_name_prefix: str, schema_name: str) -> str:
    return f"{table_name_prefix}_schema_{schema_name}_latest_snapshot"


def top_view_name(table_name_prefix: str, schema_name: str) -> str:
    return f"{table_name_prefix}_schema_{schema_name}_latest"


class FirestoreSchemaViewFactory:
    """Builds and installs the typed views for Firestore collection schemas.

    Example:
        >>> factory = FirestoreSchemaViewFactory(
        ...     DuckDBViewManager(con), get_dialect("duckdb"), project_id="local"
        ... )
        >>> factory.initialize_schema_view_resources("analytics", "users", "users", schema)
    """

    def __init__(
        self,
        view_manager: Optional[ViewManager],
        dialect: SqlDialect,
        project_id: str,
        layout: Optional[ChangelogLayout] = None,
    ):
        self.view_manager = view_manager
        self.dialect = dialect
        self.project_id = project_id
        self.layout = layout or ChangelogLayout()

    def view_ref(self, dataset_id: str, name: str) -> str:
        return self.dialect.table_ref(self.project_id, dataset_id, name)

    def compile_schema_views(
        self,
        dataset_id: str,
        table_name_prefix: str,
        schema_name: str,
        schema: FirestoreSchema,
        changelog_table: Optional[str] = None,
    ) -> SchemaViews:
        """Compile ``schema`` into view definitions. Pure, no I/O.

        Raises:
            InvalidSchemaStructure: malformed field tree or colliding names
            UnsupportedFieldType: a field type the dialect cannot resolve
        """
        try:
            return self._compile(dataset_id, table_name_prefix, schema_name, schema, changelog_table)
        except FirestoreViewsError as exc:
            exc.add_context(schema_name=schema_name)
            raise

    def _compile(self, dataset_id, table_name_prefix, schema_name, schema, changelog_table):
        for label, value in (("table name prefix", table_name_prefix), ("schema name", schema_name)):
            if not NAME_PATTERN.match(value or ""):
                raise InvalidSchemaStructure(
                    f"The {label} {value!r} must only contain letters, digits or underscores"
                )

        layout = self.layout
        q = self.dialect.quote
        changelog_ref = self.view_ref(dataset_id, changelog_table or raw_changelog_table_name(table_name_prefix))
        snapshot_name = snapshot_view_name(table_name_prefix, schema_name)
        snapshot_ref = self.view_ref(dataset_id, snapshot_name)
        top_name = top_view_name(table_name_prefix, schema_name)

        snapshot = ViewDefinition(
            snapshot_name, latest_snapshot_sql(self.dialect, changelog_ref, layout)
        )
        flat = flatten(schema.fields, self.dialect, q(layout.data), reserved=[layout.document_name])
        top = ViewDefinition(
            top_name,
            typed_view_sql(self.dialect, snapshot_ref, layout, flat.columns),
            frozenset({snapshot_name}),
        )

        children: List[ViewDefinition] = []
        self._compile_children(
            flat.children, (), (), q(layout.data), top_name, snapshot_name, snapshot_ref, children
        )

        names = [snapshot_name, top_name] + [child.view_name for child in children]
        _check_unique_view_names(names)
        return SchemaViews(schema_name, snapshot, top, tuple(children))

    def _compile_children(
        self,
        children: Mapping[str, ChildSchema],
        key_prefix: Tuple[str, ...],
        levels: Tuple[UnnestLevel, ...],
        source: str,
        top_name: str,
        snapshot_name: str,
        snapshot_ref: str,
        out: List[ViewDefinition],
    ) -> None:
        q = self.dialect.quote
        for child in children.values():
            key_path = key_prefix + child.path
            alias = "_".join(key_path)
            level = UnnestLevel(
                source=source,
                json_path=self.dialect.json_path(child.json_path),
                member_alias=f"{alias}_member",
                index_alias=f"{alias}_index",
            )
            child_levels = levels + (level,)
            reserved = [self.layout.document_name] + [lvl.index_alias for lvl in child_levels]
            member = q(level.member_alias)
            try:
                flat = flatten_child(child, self.dialect, member, reserved=reserved)
            except FirestoreViewsError as exc:
                # Element field paths are relative to the array; anchor them.
                anchor = key_path[:-1] if child.element_at_root else key_path
                exc.field_path = ".".join(anchor + ((exc.field_path,) if exc.field_path else ()))
                raise
            view_name = f"{top_name}_{alias}"
            out.append(
                ViewDefinition(
                    view_name,
                    child_view_sql(self.dialect, snapshot_ref, self.layout, child_levels, flat.columns),
                    frozenset({snapshot_name}),
                )
            )
            self._compile_children(
                flat.children, key_path, child_levels, member, top_name, snapshot_name, snapshot_ref, out
            )

    def initialize_schema_view_resources(
        self,
        dataset_id: str,
        table_name_prefix: str,
        schema_name: str,
        schema: FirestoreSchema,
        changelog_table: Optional[str] = None,
    ) -> SchemaViewResult:
        """Compile and create all views of one schema.

        Views already created before a failure are left in place; re-running
        replaces them.

        Raises:
            FirestoreViewsError: any compilation or creation failure
        """
        views = self.compile_schema_views(
            dataset_id, table_name_prefix, schema_name, schema, changelog_table
        )
        result = SchemaViewResult(schema_name)
        self.install(dataset_id, views, result)
        return result

    def install(self, dataset_id: str, views: SchemaViews, result: SchemaViewResult) -> None:
        """Create ``views`` in dependency order, advancing ``result.state``."""
        if self.view_manager is None:
            raise ViewManagerUnavailable(
                "No view manager configured to install views with", schema_name=views.schema_name
            )

        self._create(dataset_id, views.schema_name, views.snapshot, result)
        result.state = SchemaViewState.LATEST_VIEW_CREATED
        self._create(dataset_id, views.schema_name, views.top, result)
        result.state = SchemaViewState.TOP_VIEW_CREATED
        for child in views.children:
            self._create(dataset_id, views.schema_name, child, result)
        if views.children:
            result.state = SchemaViewState.CHILD_VIEWS_CREATED
        result.state = SchemaViewState.DONE
        logger.info(
            "Created %d view(s) for schema %s in dataset %s",
            len(result.created_views),
            views.schema_name,
            dataset_id,
        )

    def _create(self, dataset_id: str, schema_name: str, view: ViewDefinition, result: SchemaViewResult) -> None:
        logger.debug("Creating view %s.%s", dataset_id, view.view_name)
        try:
            self.view_manager.create_or_replace_view(dataset_id, view.view_name, view.sql)
        except FirestoreViewsError as exc:
            exc.add_context(schema_name=schema_name, view_name=view.view_name)
            raise
        result.created_views.append(view.view_name)

    def initialize_all(
        self,
        dataset_id: str,
        table_name_prefix: str,
        schemas: Mapping[str, FirestoreSchema],
    ) -> Dict[str, SchemaViewResult]:
        """Create views for every schema, isolating failures per schema.

        All schemas are compiled first so that view names colliding across
        schemas fail both schemas before anything is created.
        """
        if not schemas:
            logger.warning("No schemas to compile for dataset %s", dataset_id)
            return {}

        results: Dict[str, SchemaViewResult] = {}
        compiled: Dict[str, SchemaViews] = {}
        for schema_name, schema in schemas.items():
            results[schema_name] = SchemaViewResult(schema_name)
            try:
                compiled[schema_name] = self.compile_schema_views(
                    dataset_id, table_name_prefix, schema_name, schema
                )
            except FirestoreViewsError as exc:
                logger.error("Failed to compile schema %s: %s", schema_name, exc)
                results[schema_name].error = exc

        for schema_name, exc in _cross_schema_collisions(compiled).items():
            logger.error("Failed to compile schema %s: %s", schema_name, exc)
            results[schema_name].error = exc
            del compiled[schema_name]

        for schema_name, views in compiled.items():
            result = results[schema_name]
            try:
                self.install(dataset_id, views, result)
            except FirestoreViewsError as exc:
                logger.error(
                    "Failed to create views for schema %s (reached %s): %s",
                    schema_name,
                    result.state.value,
                    exc,
                )
                result.error = exc
        return results


def _check_unique_view_names(names: List[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise InvalidSchemaStructure(f"View name {name!r} is generated twice", view_name=name)
        seen.add(name)


def _cross_schema_collisions(compiled: Mapping[str, SchemaViews]) -> Dict[str, InvalidSchemaStructure]:
    owners: Dict[str, str] = {}
    errors: Dict[str, InvalidSchemaStructure] = {}
    for schema_name, views in compiled.items():
        for definition in views.definitions:
            other = owners.setdefault(definition.view_name, schema_name)
            if other == schema_name:
                continue
            for clashing in (other, schema_name):
                errors.setdefault(
                    clashing,
                    InvalidSchemaStructure(
                        f"View name {definition.view_name!r} is generated by schemas "
                        f"{other!r} and {schema_name!r}",
                        schema_name=clashing,
                        view_name=definition.view_name,
                    ),
                )
    return errors


def render_create_statements(factory: FirestoreSchemaViewFactory, dataset_id: str, views: SchemaViews) -> List[str]:
    """``CREATE OR REPLACE VIEW`` text for each view, as a database would receive it."""
    return [
        create_view_statement(factory.dialect, factory.view_ref(dataset_id, view.view_name), view.sql)
        for view in views.definitions
    ]


__all__ = [
    "FirestoreSchemaViewFactory",
    "SchemaViewResult",
    "SchemaViewState",
    "SchemaViews",
    "ViewDefinition",
    "ViewManager",
    "raw_changelog_table_name",
    "render_create_statements",
    "snapshot_view_name",
    "top_view_name",
]
