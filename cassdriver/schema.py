"""Reading keyspace schema from the system tables of a cluster."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from .metadata import (
    AggregateMetadata,
    ColumnIndexMetadata,
    ColumnKind,
    ColumnMetadata,
    FunctionMetadata,
    KeyspaceMetadata,
    TableMetadata,
    ViewMetadata,
    column_kind_from_schema,
    compile_metadata,
)
from .types import type_info

Row = Mapping[str, Any]


class SchemaError(Exception):
    """Schema data could not be read or decoded."""


class KeyspaceDoesNotExistError(SchemaError):
    """The requested keyspace is not known to the cluster."""

    def __init__(self, keyspace_name: str) -> None:
        super().__init__("keyspace does not exist")
        self.keyspace_name = keyspace_name


@dataclass
class SchemaSource:
    """Where schema rows come from and which layout of system tables they follow.

    ``query`` runs a statement with the keyspace name bound to its one marker
    and returns the rows as mappings from column name to value.
    """

    query: Callable[[str, str], Iterable[Row]]
    proto_version: int = 4
    use_system_schema: bool = True
    has_aggregates_and_functions: bool = True


_KEYSPACE_SYSTEM = """
    SELECT durable_writes, replication
    FROM system_schema.keyspaces
    WHERE keyspace_name = ?"""

_KEYSPACE_LEGACY = """
    SELECT durable_writes, strategy_class, strategy_options
    FROM system.schema_keyspaces
    WHERE keyspace_name = ?"""

_TABLES_SYSTEM = """
    SELECT table_name
    FROM system_schema.tables
    WHERE keyspace_name = ?"""

_VIEWS_SYSTEM = """
    SELECT view_name
    FROM system_schema.views
    WHERE keyspace_name = ?"""

_TABLES_V1 = """
    SELECT columnfamily_name, key_validator, comparator, default_validator,
           key_aliases, column_aliases, value_alias
    FROM system.schema_columnfamilies
    WHERE keyspace_name = ?"""

_TABLES_V2 = """
    SELECT columnfamily_name, key_validator, comparator, default_validator
    FROM system.schema_columnfamilies
    WHERE keyspace_name = ?"""

_COLUMNS_V1 = """
    SELECT columnfamily_name, column_name, component_index, validator,
           index_name, index_type, index_options
    FROM system.schema_columns
    WHERE keyspace_name = ?"""

_COLUMNS_V2 = """
    SELECT columnfamily_name, column_name, component_index, validator,
           index_name, index_type, index_options, type
    FROM system.schema_columns
    WHERE keyspace_name = ?"""

_COLUMNS_SYSTEM = """
    SELECT table_name, column_name, clustering_order, type, kind, position
    FROM system_schema.columns
    WHERE keyspace_name = ?"""

_FUNCTIONS = """
    SELECT function_name, argument_types, argument_names, body,
           called_on_null_input, language, return_type
    FROM {table}
    WHERE keyspace_name = ?"""

_AGGREGATES = """
    SELECT aggregate_name, argument_types, final_func, initcond,
           return_type, state_func, state_type
    FROM {table}
    WHERE keyspace_name = ?"""

_VIEWS = """
    SELECT type_name, field_names, field_types
    FROM {table}
    WHERE keyspace_name = ?"""


def _text(row: Row, key: str) -> str:
    value = row.get(key)
    return "" if value is None else value


def _strings(row: Row, key: str) -> list[str]:
    return list(row.get(key) or [])


def _decode_json(raw: Any, message: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"{message}: {exc}") from exc


def _string_list(raw: Any, message: str) -> list[str]:
    value = _decode_json(raw, message)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise SchemaError(f"{message}: expected a list of strings")
    return value


def keyspace_from_system_schema(
    keyspace_name: str, durable_writes: bool, replication: Mapping[str, str]
) -> KeyspaceMetadata:
    """Build keyspace metadata from a ``system_schema.keyspaces`` row."""
    options = dict(replication or {})
    strategy_class = options.pop("class", "")
    return KeyspaceMetadata(
        name=keyspace_name,
        durable_writes=bool(durable_writes),
        strategy_class=strategy_class,
        strategy_options=options,
    )


def keyspace_from_legacy(
    keyspace_name: str,
    durable_writes: bool,
    strategy_class: str,
    strategy_options_json: str | bytes,
) -> KeyspaceMetadata:
    """Build keyspace metadata from a ``system.schema_keyspaces`` row."""
    message = (
        f"Invalid JSON value '{strategy_options_json!s}' as strategy_options "
        f"for in keyspace '{keyspace_name}'"
    )
    options = _decode_json(strategy_options_json, message)
    if options is None:
        options = {}
    elif not isinstance(options, dict):
        raise SchemaError(f"{message}: expected an object")
    return KeyspaceMetadata(
        name=keyspace_name,
        durable_writes=bool(durable_writes),
        strategy_class=strategy_class or "",
        strategy_options=options,
    )


def table_from_row(keyspace_name: str, row: Row) -> TableMetadata:
    """Build table metadata from a row of any of the table or view schema tables."""
    name = next(
        (row[key] for key in ("table_name", "view_name", "columnfamily_name") if key in row),
        "",
    )
    table = TableMetadata(
        keyspace=keyspace_name,
        name=name,
        key_validator=_text(row, "key_validator"),
        comparator=_text(row, "comparator"),
        default_validator=_text(row, "default_validator"),
        value_alias=_text(row, "value_alias"),
    )
    key_aliases = row.get("key_aliases")
    if key_aliases is not None:
        table.key_aliases = _string_list(
            key_aliases,
            f"Invalid JSON value '{key_aliases!s}' as key_aliases for in table '{name}'",
        )
    column_aliases = row.get("column_aliases")
    if column_aliases is not None:
        table.column_aliases = _string_list(
            column_aliases,
            f"Invalid JSON value '{column_aliases!s}' as column_aliases for in table '{name}'",
        )
    return table


def _kind(value: str) -> ColumnKind:
    try:
        return column_kind_from_schema(value)
    except ValueError as exc:
        raise SchemaError(str(exc)) from exc


def column_from_row(keyspace_name: str, row: Row, proto_version: int) -> ColumnMetadata:
    """Build column metadata from a ``system_schema.columns`` or ``schema_columns`` row."""
    if "table_name" in row:
        return ColumnMetadata(
            keyspace=keyspace_name,
            table=_text(row, "table_name"),
            name=_text(row, "column_name"),
            clustering_order=_text(row, "clustering_order"),
            validator=_text(row, "type"),
            kind=_kind(_text(row, "kind")),
            component_index=row.get("position") or 0,
        )

    column = ColumnMetadata(
        keyspace=keyspace_name,
        table=_text(row, "columnfamily_name"),
        name=_text(row, "column_name"),
        component_index=row.get("component_index") or 0,
        validator=_text(row, "validator"),
        index=ColumnIndexMetadata(name=_text(row, "index_name"), type=_text(row, "index_type")),
    )
    # protocol v1 has no type column: every returned column is regular
    column.kind = ColumnKind.REGULAR if proto_version == 1 else _kind(_text(row, "type"))

    options = row.get("index_options")
    if options:
        decoded = _decode_json(
            options,
            f"Invalid JSON value '{options!s}' as index_options for column "
            f"'{column.name}' in table '{column.table}'",
        )
        column.index.options = decoded
    return column


def function_from_row(keyspace_name: str, row: Row) -> FunctionMetadata:
    """Build function metadata from a functions schema row."""
    return FunctionMetadata(
        keyspace=keyspace_name,
        name=_text(row, "function_name"),
        argument_types=[type_info(t) for t in _strings(row, "argument_types")],
        argument_names=_strings(row, "argument_names"),
        body=_text(row, "body"),
        called_on_null_input=bool(row.get("called_on_null_input")),
        language=_text(row, "language"),
        return_type=type_info(_text(row, "return_type")),
    )


def aggregate_from_row(keyspace_name: str, row: Row) -> AggregateMetadata:
    """Build aggregate metadata from an aggregates schema row."""
    return AggregateMetadata(
        keyspace=keyspace_name,
        name=_text(row, "aggregate_name"),
        argument_types=[type_info(t) for t in _strings(row, "argument_types")],
        final_func_name=_text(row, "final_func"),
        init_cond=_text(row, "initcond"),
        return_type=type_info(_text(row, "return_type")),
        state_func_name=_text(row, "state_func"),
        state_type=type_info(_text(row, "state_type")),
    )


def view_from_row(keyspace_name: str, row: Row) -> ViewMetadata:
    """Build view metadata from a user type schema row."""
    return ViewMetadata(
        keyspace=keyspace_name,
        name=_text(row, "type_name"),
        field_names=_strings(row, "field_names"),
        field_types=[type_info(t) for t in _strings(row, "field_types")],
    )


class SchemaDescriber:
    """Queries schema data for keyspaces and caches the compiled result."""

    def __init__(self, source: SchemaSource) -> None:
        self.source = source
        self._lock = threading.RLock()
        self._cache: dict[str, KeyspaceMetadata] = {}

    def get_schema(self, keyspace_name: str) -> KeyspaceMetadata:
        """Return the cached metadata for a keyspace, fetching it if needed."""
        with self._lock:
            metadata = self._cache.get(keyspace_name)
            if metadata is None:
                metadata = self.refresh_schema(keyspace_name)
            return metadata

    def clear_schema(self, keyspace_name: str) -> None:
        with self._lock:
            self._cache.pop(keyspace_name, None)

    def refresh_schema(self, keyspace_name: str) -> KeyspaceMetadata:
        """Fetch the metadata for a keyspace again and replace the cached copy."""
        with self._lock:
            keyspace = self._keyspace(keyspace_name)
            tables = self._tables(keyspace_name)
            columns = self._columns(keyspace_name)
            functions = self._functions(keyspace_name)
            aggregates = self._aggregates(keyspace_name)
            views = self._views(keyspace_name)
            compile_metadata(
                self.source.proto_version, keyspace, tables, columns, functions, aggregates, views
            )
            self._cache[keyspace_name] = keyspace
            return keyspace

    def _rows(self, statement: str, keyspace_name: str, what: str) -> list[Row]:
        try:
            return list(self.source.query(statement, keyspace_name))
        except SchemaError:
            raise
        except Exception as exc:
            raise SchemaError(f"Error querying {what} schema: {exc}") from exc

    def _keyspace(self, keyspace_name: str) -> KeyspaceMetadata:
        if self.source.use_system_schema:
            rows = self._rows(_KEYSPACE_SYSTEM, keyspace_name, "keyspace")
            if not rows:
                raise KeyspaceDoesNotExistError(keyspace_name)
            row = rows[0]
            return keyspace_from_system_schema(
                keyspace_name, row.get("durable_writes"), row.get("replication") or {}
            )
        rows = self._rows(_KEYSPACE_LEGACY, keyspace_name, "keyspace")
        if not rows:
            raise KeyspaceDoesNotExistError(keyspace_name)
        row = rows[0]
        return keyspace_from_legacy(
            keyspace_name,
            row.get("durable_writes"),
            _text(row, "strategy_class"),
            row.get("strategy_options"),
        )

    def _tables(self, keyspace_name: str) -> list[TableMetadata]:
        if self.source.use_system_schema:
            rows = self._rows(_TABLES_SYSTEM, keyspace_name, "table")
            rows += self._rows(_VIEWS_SYSTEM, keyspace_name, "table")
        elif self.source.proto_version == 1:
            rows = self._rows(_TABLES_V1, keyspace_name, "table")
        else:
            rows = self._rows(_TABLES_V2, keyspace_name, "table")
        return [table_from_row(keyspace_name, row) for row in rows]

    def _columns(self, keyspace_name: str) -> list[ColumnMetadata]:
        proto = self.source.proto_version
        if proto == 1:
            statement = _COLUMNS_V1
        elif self.source.use_system_schema:
            statement = _COLUMNS_SYSTEM
        else:
            statement = _COLUMNS_V2
        rows = self._rows(statement, keyspace_name, "column")
        return [column_from_row(keyspace_name, row, proto) for row in rows]

    def _has_functions(self) -> bool:
        return self.source.proto_version != 1 and self.source.has_aggregates_and_functions

    def _functions(self, keyspace_name: str) -> list[FunctionMetadata]:
        if not self._has_functions():
            return []
        table = "system_schema.functions" if self.source.use_system_schema else "system.schema_functions"
        rows = self._rows(_FUNCTIONS.format(table=table), keyspace_name, "function")
        return [function_from_row(keyspace_name, row) for row in rows]

    def _aggregates(self, keyspace_name: str) -> list[AggregateMetadata]:
        if not self._has_functions():
            return []
        table = "system_schema.aggregates" if self.source.use_system_schema else "system.schema_aggregates"
        rows = self._rows(_AGGREGATES.format(table=table), keyspace_name, "aggregate")
        return [aggregate_from_row(keyspace_name, row) for row in rows]

    def _views(self, keyspace_name: str) -> list[ViewMetadata]:
        if self.source.proto_version == 1:
            return []
        table = "system_schema.types" if self.source.use_system_schema else "system.schema_usertypes"
        rows = self._rows(_VIEWS.format(table=table), keyspace_name, "view")
        return [view_from_row(keyspace_name, row) for row in rows]