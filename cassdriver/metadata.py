"""Schema metadata for keyspaces, tables, columns, functions, aggregates and views."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterable

from .types import NativeType, TypeKind, cql_type, parse_type

DEFAULT_KEY_ALIAS = "key"
DEFAULT_COLUMN_ALIAS = "column"
DEFAULT_VALUE_ALIAS = "value"


class ColumnKind(enum.IntEnum):
    """The role a column plays in its table."""

    UNKNOWN = 0
    PARTITION_KEY = 1
    CLUSTERING_KEY = 2
    REGULAR = 3
    COMPACT = 4
    STATIC = 5

    def __str__(self) -> str:
        name = _KIND_NAMES.get(self)
        if name is None:
            return f"unknown_column_{int(self)}"
        return name


_KIND_NAMES = {
    ColumnKind.PARTITION_KEY: "partition_key",
    ColumnKind.CLUSTERING_KEY: "clustering_key",
    ColumnKind.REGULAR: "regular",
    ColumnKind.COMPACT: "compact",
    ColumnKind.STATIC: "static",
}

_SCHEMA_KINDS = {
    "partition_key": ColumnKind.PARTITION_KEY,
    "clustering_key": ColumnKind.CLUSTERING_KEY,
    "clustering": ColumnKind.CLUSTERING_KEY,
    "regular": ColumnKind.REGULAR,
    "compact_value": ColumnKind.COMPACT,
    "static": ColumnKind.STATIC,
}


def column_kind_from_schema(kind: str) -> ColumnKind:
    """Return the column kind named by a schema table; raise ValueError if unknown."""
    try:
        return _SCHEMA_KINDS[kind]
    except KeyError:
        raise ValueError(f"unknown column kind: {kind!r}") from None


class ColumnOrder(enum.Enum):
    """The ordering of a column with regard to its comparator."""

    ASC = False
    DESC = True


@dataclass
class ColumnIndexMetadata:
    name: str = ""
    type: str = ""
    options: dict[str, Any] | None = None


@dataclass
class ColumnMetadata:
    keyspace: str = ""
    table: str = ""
    name: str = ""
    component_index: int = 0
    kind: ColumnKind = ColumnKind.UNKNOWN
    validator: str = ""
    type: NativeType | None = None
    clustering_order: str = ""
    order: ColumnOrder = ColumnOrder.ASC
    index: ColumnIndexMetadata = field(default_factory=ColumnIndexMetadata)


@dataclass
class TableMetadata:
    keyspace: str = ""
    name: str = ""
    key_validator: str = ""
    comparator: str = ""
    default_validator: str = ""
    key_aliases: list[str] = field(default_factory=list)
    column_aliases: list[str] = field(default_factory=list)
    value_alias: str = ""
    partition_key: list[ColumnMetadata | None] = field(default_factory=list)
    clustering_columns: list[ColumnMetadata | None] = field(default_factory=list)
    columns: dict[str, ColumnMetadata] = field(default_factory=dict)
    ordered_columns: list[str] = field(default_factory=list)


@dataclass
class FunctionMetadata:
    keyspace: str = ""
    name: str = ""
    argument_types: list[NativeType] = field(default_factory=list)
    argument_names: list[str] = field(default_factory=list)
    body: str = ""
    called_on_null_input: bool = False
    language: str = ""
    return_type: NativeType | None = None


@dataclass
class AggregateMetadata:
    keyspace: str = ""
    name: str = ""
    argument_types: list[NativeType] = field(default_factory=list)
    final_func: FunctionMetadata | None = None
    init_cond: str = ""
    return_type: NativeType | None = None
    state_func: FunctionMetadata | None = None
    state_type: NativeType | None = None
    final_func_name: str = ""
    state_func_name: str = ""


@dataclass
class ViewMetadata:
    keyspace: str = ""
    name: str = ""
    field_names: list[str] = field(default_factory=list)
    field_types: list[NativeType] = field(default_factory=list)


@dataclass
class KeyspaceMetadata:
    name: str = ""
    durable_writes: bool = False
    strategy_class: str = ""
    strategy_options: dict[str, Any] = field(default_factory=dict)
    tables: dict[str, TableMetadata] = field(default_factory=dict)
    functions: dict[str, FunctionMetadata] = field(default_factory=dict)
    aggregates: dict[str, AggregateMetadata] = field(default_factory=dict)
    views: dict[str, ViewMetadata] = field(default_factory=dict)


def compile_metadata(
    proto_version: int,
    keyspace: KeyspaceMetadata,
    tables: Iterable[TableMetadata],
    columns: Iterable[ColumnMetadata],
    functions: Iterable[FunctionMetadata] | None,
    aggregates: Iterable[AggregateMetadata] | None,
    views: Iterable[ViewMetadata] | None,
) -> KeyspaceMetadata:
    """Link queried metadata together and derive partition and clustering keys.

    The keyspace and the table and column objects are updated in place; the
    keyspace is also returned.
    """
    table_list = list(tables)
    keyspace.tables = {}
    for table in table_list:
        table.columns = {}
        keyspace.tables[table.name] = table

    keyspace.functions = {function.name: function for function in functions or ()}

    keyspace.aggregates = {}
    for aggregate in aggregates or ():
        aggregate.final_func = keyspace.functions.get(aggregate.final_func_name)
        aggregate.state_func = keyspace.functions.get(aggregate.state_func_name)
        keyspace.aggregates[aggregate.name] = aggregate

    keyspace.views = {view.name: view for view in views or ()}

    for column in columns:
        if column.clustering_order:
            column.type = cql_type(column.validator)
            column.order = (
                ColumnOrder.DESC if column.clustering_order == "desc" else ColumnOrder.ASC
            )
        else:
            parsed = parse_type(column.validator)
            column.type = parsed.types[0]
            column.order = ColumnOrder.DESC if parsed.reversed[0] else ColumnOrder.ASC

        table = keyspace.tables.get(column.table)
        if table is None:
            # the schema may be changing while it is read
            continue
        table.columns[column.name] = column
        table.ordered_columns.append(column.name)

    if proto_version == 1:
        _compile_v1(table_list)
    else:
        _compile_v2(table_list)
    return keyspace


def _alias(aliases: list[str], index: int, default: str) -> str:
    if index < len(aliases):
        return aliases[index]
    if index == 0:
        return default
    return f"{default}{index + 1}"


def _compile_v1(tables: list[TableMetadata]) -> None:
    """Derive keys from validator, comparator and alias data (protocol v1)."""
    for table in tables:
        key_parsed = parse_type(table.key_validator)
        comparator = parse_type(table.comparator)

        table.partition_key = []
        for index, key_type in enumerate(key_parsed.types):
            alias = _alias(table.key_aliases, index, DEFAULT_KEY_ALIAS)
            column = ColumnMetadata(
                keyspace=table.keyspace,
                table=table.name,
                name=alias,
                type=key_type,
                kind=ColumnKind.PARTITION_KEY,
                component_index=index,
            )
            table.partition_key.append(column)
            table.columns[alias] = column

        size = len(comparator.types)
        if comparator.is_composite:
            if comparator.collections or (
                len(table.column_aliases) == size - 1
                and comparator.types[size - 1].kind is TypeKind.VARCHAR
            ):
                size -= 1
        elif not (table.column_aliases or not table.columns):
            size = 0

        table.clustering_columns = []
        for index in range(size):
            alias = _alias(table.column_aliases, index, DEFAULT_COLUMN_ALIAS)
            column = ColumnMetadata(
                keyspace=table.keyspace,
                table=table.name,
                name=alias,
                type=comparator.types[index],
                order=ColumnOrder.DESC if comparator.reversed[index] else ColumnOrder.ASC,
                kind=ColumnKind.CLUSTERING_KEY,
                component_index=index,
            )
            table.clustering_columns.append(column)
            table.columns[alias] = column

        if size != len(comparator.types) - 1:
            alias = table.value_alias or DEFAULT_VALUE_ALIAS
            table.columns[alias] = ColumnMetadata(
                keyspace=table.keyspace,
                table=table.name,
                name=alias,
                type=parse_type(table.default_validator).types[0],
                kind=ColumnKind.REGULAR,
            )


def _component_count(columns: dict[str, ColumnMetadata], kind: ColumnKind) -> int:
    return 1 + max(
        (column.component_index for column in columns.values() if column.kind == kind),
        default=-1,
    )


def _compile_v2(tables: list[TableMetadata]) -> None:
    """Place columns into partition and clustering keys by their kind (protocol v2+)."""
    for table in tables:
        clustering_count = _component_count(table.columns, ColumnKind.CLUSTERING_KEY)
        table.clustering_columns = [None] * clustering_count

        if table.key_validator:
            partition_count = len(parse_type(table.key_validator).types)
        else:
            partition_count = _component_count(table.columns, ColumnKind.PARTITION_KEY)
        table.partition_key = [None] * partition_count

        for column_name in table.ordered_columns:
            column = table.columns[column_name]
            if column.kind == ColumnKind.PARTITION_KEY:
                table.partition_key[column.component_index] = column
            elif column.kind == ColumnKind.CLUSTERING_KEY:
                table.clustering_columns[column.component_index] = column