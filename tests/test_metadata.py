import pytest

from cassdriver.metadata import (
    AggregateMetadata,
    ColumnKind,
    ColumnMetadata,
    ColumnOrder,
    FunctionMetadata,
    KeyspaceMetadata,
    TableMetadata,
    ViewMetadata,
    column_kind_from_schema,
    compile_metadata,
)
from cassdriver.types import TypeKind

P = "org.apache.cassandra.db.marshal."
PK = ColumnKind.PARTITION_KEY
CK = ColumnKind.CLUSTERING_KEY
REG = ColumnKind.REGULAR
ASC = ColumnOrder.ASC
DESC = ColumnOrder.DESC


def check_keyspace(actual, keyspace_name, expected):
    assert set(actual.tables) == set(expected)
    for table_name, (pk, cc, cols) in expected.items():
        table = actual.tables[table_name]
        assert table.name == table_name

        assert [(c.name, c.type.kind) for c in table.partition_key] == pk
        for index, column in enumerate(table.partition_key):
            assert column.keyspace == keyspace_name
            assert column.table == table_name
            assert column.component_index == index
            assert column.kind == PK

        assert all(c is not None for c in table.clustering_columns)
        assert [(c.name, c.type.kind, c.order) for c in table.clustering_columns] == cc
        for index, column in enumerate(table.clustering_columns):
            assert column.keyspace == keyspace_name
            assert column.table == table_name
            assert column.component_index == index
            assert column.kind == CK

        assert {k: (c.kind, c.type.kind, c.order) for k, c in table.columns.items()} == cols
        for key, column in table.columns.items():
            assert column.name == key
            assert column.keyspace == keyspace_name
            assert column.table == table_name


def v1_table(name, key_validator, comparator, key_aliases, column_aliases, value_alias=""):
    return TableMetadata(
        keyspace="V1Keyspace",
        name=name,
        key_validator=key_validator,
        comparator=comparator,
        default_validator=P + "BytesType",
        key_aliases=key_aliases,
        column_aliases=column_aliases,
        value_alias=value_alias,
    )


def peers_column(name, validator):
    return ColumnMetadata(
        keyspace="V1Keyspace",
        table="peers",
        kind=REG,
        name=name,
        component_index=0,
        validator=validator,
    )


def test_compile_metadata_v1():
    keyspace = KeyspaceMetadata(name="V1Keyspace")
    tables = [
        v1_table("Schema", P + "BytesType", P + "UTF8Type", [], []),
        v1_table(
            "hints",
            P + "UUIDType",
            P + "CompositeType(" + P + "TimeUUIDType," + P + "Int32Type)",
            ["target_id"],
            ["hint_id", "message_version"],
            "mutation",
        ),
        v1_table(
            "peers",
            P + "InetAddressType",
            P + "CompositeType(" + P + "UTF8Type," + P + "ColumnToCollectionType(746f6b656e73:"
            + P + "SetType(" + P + "UTF8Type)))",
            ["peer"],
            [],
        ),
        v1_table(
            "IndexInfo",
            P + "UTF8Type",
            P + "ReversedType(" + P + "UTF8Type)",
            ["table_name"],
            ["index_name"],
        ),
        v1_table(
            "wiki_page",
            P + "UTF8Type",
            P + "CompositeType(" + P + "TimeUUIDType," + P + "UTF8Type," + P
            + "ColumnToCollectionType(74616773:" + P + "SetType(" + P + "UTF8Type),"
            + "6174746163686d656e7473:" + P + "MapType(" + P + "UTF8Type," + P + "BytesType)))",
            ["title"],
            ["revid"],
        ),
        v1_table(
            "no_names",
            P + "CompositeType(" + P + "UUIDType," + P + "UUIDType)",
            P + "CompositeType(" + P + "Int32Type," + P + "Int32Type," + P + "Int32Type)",
            [],
            [],
        ),
    ]
    columns = [
        peers_column("data_center", P + "UTF8Type"),
        peers_column("host_id", P + "UUIDType"),
        peers_column("rack", P + "UTF8Type"),
        peers_column("release_version", P + "UTF8Type"),
        peers_column("rpc_address", P + "InetAddressType"),
        peers_column("schema_version", P + "UUIDType"),
        peers_column("tokens", P + "SetType(" + P + "UTF8Type)"),
    ]
    compile_metadata(1, keyspace, tables, columns, None, None, None)

    check_keyspace(
        keyspace,
        "V1Keyspace",
        {
            "Schema": (
                [("key", TypeKind.BLOB)],
                [],
                {"key": (PK, TypeKind.BLOB, ASC)},
            ),
            "hints": (
                [("target_id", TypeKind.UUID)],
                [("hint_id", TypeKind.TIMEUUID, ASC), ("message_version", TypeKind.INT, ASC)],
                {
                    "target_id": (PK, TypeKind.UUID, ASC),
                    "hint_id": (CK, TypeKind.TIMEUUID, ASC),
                    "message_version": (CK, TypeKind.INT, ASC),
                    "mutation": (REG, TypeKind.BLOB, ASC),
                },
            ),
            "peers": (
                [("peer", TypeKind.INET)],
                [],
                {
                    "peer": (PK, TypeKind.INET, ASC),
                    "data_center": (REG, TypeKind.VARCHAR, ASC),
                    "host_id": (REG, TypeKind.UUID, ASC),
                    "rack": (REG, TypeKind.VARCHAR, ASC),
                    "release_version": (REG, TypeKind.VARCHAR, ASC),
                    "rpc_address": (REG, TypeKind.INET, ASC),
                    "schema_version": (REG, TypeKind.UUID, ASC),
                    "tokens": (REG, TypeKind.SET, ASC),
                },
            ),
            "IndexInfo": (
                [("table_name", TypeKind.VARCHAR)],
                [("index_name", TypeKind.VARCHAR, DESC)],
                {
                    "table_name": (PK, TypeKind.VARCHAR, ASC),
                    "index_name": (CK, TypeKind.VARCHAR, DESC),
                    "value": (REG, TypeKind.BLOB, ASC),
                },
            ),
            "wiki_page": (
                [("title", TypeKind.VARCHAR)],
                [("revid", TypeKind.TIMEUUID, ASC)],
                {
                    "title": (PK, TypeKind.VARCHAR, ASC),
                    "revid": (CK, TypeKind.TIMEUUID, ASC),
                },
            ),
            "no_names": (
                [("key", TypeKind.UUID), ("key2", TypeKind.UUID)],
                [
                    ("column", TypeKind.INT, ASC),
                    ("column2", TypeKind.INT, ASC),
                    ("column3", TypeKind.INT, ASC),
                ],
                {
                    "key": (PK, TypeKind.UUID, ASC),
                    "key2": (PK, TypeKind.UUID, ASC),
                    "column": (CK, TypeKind.INT, ASC),
                    "column2": (CK, TypeKind.INT, ASC),
                    "column3": (CK, TypeKind.INT, ASC),
                    "value": (REG, TypeKind.BLOB, ASC),
                },
            ),
        },
    )
    peers = keyspace.tables["peers"]
    assert peers.columns["tokens"].type.elem.kind is TypeKind.VARCHAR


def v2_column(table, name, kind, index, validator):
    return ColumnMetadata(
        keyspace="V2Keyspace",
        table=table,
        name=name,
        kind=kind,
        component_index=index,
        validator=validator,
    )


def test_compile_metadata_v2():
    keyspace = KeyspaceMetadata(name="V2Keyspace")
    tables = [
        TableMetadata(keyspace="V2Keyspace", name="Table1"),
        TableMetadata(keyspace="V2Keyspace", name="Table2"),
    ]
    columns = [
        v2_column("Table1", "KEY1", PK, 0, P + "UTF8Type"),
        v2_column("Table1", "Key1", PK, 0, P + "UTF8Type"),
        v2_column("Table2", "Column1", PK, 0, P + "UTF8Type"),
        v2_column("Table2", "Column2", CK, 0, P + "UTF8Type"),
        v2_column("Table2", "Column3", CK, 1, P + "ReversedType(" + P + "UTF8Type)"),
        v2_column("Table2", "Column4", REG, 0, P + "UTF8Type"),
    ]
    compile_metadata(2, keyspace, tables, columns, None, None, None)

    check_keyspace(
        keyspace,
        "V2Keyspace",
        {
            "Table1": (
                [("Key1", TypeKind.VARCHAR)],
                [],
                {
                    "KEY1": (PK, TypeKind.VARCHAR, ASC),
                    "Key1": (PK, TypeKind.VARCHAR, ASC),
                },
            ),
            "Table2": (
                [("Column1", TypeKind.VARCHAR)],
                [("Column2", TypeKind.VARCHAR, ASC), ("Column3", TypeKind.VARCHAR, DESC)],
                {
                    "Column1": (PK, TypeKind.VARCHAR, ASC),
                    "Column2": (CK, TypeKind.VARCHAR, ASC),
                    "Column3": (CK, TypeKind.VARCHAR, DESC),
                    "Column4": (REG, TypeKind.VARCHAR, ASC),
                },
            ),
        },
    )
    assert keyspace.tables["Table2"].ordered_columns == ["Column1", "Column2", "Column3", "Column4"]


def test_compile_metadata_system_schema_columns_use_cql_types():
    keyspace = KeyspaceMetadata(name="ks")
    tables = [TableMetadata(keyspace="ks", name="events")]
    columns = [
        ColumnMetadata(keyspace="ks", table="events", name="id", kind=PK,
                       clustering_order="none", validator="uuid"),
        ColumnMetadata(keyspace="ks", table="events", name="at", kind=CK,
                       clustering_order="desc", validator="timestamp"),
        ColumnMetadata(keyspace="ks", table="events", name="tags", kind=REG,
                       clustering_order="none", validator="set<text>"),
    ]
    compile_metadata(4, keyspace, tables, columns, [], [], [])
    table = keyspace.tables["events"]
    assert [c.name for c in table.partition_key] == ["id"]
    assert table.partition_key[0].type.kind is TypeKind.UUID
    assert [(c.name, c.order) for c in table.clustering_columns] == [("at", DESC)]
    assert table.columns["tags"].type.kind is TypeKind.SET
    assert table.columns["id"].order is ASC


def test_compile_metadata_skips_columns_of_unknown_tables():
    keyspace = KeyspaceMetadata(name="ks")
    tables = [TableMetadata(keyspace="ks", name="t")]
    columns = [
        ColumnMetadata(keyspace="ks", table="t", name="a", kind=PK, validator=P + "Int32Type"),
        ColumnMetadata(keyspace="ks", table="gone", name="b", kind=PK, validator=P + "Int32Type"),
    ]
    compile_metadata(3, keyspace, tables, columns, None, None, None)
    assert list(keyspace.tables["t"].columns) == ["a"]
    assert list(keyspace.tables) == ["t"]


def test_compile_metadata_v1_uses_value_alias():
    keyspace = KeyspaceMetadata(name="ks")
    table = TableMetadata(
        keyspace="ks",
        name="t",
        key_validator=P + "UTF8Type",
        comparator=P + "Int32Type",
        default_validator=P + "LongType",
        column_aliases=["c"],
        value_alias="payload",
    )
    compile_metadata(1, keyspace, [table], [], None, None, None)
    assert table.columns["payload"].kind == REG
    assert table.columns["payload"].type.kind is TypeKind.BIGINT
    assert table.columns["c"].type.kind is TypeKind.INT


def test_compile_metadata_links_functions_aggregates_and_views():
    keyspace = KeyspaceMetadata(name="ks")
    state = FunctionMetadata(keyspace="ks", name="acc")
    final = FunctionMetadata(keyspace="ks", name="done")
    aggregate = AggregateMetadata(
        keyspace="ks", name="total", state_func_name="acc", final_func_name="done"
    )
    view = ViewMetadata(keyspace="ks", name="address", field_names=["street"])
    compile_metadata(4, keyspace, [], [], [state, final], [aggregate], [view])
    assert keyspace.functions == {"acc": state, "done": final}
    assert keyspace.aggregates["total"].state_func is state
    assert keyspace.aggregates["total"].final_func is final
    assert keyspace.views["address"].field_names == ["street"]


@pytest.mark.parametrize(
    "text, kind",
    [
        ("partition_key", ColumnKind.PARTITION_KEY),
        ("clustering_key", ColumnKind.CLUSTERING_KEY),
        ("clustering", ColumnKind.CLUSTERING_KEY),
        ("regular", ColumnKind.REGULAR),
        ("compact_value", ColumnKind.COMPACT),
        ("static", ColumnKind.STATIC),
    ],
)
def test_column_kind_from_schema(text, kind):
    assert column_kind_from_schema(text) is kind


def test_column_kind_from_schema_rejects_unknown():
    with pytest.raises(ValueError):
        column_kind_from_schema("bogus")


def test_column_kind_names():
    assert str(column_kind_from_schema("partition_key")) == "partition_key"
    assert str(column_kind_from_schema("compact_value")) == "compact"
    assert str(column_kind_from_schema("clustering")) == "clustering_key"
    assert str(ColumnKind(0)) == "unknown_column_0"