# cassdriver

Client-side building blocks for working with a Cassandra cluster: parsing
type definitions, compiling schema metadata, tracking the hosts of the ring,
choosing hosts for a query, and deciding when and how to retry.

## Modules

- **`cassdriver.types`**: `parse_type` reads marshal class definitions such
  as `org.apache.cassandra.db.marshal.CompositeType(...)` into a
  `TypeParserResult`: whether the definition is composite, its component
  types (`NativeType` or `CollectionType`), which components are reversed,
  and the collections it declares. Definitions that cannot be parsed become a
  `TypeKind.CUSTOM` type holding the whole text. `cql_type` reads CQL type
  names such as `map<text, int>` or `frozen<list<uuid>>`, `type_info` accepts
  either form, and `kind_for_class` maps a marshal class name to a `TypeKind`.
- **`cassdriver.metadata`**: dataclasses `KeyspaceMetadata`,
  `TableMetadata`, `ColumnMetadata`, `ColumnIndexMetadata`,
  `FunctionMetadata`, `AggregateMetadata` and `ViewMetadata`, the enums
  `ColumnKind` and `ColumnOrder`, `column_kind_from_schema`, and
  `compile_metadata`, which links tables, columns, functions, aggregates and
  views into a keyspace and derives each table's partition key and clustering
  columns (from validators and aliases for protocol version 1, from column
  kinds for later versions).
- **`cassdriver.schema`**: `SchemaDescriber` reads a keyspace's schema
  through a `SchemaSource` and caches the compiled `KeyspaceMetadata`
  (`get_schema`, `refresh_schema`, `clear_schema`). The source chooses between
  the `system_schema` tables and the older `system` tables. The row helpers
  (`keyspace_from_system_schema`, `keyspace_from_legacy`, `table_from_row`,
  `column_from_row`, `function_from_row`, `aggregate_from_row`,
  `view_from_row`) can also be used on their own. Bad schema data raises
  `SchemaError`; an unknown keyspace raises `KeyspaceDoesNotExistError`.
- **`cassdriver.ring`**: `HostInfo` (hosts compare equal by connect address),
  `HostState`, `Ring` (the known hosts, with round-robin `rr_host`,
  `add_host`, `add_host_if_missing`, `add_or_update`, `remove_host`) and
  `ClusterMetadata`.
- **`cassdriver.host_policies`**: `RoundRobinHostPolicy` and
  `DCAwareRoundRobinPolicy`. Their `pick(query)` returns an iterator of
  `SelectedHost` values. `CowHostList` is the copy-on-write host list they are
  built on.
- **`cassdriver.retry`**: `SimpleRetryPolicy`,
  `ExponentialBackoffRetryPolicy`, `DowngradingConsistencyRetryPolicy`,
  `RetryType`, the request errors `RequestUnavailableError`,
  `WriteTimeoutError` and `ReadTimeoutError`, `SimpleConvictionPolicy`,
  `ConstantReconnectionPolicy`, `ExponentialReconnectionPolicy`,
  `NonSpeculativeExecution`, `SimpleSpeculativeExecution` and
  `exponential_time`. Durations are in seconds.
- **`cassdriver.prepared_cache`**: `PreparedCache`, a thread-safe bounded
  least-recently-used cache, and `key_for(addr, keyspace, statement)`.

## Examples

```python
from cassdriver.types import parse_type, TypeKind

result = parse_type(
    "org.apache.cassandra.db.marshal.ReversedType("
    "org.apache.cassandra.db.marshal.UUIDType)"
)
assert result.types[0].kind is TypeKind.UUID
assert result.reversed == [True]
```

```python
from cassdriver.schema import SchemaDescriber, SchemaSource

def query(statement, keyspace):
    if "system_schema.keyspaces" in statement:
        return [{"durable_writes": True,
                 "replication": {"class": "SimpleStrategy", "replication_factor": "1"}}]
    if "system_schema.tables" in statement:
        return [{"table_name": "users"}]
    if "system_schema.columns" in statement:
        return [{"table_name": "users", "column_name": "id", "clustering_order": "none",
                 "type": "uuid", "kind": "partition_key", "position": 0}]
    return []

describer = SchemaDescriber(SchemaSource(query=query))
keyspace = describer.get_schema("shop")
assert keyspace.strategy_class == "SimpleStrategy"
assert keyspace.tables["users"].partition_key[0].name == "id"
```

```python
from cassdriver.ring import HostInfo
from cassdriver.host_policies import RoundRobinHostPolicy

policy = RoundRobinHostPolicy()
policy.add_host(HostInfo("10.0.0.1"))
policy.add_host(HostInfo("10.0.0.2"))
picked = [str(selected.info.connect_address) for selected in policy.pick(None)]
assert picked == ["10.0.0.1", "10.0.0.2"]
```

## What this package does not do

It opens no connections and speaks no wire protocol. It does not execute
queries or batches, and has no session, connection pool or token-aware
routing. Schema rows come from whatever `query` callable you give
`SchemaSource`; the policies here decide which host to try and whether to
retry, but running the attempt is left to your code.

## Tests

```
pip install -e .[test]
pytest
```