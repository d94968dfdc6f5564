"""Cassandra type descriptions and the parser for marshal class definitions."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

APACHE_PREFIX = "org.apache.cassandra.db.marshal."
REVERSED_TYPE = APACHE_PREFIX + "ReversedType"
COMPOSITE_TYPE = APACHE_PREFIX + "CompositeType"
COLLECTION_TYPE = APACHE_PREFIX + "ColumnToCollectionType"
LIST_TYPE = APACHE_PREFIX + "ListType"
SET_TYPE = APACHE_PREFIX + "SetType"
MAP_TYPE = APACHE_PREFIX + "MapType"


class TypeKind(enum.IntEnum):
    """Type codes of the CQL native protocol."""

    CUSTOM = 0x00
    ASCII = 0x01
    BIGINT = 0x02
    BLOB = 0x03
    BOOLEAN = 0x04
    COUNTER = 0x05
    DECIMAL = 0x06
    DOUBLE = 0x07
    FLOAT = 0x08
    INT = 0x09
    TEXT = 0x0A
    TIMESTAMP = 0x0B
    UUID = 0x0C
    VARCHAR = 0x0D
    VARINT = 0x0E
    TIMEUUID = 0x0F
    INET = 0x10
    DATE = 0x11
    TIME = 0x12
    SMALLINT = 0x13
    TINYINT = 0x14
    DURATION = 0x15
    LIST = 0x20
    MAP = 0x21
    SET = 0x22
    UDT = 0x30
    TUPLE = 0x31

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class NativeType:
    """A simple or custom type; ``custom`` holds the definition of custom types."""

    kind: TypeKind
    custom: str = ""

    def __str__(self) -> str:
        if self.kind is TypeKind.CUSTOM:
            return self.custom
        return str(self.kind)


@dataclass(frozen=True)
class CollectionType(NativeType):
    """A list, set, map or tuple type with its component types."""

    key: NativeType | None = None
    elem: NativeType | None = None
    elems: tuple[NativeType, ...] = ()

    def __str__(self) -> str:
        if self.kind is TypeKind.MAP:
            return f"map<{self.key}, {self.elem}>"
        if self.kind is TypeKind.TUPLE:
            return "tuple<" + ", ".join(str(e) for e in self.elems) + ">"
        return f"{self.kind}<{self.elem}>"


@dataclass
class TypeParserResult:
    """The outcome of parsing a validator or comparator definition."""

    is_composite: bool
    types: list[NativeType]
    reversed: list[bool]
    collections: dict[str, NativeType] | None = None


_CLASS_KINDS = {
    "AsciiType": TypeKind.ASCII,
    "LongType": TypeKind.BIGINT,
    "BytesType": TypeKind.BLOB,
    "BooleanType": TypeKind.BOOLEAN,
    "CounterColumnType": TypeKind.COUNTER,
    "DecimalType": TypeKind.DECIMAL,
    "DoubleType": TypeKind.DOUBLE,
    "FloatType": TypeKind.FLOAT,
    "Int32Type": TypeKind.INT,
    "ShortType": TypeKind.SMALLINT,
    "ByteType": TypeKind.TINYINT,
    "TimeType": TypeKind.TIME,
    "DateType": TypeKind.TIMESTAMP,
    "TimestampType": TypeKind.TIMESTAMP,
    "UUIDType": TypeKind.UUID,
    "LexicalUUIDType": TypeKind.UUID,
    "UTF8Type": TypeKind.VARCHAR,
    "IntegerType": TypeKind.VARINT,
    "TimeUUIDType": TypeKind.TIMEUUID,
    "InetAddressType": TypeKind.INET,
    "MapType": TypeKind.MAP,
    "ListType": TypeKind.LIST,
    "SetType": TypeKind.SET,
    "TupleType": TypeKind.TUPLE,
    "DurationType": TypeKind.DURATION,
    "SimpleDateType": TypeKind.DATE,
}

_CQL_KINDS = {
    "ascii": TypeKind.ASCII,
    "bigint": TypeKind.BIGINT,
    "blob": TypeKind.BLOB,
    "boolean": TypeKind.BOOLEAN,
    "counter": TypeKind.COUNTER,
    "decimal": TypeKind.DECIMAL,
    "double": TypeKind.DOUBLE,
    "float": TypeKind.FLOAT,
    "int": TypeKind.INT,
    "smallint": TypeKind.SMALLINT,
    "tinyint": TypeKind.TINYINT,
    "time": TypeKind.TIME,
    "timestamp": TypeKind.TIMESTAMP,
    "uuid": TypeKind.UUID,
    "varchar": TypeKind.VARCHAR,
    "text": TypeKind.TEXT,
    "varint": TypeKind.VARINT,
    "timeuuid": TypeKind.TIMEUUID,
    "inet": TypeKind.INET,
    "date": TypeKind.DATE,
    "duration": TypeKind.DURATION,
}


def kind_for_class(name: str) -> TypeKind:
    """Return the type code for a marshal class name, CUSTOM if unknown."""
    short = name[len(APACHE_PREFIX):] if name.startswith(APACHE_PREFIX) else name
    return _CLASS_KINDS.get(short, TypeKind.CUSTOM)


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append("".join(current).strip())
    return parts


def _inner(name: str, prefix: str) -> str | None:
    if name.startswith(prefix) and name.endswith(">"):
        return name[len(prefix):-1]
    return None


def cql_type(name: str) -> NativeType:
    """Return the type described by a CQL type name such as ``map<text, int>``."""
    name = name.strip()
    inner = _inner(name, "frozen<")
    if inner is not None:
        return cql_type(inner)
    for prefix, kind in (("set<", TypeKind.SET), ("list<", TypeKind.LIST)):
        inner = _inner(name, prefix)
        if inner is not None:
            return CollectionType(kind, elem=cql_type(inner))
    inner = _inner(name, "map<")
    if inner is not None:
        parts = _split_top_level(inner)
        if len(parts) == 2:
            return CollectionType(TypeKind.MAP, key=cql_type(parts[0]), elem=cql_type(parts[1]))
        return NativeType(TypeKind.CUSTOM, name)
    inner = _inner(name, "tuple<")
    if inner is not None:
        return CollectionType(
            TypeKind.TUPLE, elems=tuple(cql_type(part) for part in _split_top_level(inner))
        )
    kind = _CQL_KINDS.get(name)
    if kind is None:
        return NativeType(TypeKind.CUSTOM, name)
    return NativeType(kind)


def type_info(name: str) -> NativeType:
    """Return the type for either a marshal class definition or a CQL type name."""
    if name.startswith(APACHE_PREFIX):
        return parse_type(name).types[0]
    return cql_type(name)


class _ParseError(Exception):
    pass


@dataclass
class _ParamNode:
    name: str | None
    node: _ClassNode


@dataclass
class _ClassNode:
    name: str
    params: list[_ParamNode]
    source: str

    def as_type_info(self) -> NativeType:
        if self.name.startswith(LIST_TYPE) and self.params:
            return CollectionType(TypeKind.LIST, elem=self.params[0].node.as_type_info())
        if self.name.startswith(SET_TYPE) and self.params:
            return CollectionType(TypeKind.SET, elem=self.params[0].node.as_type_info())
        if self.name.startswith(MAP_TYPE) and len(self.params) >= 2:
            return CollectionType(
                TypeKind.MAP,
                key=self.params[0].node.as_type_info(),
                elem=self.params[1].node.as_type_info(),
            )
        kind = kind_for_class(self.name)
        if kind is TypeKind.CUSTOM:
            return NativeType(kind, self.source)
        return NativeType(kind)


_IDENTIFIER = re.compile(r"[0-9A-Za-z\-+._&]+")
_WHITESPACE = " \n\t"


class _TypeParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.index = 0

    def _skip_whitespace(self) -> None:
        while self.index < len(self.text) and self.text[self.index] in _WHITESPACE:
            self.index += 1

    def _peek(self) -> str:
        if self.index >= len(self.text):
            raise _ParseError("unexpected end of definition")
        return self.text[self.index]

    def _identifier(self) -> str:
        match = _IDENTIFIER.match(self.text, self.index)
        if match is None:
            raise _ParseError(f"expected identifier at {self.index}")
        self.index = match.end()
        return match.group()

    def parse_class(self) -> _ClassNode:
        self._skip_whitespace()
        start = self.index
        name = self._identifier()
        params = self._params()
        return _ClassNode(name, params, self.text[start:self.index])

    def _params(self) -> list[_ParamNode]:
        self._skip_whitespace()
        if self.index == len(self.text) or self.text[self.index] != "(":
            return []
        self.index += 1
        self._skip_whitespace()
        params: list[_ParamNode] = []
        while self._peek() != ")":
            backup = self.index
            name: str | None = self._identifier()
            self._skip_whitespace()
            if self._peek() == ":":
                self.index += 1
                self._skip_whitespace()
            else:
                name = None
                self.index = backup
            node = self.parse_class()
            params.append(_ParamNode(name, node))
            self._skip_whitespace()
            if self._peek() == ",":
                self.index += 1
                self._skip_whitespace()
        self.index += 1
        return params


def _decode_collection_name(name: str | None, definition: str) -> str:
    if name is None:
        return ""
    try:
        return bytes.fromhex(name).decode("utf-8", "replace")
    except ValueError as exc:
        logger.warning(
            "Error parsing type '%s', contains collection name '%s' with an invalid format: %s",
            definition,
            name,
            exc,
        )
        return name


def _unwrap_reversed(node: _ClassNode) -> tuple[_ClassNode, bool]:
    if node.name.startswith(REVERSED_TYPE):
        return (node.params[0].node if node.params else node), True
    return node, False


def parse_type(definition: str) -> TypeParserResult:
    """Parse a validator or comparator definition; unparsable input is a custom type."""
    try:
        ast = _TypeParser(definition).parse_class()
    except _ParseError:
        return TypeParserResult(
            is_composite=False,
            types=[NativeType(TypeKind.CUSTOM, definition)],
            reversed=[False],
            collections=None,
        )

    if ast.name.startswith(COMPOSITE_TYPE):
        params = ast.params
        collections: dict[str, NativeType] = {}
        if params and params[-1].node.name.startswith(COLLECTION_TYPE):
            last = params[-1]
            params = params[:-1]
            for param in last.node.params:
                key = _decode_collection_name(param.name, definition)
                collections[key] = param.node.as_type_info()
        types: list[NativeType] = []
        reversed_flags: list[bool] = []
        for param in params:
            node, is_reversed = _unwrap_reversed(param.node)
            types.append(node.as_type_info())
            reversed_flags.append(is_reversed)
        return TypeParserResult(True, types, reversed_flags, collections)

    node, is_reversed = _unwrap_reversed(ast)
    return TypeParserResult(False, [node.as_type_info()], [is_reversed], None)