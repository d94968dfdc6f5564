"""Type parsing, schema metadata, ring tracking, host selection, retry policies and a prepared-statement cache for a Cassandra client."""

__version__ = "0.1.0"