"""Cassandra connection for the progress store."""

from watchprogress.core.database.async_cassandra import (
    AsyncCassandraConnection,
    init_async_cassandra,
    init_progress_schema,
    keyspace_replication,
    shutdown_async_cassandra,
)


__all__ = [
    "AsyncCassandraConnection",
    "init_async_cassandra",
    "init_progress_schema",
    "keyspace_replication",
    "shutdown_async_cassandra",
]
