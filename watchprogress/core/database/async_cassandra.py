"""Cassandra session for the progress store (cassandra-asyncio-driver).

The cluster connects synchronously once per process; queries then go
through ``session.aexecute``. ``init_async_cassandra`` also creates the
keyspace and the two progress tables so a fresh cluster is usable.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import NoHostAvailable
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from watchprogress.config.settings import Settings, get_settings
from watchprogress.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)


def keyspace_replication(settings: Settings) -> str:
    """Replication map for ``CREATE KEYSPACE``.

    Production spreads replicas over the configured datacenter; everything
    else runs on a single local node.
    """
    if settings.is_production:
        return (
            "{'class': 'NetworkTopologyStrategy', "
            f"'{settings.cassandra_datacenter}': "
            f"{settings.cassandra_replication_factor}}}"
        )
    return "{'class': 'SimpleStrategy', 'replication_factor': 1}"


def build_cluster(settings: Settings) -> Cluster:
    """Cluster configured from settings (not yet connected)."""
    auth_provider = None
    if settings.cassandra_username and settings.cassandra_password:
        auth_provider = PlainTextAuthProvider(
            username=settings.cassandra_username,
            password=settings.cassandra_password,
        )

    return Cluster(
        contact_points=settings.cassandra_hosts,
        port=settings.cassandra_port,
        auth_provider=auth_provider,
        protocol_version=settings.cassandra_protocol_version,
        load_balancing_policy=TokenAwarePolicy(
            DCAwareRoundRobinPolicy(local_dc=settings.cassandra_datacenter)
        ),
        connect_timeout=settings.cassandra_connect_timeout,
    )


class AsyncCassandraConnection:
    """Process-wide cluster/session pair owned by the application lifespan."""

    _cluster: Cluster | None = None
    _session = None  # cassandra_asyncio Session

    @classmethod
    def connect(cls, settings: Settings | None = None):
        """Connect once and return the shared session.

        Raises:
            ConnectionError: If no contact point answers
        """
        if cls._session is not None:
            return cls._session

        settings = settings or get_settings()
        cls._cluster = build_cluster(settings)

        try:
            cls._session = cls._cluster.connect()
        except NoHostAvailable as e:
            logger.error(
                "async_cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "async_cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Shut down session and cluster; safe to call when not connected."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("async_cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


async def init_progress_schema(session, settings: Settings) -> None:
    """Create the keyspace and progress tables if they don't exist."""
    keyspace = settings.cassandra_keyspace
    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {keyspace_replication(settings)} "
        "AND durable_writes = true"
    )
    for cql_template in PROGRESS_TABLES_CQL:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info(
        "progress_schema_ready",
        keyspace=keyspace,
        tables=len(PROGRESS_TABLES_CQL),
    )


async def init_async_cassandra(settings: Settings | None = None):
    """Connect and make sure the progress schema exists.

    Returns:
        Session bound to the progress keyspace, with aexecute() support
    """
    settings = settings or get_settings()

    session = AsyncCassandraConnection.connect(settings)
    await init_progress_schema(session, settings)
    session.set_keyspace(settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
