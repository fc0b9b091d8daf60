"""Progress persistence backends.

The service only depends on the ``ProgressStore`` protocol:
- ``CassandraProgressStore``: production store (cassandra-asyncio-driver)
- ``InMemoryProgressStore``: single-process store for development and tests
"""

import copy
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from .models import ProgressRecord
from .service import StorageUnavailableError


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class ProgressStore(Protocol):
    """Key-value storage of progress records keyed by (video_id, user_id)."""

    async def get(self, video_id: str, user_id: str) -> ProgressRecord | None:
        """Point lookup; None when nothing is stored."""
        ...

    async def upsert(
        self, record: ProgressRecord
    ) -> tuple[ProgressRecord | None, ProgressRecord]:
        """Replace the record for its key. Returns (previous, new)."""
        ...

    async def delete(self, video_id: str, user_id: str) -> None:
        """Remove the record; missing records are not an error."""
        ...

    async def list_for_user(self, user_id: str) -> list[ProgressRecord]:
        """All records of one user, in no particular order."""
        ...


# ==============================================================================
# In-memory Store
# ==============================================================================


class InMemoryProgressStore:
    """Dict-backed store. Records are copied in and out."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ProgressRecord] = {}

    async def get(self, video_id: str, user_id: str) -> ProgressRecord | None:
        record = self._records.get((video_id, user_id))
        return copy.deepcopy(record) if record else None

    async def upsert(
        self, record: ProgressRecord
    ) -> tuple[ProgressRecord | None, ProgressRecord]:
        key = (record.video_id, record.user_id)
        previous = self._records.get(key)
        self._records[key] = copy.deepcopy(record)
        return previous, copy.deepcopy(record)

    async def delete(self, video_id: str, user_id: str) -> None:
        self._records.pop((video_id, user_id), None)

    async def list_for_user(self, user_id: str) -> list[ProgressRecord]:
        return [
            copy.deepcopy(record)
            for (_, uid), record in self._records.items()
            if uid == user_id
        ]

    def __len__(self) -> int:
        return len(self._records)


# ==============================================================================
# Cassandra Store
# ==============================================================================


class CassandraProgressStore:
    """Cassandra-backed store with a per-user lookup table (dual-write)."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.video_progress
            WHERE video_id = ? AND user_id = ?
        """)

        self._upsert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.video_progress
            (video_id, user_id, checkpoints, quizzes, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._delete_progress = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.video_progress
            WHERE video_id = ? AND user_id = ?
        """)

        # Progress by user (lookup)
        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.video_progress_by_user
            WHERE user_id = ?
        """)

        self._upsert_progress_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.video_progress_by_user
            (user_id, video_id, checkpoints, quizzes, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._delete_progress_by_user = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.video_progress_by_user
            WHERE user_id = ? AND video_id = ?
        """)

    async def _execute(self, statement: Any, params: list[Any]) -> Any:
        try:
            return await self.session.aexecute(statement, params)
        except (DriverException, NoHostAvailable) as e:
            logger.error(
                "progress_storage_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageUnavailableError from e

    async def get(self, video_id: str, user_id: str) -> ProgressRecord | None:
        result = await self._execute(self._get_progress, [video_id, user_id])
        row = result.one()
        return ProgressRecord.from_row(row) if row else None

    async def upsert(
        self, record: ProgressRecord
    ) -> tuple[ProgressRecord | None, ProgressRecord]:
        previous = await self.get(record.video_id, record.user_id)

        # Dual write: main table + lookup table
        await self._execute(
            self._upsert_progress,
            [
                record.video_id,
                record.user_id,
                record.checkpoints,
                record.quizzes,
                record.updated_at,
            ],
        )
        await self._execute(
            self._upsert_progress_by_user,
            [
                record.user_id,
                record.video_id,
                record.checkpoints,
                record.quizzes,
                record.updated_at,
            ],
        )
        return previous, record

    async def delete(self, video_id: str, user_id: str) -> None:
        await self._execute(self._delete_progress, [video_id, user_id])
        await self._execute(self._delete_progress_by_user, [user_id, video_id])

    async def list_for_user(self, user_id: str) -> list[ProgressRecord]:
        rows = await self._execute(self._get_user_progress, [user_id])
        return [ProgressRecord.from_row(row) for row in rows]
