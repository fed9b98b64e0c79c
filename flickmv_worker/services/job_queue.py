"""
Durable job queue consumer.

Works directly on pg-boss tables in Postgres. Claiming uses
``FOR UPDATE SKIP LOCKED`` so concurrent workers never receive the same job;
retry/backoff after ``fail`` is driven by the job row's own retry columns.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import QueueError

logger = logging.getLogger(__name__)

_SCHEMA_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class QueueJob:
    id: str
    name: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def export_job_id(self) -> str | None:
        value = self.data.get("exportJobId") if isinstance(self.data, dict) else None
        return str(value) if value else None


def to_async_database_url(database_url: str) -> str:
    """Convert a plain Postgres connection string to the asyncpg dialect."""
    for prefix in ("postgresql+asyncpg://", "postgresql+psycopg2://", "postgresql://", "postgres://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


class JobQueue:
    """Consumer side of a pg-boss queue: claim, complete, fail."""

    def __init__(
        self,
        database_url: str | None = None,
        schema: str | None = None,
        engine: AsyncEngine | None = None,
    ):
        settings = get_settings()
        self.schema = schema or settings.pgboss_schema
        if not _SCHEMA_NAME.match(self.schema):
            raise QueueError(f"Invalid queue schema name: {self.schema!r}")

        self.engine = engine or create_async_engine(
            to_async_database_url(database_url or settings.database_url),
            echo=settings.database_echo,
            pool_size=1,  # one job per process
            max_overflow=0,
            pool_pre_ping=True,
        )

    async def close(self) -> None:
        await self.engine.dispose()

    async def claim(self, queue_name: str) -> QueueJob | None:
        """Atomically move the next due job to ``active`` and return it."""
        sql = text(f"""
            WITH next AS (
                SELECT id
                FROM {self.schema}.job
                WHERE name = :name
                  AND state < 'active'
                  AND start_after < now()
                ORDER BY priority DESC, created_on, id
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            )
            UPDATE {self.schema}.job j SET
                state = 'active',
                started_on = now(),
                retry_count = CASE WHEN j.started_on IS NOT NULL
                                   THEN j.retry_count + 1
                                   ELSE j.retry_count END
            FROM next
            WHERE j.name = :name AND j.id = next.id
            RETURNING j.id, j.name, j.data
        """)
        try:
            async with self.engine.begin() as conn:
                row = (await conn.execute(sql, {"name": queue_name})).first()
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to claim job from '{queue_name}': {e}") from e

        if row is None:
            return None

        data = row.data
        if isinstance(data, str):
            data = json.loads(data)
        job = QueueJob(id=str(row.id), name=row.name, data=data or {})
        logger.info(f"[QUEUE] Claimed job {job.id} from '{queue_name}'")
        return job

    async def complete(self, job: QueueJob, output: dict[str, Any] | None = None) -> None:
        sql = text(f"""
            UPDATE {self.schema}.job SET
                state = 'completed',
                completed_on = now(),
                output = CAST(:output AS jsonb)
            WHERE name = :name
              AND id = CAST(:id AS uuid)
              AND state = 'active'
        """)
        await self._execute(sql, job, output, action="complete")
        logger.info(f"[QUEUE] Job {job.id} completed")

    async def fail(self, job: QueueJob, reason: str) -> None:
        """Fail the job; the row's retry policy decides between retry and failed."""
        sql = text(f"""
            UPDATE {self.schema}.job SET
                state = CASE WHEN retry_count < retry_limit
                             THEN 'retry'::{self.schema}.job_state
                             ELSE 'failed'::{self.schema}.job_state END,
                completed_on = CASE WHEN retry_count < retry_limit
                                    THEN NULL ELSE now() END,
                start_after = CASE WHEN retry_count < retry_limit
                                   THEN now() + retry_delay * interval '1 second'
                                   ELSE start_after END,
                output = CAST(:output AS jsonb)
            WHERE name = :name
              AND id = CAST(:id AS uuid)
              AND state < 'completed'
        """)
        await self._execute(sql, job, {"message": reason}, action="fail")
        logger.info(f"[QUEUE] Job {job.id} failed: {reason}")

    async def _execute(self, sql, job: QueueJob, output: dict[str, Any] | None, action: str) -> None:
        params = {
            "id": job.id,
            "name": job.name,
            "output": json.dumps(output) if output is not None else None,
        }
        try:
            async with self.engine.begin() as conn:
                await conn.execute(sql, params)
        except SQLAlchemyError as e:
            raise QueueError(f"Failed to {action} job {job.id}: {e}") from e
