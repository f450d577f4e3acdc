# ==============================================================================
# PostgreSQL Queue Store
# ==============================================================================
"""
PostgreSQL implementation of the QueueStore interface.

Records live in a single table ordered by a BIGSERIAL sequence. Sequences
come from the table's own sequence object, so they keep increasing after
clear(). The capacity check and the insert share one transaction holding a
SHARE ROW EXCLUSIVE lock, which makes concurrent enqueues from several
processes respect the bound.
"""

import logging
import threading
from collections.abc import Iterable
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import Json

from eventrelay.base.queue_store import QueueStore
from eventrelay.core.models import QueueRecord, TrackedEvent
from eventrelay.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10  # seconds


def _with_connect_timeout(dsn: str) -> str:
    if "connect_timeout" in dsn:
        return dsn
    joiner = "&" if "?" in dsn else "?"
    return f"{dsn}{joiner}connect_timeout={CONNECT_TIMEOUT}"


class PostgreSQLQueueStore(QueueStore):
    """
    PostgreSQL implementation of QueueStore.

    Table layout ({schema}.event_queue):
        sequence    BIGSERIAL PRIMARY KEY
        visitor_id  TEXT
        session_id  TEXT
        event_time  TIMESTAMPTZ
        kind        TEXT
        payload     JSONB      -- full TrackedEvent
    """

    def __init__(
        self,
        settings: Settings | None = None,
        max_queued_events: int = 500,
        connection=None,
    ):
        """
        Initialize the queue store.

        Args:
            settings: Application settings. If None, uses get_settings().
            max_queued_events: Capacity bound
            connection: Existing psycopg2 connection (skips connect())
        """
        super().__init__(max_queued_events)
        self._settings = settings or get_settings()
        self._schema = self._settings.postgres.schema_name
        self._table = f"{self._schema}.event_queue"
        self._conn = connection
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Open the connection (with a connect timeout)."""
        conn_string = _with_connect_timeout(self._settings.postgres.connection_string)
        self._conn = psycopg2.connect(conn_string)
        logger.info("PostgreSQLQueueStore connected (schema=%s)", self._schema)

    def ensure_schema(self) -> None:
        """Create the schema and queue table if they do not exist."""
        with self._transaction() as cur:
            cur.execute(f"CREATE SCHEMA IF NOT EXISTS {self._schema}")
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    sequence    BIGSERIAL PRIMARY KEY,
                    visitor_id  TEXT NOT NULL,
                    session_id  TEXT NOT NULL,
                    event_time  TIMESTAMPTZ NOT NULL,
                    kind        TEXT NOT NULL,
                    payload     JSONB NOT NULL
                )
                """
            )

    def _connection(self):
        if self._conn is None:
            raise RuntimeError("PostgreSQL connection not established. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self):
        """
        Cursor for one transaction: committed when the block finishes,
        rolled back when it raises a database error.
        """
        conn = self._connection()
        with self._lock:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except psycopg2.Error:
                self._rollback(conn)
                raise

    def _rollback(self, conn) -> None:
        # An aborted transaction rejects every later statement until rolled back
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning("Rollback failed (%s), reconnecting", e)
            self._reconnect()

    def _reconnect(self) -> None:
        try:
            self._conn.close()
        except psycopg2.Error:
            logger.debug("Ignoring error while closing broken connection")
        try:
            self.connect()
        except psycopg2.Error as e:
            # Keep the closed connection; the next call fails and tries again
            logger.error("PostgreSQL reconnect failed: %s", e)

    # ==========================================================================
    # QueueStore Interface Implementation
    # ==========================================================================

    def enqueue(self, event: TrackedEvent) -> bool:
        conn = self._connection()
        with self._lock:
            try:
                with conn.cursor() as cur:
                    cur.execute(f"LOCK TABLE {self._table} IN SHARE ROW EXCLUSIVE MODE")
                    cur.execute(f"SELECT count(*) FROM {self._table}")
                    (current,) = cur.fetchone()
                    if current >= self.max_queued_events:
                        conn.rollback()
                        logger.warning(
                            "Queue full (%d events), dropping %s event",
                            self.max_queued_events,
                            event.kind.value,
                        )
                        return False

                    cur.execute(
                        f"""
                        INSERT INTO {self._table}
                            (visitor_id, session_id, event_time, kind, payload)
                        VALUES (%s, %s, %s, %s, %s)
                        RETURNING sequence
                        """,
                        (
                            event.visitor_id,
                            event.session_id,
                            event.timestamp,
                            event.kind.value,
                            Json(event.to_store_record()),
                        ),
                    )
                conn.commit()
            except psycopg2.Error:
                self._rollback(conn)
                raise
        return True

    def peek_batch(self, limit: int) -> list[QueueRecord]:
        if limit <= 0:
            return []

        with self._transaction() as cur:
            cur.execute(
                f"SELECT sequence, payload FROM {self._table} ORDER BY sequence LIMIT %s",
                (limit,),
            )
            rows = cur.fetchall()

        return [
            QueueRecord(sequence=sequence, event=TrackedEvent.from_store_record(payload))
            for sequence, payload in rows
        ]

    def remove_batch(self, sequences: Iterable[int]) -> int:
        ids = [int(s) for s in sequences]
        if not ids:
            return 0

        with self._transaction() as cur:
            cur.execute(f"DELETE FROM {self._table} WHERE sequence = ANY(%s)", (ids,))
            removed = cur.rowcount
        logger.debug("Removed %d delivered events", removed)
        return removed

    def clear(self) -> int:
        with self._transaction() as cur:
            cur.execute(f"DELETE FROM {self._table}")
            removed = cur.rowcount
        logger.info("Deleted %d queued events", removed)
        return removed

    def count(self) -> int:
        with self._transaction() as cur:
            cur.execute(f"SELECT count(*) FROM {self._table}")
            (current,) = cur.fetchone()
        return current

    def close(self) -> None:
        if self._conn:
            try:
                self._conn.close()
                logger.info("PostgreSQLQueueStore connection closed")
            except psycopg2.Error as e:
                logger.warning("Error closing connection: %s", e)
            finally:
                self._conn = None

