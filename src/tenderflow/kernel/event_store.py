"""
SQLite Event Store - append-only log with optimistic locking

The event store is the single shared mutable resource of the system. It
provides:
- Append-only semantics (events are never modified or deleted)
- Check-and-set writes via per-stream versions (UNIQUE(stream_id, version))
- Multi-stream batches committed in one transaction (award, submit, expiry)
- A global position sequence so projections can catch up incrementally

Fun fact: WAL mode lets readers keep reading while a single writer appends,
which is exactly the shape of a tender portal: many viewers, few writers.
"""

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator

from tenderflow.kernel.errors import StoreError, StreamVersionConflict
from tenderflow.kernel.events import Event
from tenderflow.kernel.logging import get_logger
from tenderflow.kernel.metrics import events_appended_total, stream_version_conflicts_total
from tenderflow.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

_EVENT_COLUMNS = """
    position, event_id, stream_id, stream_type, version,
    command_id, event_type, occurred_at, actor_id, payload_json
"""


@dataclass(frozen=True)
class StreamWrite:
    """Events for one stream, conditional on the stream being at expected_version"""

    stream_id: str
    expected_version: int
    events: list[Event] = field(default_factory=list)


class SQLiteEventStore:
    """
    SQLite-based event store

    Schema:
    - events table: append-only event log
    - position: global autoincrement order (catch-up reads)
    - UNIQUE(stream_id, version): storage-level guard against two writers
      applying a transition to the same entity state
    """

    def __init__(self, db_path: str | Path, busy_timeout: float = 5.0) -> None:
        """
        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds a writer waits for the database lock
        """
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    position INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL UNIQUE,
                    stream_id TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    command_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    actor_id TEXT,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_stream_type ON events(stream_type)"
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections

        Autocommit mode: transactions are opened explicitly with
        BEGIN IMMEDIATE so the version check and the insert share one lock.
        """
        conn = sqlite3.connect(
            str(self.db_path), timeout=self.busy_timeout, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def append(self, stream_id: str, expected_version: int, events: list[Event]) -> list[Event]:
        """Append events to a single stream (see append_batch)"""
        return self.append_batch([StreamWrite(stream_id, expected_version, events)])

    @retry_on_sqlite_lock()
    def append_batch(self, writes: list[StreamWrite]) -> list[Event]:
        """
        Append events to several streams atomically

        Either every write lands or none does. Each write is conditional on
        its stream still being at expected_version.

        Args:
            writes: One StreamWrite per touched stream

        Returns:
            The persisted events, with their global positions

        Raises:
            StreamVersionConflict: A stream moved since the caller read it
            StoreError: Any other database failure
        """
        writes = [w for w in writes if w.events]
        if not writes:
            return []

        persisted: list[Event] = []
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for write in writes:
                    current = self._get_stream_version(conn, write.stream_id)
                    if current != write.expected_version:
                        raise StreamVersionConflict(
                            write.stream_id, write.expected_version, current
                        )
                    for event in write.events:
                        cursor = conn.execute(
                            """
                            INSERT INTO events (
                                event_id, stream_id, stream_type, version,
                                command_id, event_type, occurred_at, actor_id, payload_json
                            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                            """,
                            (
                                event.event_id,
                                event.stream_id,
                                event.stream_type,
                                event.version,
                                event.command_id,
                                event.event_type,
                                event.occurred_at.isoformat(),
                                event.actor_id,
                                json.dumps(event.payload),
                            ),
                        )
                        persisted.append(event.model_copy(update={"position": cursor.lastrowid}))
                conn.execute("COMMIT")

            except StreamVersionConflict as e:
                conn.execute("ROLLBACK")
                stream_version_conflicts_total.labels(stream_type=_stream_type_of(writes, e.stream_id)).inc()
                logger.warning(
                    "Stream version conflict",
                    stream_id=e.stream_id,
                    expected_version=e.expected_version,
                    actual_version=e.actual_version,
                )
                raise

            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                raise StoreError(f"Failed to append events: {e}") from e

            except sqlite3.OperationalError:
                # lock contention is retried by the decorator
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

            except Exception as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise StoreError(f"Unexpected error appending events: {e}") from e

        for event in persisted:
            events_appended_total.labels(
                stream_type=event.stream_type, event_type=event.event_type
            ).inc()
        logger.debug(
            "Events appended",
            streams=[w.stream_id for w in writes],
            event_count=len(persisted),
        )
        return persisted

    def load_stream(self, stream_id: str) -> list[Event]:
        """Load all events of a stream in version order"""
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE stream_id = ? ORDER BY version ASC",
                (stream_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def load_since(self, after_position: int = 0, limit: int | None = None) -> list[Event]:
        """
        Load events appended after a global position (for projection catch-up)

        Args:
            after_position: Last position already applied (0 = from the beginning)
            limit: Maximum number of events to return
        """
        query = f"SELECT {_EVENT_COLUMNS} FROM events WHERE position > ? ORDER BY position ASC"
        params: tuple = (after_position,)
        if limit:
            query += " LIMIT ?"
            params = (after_position, limit)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """Current version of a stream (0 if it doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            position=row["position"],
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )

    def count_events(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]

    def count_streams(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(DISTINCT stream_id) FROM events").fetchone()[0]


def _stream_type_of(writes: list[StreamWrite], stream_id: str) -> str:
    for write in writes:
        if write.stream_id == stream_id and write.events:
            return write.events[0].stream_type
    return "unknown"
