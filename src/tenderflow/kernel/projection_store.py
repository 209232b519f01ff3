"""
Projection Store - persisted derived documents

Holds derived state that is not itself an event: the latest evaluation report
per tender lives here under "evaluation:<tender_id>". Saving a new report
replaces the previous one, which is exactly the cache semantics of analysis
(immutable until the next recomputation).
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from pydantic import BaseModel

from tenderflow.kernel.retry import retry_on_sqlite_lock


class ProjectionState(BaseModel):
    """A stored document plus the log position it was derived at"""

    name: str
    position: int | None = None
    state: dict[str, Any]
    updated_at: datetime


class SQLiteProjectionStore:
    """
    SQLite-based projection store

    Schema:
    - projections table: name, log position, JSON state, updated_at
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Args:
            db_path: Path to SQLite database file (usually the event store's)
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projections (
                    name TEXT PRIMARY KEY,
                    position INTEGER,
                    state_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def save(
        self,
        name: str,
        state: dict[str, Any],
        position: int | None = None,
    ) -> None:
        """
        Save or replace a projection

        Args:
            name: Projection name (e.g. "evaluation:<tender_id>")
            state: JSON-serializable state
            position: Event log position the state reflects
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO projections (name, position, state_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    position = excluded.position,
                    state_json = excluded.state_json,
                    updated_at = excluded.updated_at
            """,
                (
                    name,
                    position,
                    json.dumps(state),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()

    def load(self, name: str) -> ProjectionState | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT name, position, state_json, updated_at FROM projections WHERE name = ?",
                (name,),
            ).fetchone()

            if not row:
                return None

            return ProjectionState(
                name=row["name"],
                position=row["position"],
                state=json.loads(row["state_json"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )

    def load_state(self, name: str) -> dict[str, Any] | None:
        """Load just the state portion of a projection (None if absent)"""
        projection = self.load(name)
        return projection.state if projection else None

    def delete(self, name: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM projections WHERE name = ?", (name,))
            conn.commit()

    def list_projections(self, prefix: str = "") -> list[str]:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT name FROM projections WHERE name LIKE ? ORDER BY name",
                (f"{prefix}%",),
            )
            return [row["name"] for row in cursor.fetchall()]
