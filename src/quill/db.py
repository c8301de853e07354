from __future__ import annotations

import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

from .config import get_config


class Database:
    """Local SQLite database for error events and document versions."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or get_config().storage.db_path
        self._local = threading.local()

    def connect(self) -> sqlite3.Connection:
        """Open or return an existing connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=5.0,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        self._local.conn = conn
        return conn

    def close(self) -> None:
        """Close the database connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def _execute(self, query: str, params: tuple[object, ...] | None = None) -> sqlite3.Cursor:
        """Execute a query and return the cursor."""
        conn = self.connect()
        if params is None:
            return conn.execute(query)
        return conn.execute(query, params)

    def migrate(self) -> None:
        """Create tables if they don't exist."""
        conn = self.connect()

        # Events table: error reports and other metadata-only events.
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                kind TEXT,
                ts TEXT NOT NULL,
                payload_metadata TEXT,
                note TEXT,
                created_at TEXT NOT NULL
            )
            """
        )

        # Versions table: full snapshots of a post (title + block JSON).
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS versions (
                id TEXT PRIMARY KEY,
                post_id TEXT NOT NULL,
                user_id TEXT,
                version_number INTEGER NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                change_description TEXT,
                trigger TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_versions_post_number ON versions(post_id, version_number)"
        )
        conn.commit()

    def insert_event(
        self,
        *,
        event_id: str,
        source: str,
        kind: str | None,
        ts: str,
        payload_metadata: str | None,
        note: str | None,
    ) -> None:
        """Insert an event row."""
        now = datetime.now(UTC).isoformat()
        self._execute(
            """
            INSERT INTO events (id, source, kind, ts, payload_metadata, note, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (event_id, source, kind, ts, payload_metadata, note, now),
        )
        self.connect().commit()

    def iter_events_recent(self, limit: int | None = None) -> list[dict[str, object]]:
        """Return recent events, newest first."""
        query = "SELECT * FROM events ORDER BY created_at DESC"
        if limit is not None:
            rows = self._execute(query + " LIMIT ?", (int(limit),)).fetchall()
        else:
            rows = self._execute(query).fetchall()
        return [dict(row) for row in rows]

    def insert_version(
        self,
        *,
        version_id: str,
        post_id: str,
        user_id: str | None,
        title: str,
        content: str,
        change_description: str | None,
        trigger: str,
        created_at: str,
    ) -> int:
        """Insert a version snapshot and return its version number.

        The number is allocated by the INSERT itself, so concurrent saves of
        the same post cannot reuse one.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                """
                INSERT INTO versions
                (id, post_id, user_id, version_number, title, content,
                 change_description, trigger, created_at)
                SELECT ?, ?, ?, COALESCE(MAX(version_number), 0) + 1, ?, ?, ?, ?, ?
                FROM versions WHERE post_id = ?
                """,
                (
                    version_id,
                    post_id,
                    user_id,
                    title,
                    content,
                    change_description,
                    trigger,
                    created_at,
                    post_id,
                ),
            )
            row = conn.execute(
                "SELECT version_number FROM versions WHERE id = ?", (version_id,)
            ).fetchone()
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        return int(row["version_number"])

    def iter_versions(self, post_id: str, limit: int | None = None) -> list[dict[str, object]]:
        """Versions for a post, newest first."""
        query = "SELECT * FROM versions WHERE post_id = ? ORDER BY version_number DESC"
        if limit is not None:
            rows = self._execute(query + " LIMIT ?", (post_id, int(limit))).fetchall()
        else:
            rows = self._execute(query, (post_id,)).fetchall()
        return [dict(row) for row in rows]

    def iter_user_versions(self, user_id: str, limit: int | None = None) -> list[dict[str, object]]:
        """Latest version of each of a user's posts, most recently saved first."""
        query = """
            SELECT v.* FROM versions v
            JOIN (
                SELECT post_id, MAX(version_number) AS n FROM versions
                WHERE user_id = ? GROUP BY post_id
            ) latest ON latest.post_id = v.post_id AND latest.n = v.version_number
            ORDER BY v.created_at DESC
        """
        if limit is not None:
            rows = self._execute(query + " LIMIT ?", (user_id, int(limit))).fetchall()
        else:
            rows = self._execute(query, (user_id,)).fetchall()
        return [dict(row) for row in rows]

    def get_version(self, version_id: str) -> dict[str, object] | None:
        row = self._execute("SELECT * FROM versions WHERE id = ?", (version_id,)).fetchone()
        return dict(row) if row else None

    def delete_versions(self, version_ids: list[str]) -> int:
        """Delete versions by id; returns the number of rows removed."""
        if not version_ids:
            return 0
        placeholders = ",".join("?" for _ in version_ids)
        cur = self._execute(
            f"DELETE FROM versions WHERE id IN ({placeholders})",
            tuple(version_ids),
        )
        self.connect().commit()
        return cur.rowcount


_db_instance: Database | None = None


def get_db() -> Database:
    """Get or create the global database instance."""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
        _db_instance.migrate()
    return _db_instance
