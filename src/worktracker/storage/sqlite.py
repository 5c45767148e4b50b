"""SQLite storage backend.

Uses the standard library driver with one short-lived connection per
operation; each call runs in a worker thread so the event loop is never
blocked on disk I/O.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from worktracker.domain.models import Analysis, Sample, Session, SessionStatus
from worktracker.storage.base import StorageBackend, StorageError, completion_time

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        owner TEXT NOT NULL,
        status TEXT NOT NULL,
        started_at TEXT NOT NULL,
        ended_at TEXT,
        sample_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS samples (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT UNIQUE NOT NULL,
        session_id TEXT NOT NULL,
        captured_at TEXT NOT NULL,
        locator TEXT NOT NULL,
        fingerprint TEXT,
        FOREIGN KEY (session_id) REFERENCES sessions(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS analyses (
        sample_id TEXT PRIMARY KEY,
        app_name TEXT NOT NULL,
        activity_type TEXT NOT NULL,
        description TEXT NOT NULL,
        detailed_content TEXT,
        tags TEXT NOT NULL,
        confidence REAL NOT NULL,
        raw_response TEXT,
        FOREIGN KEY (sample_id) REFERENCES samples(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_samples_session ON samples(session_id, seq)",
)

_SESSION_COLUMNS = "id, owner, status, started_at, ended_at, sample_count"


class SQLiteStorage(StorageBackend):
    """Storage backed by a local SQLite database file."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path).expanduser()
        self._initialized = False

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Connection committed on success, rolled back on error, always closed."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        if self._initialized:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        self._initialized = True
        logger.info("Opened SQLite storage at %s", self.db_path)

    async def _run(self, fn, *args):
        """Run a blocking database function in a worker thread."""
        def call():
            self._initialize()
            return fn(*args)

        try:
            return await asyncio.to_thread(call)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite operation failed: {e}") from e

    # -- sessions ---------------------------------------------------------

    async def create_session(self, owner: str) -> Session:
        session = Session(id=uuid.uuid4().hex, owner=owner, started_at=datetime.now())

        def insert() -> None:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        session.id,
                        session.owner,
                        session.status.value,
                        session.started_at.isoformat(),
                        None,
                        0,
                    ),
                )

        await self._run(insert)
        return session

    async def update_session_status(self, session_id: str, status: SessionStatus) -> Session:
        def update() -> Session:
            with self._connect() as conn:
                session = self._fetch_session(conn, session_id)
                if session is None:
                    raise StorageError(f"Unknown session {session_id}")
                session.status = status
                if status is SessionStatus.COMPLETED and session.ended_at is None:
                    session.ended_at = completion_time(session)
                conn.execute(
                    "UPDATE sessions SET status = ?, ended_at = ? WHERE id = ?",
                    (
                        status.value,
                        session.ended_at.isoformat() if session.ended_at else None,
                        session_id,
                    ),
                )
                return session

        return await self._run(update)

    async def get_session(self, session_id: str) -> Session | None:
        def fetch() -> Session | None:
            with self._connect() as conn:
                return self._fetch_session(conn, session_id)

        return await self._run(fetch)

    async def get_active_session(self, owner: str) -> Session | None:
        def fetch() -> Session | None:
            with self._connect() as conn:
                row = conn.execute(
                    f"""
                    SELECT {_SESSION_COLUMNS} FROM sessions
                    WHERE owner = ? AND status = ?
                    ORDER BY started_at DESC, rowid DESC LIMIT 1
                    """,
                    (owner, SessionStatus.ACTIVE.value),
                ).fetchone()
            return _row_to_session(row) if row else None

        return await self._run(fetch)

    async def list_sessions(self, owner: str | None = None, limit: int = 10) -> list[Session]:
        def fetch() -> list[Session]:
            query = f"SELECT {_SESSION_COLUMNS} FROM sessions"
            params: tuple = ()
            if owner is not None:
                query += " WHERE owner = ?"
                params = (owner,)
            query += " ORDER BY started_at DESC, rowid DESC LIMIT ?"
            with self._connect() as conn:
                rows = conn.execute(query, (*params, limit)).fetchall()
            return [_row_to_session(row) for row in rows]

        return await self._run(fetch)

    # -- samples ----------------------------------------------------------

    async def save_sample(
        self,
        session_id: str,
        locator: str,
        fingerprint: str | None,
        captured_at: datetime | None = None,
    ) -> Sample:
        sample = Sample(
            id=uuid.uuid4().hex,
            session_id=session_id,
            captured_at=captured_at or datetime.now(),
            locator=locator,
            fingerprint=fingerprint,
        )

        def insert() -> None:
            with self._connect() as conn:
                updated = conn.execute(
                    "UPDATE sessions SET sample_count = sample_count + 1 WHERE id = ?",
                    (session_id,),
                ).rowcount
                if not updated:
                    raise StorageError(f"Unknown session {session_id}")
                conn.execute(
                    """
                    INSERT INTO samples (id, session_id, captured_at, locator, fingerprint)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        sample.id,
                        session_id,
                        sample.captured_at.isoformat(),
                        locator,
                        fingerprint,
                    ),
                )

        await self._run(insert)
        return sample

    async def save_analysis(self, sample_id: str, analysis: Analysis) -> Analysis:
        def insert() -> None:
            try:
                with self._connect() as conn:
                    conn.execute(
                        """
                        INSERT INTO analyses (sample_id, app_name, activity_type, description,
                                              detailed_content, tags, confidence, raw_response)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            sample_id,
                            analysis.app_name,
                            analysis.activity_type.value,
                            analysis.description,
                            analysis.detailed_content,
                            json.dumps(analysis.tags),
                            analysis.confidence,
                            analysis.raw_response,
                        ),
                    )
            except sqlite3.IntegrityError as e:
                raise StorageError(f"Cannot attach analysis to sample {sample_id}: {e}") from e

        await self._run(insert)
        return analysis

    async def list_samples(self, session_id: str) -> list[Sample]:
        def fetch() -> list[Sample]:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT s.id, s.session_id, s.captured_at, s.locator, s.fingerprint,
                           a.app_name, a.activity_type, a.description, a.detailed_content,
                           a.tags, a.confidence, a.raw_response
                    FROM samples s
                    LEFT JOIN analyses a ON a.sample_id = s.id
                    WHERE s.session_id = ?
                    ORDER BY s.seq
                    """,
                    (session_id,),
                ).fetchall()
            return [_row_to_sample(row) for row in rows]

        return await self._run(fetch)

    @staticmethod
    def _fetch_session(conn: sqlite3.Connection, session_id: str) -> Session | None:
        row = conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return _row_to_session(row) if row else None


def _row_to_session(row: tuple) -> Session:
    return Session(
        id=row[0],
        owner=row[1],
        status=SessionStatus(row[2]),
        started_at=datetime.fromisoformat(row[3]),
        ended_at=datetime.fromisoformat(row[4]) if row[4] else None,
        sample_count=row[5],
    )


def _row_to_sample(row: tuple) -> Sample:
    analysis = None
    if row[5] is not None:
        analysis = Analysis(
            app_name=row[5],
            activity_type=row[6],
            description=row[7],
            detailed_content=row[8],
            tags=json.loads(row[9] or "[]"),
            confidence=row[10],
            raw_response=row[11],
        )
    return Sample(
        id=row[0],
        session_id=row[1],
        captured_at=datetime.fromisoformat(row[2]),
        locator=row[3],
        fingerprint=row[4],
        analysis=analysis,
    )
