from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Iterator, List, Optional


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class SenderType(str, Enum):
    USER = "USER"
    AI = "AI"


@dataclass(frozen=True)
class User:
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class Session:
    id: int
    user_id: int
    start_time: datetime
    end_time: Optional[datetime]
    status: SessionStatus
    title: Optional[str] = None


@dataclass(frozen=True)
class Message:
    id: int
    session_id: int
    sequence_number: int
    sender: SenderType
    content: str
    timestamp: datetime
    metadata: Optional[str] = None  # opaque JSON text


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class ConversationRepository:
    """Users, sessions and the append-only per-session message log."""

    def get_user(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def upsert_users(self, users: Iterable[User]) -> int:
        raise NotImplementedError

    def create_session(self, user_id: int, title: Optional[str] = None) -> Session:
        raise NotImplementedError

    def get_session(self, session_id: int) -> Optional[Session]:
        raise NotImplementedError

    def update_session_status(self, session_id: int, status: SessionStatus) -> Session:
        raise NotImplementedError

    def touch_session(self, session_id: int, end_time: datetime) -> None:
        raise NotImplementedError

    def next_sequence_number(self, session_id: int) -> int:
        raise NotImplementedError

    def add_message(
        self,
        session_id: int,
        sequence_number: int,
        sender: SenderType,
        content: str,
        metadata: Optional[str] = None,
    ) -> Message:
        raise NotImplementedError

    def get_messages(self, session_id: int) -> List[Message]:
        raise NotImplementedError


class SQLiteConversationRepository(ConversationRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:  # commits on success, rolls back on error
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY,
                    first_name TEXT,
                    last_name TEXT,
                    email TEXT
                );

                CREATE TABLE IF NOT EXISTS conversation_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id),
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    status TEXT NOT NULL CHECK(status IN ('ACTIVE','CLOSED','EXPIRED')),
                    title TEXT
                );

                CREATE TABLE IF NOT EXISTS chat_messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL REFERENCES conversation_sessions(id),
                    sequence_number INTEGER NOT NULL CHECK(sequence_number > 0),
                    sender_type TEXT NOT NULL CHECK(sender_type IN ('USER','AI')),
                    message_content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    metadata TEXT,
                    UNIQUE(session_id, sequence_number)
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_user
                    ON conversation_sessions(user_id);
                """
            )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            start_time=_from_db(row["start_time"]),
            end_time=_from_db(row["end_time"]),
            status=SessionStatus(row["status"]),
            title=row["title"],
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            sequence_number=row["sequence_number"],
            sender=SenderType(row["sender_type"]),
            content=row["message_content"],
            timestamp=_from_db(row["timestamp"]),
            metadata=row["metadata"],
        )

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, first_name, last_name, email FROM users WHERE id=?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return User(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
        )

    def upsert_users(self, users: Iterable[User]) -> int:
        rows = [(u.id, u.first_name, u.last_name, u.email) for u in users]
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO users (id, first_name, last_name, email) VALUES (?,?,?,?)",
                rows,
            )
        return len(rows)

    def create_session(self, user_id: int, title: Optional[str] = None) -> Session:
        now = utc_now()
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO conversation_sessions (user_id, start_time, end_time, status, title) "
                "VALUES (?,?,?,?,?)",
                (user_id, _to_db(now), None, SessionStatus.ACTIVE.value, title),
            )
            session_id = cur.lastrowid
        return Session(
            id=session_id,
            user_id=user_id,
            start_time=now,
            end_time=None,
            status=SessionStatus.ACTIVE,
            title=title,
        )

    def get_session(self, session_id: int) -> Optional[Session]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversation_sessions WHERE id=?", (session_id,)
            ).fetchone()
        return self._row_to_session(row) if row is not None else None

    def update_session_status(self, session_id: int, status: SessionStatus) -> Session:
        with self._connect() as conn:
            conn.execute(
                "UPDATE conversation_sessions SET status=? WHERE id=?",
                (SessionStatus(status).value, session_id),
            )
            row = conn.execute(
                "SELECT * FROM conversation_sessions WHERE id=?", (session_id,)
            ).fetchone()
        if row is None:
            raise KeyError(f"session {session_id} does not exist")
        return self._row_to_session(row)

    def touch_session(self, session_id: int, end_time: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE conversation_sessions SET end_time=? WHERE id=?",
                (_to_db(end_time), session_id),
            )

    def next_sequence_number(self, session_id: int) -> int:
        # Only safe while the caller holds the session's lock
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(sequence_number), 0) + 1 AS next_seq "
                "FROM chat_messages WHERE session_id=?",
                (session_id,),
            ).fetchone()
        return int(row["next_seq"])

    def add_message(
        self,
        session_id: int,
        sequence_number: int,
        sender: SenderType,
        content: str,
        metadata: Optional[str] = None,
    ) -> Message:
        now = utc_now()
        sender = SenderType(sender)
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO chat_messages "
                "(session_id, sequence_number, sender_type, message_content, timestamp, metadata) "
                "VALUES (?,?,?,?,?,?)",
                (session_id, sequence_number, sender.value, content, _to_db(now), metadata),
            )
            message_id = cur.lastrowid
        return Message(
            id=message_id,
            session_id=session_id,
            sequence_number=sequence_number,
            sender=sender,
            content=content,
            timestamp=now,
            metadata=metadata,
        )

    def get_messages(self, session_id: int) -> List[Message]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM chat_messages WHERE session_id=? ORDER BY sequence_number ASC",
                (session_id,),
            ).fetchall()
        return [self._row_to_message(row) for row in rows]
