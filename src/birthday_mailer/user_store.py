from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from birthday_mailer.errors import DuplicateError, StorageError
from birthday_mailer.models import User

LOGGER = logging.getLogger(__name__)

_USER_COLUMNS = "id, username, email, date_of_birth, last_email_sent_year, created_at"


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        date_of_birth=date.fromisoformat(row["date_of_birth"]),
        last_email_sent_year=row["last_email_sent_year"],
        created_at=row["created_at"],
    )


class UserStore:
    """sqlite-backed user records with a unique index on ``email``."""

    def __init__(self, path: Path, *, timeout: float = 10.0) -> None:
        self._path = Path(path)
        self._timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open record store at {self._path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "users.email" in str(exc):
                raise DuplicateError("Email already registered") from exc
            raise StorageError(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not create directory for {self._path}: {exc}") from exc

        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL,
                    email TEXT NOT NULL,
                    date_of_birth TEXT NOT NULL,
                    last_email_sent_year INTEGER,
                    created_at TEXT NOT NULL
                );
                """
            )
            conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS users_email_idx ON users (email);")
        LOGGER.info("Record store ready at %s", self._path)

    def get(self, user_id: int) -> User | None:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        if not row:
            return None
        return _row_to_user(row)

    def find_by_email(self, email: str) -> User | None:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email,)).fetchone()
        if not row:
            return None
        return _row_to_user(row)

    def create(self, username: str, email: str, date_of_birth: date) -> User:
        now = datetime.now(timezone.utc).isoformat()
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO users (username, email, date_of_birth, last_email_sent_year, created_at)
                     VALUES (?, ?, ?, NULL, ?)""",
                (username, email, date_of_birth.isoformat(), now),
            )
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (cur.lastrowid,)).fetchone()
        return _row_to_user(row)

    def find_birthday_recipients(self, month_days: Iterable[tuple[int, int]], year: int) -> list[User]:
        """Users born on any of ``month_days`` who have not been emailed in ``year``."""
        pairs = list(month_days)
        if not pairs:
            return []

        match_clause = " OR ".join("(birth_month = ? AND birth_day = ?)" for _ in pairs)
        params: list[int] = [value for pair in pairs for value in pair]
        params.append(year)

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT {_USER_COLUMNS} FROM (
                    SELECT *,
                           CAST(strftime('%m', date_of_birth) AS INTEGER) AS birth_month,
                           CAST(strftime('%d', date_of_birth) AS INTEGER) AS birth_day
                      FROM users
                )
                 WHERE ({match_clause})
                   AND last_email_sent_year IS NOT ?
                 ORDER BY id
                """,
                params,
            ).fetchall()
        return [_row_to_user(row) for row in rows]

    def mark_email_sent(self, user_id: int, year: int) -> bool:
        """Set the dedup marker; returns False when the user was already marked for ``year``."""
        with self._conn() as conn:
            cur = conn.execute(
                "UPDATE users SET last_email_sent_year = ? WHERE id = ? AND last_email_sent_year IS NOT ?",
                (year, user_id, year),
            )
            updated = cur.rowcount
        return updated == 1

    def count(self) -> int:
        with self._conn() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])
