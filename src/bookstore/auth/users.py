# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Credential store backed by SQLite.

Email uniqueness is enforced by the database (``UNIQUE COLLATE NOCASE``) so
concurrent signups for the same address yield exactly one row.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT NOT NULL,
    email         TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    phone_number  TEXT,
    address       TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
)
"""


class StoreError(RuntimeError):
    """The credential store could not complete an operation."""


class DuplicateEmailError(StoreError):
    """A user with this email already exists."""


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    email: str
    password_hash: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def public_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self) -> str:
        return f"UserRecord(id={self.id!r}, name={self.name!r}, email={self.email!r})"


def _row_to_user(row: Dict[str, Any]) -> UserRecord:
    return UserRecord(
        id=int(row["id"]),
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        phone_number=row.get("phone_number"),
        address=row.get("address"),
        created_at=datetime.fromisoformat(row["created_at"]) if row.get("created_at") else None,
        updated_at=datetime.fromisoformat(row["updated_at"]) if row.get("updated_at") else None,
    )


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> Dict[str, Any]:
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


class SQLiteUserStore:
    def __init__(self, db_path: str, connection: Optional[sqlite3.Connection] = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        if self._external_conn is not None:
            return self._external_conn
        return sqlite3.connect(self.db_path, timeout=10)

    def _close(self, conn: sqlite3.Connection) -> None:
        if self._external_conn is None:
            conn.close()

    def ensure_schema(self) -> None:
        if self._external_conn is None and self.db_path != ":memory:":
            Path(self.db_path).resolve().parent.mkdir(parents=True, exist_ok=True)
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"Could not create users table: {e}") from e
        finally:
            self._close(conn)

    def _fetch_one(self, sql: str, params: tuple) -> Optional[UserRecord]:
        conn = self._get_conn()
        try:
            # Row factory on the cursor only; a caller-owned connection keeps its own.
            cur = conn.cursor()
            cur.row_factory = _dict_factory
            row = cur.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"User lookup failed: {e}") from e
        finally:
            self._close(conn)
        return _row_to_user(row) if row else None

    def find_by_email(self, email: Optional[str]) -> Optional[UserRecord]:
        e = normalize_email(email)
        if not e:
            return None
        return self._fetch_one("SELECT * FROM users WHERE email = ? COLLATE NOCASE", (e,))

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        return self._fetch_one("SELECT * FROM users WHERE id = ?", (int(user_id),))

    def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        phone_number: Optional[str] = None,
        address: Optional[str] = None,
    ) -> UserRecord:
        now = datetime.now(timezone.utc)
        e = normalize_email(email)
        conn = self._get_conn()
        try:
            with conn:
                cur = conn.execute(
                    "INSERT INTO users (name, email, password_hash, phone_number, address, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (name, e, password_hash, phone_number, address, now.isoformat(), now.isoformat()),
                )
                new_id = int(cur.lastrowid)
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise DuplicateEmailError(e) from exc
            raise StoreError(f"User insert failed: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreError(f"User insert failed: {exc}") from exc
        finally:
            self._close(conn)

        logger.debug("Created user id=%s", new_id)
        return UserRecord(
            id=new_id,
            name=name,
            email=e,
            password_hash=password_hash,
            phone_number=phone_number,
            address=address,
            created_at=now,
            updated_at=now,
        )
