"""SQLite-backed storage for users, refresh tokens and videos."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    password TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL
);
CREATE TABLE IF NOT EXISTS refresh_tokens (
    token TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    revoked_at TIMESTAMP,
    user_id TEXT NOT NULL,
    expires_at TIMESTAMP NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id)
);
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    title TEXT NOT NULL,
    description TEXT,
    thumbnail_url TEXT,
    video_url TEXT TEXT,
    user_id INTEGER,
    FOREIGN KEY(user_id) REFERENCES users(id)
);
"""

_RESET_TABLES = ("refresh_tokens", "videos", "users")

UUIDLike = Union[uuid.UUID, str]


def _as_uuid(value: UUIDLike) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _store_ts(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(sep=" ")


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as RFC 3339 in UTC, or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class User:
    id: uuid.UUID
    email: str
    password: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "email": self.email,
            "password": self.password,
        }


@dataclass
class Video:
    id: uuid.UUID
    title: str
    description: str
    user_id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
            "title": self.title,
            "description": self.description,
            "user_id": str(self.user_id),
        }


@dataclass
class RefreshToken:
    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None


class Database:
    """A connection to the application database; creates tables on open."""

    def __init__(self, path: str) -> None:
        self._conn = sqlite3.connect(
            str(path), isolation_level=None, check_same_thread=False
        )
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def reset(self) -> None:
        """Delete every row of every table."""
        for table in _RESET_TABLES:
            try:
                self._conn.execute(f"DELETE FROM {table}")
            except sqlite3.Error as err:
                raise sqlite3.OperationalError(
                    f"failed to reset table {table}: {err}"
                ) from err

    # Refresh tokens

    def create_refresh_token(
        self, token: str, user_id: UUIDLike, expires_at: datetime
    ) -> Optional[RefreshToken]:
        self._conn.execute(
            """
            INSERT INTO refresh_tokens (token, created_at, updated_at, user_id, expires_at)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (token, str(_as_uuid(user_id)), _store_ts(expires_at)),
        )
        return self.get_refresh_token(token)

    def revoke_refresh_token(self, token: str) -> None:
        self._conn.execute(
            "UPDATE refresh_tokens SET revoked_at = CURRENT_TIMESTAMP WHERE token = ?",
            (token,),
        )

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        row = self._conn.execute(
            """
            SELECT token, created_at, updated_at, user_id, expires_at, revoked_at
            FROM refresh_tokens WHERE token = ?
            """,
            (token,),
        ).fetchone()
        if row is None:
            return None
        tok, created, updated, user_id, expires, revoked = row
        return RefreshToken(
            token=tok,
            user_id=uuid.UUID(user_id),
            expires_at=_parse_ts(expires),
            created_at=_parse_ts(created),
            updated_at=_parse_ts(updated),
            revoked_at=_parse_ts(revoked),
        )

    def delete_refresh_token(self, token: str) -> None:
        self._conn.execute("DELETE FROM refresh_tokens WHERE token = ?", (token,))

    # Users

    def get_users(self) -> list[User]:
        rows = self._conn.execute("SELECT id, email FROM users").fetchall()
        return [User(id=uuid.UUID(user_id), email=email) for user_id, email in rows]

    @staticmethod
    def _user_from_row(row) -> User:
        user_id, created, updated, email, password = row
        return User(
            id=uuid.UUID(user_id),
            email=email,
            password=password,
            created_at=_parse_ts(created),
            updated_at=_parse_ts(updated),
        )

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._conn.execute(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE email = ?",
            (email,),
        ).fetchone()
        return None if row is None else self._user_from_row(row)

    def get_user_by_refresh_token(self, token: str) -> Optional[User]:
        row = self._conn.execute(
            """
            SELECT u.id, u.created_at, u.updated_at, u.email, u.password
            FROM users u
            JOIN refresh_tokens rt ON u.id = rt.user_id
            WHERE rt.token = ?
            """,
            (token,),
        ).fetchone()
        return None if row is None else self._user_from_row(row)

    def create_user(self, email: str, password: str) -> Optional[User]:
        user_id = uuid.uuid4()
        self._conn.execute(
            """
            INSERT INTO users (id, created_at, updated_at, email, password)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (str(user_id), email, password),
        )
        return self.get_user(user_id)

    def get_user(self, user_id: UUIDLike) -> Optional[User]:
        row = self._conn.execute(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE id = ?",
            (str(_as_uuid(user_id)),),
        ).fetchone()
        return None if row is None else self._user_from_row(row)

    def delete_user(self, user_id: UUIDLike) -> None:
        self._conn.execute("DELETE FROM users WHERE id = ?", (str(_as_uuid(user_id)),))

    # Videos

    _VIDEO_COLUMNS = (
        "id, created_at, updated_at, title, description, thumbnail_url, video_url, user_id"
    )

    @staticmethod
    def _video_from_row(row) -> Video:
        video_id, created, updated, title, description, thumb, video_url, user_id = row
        return Video(
            id=uuid.UUID(video_id),
            title=title,
            description=description or "",
            user_id=uuid.UUID(str(user_id)),
            created_at=_parse_ts(created),
            updated_at=_parse_ts(updated),
            thumbnail_url=thumb,
            video_url=video_url,
        )

    def get_videos(self, user_id: UUIDLike) -> list[Video]:
        rows = self._conn.execute(
            f"SELECT {self._VIDEO_COLUMNS} FROM videos WHERE user_id = ? "
            "ORDER BY created_at DESC",
            (str(_as_uuid(user_id)),),
        ).fetchall()
        return [self._video_from_row(row) for row in rows]

    def create_video(
        self, title: str, description: str, user_id: UUIDLike
    ) -> Optional[Video]:
        video_id = uuid.uuid4()
        self._conn.execute(
            """
            INSERT INTO videos (id, created_at, updated_at, title, description, user_id)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?, ?)
            """,
            (str(video_id), title, description, str(_as_uuid(user_id))),
        )
        return self.get_video(video_id)

    def get_video(self, video_id: UUIDLike) -> Optional[Video]:
        row = self._conn.execute(
            f"SELECT {self._VIDEO_COLUMNS} FROM videos WHERE id = ?",
            (str(_as_uuid(video_id)),),
        ).fetchone()
        return None if row is None else self._video_from_row(row)

    def update_video(self, video: Video) -> None:
        self._conn.execute(
            """
            UPDATE videos
            SET title = ?, description = ?, thumbnail_url = ?, video_url = ?, user_id = ?
            WHERE id = ?
            """,
            (
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                str(_as_uuid(video.user_id)),
                str(_as_uuid(video.id)),
            ),
        )

    def delete_video(self, video_id: UUIDLike) -> None:
        self._conn.execute("DELETE FROM videos WHERE id = ?", (str(_as_uuid(video_id)),))