import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from uuid import uuid4


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid4().hex


USER_COLUMNS = "user_id, full_name, email, created_at"
BUCKET_COLUMNS = "bucket_id, bucket_name, owner_id, created_at"
FILE_COLUMNS = "file_id, filename, storage_path, bucket_id, owner_id, mimetype, size, uploaded_at, updated_at"


class Repository:
    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    full_name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
                    token TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS buckets (
                    bucket_id TEXT PRIMARY KEY,
                    bucket_name TEXT NOT NULL,
                    owner_id TEXT NOT NULL REFERENCES users(user_id),
                    created_at TEXT NOT NULL,
                    UNIQUE(owner_id, bucket_name)
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS files (
                    file_id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    storage_path TEXT NOT NULL UNIQUE,
                    bucket_id TEXT NOT NULL REFERENCES buckets(bucket_id) ON DELETE CASCADE,
                    owner_id TEXT NOT NULL REFERENCES users(user_id),
                    mimetype TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    uploaded_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(bucket_id, filename)
                );
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_user_tokens_user ON user_tokens(user_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_files_owner ON files(owner_id)")

    # users and sessions

    def create_user(self, *, full_name: str, email: str, password_hash: str) -> dict:
        user_id = new_id()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users(user_id, full_name, email, password_hash, created_at)
                VALUES(?, ?, ?, ?, ?)
                """,
                (user_id, full_name, email, password_hash, utc_now_iso()),
            )
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return dict(row)

    def get_user(self, user_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def get_user_by_email(self, email: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return dict(row) if row else None

    def add_token(self, user_id: str, token: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO user_tokens(user_id, token, created_at) VALUES(?, ?, ?)",
                (user_id, token, utc_now_iso()),
            )

    def has_token(self, user_id: str, token: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM user_tokens WHERE user_id = ? AND token = ?",
                (user_id, token),
            ).fetchone()
        return row is not None

    def remove_token(self, user_id: str, token: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM user_tokens WHERE user_id = ? AND token = ?", (user_id, token))

    def clear_tokens(self, user_id: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM user_tokens WHERE user_id = ?", (user_id,))
        return cursor.rowcount

    # buckets

    def create_bucket(self, *, owner_id: str, bucket_name: str) -> dict:
        bucket_id = new_id()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO buckets(bucket_id, bucket_name, owner_id, created_at) VALUES(?, ?, ?, ?)",
                (bucket_id, bucket_name, owner_id, utc_now_iso()),
            )
            row = conn.execute(f"SELECT {BUCKET_COLUMNS} FROM buckets WHERE bucket_id = ?", (bucket_id,)).fetchone()
        return dict(row)

    def get_bucket(self, bucket_id: str, owner_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {BUCKET_COLUMNS} FROM buckets WHERE bucket_id = ? AND owner_id = ?",
                (bucket_id, owner_id),
            ).fetchone()
        return dict(row) if row else None

    def find_bucket_by_name(self, owner_id: str, bucket_name: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {BUCKET_COLUMNS} FROM buckets WHERE owner_id = ? AND bucket_name = ?",
                (owner_id, bucket_name),
            ).fetchone()
        return dict(row) if row else None

    def list_buckets_for_owner(self, owner_id: str, *, limit: int, offset: int) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT bucket_id, bucket_name
                FROM buckets
                WHERE owner_id = ?
                ORDER BY created_at, rowid
                LIMIT ? OFFSET ?
                """,
                (owner_id, limit, offset),
            ).fetchall()
        return [dict(row) for row in rows]

    def list_bucket_files(self, bucket_id: str) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT file_id, filename FROM files WHERE bucket_id = ? ORDER BY uploaded_at, rowid",
                (bucket_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def rename_bucket(self, *, bucket_id: str, bucket_name: str, old_prefix: str, new_prefix: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE buckets SET bucket_name = ? WHERE bucket_id = ?", (bucket_name, bucket_id))
            conn.execute(
                """
                UPDATE files
                SET storage_path = ? || substr(storage_path, ?)
                WHERE bucket_id = ?
                """,
                (new_prefix, len(old_prefix) + 1, bucket_id),
            )

    def delete_bucket(self, bucket_id: str) -> int:
        with self._connect() as conn:
            # file rows go with the bucket through ON DELETE CASCADE
            count = conn.execute("SELECT COUNT(*) FROM files WHERE bucket_id = ?", (bucket_id,)).fetchone()[0]
            conn.execute("DELETE FROM buckets WHERE bucket_id = ?", (bucket_id,))
        return count

    # files

    def create_file(
        self,
        *,
        filename: str,
        storage_path: str,
        bucket_id: str,
        owner_id: str,
        mimetype: str,
        size: int,
    ) -> dict:
        file_id = new_id()
        now = utc_now_iso()
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO files({FILE_COLUMNS})
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (file_id, filename, storage_path, bucket_id, owner_id, mimetype, size, now, now),
            )
            row = conn.execute(f"SELECT {FILE_COLUMNS} FROM files WHERE file_id = ?", (file_id,)).fetchone()
        return dict(row)

    def get_file(self, file_id: str, owner_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {FILE_COLUMNS} FROM files WHERE file_id = ? AND owner_id = ?",
                (file_id, owner_id),
            ).fetchone()
        return dict(row) if row else None

    def get_file_in_bucket(self, *, file_id: str, bucket_id: str, owner_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT {FILE_COLUMNS} FROM files
                WHERE file_id = ? AND bucket_id = ? AND owner_id = ?
                """,
                (file_id, bucket_id, owner_id),
            ).fetchone()
        return dict(row) if row else None

    def find_file_by_name(self, bucket_id: str, filename: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {FILE_COLUMNS} FROM files WHERE bucket_id = ? AND filename = ?",
                (bucket_id, filename),
            ).fetchone()
        return dict(row) if row else None

    def list_files_for_owner(self, owner_id: str, *, limit: int, offset: int) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT f.file_id, f.filename, f.bucket_id, b.bucket_name
                FROM files f
                JOIN buckets b ON b.bucket_id = f.bucket_id
                WHERE f.owner_id = ?
                ORDER BY f.uploaded_at, f.rowid
                LIMIT ? OFFSET ?
                """,
                (owner_id, limit, offset),
            ).fetchall()
        return [dict(row) for row in rows]

    def update_file(self, *, file_id: str, filename: str, storage_path: str, mimetype: str, size: int) -> dict:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE files
                SET filename = ?, storage_path = ?, mimetype = ?, size = ?, updated_at = ?
                WHERE file_id = ?
                """,
                (filename, storage_path, mimetype, size, utc_now_iso(), file_id),
            )
            row = conn.execute(f"SELECT {FILE_COLUMNS} FROM files WHERE file_id = ?", (file_id,)).fetchone()
        return dict(row)

    def delete_file(self, file_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM files WHERE file_id = ?", (file_id,))
        return cursor.rowcount > 0
