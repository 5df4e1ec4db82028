import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from codedrop.errors import CodeConflictError
from codedrop.models import TransferRecord


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _row_to_record(row: sqlite3.Row) -> TransferRecord:
    return TransferRecord(
        code=row["code"],
        secret=row["secret"],
        blob_url=row["blob_url"],
        resource_kind=row["resource_kind"] or "raw",
        created_at=_from_epoch(row["created_at"]),
        expires_at=_from_epoch(row["expires_at"]),
    )


class TransferRepository:
    """SQLite-backed transfer records.

    Records are insert-only; the only way out is ``delete_expired``.
    """

    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transfers (
                    code TEXT PRIMARY KEY,
                    secret TEXT NOT NULL,
                    blob_url TEXT NOT NULL,
                    resource_kind TEXT NOT NULL DEFAULT 'raw',
                    created_at REAL NOT NULL,
                    expires_at REAL NOT NULL
                );
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS ix_transfers_expires_at ON transfers(expires_at);"
            )

    def insert(self, record: TransferRecord) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO transfers(code, secret, blob_url, resource_kind, created_at, expires_at)
                    VALUES(?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.code,
                        record.secret,
                        record.blob_url,
                        record.resource_kind,
                        _to_epoch(record.created_at),
                        _to_epoch(record.expires_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise CodeConflictError(record.code) from exc

    def find_by_code(self, code: str) -> TransferRecord | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM transfers WHERE code = ?", (code,)).fetchone()
        return _row_to_record(row) if row else None

    def find_expired(self, before: datetime) -> list[TransferRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM transfers WHERE expires_at < ? ORDER BY expires_at",
                (_to_epoch(before),),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def delete_expired(self, before: datetime) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM transfers WHERE expires_at < ?",
                (_to_epoch(before),),
            )
            return cursor.rowcount
