"""SQLite-backed document store for UploadRecords.

One row per record; the full record is kept as a JSON document next to the
indexed natural-key and date columns. Saving a record whose
(platform, date_range, report_type) already exists needs an explicit replace.
Myntra orders and returns of one subtype share that key; report_kind is
stored for filtering only.

The duplicate check and the write are two statements. Two concurrent
uploads of the same key can both miss the check, and then the later write
wins the id but an extra row may remain. That is acceptable for a
single-admin tool. The ":memory:" mode shares one connection across threads
and serializes access with a lock.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from salescore.errors import DuplicateRecordError, PersistenceError, RecordNotFoundError
from salescore.records import UploadRecord


logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS upload_records (
        id TEXT PRIMARY KEY,
        platform TEXT NOT NULL,
        report_type TEXT NOT NULL,
        report_kind TEXT NOT NULL,
        date_range TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        uploaded_at TEXT NOT NULL,
        document TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_upload_records_key ON upload_records (platform, report_type, date_range)",
    "CREATE INDEX IF NOT EXISTS idx_upload_records_dates ON upload_records (start_date, end_date)",
    "CREATE INDEX IF NOT EXISTS idx_upload_records_uploaded ON upload_records (uploaded_at)",
)


class RecordStore:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._memory_lock = threading.Lock()
        if self.db_path == ":memory:":
            self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._memory_conn.row_factory = sqlite3.Row
        self.init_tables()

    def _connect(self) -> sqlite3.Connection:
        if self._memory_conn is not None:
            return self._memory_conn
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        guard = self._memory_lock if conn is self._memory_conn else nullcontext()
        with guard:
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                logger.exception("record store operation failed")
                raise PersistenceError(f"Database error: {exc}") from exc
            finally:
                if conn is not self._memory_conn:
                    conn.close()

    def init_tables(self) -> None:
        with self._conn() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> UploadRecord:
        return UploadRecord.from_dict(json.loads(row["document"]))

    def find_by_key(self, platform: str, date_range: str, report_type: str) -> Optional[UploadRecord]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT document FROM upload_records WHERE platform = ? AND date_range = ? AND report_type = ? "
                "ORDER BY uploaded_at DESC LIMIT 1",
                (platform, date_range, report_type),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def save(self, record: UploadRecord, *, replace: bool = False) -> Tuple[UploadRecord, bool]:
        """Insert a record, or replace the one with the same natural key.

        Returns ``(saved_record, created)``. Without ``replace`` an existing
        key raises DuplicateRecordError and nothing is written.
        """
        existing = self.find_by_key(*record.natural_key)
        if existing is not None and not replace:
            raise DuplicateRecordError(record.platform, record.date_range, record.report_type, existing.id)

        to_save = record.copy_with(id=existing.id) if existing is not None else record
        document = json.dumps(to_save.to_dict(), default=str)
        with self._conn() as conn:
            if existing is not None:
                conn.execute(
                    "DELETE FROM upload_records WHERE platform = ? AND date_range = ? AND report_type = ?",
                    record.natural_key,
                )
            conn.execute(
                "INSERT INTO upload_records "
                "(id, platform, report_type, report_kind, date_range, start_date, end_date, uploaded_at, document) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    to_save.id,
                    to_save.platform,
                    to_save.report_type,
                    to_save.report_kind,
                    to_save.date_range,
                    to_save.start_date,
                    to_save.end_date,
                    to_save.uploaded_at,
                    document,
                ),
            )
        logger.info(
            "%s record %s (%s %s %s)",
            "Replaced" if existing is not None else "Created",
            to_save.id,
            to_save.platform,
            to_save.report_type,
            to_save.date_range,
        )
        return to_save, existing is None

    def get(self, record_id: str) -> UploadRecord:
        with self._conn() as conn:
            row = conn.execute("SELECT document FROM upload_records WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError(record_id)
        return self._row_to_record(row)

    def delete(self, record_id: str) -> None:
        with self._conn() as conn:
            cur = conn.execute("DELETE FROM upload_records WHERE id = ?", (record_id,))
            deleted = cur.rowcount
        if not deleted:
            raise RecordNotFoundError(record_id)
        logger.info("Deleted record %s", record_id)

    def find(
        self,
        *,
        platform: Optional[str] = None,
        report_type: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
        order_by: str = "uploaded_at",
    ) -> List[UploadRecord]:
        """Records matching the filters, newest first.

        With both dates given, a record matches when its own range overlaps
        [start_date, end_date].
        """
        clauses: List[str] = []
        params: List[object] = []
        if platform:
            clauses.append("platform = ?")
            params.append(platform)
        if report_type:
            clauses.append("(report_type = ? OR report_kind = ?)")
            params.extend([report_type, report_type])
        if start_date and end_date:
            clauses.append("start_date <= ? AND end_date >= ?")
            params.extend([end_date, start_date])
        order_col = "start_date" if order_by == "start_date" else "uploaded_at"
        sql = "SELECT document FROM upload_records"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY {order_col} DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_record(r) for r in rows]

    def count(self) -> int:
        with self._conn() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM upload_records").fetchone()[0])
