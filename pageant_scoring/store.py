from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, List, Sequence

from pageant_scoring import criteria
from pageant_scoring.errors import StorageError
from pageant_scoring.models import OVERALL_COLUMNS, OverallRow, ScoreRow

logger = logging.getLogger(__name__)

STAGING_SUFFIX = " (staging)"


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class ScoreStore:
    """
    SQLite-backed tables, one per category, header = column names.

    Raw tables are append-only. The derived overall table is only ever
    replaced wholesale (see replace_overall).
    """

    def __init__(self, database_path: str, timeout: float = 10.0):
        self.database_path = database_path
        self.timeout = timeout

    # -----------------------
    # Connection helpers
    # -----------------------
    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Autocommit connection; callers open explicit transactions when they need one."""
        try:
            conn = sqlite3.connect(self.database_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open score database {self.database_path!r}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StorageError(f"Score database error: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table,)
        ).fetchone()
        return row is not None

    @staticmethod
    def _create_table(conn: sqlite3.Connection, table: str, columns: Sequence[str]) -> None:
        cols = ", ".join(quote(c) for c in columns)
        conn.execute(f"CREATE TABLE IF NOT EXISTS {quote(table)} ({cols})")

    def _read_table(self, table: str, width: int) -> List[List[Any]]:
        with self.connect() as conn:
            if not self._table_exists(conn, table):
                return []
            fetched = conn.execute(f"SELECT * FROM {quote(table)} ORDER BY rowid").fetchall()

        rows: List[List[Any]] = []
        for idx, values in enumerate(fetched):
            if not isinstance(values, (tuple, list)) or len(values) != width:
                logger.warning("Skipping malformed row %d in %r: %r", idx, table, values)
                continue
            rows.append(list(values))
        return rows

    # -----------------------
    # Setup
    # -----------------------
    def ensure_table(self, category: str) -> None:
        """Create the category's raw table (or the derived table for "overall") with its header."""
        with self.connect() as conn:
            self._create_table(conn, criteria.raw_table_name(category), criteria.raw_columns(category))
            if category == criteria.OVERALL:
                self._create_table(conn, criteria.table_name(criteria.OVERALL), OVERALL_COLUMNS)

    def setup_all_tables(self) -> None:
        for category in criteria.CATEGORIES:
            self.ensure_table(category)

    # -----------------------
    # Raw submissions
    # -----------------------
    def append(self, category: str, row: ScoreRow) -> None:
        table = criteria.raw_table_name(category)
        columns = criteria.raw_columns(category)
        values = row.to_values(criteria.get_criteria(category))
        placeholders = ",".join(["?"] * len(columns))
        with self.connect() as conn:
            self._create_table(conn, table, columns)
            conn.execute(f"INSERT INTO {quote(table)} VALUES ({placeholders})", values)

    def read_all(self, category: str) -> List[List[Any]]:
        """Data rows of the category's raw table, header excluded, in insertion order."""
        return self._read_table(criteria.raw_table_name(category), len(criteria.raw_columns(category)))

    # -----------------------
    # Derived overall table
    # -----------------------
    def read_overall(self) -> List[List[Any]]:
        return self._read_table(criteria.table_name(criteria.OVERALL), len(OVERALL_COLUMNS))

    def clear_rows(self, category: str) -> None:
        """Delete every data row of a category's table, keeping the header."""
        if category == criteria.OVERALL:
            table = criteria.table_name(criteria.OVERALL)
        else:
            table = criteria.raw_table_name(category)
        with self.connect() as conn:
            if self._table_exists(conn, table):
                conn.execute(f"DELETE FROM {quote(table)}")

    def replace_overall(self, rows: Sequence[OverallRow]) -> None:
        """
        Publish a new derived table.

        Rows are written to a staging table and committed first. A second
        transaction then drops the live table and renames the staging table
        into its place. Only that swap is atomic, which is enough for a
        concurrent reader to see either the previous table or the complete
        new one, never a partial rebuild.
        """
        live = criteria.table_name(criteria.OVERALL)
        staging = live + STAGING_SUFFIX
        placeholders = ",".join(["?"] * len(OVERALL_COLUMNS))

        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(f"DROP TABLE IF EXISTS {quote(staging)}")
            self._create_table(conn, staging, OVERALL_COLUMNS)
            conn.executemany(
                f"INSERT INTO {quote(staging)} VALUES ({placeholders})",
                [r.to_values() for r in rows],
            )
            conn.execute("COMMIT")

            conn.execute("BEGIN IMMEDIATE")
            conn.execute(f"DROP TABLE IF EXISTS {quote(live)}")
            conn.execute(f"ALTER TABLE {quote(staging)} RENAME TO {quote(live)}")
            conn.execute("COMMIT")

        logger.info("Published %d overall rows to %r", len(rows), live)
