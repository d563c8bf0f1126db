"""Remote backend: PostgreSQL (e.g. a hosted Supabase database) storing records as JSONB."""

import re
from contextlib import contextmanager
from typing import List, Optional
from urllib.parse import urlparse

import psycopg2
import psycopg2.extras

from errors import BackendUnavailable
from models import DBConfig, QuestionBank, TestResult, User

SCHEMA_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS banks (
        id TEXT PRIMARY KEY,
        data JSONB NOT NULL,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS results (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        data JSONB NOT NULL,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )""",
    "CREATE INDEX IF NOT EXISTS results_user_id_idx ON results (user_id)",
    """CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        data JSONB NOT NULL
    )""",
]

_PROJECT_REF = re.compile(r"^[a-z0-9]{10,40}$")


def normalize_db_url(url: str) -> str:
    """Turn a bare Supabase project ref or project URL into a PostgreSQL URL.

    'abcdefghijklmnop'                  -> postgresql://postgres@db.abcdefghijklmnop.supabase.co:5432/postgres
    'https://abcdefghijklmnop.supabase.co' -> same
    PostgreSQL URLs and key=value DSNs are returned unchanged.
    """
    url = (url or "").strip()
    if not url or url.startswith(("postgres://", "postgresql://")) or "=" in url:
        return url

    ref = None
    if url.startswith(("http://", "https://")):
        host = urlparse(url).hostname or ""
        if host.endswith(".supabase.co"):
            ref = host.split(".")[0]
    elif _PROJECT_REF.match(url):
        ref = url

    if ref:
        return f"postgresql://postgres@db.{ref}.supabase.co:5432/postgres"
    return url


class RemoteStore:
    def __init__(self, db_config: DBConfig, connect_timeout: int = 10):
        self.db_url = normalize_db_url(db_config.url)
        kwargs = {"connect_timeout": connect_timeout}
        if db_config.key:
            kwargs["password"] = db_config.key
        try:
            self.conn = psycopg2.connect(self.db_url, **kwargs)
        except psycopg2.Error as e:
            raise BackendUnavailable(f"Cannot connect to remote database: {e}") from e
        self.conn.autocommit = False
        try:
            self.initialize()
        except BackendUnavailable:
            self.conn.close()
            raise

    def initialize(self) -> None:
        with self._cursor() as cur:
            for stmt in SCHEMA_STATEMENTS:
                cur.execute(stmt)

    def close(self) -> None:
        if not self.conn.closed:
            self.conn.close()

    @contextmanager
    def _cursor(self):
        """Yield a RealDictCursor inside a transaction; driver errors become BackendUnavailable."""
        try:
            cur = self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        except psycopg2.Error as e:
            raise BackendUnavailable(str(e)) from e
        try:
            yield cur
            self.conn.commit()
        except psycopg2.Error as e:
            if not self.conn.closed:
                try:
                    self.conn.rollback()
                except psycopg2.Error:
                    pass  # connection already broken; the original error is reported
            raise BackendUnavailable(str(e)) from e
        finally:
            cur.close()

    # ------------------------------------------------------------------
    # Question banks
    # ------------------------------------------------------------------
    def list_banks(self) -> List[QuestionBank]:
        with self._cursor() as cur:
            cur.execute("SELECT data FROM banks ORDER BY created_at DESC")
            rows = cur.fetchall()
        return [QuestionBank.from_dict(r["data"]) for r in rows]

    def get_bank(self, bank_id: str) -> Optional[QuestionBank]:
        with self._cursor() as cur:
            cur.execute("SELECT data FROM banks WHERE id = %s", (bank_id,))
            row = cur.fetchone()
        if not row:
            return None
        return QuestionBank.from_dict(row["data"])

    def save_bank(self, bank: QuestionBank) -> None:
        with self._cursor() as cur:
            cur.execute(
                """INSERT INTO banks (id, data, created_at)
                   VALUES (%s, %s, COALESCE(%s::timestamptz, CURRENT_TIMESTAMP))
                   ON CONFLICT (id) DO UPDATE SET data = EXCLUDED.data""",
                (bank.id, psycopg2.extras.Json(bank.to_dict()), bank.uploaded_at or None),
            )

    def update_bank(self, bank: QuestionBank) -> None:
        with self._cursor() as cur:
            cur.execute(
                "UPDATE banks SET data = %s WHERE id = %s",
                (psycopg2.extras.Json(bank.to_dict()), bank.id),
            )

    def delete_bank(self, bank_id: str) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM banks WHERE id = %s", (bank_id,))

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------
    def insert_result(self, result: TestResult) -> bool:
        with self._cursor() as cur:
            cur.execute(
                """INSERT INTO results (id, user_id, data, created_at)
                   VALUES (%s, %s, %s, COALESCE(%s::timestamptz, CURRENT_TIMESTAMP))
                   ON CONFLICT (id) DO NOTHING""",
                (
                    result.id,
                    result.user_id,
                    psycopg2.extras.Json(result.to_dict()),
                    result.date or None,
                ),
            )
            return cur.rowcount == 1

    def list_results(self, user_id: Optional[str] = None) -> List[TestResult]:
        with self._cursor() as cur:
            if user_id is not None:
                cur.execute(
                    """SELECT data FROM results
                       WHERE user_id = %s
                       ORDER BY created_at DESC""",
                    (user_id,),
                )
            else:
                cur.execute("SELECT data FROM results ORDER BY created_at DESC")
            rows = cur.fetchall()
        return [TestResult.from_dict(r["data"]) for r in rows]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        with self._cursor() as cur:
            cur.execute("SELECT data FROM users ORDER BY id")
            rows = cur.fetchall()
        return [User.from_dict(r["data"]) for r in rows]

    def save_user(self, user: User) -> None:
        with self._cursor() as cur:
            cur.execute(
                """INSERT INTO users (id, data) VALUES (%s, %s)
                   ON CONFLICT (id) DO UPDATE SET data = EXCLUDED.data""",
                (user.id, psycopg2.extras.Json(user.to_dict())),
            )
