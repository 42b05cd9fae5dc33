import sqlite3
import threading
from contextlib import contextmanager, suppress
from core.errors import PersistenceFailure


class DatabaseManager:
    """Shared plumbing for the domain managers.

    All managers share one connection, one cursor and one reentrant lock, so a
    manager call is atomic with respect to every other manager call.
    """

    def __init__(self, db_conn: sqlite3.Connection, db_cursor: sqlite3.Cursor, lock: threading.RLock):
        self.db_conn = db_conn
        self.db_cursor = db_cursor
        self._lock = lock

    @contextmanager
    def transaction(self):
        """Hold the lock, commit on success, roll back and wrap sqlite errors on failure."""
        with self._lock:
            try:
                yield self.db_cursor
                self.db_conn.commit()
            except sqlite3.Error as e:
                self._rollback()
                raise PersistenceFailure(str(e)) from e
            except Exception:
                self._rollback()
                raise

    def _rollback(self):
        # A closed connection cannot roll back; the original error is what matters
        with suppress(sqlite3.Error):
            self.db_conn.rollback()

    def fetchone(self, sql: str, params: tuple = ()):
        with self.transaction() as cursor:
            cursor.execute(sql, params)
            return cursor.fetchone()

    def fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self.transaction() as cursor:
            cursor.execute(sql, params)
            return cursor.fetchall()
