import logging
import sqlite3
from contextlib import closing
from datetime import datetime

from .database import get_db_path, init_db


class SQLiteHandler(logging.Handler):
    """Writes log records into the `logs` table, creating it on first use."""

    def __init__(self, db_path: str = None):
        super().__init__()
        self.db_path = db_path
        self._ready = False

    def _connect(self) -> sqlite3.Connection:
        if not self._ready:
            if self.db_path is None:
                self.db_path = get_db_path()
            init_db(self.db_path)
            self._ready = True
        return sqlite3.connect(self.db_path)

    def emit(self, record: logging.LogRecord):
        try:
            message = self.format(record)
            with closing(self._connect()) as conn:
                conn.execute(
                    "INSERT INTO logs (created_at, level, logger, message) VALUES (?, ?, ?, ?)",
                    (
                        datetime.fromtimestamp(record.created).isoformat(),
                        record.levelname,
                        record.name,
                        message,
                    ),
                )
                conn.commit()
        except Exception:
            self.handleError(record)
