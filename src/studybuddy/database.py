import os
import sqlite3
from contextlib import closing

from .config import settings


def get_db_path() -> str:
    if not os.path.exists(settings.DB_DIR):
        os.makedirs(settings.DB_DIR)
    return os.path.join(settings.DB_DIR, settings.DB_FILE)


def init_db(db_path: str = None):
    with closing(sqlite3.connect(db_path or get_db_path())) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL,
                level TEXT NOT NULL,
                logger TEXT NOT NULL,
                message TEXT NOT NULL
            )
            """
        )
        conn.commit()
