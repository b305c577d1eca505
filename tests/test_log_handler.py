import logging
import sqlite3
from contextlib import closing

from studybuddy.log_handler import SQLiteHandler


def test_handler_creates_log_table_on_first_record(tmp_path):
    db_path = str(tmp_path / "logs.db")
    handler = SQLiteHandler(db_path)
    assert not (tmp_path / "logs.db").exists()

    logger = logging.getLogger("studybuddy.tests.sqlite")
    logger.addHandler(handler)
    try:
        logger.warning("quiz generator unavailable")
    finally:
        logger.removeHandler(handler)

    with closing(sqlite3.connect(db_path)) as conn:
        rows = conn.execute("SELECT level, logger, message FROM logs").fetchall()
    assert rows == [("WARNING", "studybuddy.tests.sqlite", "quiz generator unavailable")]
