# database/__init__.py
from __future__ import annotations

from contextlib import contextmanager
from itertools import count
from pathlib import Path
import sqlite3
from typing import Iterator

from ..config import DB_PATH
from . import schema as schema_module
from .versioning import ensure_version
from .seeders.default_data import seed as seed_default_data

_savepoints = count(1)


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - autocommit mode (isolation_level=None); multi-step writes go through transaction()
      - WAL mode for file databases
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema & seed data are applied idempotently.
    """
    target = DB_PATH if db_path is None else db_path
    if str(target) != ":memory:":
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    if str(target) != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL;")

    # Always apply the schema (idempotent: uses CREATE IF NOT EXISTS / DROP TRIGGER IF EXISTS)
    schema_module.apply_schema(conn)
    ensure_version(conn)

    # Seeders should be safe to run repeatedly (idempotent).
    seed_default_data(conn)
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    All-or-nothing block: BEGIN ... COMMIT, ROLLBACK on any exception.
    Nested use becomes a SAVEPOINT so an inner failure only undoes the inner block.
    """
    if conn.in_transaction:
        name = f"sp_{next(_savepoints)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        conn.execute(f"RELEASE SAVEPOINT {name}")
        return

    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


__all__ = [
    "get_connection",
    "transaction",
]
