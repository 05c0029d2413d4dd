"""
DB utilities (sqlite default).

Defaults:
- DATABASE_URL: sqlite:///./data/app.db

Service modules talk to the database through `connect()` (stdlib sqlite3,
autocommit mode) and open explicit write transactions with `transaction()`.
The SQLAlchemy engine is used for schema creation and health only.
"""
from __future__ import annotations

import os
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from assistdesk.core.config import get_settings

_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _encode_crockford(value: int, length: int) -> str:
    chars: List[str] = []
    for _ in range(length):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def new_ulid() -> str:
    # 48-bit time (ms) + 80-bit randomness
    ms = int(time.time() * 1000) & ((1 << 48) - 1)
    rnd = int.from_bytes(os.urandom(10), "big")
    v = (ms << 80) | rnd
    return _encode_crockford(v, 26)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def get_database_url() -> str:
    return get_settings().database_url


def _repo_root() -> Path:
    # apps/api/assistdesk/core/db.py -> repo root = parents[4]
    return Path(__file__).resolve().parents[4]


def resolve_sqlite_path(database_url: str) -> Optional[Path]:
    if not database_url.startswith("sqlite:///"):
        return None
    p = database_url[len("sqlite:///") :]

    # absolute unix
    if p.startswith("/"):
        return Path(p)

    # absolute windows drive, both C:/ and C:\ forms
    if len(p) >= 3 and p[1] == ":" and (p[2] == "/" or p[2] == "\\"):
        return Path(p)

    # relative -> repo root
    return (_repo_root() / p).resolve()


_engines: Dict[str, Engine] = {}


def get_engine() -> Engine:
    url = get_database_url()
    if url in _engines:
        return _engines[url]

    connect_args = {}
    if url.startswith("sqlite:///"):
        connect_args = {"check_same_thread": False}

    resolved = url
    sp = resolve_sqlite_path(url)
    if sp is not None:
        sp.parent.mkdir(parents=True, exist_ok=True)
        resolved = "sqlite:///" + sp.as_posix()

    engine = create_engine(resolved, future=True, connect_args=connect_args)
    _engines[url] = engine
    return engine


def init_db() -> None:
    # registers every table on SQLModel.metadata
    from assistdesk.modules.bookings import models as _bookings  # noqa: F401
    from assistdesk.modules.catalog import models as _catalog  # noqa: F401
    from assistdesk.modules.comments import models as _comments

    eng = get_engine()
    SQLModel.metadata.create_all(eng)
    with eng.begin() as conn:
        conn.exec_driver_sql(_comments.APPEND_ONLY_TRIGGER)


def connect() -> sqlite3.Connection:
    settings = get_settings()
    sp = resolve_sqlite_path(settings.database_url)
    if sp is None:
        raise ValueError(f"Only sqlite supported for now, got DATABASE_URL={settings.database_url!r}")
    conn = sqlite3.connect(
        str(sp),
        timeout=settings.db_busy_timeout_seconds,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Write transaction. BEGIN IMMEDIATE takes the database write lock up front,
    so a read-check-insert sequence inside it cannot interleave with another
    writer, in this process or any other sharing the file.
    """
    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK;")
        raise
    conn.execute("COMMIT;")


def next_sequence(conn: sqlite3.Connection, name: str) -> int:
    """Store-backed monotonic counter. Must run inside `transaction()`."""
    row = conn.execute("SELECT value FROM sequences WHERE name=?;", (name,)).fetchone()
    if row is None:
        conn.execute("INSERT INTO sequences (name, value) VALUES (?, 1);", (name,))
        return 1
    value = int(row["value"]) + 1
    conn.execute("UPDATE sequences SET value=? WHERE name=?;", (value, name))
    return value


def insert_row(conn: sqlite3.Connection, table: str, row: Dict[str, Any]) -> None:
    keys = sorted(row.keys())
    sql = f"INSERT INTO {table} ({','.join(keys)}) VALUES ({','.join(['?'] * len(keys))});"
    conn.execute(sql, [row[k] for k in keys])


def db_health() -> Dict[str, Any]:
    url = get_database_url()
    kind = "sqlite" if url.startswith("sqlite") else "unknown"
    sp = resolve_sqlite_path(url)
    path = str(sp.as_posix()) if sp is not None else url

    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "kind": kind, "path": path}
    except Exception as e:
        return {"status": "error", "kind": kind, "path": path, "error": str(e)}
