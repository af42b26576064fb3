from __future__ import annotations

import logging
import os
import sqlite3
import pathlib
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


# Default paths – the database lives next to the working directory,
# the schema ships with the package
PACKAGE_DIR = pathlib.Path(__file__).resolve().parent
DB_FILE = os.getenv("TGVMAX_DB", str(pathlib.Path.cwd() / "tgvmax_alerts.db"))
SCHEMA_FILE = str(PACKAGE_DIR / "schema.sql")
SCHEMA_VERSION = 1

TABLES = ("users", "stations", "alerts")
RANGE_OPERATORS = (">", "<", ">=", "<=")

logger = logging.getLogger(__name__)


def migrate(db_path: str = DB_FILE, schema_path: str = SCHEMA_FILE) -> None:
    """Run pending migrations on the database."""
    logger.info("Running migrations for %s", db_path)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER NOT NULL)"
        )
        cur = conn.execute("SELECT version FROM schema_version")
        row = cur.fetchone()
        current = row[0] if row else 0
        if current < SCHEMA_VERSION:
            logger.info("Applying schema version %s", SCHEMA_VERSION)
            with open(schema_path, "r", encoding="utf-8") as fh:
                conn.executescript(fh.read())
            if row:
                conn.execute(
                    "UPDATE schema_version SET version=?", (SCHEMA_VERSION,)
                )
            else:
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
            conn.commit()


def init_db(db_path: str = DB_FILE, schema_path: str = SCHEMA_FILE) -> None:
    """Initialize SQLite database using *schema_path*."""
    logger.info("Initializing database at %s", db_path)
    with sqlite3.connect(db_path) as conn:
        with open(schema_path, "r", encoding="utf-8") as fh:
            conn.executescript(fh.read())
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER NOT NULL)"
        )
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version(version) VALUES (?)",
            (SCHEMA_VERSION,),
        )


# ────────────────────────────────────────────────────────────────
# Value conversion
# ────────────────────────────────────────────────────────────────


def to_db_value(value: Any) -> Any:
    """Convert *value* to its stored form.

    Datetimes are stored as UTC ISO-8601 strings with second precision, so
    that string comparison in SQL matches chronological order.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="seconds")
    if isinstance(value, bool):
        return int(value)
    return value


def _check_table(conn: sqlite3.Connection, table: str, columns: Iterable[str]) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table {table!r}")
    known = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
    unknown = set(columns) - known
    if unknown:
        raise ValueError(f"Unknown columns for {table}: {sorted(unknown)}")


def _where(filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
    """Translate *filters* into a ``WHERE`` clause.

    A plain value means equality (``None`` means ``IS NULL``); a mapping
    of operators to values means a range, e.g.
    ``{"from_time": {">": start, "<": end}}``.
    """
    if not filters:
        return "", []
    clauses: List[str] = []
    params: List[Any] = []
    for column, cond in filters.items():
        if isinstance(cond, Mapping):
            for op, value in cond.items():
                if op not in RANGE_OPERATORS:
                    raise ValueError(f"Unsupported operator {op!r}")
                clauses.append(f"{column} {op} ?")
                params.append(to_db_value(value))
        elif cond is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(to_db_value(cond))
    return " WHERE " + " AND ".join(clauses), params


# ────────────────────────────────────────────────────────────────
# Store operations
# ────────────────────────────────────────────────────────────────


def find_many(
    table: str,
    filters: Optional[Mapping[str, Any]] = None,
    db_path: str = DB_FILE,
) -> List[Dict[str, Any]]:
    """Return every row of *table* matching *filters* as a dict."""
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        _check_table(conn, table, (filters or {}).keys())
        where, params = _where(filters)
        rows = conn.execute(
            f"SELECT * FROM {table}{where} ORDER BY id", params
        ).fetchall()
    return [dict(row) for row in rows]


def insert_one(
    table: str, record: Mapping[str, Any], db_path: str = DB_FILE
) -> int:
    """Insert *record* into *table* and return its row id."""
    logger.debug("Inserting into %s", table)
    with sqlite3.connect(db_path) as conn:
        _check_table(conn, table, record.keys())
        columns = ", ".join(record)
        placeholders = ",".join("?" for _ in record)
        cur = conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            [to_db_value(v) for v in record.values()],
        )
        conn.commit()
        return cur.lastrowid


def update_one(
    table: str,
    filters: Mapping[str, Any],
    patch: Mapping[str, Any],
    db_path: str = DB_FILE,
) -> int:
    """Set the fields of *patch* on the first row matching *filters*.

    Returns the number of updated rows (0 or 1).
    """
    if not patch:
        raise ValueError("Empty patch")
    with sqlite3.connect(db_path) as conn:
        _check_table(conn, table, list(filters) + list(patch))
        where, params = _where(filters)
        assignments = ", ".join(f"{column} = ?" for column in patch)
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id IN "
            f"(SELECT id FROM {table}{where} ORDER BY id LIMIT 1)",
            [to_db_value(v) for v in patch.values()] + params,
        )
        conn.commit()
        return cur.rowcount


def delete_one(
    table: str, filters: Mapping[str, Any], db_path: str = DB_FILE
) -> int:
    """Delete the first row matching *filters*; return rows deleted."""
    with sqlite3.connect(db_path) as conn:
        _check_table(conn, table, filters.keys())
        where, params = _where(filters)
        cur = conn.execute(
            f"DELETE FROM {table} WHERE id IN "
            f"(SELECT id FROM {table}{where} ORDER BY id LIMIT 1)",
            params,
        )
        conn.commit()
        return cur.rowcount


def replace_all(
    table: str, records: List[Mapping[str, Any]], db_path: str = DB_FILE
) -> int:
    """Swap the content of *table* for *records* in one transaction.

    On failure the previous rows are kept.
    """
    keys = list(records[0]) if records else []
    with sqlite3.connect(db_path) as conn:
        _check_table(conn, table, keys)
        conn.execute(f"DELETE FROM {table}")
        if records:
            conn.executemany(
                f"INSERT INTO {table} ({', '.join(keys)}) "
                f"VALUES ({','.join('?' for _ in keys)})",
                [[to_db_value(rec[k]) for k in keys] for rec in records],
            )
        conn.commit()
    return len(records)


__all__ = [
    "DB_FILE",
    "init_db",
    "migrate",
    "to_db_value",
    "find_many",
    "insert_one",
    "update_one",
    "delete_one",
    "replace_all",
]
