"""PostgreSQL helpers: setsums over table rows.

Each row is serialized on the server with ``row_to_json(t)::text`` and the
UTF-8 bytes of that text are the setsum item. The resulting checksum does
not depend on row order, so two copies of a table can be compared without
sorting them, and a stored table setsum can be kept current by inserting
new row texts and removing deleted ones.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

import psycopg
from psycopg import sql

from .checksum import Setsum
from .shards import default_workers
from .state import DEFAULT_HASH

logger = logging.getLogger(__name__)

# Rows fetched per round trip by the server-side cursor.
ITERSIZE = 2000


def get_database_dsn() -> str:
    """Get the database DSN from SETSUM_DATABASE environment variable."""
    dsn = os.getenv("SETSUM_DATABASE")
    if not dsn:
        raise ValueError("SETSUM_DATABASE environment variable is required")
    return dsn


def connect(dsn: str | None = None) -> psycopg.Connection:
    """Return a new PostgreSQL connection using the provided DSN or SETSUM_DATABASE."""
    if dsn is None:
        dsn = get_database_dsn()
    return psycopg.connect(dsn)


def split_table_name(name: str) -> tuple[str, str]:
    """Split ``schema.table``; a bare table name lives in ``public``."""
    if "." in name:
        schema, table = name.split(".", 1)
        return schema, table
    return "public", name


def list_user_tables(conn: psycopg.Connection) -> list[tuple[str, str]]:
    """List ordinary tables outside the system schemas, sorted by name."""
    with conn.cursor() as cur:
        cur.execute("""
            SELECT n.nspname, c.relname
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE c.relkind = 'r'
              AND n.nspname NOT IN ('pg_catalog', 'information_schema')
            ORDER BY n.nspname, c.relname
        """)
        return [(row[0], row[1]) for row in cur.fetchall()]


def row_item(row_text: str) -> bytes:
    """Encode one serialized row as a setsum item."""
    return row_text.encode("utf-8")


def table_setsum(
    conn: psycopg.Connection,
    schema: str,
    table: str,
    hash_name: str = DEFAULT_HASH,
) -> Setsum:
    """Stream every row of ``schema.table`` into a new setsum."""
    query = sql.SQL("SELECT row_to_json(t)::text FROM {} t").format(
        sql.Identifier(schema, table)
    )
    setsum = Setsum(hash_name)
    rows = 0
    t0 = time.perf_counter()
    with conn.cursor(name="setsum_rows") as cur:
        cur.itersize = ITERSIZE
        cur.execute(query)
        for row in cur:
            setsum.insert(row_item(row[0]))
            rows += 1
    logger.info(
        "%s.%s: %d rows in %.2fs -> %s",
        schema, table, rows, time.perf_counter() - t0, setsum.hexdigest(),
    )
    return setsum


def _table_worker(dsn: str, schema: str, table: str, hash_name: str) -> Setsum:
    with connect(dsn) as conn:
        return table_setsum(conn, schema, table, hash_name)


def database_setsum(
    dsn: str | None = None,
    workers: int | None = None,
    hash_name: str = DEFAULT_HASH,
) -> dict[tuple[str, str], Setsum]:
    """Return a setsum for every user table, keyed by ``(schema, table)``.

    With more than one worker each table is hashed on its own connection.
    """
    if dsn is None:
        dsn = get_database_dsn()
    if workers is None:
        workers = default_workers()

    with connect(dsn) as conn:
        tables = list_user_tables(conn)
        logger.info("hashing %d tables with %d workers", len(tables), workers)
        if workers <= 1 or len(tables) <= 1:
            return {
                (schema, table): table_setsum(conn, schema, table, hash_name)
                for schema, table in tables
            }

    results: dict[tuple[str, str], Setsum] = {}
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = {
            ex.submit(_table_worker, dsn, schema, table, hash_name): (schema, table)
            for schema, table in tables
        }
        for f in as_completed(futs):
            results[futs[f]] = f.result()
    return {key: results[key] for key in tables}
