from __future__ import annotations

from typing import Any, Optional

import pytest

import setsum.db as db
from setsum import Setsum, setsum_of


class _FakeCursor:
    def __init__(self, conn: "_FakeConn", name: Optional[str] = None) -> None:
        self.conn = conn
        self.name = name
        self.itersize: Optional[int] = None
        self._rows: list[tuple[Any, ...]] = []

    def execute(self, query: Any, params: Any = None) -> None:
        self.conn.executed.append(query)
        if isinstance(query, str) and "pg_class" in query:
            self._rows = list(self.conn.tables)
        else:
            # Row streams are served in the order tables are hashed
            texts = self.conn.table_rows.pop(0)
            self._rows = [(text,) for text in texts]

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._rows

    def __iter__(self):
        return iter(self._rows)

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConn:
    def __init__(
        self,
        tables: Optional[list[tuple[str, str]]] = None,
        table_rows: Optional[list[list[str]]] = None,
    ) -> None:
        self.tables = tables or []
        self.table_rows = table_rows or []
        self.executed: list[Any] = []
        self.cursors: list[_FakeCursor] = []

    def cursor(self, name: Optional[str] = None) -> _FakeCursor:
        cur = _FakeCursor(self, name)
        self.cursors.append(cur)
        return cur

    def __enter__(self) -> "_FakeConn":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


ROWS = [
    '{"id":1,"name":"Alice","balance":100}',
    '{"id":2,"name":"Bob","balance":200}',
    '{"id":3,"name":"Charlie","balance":300}',
]


def test_get_database_dsn_requires_env(monkeypatch) -> None:
    monkeypatch.delenv("SETSUM_DATABASE", raising=False)
    with pytest.raises(ValueError, match="SETSUM_DATABASE"):
        db.get_database_dsn()


def test_connect_uses_env(monkeypatch) -> None:
    seen: list[str] = []

    def fake_connect(dsn: str) -> _FakeConn:
        seen.append(dsn)
        return _FakeConn()

    monkeypatch.setenv("SETSUM_DATABASE", "postgresql://localhost/main")
    monkeypatch.setattr(db.psycopg, "connect", fake_connect)
    db.connect()
    db.connect("postgresql://elsewhere/other")
    assert seen == ["postgresql://localhost/main", "postgresql://elsewhere/other"]


@pytest.mark.parametrize(
    "name, expected",
    [
        ("accounts", ("public", "accounts")),
        ("billing.invoices", ("billing", "invoices")),
        ("a.b.c", ("a", "b.c")),
    ],
)
def test_split_table_name(name, expected) -> None:
    assert db.split_table_name(name) == expected


def test_list_user_tables() -> None:
    conn = _FakeConn(tables=[("public", "accounts"), ("public", "orders")])
    assert db.list_user_tables(conn) == [("public", "accounts"), ("public", "orders")]
    assert "information_schema" in conn.executed[0]


def test_table_setsum_streams_rows() -> None:
    conn = _FakeConn(table_rows=[ROWS])
    result = db.table_setsum(conn, "public", "accounts")
    assert result == setsum_of(db.row_item(r) for r in ROWS)
    # rows come through a named server-side cursor
    assert conn.cursors[0].name is not None
    assert conn.cursors[0].itersize == db.ITERSIZE


def test_table_setsum_ignores_row_order() -> None:
    forward = db.table_setsum(_FakeConn(table_rows=[ROWS]), "public", "accounts")
    backward = db.table_setsum(_FakeConn(table_rows=[ROWS[::-1]]), "public", "accounts")
    assert forward == backward


def test_table_setsum_empty_table() -> None:
    assert db.table_setsum(_FakeConn(table_rows=[[]]), "public", "empty").is_empty()


def test_table_setsum_tracks_updates() -> None:
    stored = db.table_setsum(_FakeConn(table_rows=[ROWS]), "public", "accounts")
    # UPDATE of Bob: remove the old row text, insert the new one
    stored.remove(db.row_item(ROWS[1]))
    stored.insert(db.row_item('{"id":2,"name":"Bob","balance":250}'))
    updated = [ROWS[0], '{"id":2,"name":"Bob","balance":250}', ROWS[2]]
    assert stored == db.table_setsum(_FakeConn(table_rows=[updated]), "public", "accounts")


def test_row_item_is_utf8() -> None:
    assert db.row_item('{"name":"Zoë"}') == '{"name":"Zoë"}'.encode("utf-8")


def test_database_setsum_sequential(monkeypatch) -> None:
    tables = [("public", "accounts"), ("public", "orders")]
    orders = ['{"id":10,"amount":5}']
    conn = _FakeConn(tables=tables, table_rows=[ROWS, orders])
    monkeypatch.setattr(db.psycopg, "connect", lambda dsn: conn)

    result = db.database_setsum(dsn="postgresql://ignored", workers=1)
    assert list(result) == tables
    assert result[("public", "accounts")] == setsum_of(db.row_item(r) for r in ROWS)
    assert result[("public", "orders")] == setsum_of(db.row_item(r) for r in orders)


def test_database_setsum_parallel(monkeypatch) -> None:
    tables = [("public", "a"), ("public", "b"), ("sales", "c")]
    monkeypatch.setattr(db.psycopg, "connect", lambda dsn: _FakeConn(tables=tables))

    def fake_worker(dsn: str, schema: str, table: str, hash_name: str) -> Setsum:
        return setsum_of([f"{schema}.{table}".encode()], hash_name)

    monkeypatch.setattr(db, "_table_worker", fake_worker)
    result = db.database_setsum(dsn="postgresql://ignored", workers=3)
    assert list(result) == tables
    for (schema, table), value in result.items():
        assert value == setsum_of([f"{schema}.{table}".encode()])


def test_database_setsum_requires_dsn(monkeypatch) -> None:
    monkeypatch.delenv("SETSUM_DATABASE", raising=False)
    with pytest.raises(ValueError):
        db.database_setsum()
