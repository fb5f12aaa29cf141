"""
Persistence boundary.

Every entity is read and written through a Store: get, put, select and
conditional_update. Single-row writes are atomic; conditional_update is the
compare-and-set primitive used for one-time transitions (code revocation,
request acceptance). conditional_update_and_put pairs that transition with an
insert in one transaction, so a redeemed link always has its connection
request.

Two implementations:
- PostgresStore: asyncpg, the production backend. All SQL lives here.
- MemoryStore: in-process dicts, for tests and local development.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Any, Protocol

import asyncpg

from dislink.db import system_conn


class DuplicateKey(Exception):
    """A put() violated a unique constraint."""


@dataclass(frozen=True)
class Unique:
    """Unique constraint, optionally partial (only rows matching `where`)."""

    columns: tuple[str, ...]
    where: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class Table:
    name: str
    columns: tuple[str, ...]
    unique: tuple[Unique, ...] = ()
    key: str = "id"
    order_by: str = "created_at"

    def check_columns(self, names) -> None:
        unknown = set(names) - set(self.columns)
        if unknown:
            raise ValueError(f"Unknown column(s) for {self.name}: {sorted(unknown)}")


PROFILES = Table(
    name="profiles",
    columns=("id", "name", "job_title", "company", "profile_image", "created_at"),
)

INTRODUCTION_CODES = Table(
    name="introduction_codes",
    columns=("id", "code", "owner_id", "status", "single_use", "created_at", "expires_at"),
    unique=(Unique(("code",)),),
)

SCAN_EVENTS = Table(
    name="scan_events",
    columns=("id", "code_id", "code", "created_at", "location", "referrer", "client_fingerprint"),
)

PENDING_LINKS = Table(
    name="pending_links",
    columns=(
        "id",
        "email",
        "redemption_code",
        "owner_id",
        "code_id",
        "scan_event_id",
        "redeemed",
        "created_at",
    ),
    unique=(
        Unique(("redemption_code",)),
        # One outstanding link per (email, owner)
        Unique(("email", "owner_id"), where=(("redeemed", False),)),
    ),
)

CONNECTION_REQUESTS = Table(
    name="connection_requests",
    columns=("id", "from_user_id", "to_user_id", "origin_scan_event_id", "state", "created_at"),
)

NEEDS = Table(
    name="needs",
    columns=("id", "owner_id", "visibility", "message", "tags", "created_at", "expires_at", "is_satisfied"),
)

NEED_REPLIES = Table(
    name="need_replies",
    columns=("id", "need_id", "author_id", "reply_to_user_id", "message", "created_at"),
)

_COMPARISONS = {">", ">=", "<", "<="}

Row = dict[str, Any]
Comparison = tuple[str, str, Any]


class Store(Protocol):
    async def get(self, table: Table, value: Any, column: str | None = None) -> Row | None: ...

    async def put(self, table: Table, row: Row) -> Row: ...

    async def select(
        self,
        table: Table,
        where: Row | None = None,
        compare: list[Comparison] | None = None,
        descending: bool = False,
    ) -> list[Row]: ...

    async def conditional_update(self, table: Table, key: Any, expected: Row, changes: Row) -> Row | None: ...

    async def conditional_update_and_put(
        self,
        table: Table,
        key: Any,
        expected: Row,
        changes: Row,
        insert_table: Table,
        insert_row: Row,
    ) -> tuple[Row, Row] | None: ...


def _insert_sql(table: Table, row: Row) -> tuple[str, list[Any]]:
    table.check_columns(row)
    columns = list(row)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    sql = f"INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"
    return sql, list(row.values())


def _update_sql(table: Table, key: Any, expected: Row, changes: Row) -> tuple[str, list[Any]]:
    table.check_columns(list(expected) + list(changes))
    args: list[Any] = list(changes.values())
    sets = ", ".join(f"{c} = ${i}" for i, c in enumerate(changes, start=1))
    args.append(key)
    clauses = [f"{table.key} = ${len(args)}"]
    for column, value in expected.items():
        args.append(value)
        clauses.append(f"{column} = ${len(args)}")
    return f"UPDATE {table.name} SET {sets} WHERE {' AND '.join(clauses)} RETURNING *", args


class PostgresStore:
    """Store backed by PostgreSQL through the asyncpg pool."""

    async def get(self, table: Table, value: Any, column: str | None = None) -> Row | None:
        column = column or table.key
        table.check_columns([column])
        async with system_conn() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {table.name} WHERE {column} = $1", value)
            return dict(row) if row else None

    async def put(self, table: Table, row: Row) -> Row:
        sql, args = _insert_sql(table, row)
        try:
            async with system_conn() as conn:
                result = await conn.fetchrow(sql, *args)
                return dict(result)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKey(str(e)) from e

    async def select(
        self,
        table: Table,
        where: Row | None = None,
        compare: list[Comparison] | None = None,
        descending: bool = False,
    ) -> list[Row]:
        where = where or {}
        compare = compare or []
        table.check_columns(list(where) + [c for c, _, _ in compare])

        clauses: list[str] = []
        args: list[Any] = []
        for column, value in where.items():
            args.append(value)
            clauses.append(f"{column} = ${len(args)}")
        for column, op, value in compare:
            if op not in _COMPARISONS:
                raise ValueError(f"Unsupported comparison: {op}")
            args.append(value)
            clauses.append(f"{column} {op} ${len(args)}")

        sql = f"SELECT * FROM {table.name}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY {table.order_by} {'DESC' if descending else 'ASC'}, {table.key}"

        async with system_conn() as conn:
            rows = await conn.fetch(sql, *args)
            return [dict(r) for r in rows]

    async def conditional_update(self, table: Table, key: Any, expected: Row, changes: Row) -> Row | None:
        """
        Apply `changes` to the row only if every column in `expected` still
        holds the expected value. Returns the updated row, or None when the
        row is missing or the condition no longer holds.
        """
        sql, args = _update_sql(table, key, expected, changes)
        async with system_conn() as conn:
            row = await conn.fetchrow(sql, *args)
            return dict(row) if row else None

    async def conditional_update_and_put(
        self,
        table: Table,
        key: Any,
        expected: Row,
        changes: Row,
        insert_table: Table,
        insert_row: Row,
    ) -> tuple[Row, Row] | None:
        """
        conditional_update() and put() in one transaction.

        Returns None without inserting when the condition does not hold. If
        the insert fails, the update is rolled back with it.
        """
        update_sql, update_args = _update_sql(table, key, expected, changes)
        insert_sql, insert_args = _insert_sql(insert_table, insert_row)
        try:
            async with system_conn() as conn:
                updated = await conn.fetchrow(update_sql, *update_args)
                if updated is None:
                    return None
                inserted = await conn.fetchrow(insert_sql, *insert_args)
                return dict(updated), dict(inserted)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateKey(str(e)) from e


def _matches(row: Row, where: Row) -> bool:
    return all(row.get(c) == v for c, v in where.items())


def _compares(row: Row, compare: list[Comparison]) -> bool:
    for column, op, value in compare:
        current = row.get(column)
        if current is None:
            return False
        if op == ">" and not current > value:
            return False
        if op == ">=" and not current >= value:
            return False
        if op == "<" and not current < value:
            return False
        if op == "<=" and not current <= value:
            return False
    return True


class MemoryStore:
    """
    In-process store.

    Every operation runs under one lock and never awaits while holding it,
    so put() constraint checks and conditional_update() are atomic across
    concurrent tasks and threads. Rows are deep-copied in and out.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[Any, Row]] = {}
        self._lock = threading.Lock()

    def _rows(self, table: Table) -> dict[Any, Row]:
        return self._tables.setdefault(table.name, {})

    async def get(self, table: Table, value: Any, column: str | None = None) -> Row | None:
        column = column or table.key
        table.check_columns([column])
        with self._lock:
            rows = self._rows(table)
            if column == table.key:
                row = rows.get(value)
                return copy.deepcopy(row) if row else None
            for row in rows.values():
                if row.get(column) == value:
                    return copy.deepcopy(row)
            return None

    async def put(self, table: Table, row: Row) -> Row:
        new = self._new_row(table, row)
        with self._lock:
            self._check_unique(table, new)
            self._rows(table)[new[table.key]] = new
            return copy.deepcopy(new)

    def _new_row(self, table: Table, row: Row) -> Row:
        table.check_columns(row)
        new = {c: None for c in table.columns}
        new.update(copy.deepcopy(row))
        return new

    def _check_unique(self, table: Table, new: Row) -> None:
        rows = self._rows(table)
        if new[table.key] in rows:
            raise DuplicateKey(f"{table.name}.{table.key}={new[table.key]!r}")
        for constraint in table.unique:
            if not _matches(new, dict(constraint.where)):
                continue
            for existing in rows.values():
                if not _matches(existing, dict(constraint.where)):
                    continue
                if all(existing[c] == new[c] for c in constraint.columns):
                    raise DuplicateKey(f"{table.name}{constraint.columns}")

    async def select(
        self,
        table: Table,
        where: Row | None = None,
        compare: list[Comparison] | None = None,
        descending: bool = False,
    ) -> list[Row]:
        where = where or {}
        compare = compare or []
        table.check_columns(list(where) + [c for c, _, _ in compare])
        with self._lock:
            found = [
                copy.deepcopy(r)
                for r in self._rows(table).values()
                if _matches(r, where) and _compares(r, compare)
            ]
        # Insertion order breaks ties, which keeps replies with equal timestamps stable
        found.sort(key=lambda r: r[table.order_by], reverse=descending)
        return found

    async def conditional_update(self, table: Table, key: Any, expected: Row, changes: Row) -> Row | None:
        table.check_columns(list(expected) + list(changes))
        with self._lock:
            row = self._rows(table).get(key)
            if row is None or not _matches(row, expected):
                return None
            row.update(copy.deepcopy(changes))
            return copy.deepcopy(row)

    async def conditional_update_and_put(
        self,
        table: Table,
        key: Any,
        expected: Row,
        changes: Row,
        insert_table: Table,
        insert_row: Row,
    ) -> tuple[Row, Row] | None:
        table.check_columns(list(expected) + list(changes))
        new = self._new_row(insert_table, insert_row)
        with self._lock:
            row = self._rows(table).get(key)
            if row is None or not _matches(row, expected):
                return None
            self._check_unique(insert_table, new)
            row.update(copy.deepcopy(changes))
            self._rows(insert_table)[new[insert_table.key]] = new
            return copy.deepcopy(row), copy.deepcopy(new)


_store: Store | None = None


def get_store() -> Store:
    """Return the configured store, creating the default PostgresStore on first use."""
    global _store
    if _store is None:
        _store = PostgresStore()
    return _store


def set_store(store: Store | None) -> None:
    """Swap the process-wide store. Called from app startup and test fixtures."""
    global _store
    _store = store
