from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generator, Iterable, List, Optional, Tuple

from .models import Priority, TaskEntity, TaskFields
from .store import TaskFilter, TaskStore, rank_case_sql

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    description: str = "description"
    completed: str = "completed"
    priority: str = "priority"
    notes: str = "notes"
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    completed_at: str = "completed_at"


_COLS = _Cols()

# Largest value a SQLite INTEGER column can hold
_MAX_ROWID = 2**63 - 1


def _to_db(dt: Optional[datetime]) -> Optional[str]:
    # Fixed UTC offset and precision keep string order equal to time order
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


def _lower(s: Optional[str]) -> Optional[str]:
    return None if s is None else s.lower()


def _storable_id(task_id: int) -> bool:
    return -_MAX_ROWID - 1 <= task_id <= _MAX_ROWID


class SQLiteTaskStore(TaskStore):
    """
    Lightweight SQLite store implementing the TaskStore interface.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        # SQLite's own lower() only folds ASCII
        conn.create_function("py_lower", 1, _lower, deterministic=True)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.description} TEXT NOT NULL,
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.priority} TEXT NOT NULL DEFAULT 'MEDIUM',
                    {_COLS.notes} TEXT NULL,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL,
                    {_COLS.completed_at} TEXT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_completed ON {_COLS.table}({_COLS.completed})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_priority ON {_COLS.table}({_COLS.priority})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at ON {_COLS.table}({_COLS.created_at})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": int(row[_COLS.id]),
            "description": str(row[_COLS.description]),
            "completed": bool(row[_COLS.completed]),
            "priority": Priority(row[_COLS.priority]),
            "notes": row[_COLS.notes],
            "created_at": _from_db(row[_COLS.created_at]),  # type: ignore
            "updated_at": _from_db(row[_COLS.updated_at]),  # type: ignore
            "completed_at": _from_db(row[_COLS.completed_at]),
        }

    def _select_by_id(self, conn: sqlite3.Connection, task_id: int) -> Optional[sqlite3.Row]:
        return conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()

    def insert(self, fields: TaskFields) -> TaskEntity:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.description}, {_COLS.completed}, {_COLS.priority},
                    {_COLS.notes}, {_COLS.created_at}, {_COLS.updated_at}, {_COLS.completed_at})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    fields["description"],
                    1 if fields["completed"] else 0,
                    fields["priority"].value,
                    fields["notes"],
                    _to_db(fields["created_at"]),
                    _to_db(fields["updated_at"]),
                    _to_db(fields["completed_at"]),
                ),
            )
            row = self._select_by_id(conn, cur.lastrowid)
            assert row is not None
            return self._row_to_entity(row)

    def get(self, task_id: int) -> Optional[TaskEntity]:
        if not _storable_id(task_id):
            return None
        with self._conn() as conn:
            row = self._select_by_id(conn, task_id)
            return self._row_to_entity(row) if row else None

    def list_all(self) -> List[TaskEntity]:
        return self.find()

    def replace(self, task: TaskEntity) -> Optional[TaskEntity]:
        if not _storable_id(task["id"]):
            return None
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.description} = ?, {_COLS.completed} = ?, {_COLS.priority} = ?,
                    {_COLS.notes} = ?, {_COLS.created_at} = ?, {_COLS.updated_at} = ?,
                    {_COLS.completed_at} = ?
                WHERE {_COLS.id} = ?
                """,
                (
                    task["description"],
                    1 if task["completed"] else 0,
                    task["priority"].value,
                    task["notes"],
                    _to_db(task["created_at"]),
                    _to_db(task["updated_at"]),
                    _to_db(task["completed_at"]),
                    task["id"],
                ),
            )
            if cur.rowcount == 0:
                return None
            row = self._select_by_id(conn, task["id"])
            assert row is not None
            return self._row_to_entity(row)

    def delete(self, task_id: int) -> bool:
        if not _storable_id(task_id):
            return False
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0

    def delete_many(self, task_ids: Iterable[int]) -> int:
        ids = sorted(i for i in set(task_ids) if _storable_id(i))
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} IN ({placeholders})", ids)
            logger.debug("Deleted %d task rows", cur.rowcount)
            return cur.rowcount

    def exists(self, task_id: int) -> bool:
        if not _storable_id(task_id):
            return False
        with self._conn() as conn:
            row = conn.execute(f"SELECT 1 FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()
            return row is not None

    def _where(self, q: TaskFilter) -> Tuple[str, list]:
        clauses = []
        params: list = []

        if q.completed is not None:
            clauses.append(f"{_COLS.completed} = ?")
            params.append(1 if q.completed else 0)

        if q.priorities is not None:
            if not q.priorities:
                clauses.append("0")
            else:
                values = sorted(p.value for p in q.priorities)
                clauses.append(f"{_COLS.priority} IN ({', '.join('?' for _ in values)})")
                params.extend(values)

        if q.description_contains:
            clauses.append(f"instr(py_lower({_COLS.description}), ?) > 0")
            params.append(q.description_contains.lower())

        if q.created_from is not None:
            clauses.append(f"{_COLS.created_at} >= ?")
            params.append(_to_db(q.created_from))

        if q.created_before is not None:
            clauses.append(f"{_COLS.created_at} < ?")
            params.append(_to_db(q.created_before))

        if q.completed_since is not None:
            clauses.append(f"{_COLS.completed_at} IS NOT NULL AND {_COLS.completed_at} >= ?")
            params.append(_to_db(q.completed_since))

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where_sql, params

    def count(self, criteria: Optional[TaskFilter] = None) -> int:
        where_sql, params = self._where(criteria or TaskFilter())
        with self._conn() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {_COLS.table} {where_sql}", params).fetchone()
            return int(row["cnt"]) if row else 0

    def find(self, criteria: Optional[TaskFilter] = None) -> List[TaskEntity]:
        q = criteria or TaskFilter()
        where_sql, params = self._where(q)

        if q.order == "priority":
            rank_sql, rank_params = rank_case_sql(_COLS.priority)
            order_sql = f"ORDER BY {rank_sql}, {_COLS.created_at} ASC, {_COLS.id} ASC"
            params = [*params, *rank_params]
        else:
            order_sql = f"ORDER BY {_COLS.id} ASC"

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                {where_sql}
                {order_sql}
                """,
                params,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
