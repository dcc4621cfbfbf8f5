from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .models import PRIORITY_RANK, Priority, TaskEntity, TaskFields
from .settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskFilter:
    """
    Criteria for finding or counting tasks. Unset fields do not filter;
    set fields are combined with AND.
    """
    completed: Optional[bool] = None
    priorities: Optional[FrozenSet[Priority]] = None
    description_contains: Optional[str] = None  # case-insensitive substring
    created_from: Optional[datetime] = None  # inclusive
    created_before: Optional[datetime] = None  # exclusive
    completed_since: Optional[datetime] = None  # inclusive, on completed_at
    order: str = "id"  # allowed: id, priority


def matches(criteria: TaskFilter, task: TaskEntity) -> bool:
    """Return True if task satisfies every criterion that is set."""
    if criteria.completed is not None and task["completed"] != criteria.completed:
        return False
    if criteria.priorities is not None and task["priority"] not in criteria.priorities:
        return False
    if criteria.description_contains:
        if criteria.description_contains.lower() not in task["description"].lower():
            return False
    if criteria.created_from is not None and task["created_at"] < criteria.created_from:
        return False
    if criteria.created_before is not None and task["created_at"] >= criteria.created_before:
        return False
    if criteria.completed_since is not None:
        completed_at = task["completed_at"]
        if completed_at is None or completed_at < criteria.completed_since:
            return False
    return True


def sort_key(order: str):
    """Key function for in-memory ordering; 'priority' sorts by rank, then age."""
    if order == "priority":
        return lambda t: (PRIORITY_RANK[t["priority"]], t["created_at"], t["id"])
    return lambda t: t["id"]


# PUBLIC_INTERFACE
class TaskStore(ABC):
    """Abstract storage contract for task backends."""

    @abstractmethod
    def insert(self, fields: TaskFields) -> TaskEntity:
        """Assign a new id, persist and return the stored task."""

    @abstractmethod
    def get(self, task_id: int) -> Optional[TaskEntity]:
        """Return a task by id, or None if not found."""

    @abstractmethod
    def list_all(self) -> List[TaskEntity]:
        """Return every task ordered by id."""

    @abstractmethod
    def replace(self, task: TaskEntity) -> Optional[TaskEntity]:
        """Overwrite the stored task with the same id. Return it, or None if not found."""

    @abstractmethod
    def delete(self, task_id: int) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""

    @abstractmethod
    def delete_many(self, task_ids: Iterable[int]) -> int:
        """Delete every listed id. Return the number of tasks removed."""

    @abstractmethod
    def exists(self, task_id: int) -> bool:
        """Return True if a task with this id is stored."""

    @abstractmethod
    def count(self, criteria: Optional[TaskFilter] = None) -> int:
        """Return the number of tasks matching criteria (all tasks when None)."""

    @abstractmethod
    def find(self, criteria: Optional[TaskFilter] = None) -> List[TaskEntity]:
        """Return tasks matching criteria, ordered as criteria.order asks."""


class InMemoryTaskStore(TaskStore):
    """
    Thread-safe in-memory store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[int, TaskEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def insert(self, fields: TaskFields) -> TaskEntity:
        with self._lock:
            entity: TaskEntity = {"id": self._allocate_id(), **fields}  # type: ignore[typeddict-item]
            self._items[entity["id"]] = entity
            return entity.copy()

    def get(self, task_id: int) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def list_all(self) -> List[TaskEntity]:
        return self.find()

    def replace(self, task: TaskEntity) -> Optional[TaskEntity]:
        with self._lock:
            if task["id"] not in self._items:
                return None
            self._items[task["id"]] = task.copy()
            return task.copy()

    def delete(self, task_id: int) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def delete_many(self, task_ids: Iterable[int]) -> int:
        with self._lock:
            return sum(1 for i in set(task_ids) if self._items.pop(i, None) is not None)

    def exists(self, task_id: int) -> bool:
        with self._lock:
            return task_id in self._items

    def count(self, criteria: Optional[TaskFilter] = None) -> int:
        q = criteria or TaskFilter()
        with self._lock:
            return sum(1 for t in self._items.values() if matches(q, t))

    def find(self, criteria: Optional[TaskFilter] = None) -> List[TaskEntity]:
        q = criteria or TaskFilter()
        with self._lock:
            items = [t for t in self._items.values() if matches(q, t)]
            # Return copies to avoid external mutation
            return [t.copy() for t in sorted(items, key=sort_key(q.order))]


def rank_case_sql(column: str) -> Tuple[str, list]:
    """
    Build a SQL CASE expression mapping a priority column to its rank,
    with the rank table passed as parameters.
    """
    whens = " ".join("WHEN ? THEN ?" for _ in PRIORITY_RANK)
    params: list = []
    for priority, rank in PRIORITY_RANK.items():
        params.extend([priority.value, rank])
    return f"CASE {column} {whens} END", params


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_store() -> TaskStore:
    """
    Return the configured store based on settings, created once per process.
    - memory: InMemoryTaskStore
    - sqlite: SQLiteTaskStore (standard library sqlite3)
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteTaskStore

        logger.info("Using SQLite task store at %s", settings.sqlite_db_path)
        return SQLiteTaskStore(settings.sqlite_db_path)
    logger.info("Using in-memory task store")
    return InMemoryTaskStore()
