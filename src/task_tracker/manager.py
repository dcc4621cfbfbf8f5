from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Callable, List, Optional, Tuple, Union

from .errors import Result, invalid, not_found
from .models import (
    DESCRIPTION_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    Priority,
    TaskEntity,
    new_task,
)
from .settings import get_settings
from .store import TaskFilter, TaskStore, get_store

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
PriorityInput = Union[Priority, str, None]

SAMPLE_TASKS: Tuple[Tuple[str, Priority], ...] = (
    ("Study FastAPI", Priority.HIGH),
    ("Build a complete REST API", Priority.URGENT),
    ("Write documentation", Priority.MEDIUM),
    ("Write unit tests", Priority.HIGH),
    ("Review code", Priority.LOW),
    ("Deploy the application", Priority.MEDIUM),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TaskStats:
    total: int
    completed: int
    pending: int
    urgent: int
    high_priority: int

    @property
    def completion_percentage(self) -> float:
        return self.completed / self.total * 100 if self.total > 0 else 0.0


def _check_description(description: Optional[str]) -> Result[str]:
    text = (description or "").strip()
    if not text:
        return invalid("description must not be empty")
    if len(text) > DESCRIPTION_MAX_LENGTH:
        return invalid(f"description must be at most {DESCRIPTION_MAX_LENGTH} characters")
    return Result.success(text)


def _check_notes(notes: Optional[str]) -> Result[Optional[str]]:
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        return invalid(f"notes must be at most {NOTES_MAX_LENGTH} characters")
    return Result.success(notes or None)


def _check_priority(value: PriorityInput) -> Result[Priority]:
    priority = Priority.parse(value)
    if priority is None:
        allowed = ", ".join(p.value for p in Priority)
        return invalid(f"priority must be one of {allowed}")
    return Result.success(priority)


# PUBLIC_INTERFACE
class TaskManager:
    """
    Business rules for tasks layered over a TaskStore.

    Operations that can fail return a Result carrying either the value or a
    TaskError (NOT_FOUND / VALIDATION); they never raise for those cases.
    Timestamps come from `clock`; calendar-day queries use `tz`.
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Clock = utc_now,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._store = store
        self._clock = clock
        self._tz = tz

    # CRUD

    def create(
        self,
        description: Optional[str],
        priority: PriorityInput = None,
        notes: Optional[str] = None,
    ) -> Result[TaskEntity]:
        checked = _check_description(description)
        if not checked.ok:
            return checked  # type: ignore[return-value]
        level = Priority.MEDIUM
        if priority is not None:
            parsed = _check_priority(priority)
            if not parsed.ok:
                return parsed  # type: ignore[return-value]
            level = parsed.value  # type: ignore[assignment]
        checked_notes = _check_notes(notes)
        if not checked_notes.ok:
            return checked_notes  # type: ignore[return-value]

        task = self._store.insert(
            new_task(checked.value, self._clock(), priority=level, notes=checked_notes.value)  # type: ignore[arg-type]
        )
        logger.info("Created task %s (%s)", task["id"], task["priority"].value)
        return Result.success(task)

    def get(self, task_id: int) -> Result[TaskEntity]:
        task = self._store.get(task_id)
        if task is None:
            return not_found(task_id)
        return Result.success(task)

    def list_all(self) -> List[TaskEntity]:
        return self._store.list_all()

    def update(
        self,
        task_id: int,
        description: Optional[str] = None,
        priority: PriorityInput = None,
        notes: Optional[str] = None,
    ) -> Result[TaskEntity]:
        """
        Apply the given fields to a task; None (or a blank description) leaves
        the stored value alone. An empty notes string clears the notes.
        """
        task = self._store.get(task_id)
        if task is None:
            return not_found(task_id)

        updated = task.copy()
        if description is not None and description.strip():
            checked = _check_description(description)
            if not checked.ok:
                return checked  # type: ignore[return-value]
            updated["description"] = checked.value  # type: ignore[typeddict-item]
        if priority is not None:
            parsed = _check_priority(priority)
            if not parsed.ok:
                return parsed  # type: ignore[return-value]
            updated["priority"] = parsed.value  # type: ignore[typeddict-item]
        if notes is not None:
            checked_notes = _check_notes(notes)
            if not checked_notes.ok:
                return checked_notes  # type: ignore[return-value]
            updated["notes"] = checked_notes.value
        updated["updated_at"] = self._clock()

        return self._save(updated)

    def delete(self, task_id: int) -> Result[None]:
        if not self._store.exists(task_id):
            return not_found(task_id)
        self._store.delete(task_id)
        logger.info("Deleted task %s", task_id)
        return Result.success(None)

    # State transitions

    def complete(self, task_id: int) -> Result[TaskEntity]:
        task = self._store.get(task_id)
        if task is None:
            return not_found(task_id)
        if task["completed"]:
            return Result.success(task)
        now = self._clock()
        task["completed"] = True
        task["completed_at"] = now
        task["updated_at"] = now
        logger.info("Completed task %s", task_id)
        return self._save(task)

    def uncomplete(self, task_id: int) -> Result[TaskEntity]:
        task = self._store.get(task_id)
        if task is None:
            return not_found(task_id)
        if not task["completed"]:
            return Result.success(task)
        task["completed"] = False
        task["completed_at"] = None
        task["updated_at"] = self._clock()
        logger.info("Reopened task %s", task_id)
        return self._save(task)

    def change_priority(self, task_id: int, priority: PriorityInput) -> Result[TaskEntity]:
        task = self._store.get(task_id)
        if task is None:
            return not_found(task_id)
        parsed = _check_priority(priority)
        if not parsed.ok:
            return parsed  # type: ignore[return-value]
        task["priority"] = parsed.value  # type: ignore[typeddict-item]
        task["updated_at"] = self._clock()
        return self._save(task)

    def _save(self, task: TaskEntity) -> Result[TaskEntity]:
        saved = self._store.replace(task)
        if saved is None:
            # Deleted between read and write
            return not_found(task["id"])
        return Result.success(saved)

    # Queries

    def pending(self) -> List[TaskEntity]:
        return self._store.find(TaskFilter(completed=False))

    def completed(self) -> List[TaskEntity]:
        return self._store.find(TaskFilter(completed=True))

    def by_priority(self, priority: PriorityInput) -> Result[List[TaskEntity]]:
        parsed = _check_priority(priority)
        if not parsed.ok:
            return parsed  # type: ignore[return-value]
        return Result.success(self._store.find(TaskFilter(priorities=frozenset({parsed.value}))))

    def search(self, term: Optional[str]) -> Result[List[TaskEntity]]:
        text = (term or "").strip()
        if not text:
            return invalid("search term must not be blank")
        logger.debug("Searching tasks for %r", text)
        return Result.success(self._store.find(TaskFilter(description_contains=text)))

    def pending_by_priority(self) -> List[TaskEntity]:
        return self._store.find(TaskFilter(completed=False, order="priority"))

    def urgent(self) -> List[TaskEntity]:
        return self._store.find(
            TaskFilter(
                completed=False,
                priorities=frozenset({Priority.URGENT, Priority.HIGH}),
                order="priority",
            )
        )

    def created_today(self) -> List[TaskEntity]:
        local_now = self._clock().astimezone(self._tz)
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        return self._store.find(TaskFilter(created_from=start, created_before=end))

    def recently_completed(self, days: int) -> Result[List[TaskEntity]]:
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            return invalid("days must be a positive integer")
        since = self._clock() - timedelta(days=days)
        return Result.success(self._store.find(TaskFilter(completed=True, completed_since=since)))

    def stats(self) -> TaskStats:
        return TaskStats(
            total=self._store.count(),
            completed=self._store.count(TaskFilter(completed=True)),
            pending=self._store.count(TaskFilter(completed=False)),
            urgent=self._store.count(TaskFilter(priorities=frozenset({Priority.URGENT}))),
            high_priority=self._store.count(TaskFilter(priorities=frozenset({Priority.HIGH}))),
        )

    # Bulk operations

    def mark_all_completed(self) -> int:
        """Complete every pending task with one shared timestamp. Return how many changed."""
        now = self._clock()
        changed = 0
        for task in self.pending():
            task["completed"] = True
            task["completed_at"] = now
            task["updated_at"] = now
            if self._store.replace(task) is not None:
                changed += 1
        logger.info("Marked %d tasks completed", changed)
        return changed

    def delete_all_completed(self) -> int:
        removed = self._store.delete_many(t["id"] for t in self.completed())
        logger.info("Deleted %d completed tasks", removed)
        return removed

    def create_sample_tasks(self) -> List[TaskEntity]:
        now = self._clock()
        created = [
            self._store.insert(new_task(description, now, priority=priority))
            for description, priority in SAMPLE_TASKS
        ]
        logger.info("Inserted %d sample tasks", len(created))
        return created


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_task_manager() -> TaskManager:
    """Return the process-wide TaskManager over the configured store."""
    return TaskManager(get_store(), tz=get_settings().tz)
