from __future__ import annotations

from typing import List, Optional, TypeVar

from fastapi import APIRouter, Depends, Query, Response, status

from ..errors import Result, TaskApiError
from ..manager import TaskManager, get_task_manager
from ..models import TaskEntity
from ..schemas import (
    BulkResult,
    ErrorOut,
    PriorityChange,
    TaskCreate,
    TaskOut,
    TaskStatsOut,
    TaskUpdate,
)

T = TypeVar("T")

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)

_NOT_FOUND = {404: {"model": ErrorOut, "description": "Task not found"}}
_BAD_REQUEST = {400: {"model": ErrorOut, "description": "Invalid input"}}


def _get_manager(manager: TaskManager = Depends(get_task_manager)) -> TaskManager:
    """
    Dependency wrapper for the task manager to keep signatures clean.
    """
    return manager


def _unwrap(result: Result[T]) -> T:
    if result.error is not None:
        raise TaskApiError(result.error)
    return result.value  # type: ignore[return-value]


def _out(task: TaskEntity) -> TaskOut:
    return TaskOut(**task)  # type: ignore[arg-type]


def _out_list(tasks: List[TaskEntity]) -> List[TaskOut]:
    return [_out(t) for t in tasks]


# Fixed paths are declared before /{task_id} so they are not captured by it.


# PUBLIC_INTERFACE
@router.get("", response_model=List[TaskOut], summary="List Tasks", description="List every task ordered by id.")
def list_tasks(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.list_all())


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task. Priority defaults to MEDIUM.",
    responses={201: {"description": "Task created successfully"}, **_BAD_REQUEST},
)
def create_task(payload: TaskCreate, manager: TaskManager = Depends(_get_manager)) -> TaskOut:
    """
    Create a new task.
    """
    created = _unwrap(manager.create(payload.description, payload.priority, payload.notes))
    return _out(created)


# PUBLIC_INTERFACE
@router.get("/pending", response_model=List[TaskOut], summary="Pending Tasks")
def pending_tasks(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.pending())


# PUBLIC_INTERFACE
@router.get(
    "/pending/by-priority",
    response_model=List[TaskOut],
    summary="Pending Tasks By Priority",
    description="Pending tasks ordered URGENT, HIGH, MEDIUM, LOW, oldest first within a level.",
)
def pending_tasks_by_priority(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.pending_by_priority())


# PUBLIC_INTERFACE
@router.get("/completed", response_model=List[TaskOut], summary="Completed Tasks")
def completed_tasks(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.completed())


# PUBLIC_INTERFACE
@router.delete(
    "/completed",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Completed Tasks",
    description="Delete every completed task.",
)
def delete_completed_tasks(manager: TaskManager = Depends(_get_manager)) -> Response:
    manager.delete_all_completed()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get(
    "/priority/{priority}",
    response_model=List[TaskOut],
    summary="Tasks By Priority",
    responses=_BAD_REQUEST,
)
def tasks_by_priority(priority: str, manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(_unwrap(manager.by_priority(priority)))


# PUBLIC_INTERFACE
@router.get(
    "/search",
    response_model=List[TaskOut],
    summary="Search Tasks",
    description="Case-insensitive substring search over task descriptions.",
    responses=_BAD_REQUEST,
)
def search_tasks(
    q: Optional[str] = Query(None, description="Text to look for in descriptions"),
    manager: TaskManager = Depends(_get_manager),
) -> List[TaskOut]:
    return _out_list(_unwrap(manager.search(q)))


# PUBLIC_INTERFACE
@router.get(
    "/urgent",
    response_model=List[TaskOut],
    summary="Urgent Tasks",
    description="Pending URGENT and HIGH tasks, most urgent first.",
)
def urgent_tasks(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.urgent())


# PUBLIC_INTERFACE
@router.get("/today", response_model=List[TaskOut], summary="Tasks Created Today")
def tasks_created_today(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.created_today())


# PUBLIC_INTERFACE
@router.get(
    "/recently-completed",
    response_model=List[TaskOut],
    summary="Recently Completed Tasks",
    responses=_BAD_REQUEST,
)
def recently_completed_tasks(
    days: int = Query(7, ge=1, le=365, description="Look-back window in days (1..365)"),
    manager: TaskManager = Depends(_get_manager),
) -> List[TaskOut]:
    return _out_list(_unwrap(manager.recently_completed(days)))


# PUBLIC_INTERFACE
@router.get("/stats", response_model=TaskStatsOut, summary="Task Statistics")
def task_stats(manager: TaskManager = Depends(_get_manager)) -> TaskStatsOut:
    stats = manager.stats()
    return TaskStatsOut(
        total=stats.total,
        completed=stats.completed,
        pending=stats.pending,
        urgent=stats.urgent,
        high_priority=stats.high_priority,
        completion_percentage=stats.completion_percentage,
    )


# PUBLIC_INTERFACE
@router.patch(
    "/complete-all",
    response_model=BulkResult,
    summary="Complete All Tasks",
    description="Mark every pending task as completed.",
)
def complete_all_tasks(manager: TaskManager = Depends(_get_manager)) -> BulkResult:
    return BulkResult(count=manager.mark_all_completed())


# PUBLIC_INTERFACE
@router.post(
    "/sample-data",
    response_model=List[TaskOut],
    status_code=status.HTTP_201_CREATED,
    summary="Create Sample Tasks",
    description="Insert six demo tasks. Intended for development.",
)
def create_sample_tasks(manager: TaskManager = Depends(_get_manager)) -> List[TaskOut]:
    return _out_list(manager.create_sample_tasks())


# PUBLIC_INTERFACE
@router.get("/{task_id}", response_model=TaskOut, summary="Get Task", responses=_NOT_FOUND)
def get_task(task_id: int, manager: TaskManager = Depends(_get_manager)) -> TaskOut:
    """
    Retrieve a single task by its ID.
    """
    return _out(_unwrap(manager.get(task_id)))


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description="Update description, priority and notes. Null or omitted fields are left unchanged.",
    responses={**_NOT_FOUND, **_BAD_REQUEST},
)
def update_task(task_id: int, payload: TaskUpdate, manager: TaskManager = Depends(_get_manager)) -> TaskOut:
    updated = manager.update(
        task_id,
        description=payload.description,
        priority=payload.priority,
        notes=payload.notes,
    )
    return _out(_unwrap(updated))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    responses=_NOT_FOUND,
)
def delete_task(task_id: int, manager: TaskManager = Depends(_get_manager)) -> Response:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    _unwrap(manager.delete(task_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.patch("/{task_id}/complete", response_model=TaskOut, summary="Complete Task", responses=_NOT_FOUND)
def complete_task(task_id: int, manager: TaskManager = Depends(_get_manager)) -> TaskOut:
    return _out(_unwrap(manager.complete(task_id)))


# PUBLIC_INTERFACE
@router.patch("/{task_id}/uncomplete", response_model=TaskOut, summary="Reopen Task", responses=_NOT_FOUND)
def uncomplete_task(task_id: int, manager: TaskManager = Depends(_get_manager)) -> TaskOut:
    return _out(_unwrap(manager.uncomplete(task_id)))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}/priority",
    response_model=TaskOut,
    summary="Change Task Priority",
    responses={**_NOT_FOUND, **_BAD_REQUEST},
)
def change_task_priority(
    task_id: int,
    payload: PriorityChange,
    manager: TaskManager = Depends(_get_manager),
) -> TaskOut:
    return _out(_unwrap(manager.change_priority(task_id, payload.priority)))
