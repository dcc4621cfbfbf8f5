from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import NOTES_MAX_LENGTH, Priority


def _normalize_priority(value: Any) -> Any:
    """
    Accept priority names in any letter case ('high', 'High', 'HIGH').
    Unknown strings are passed through so the enum rejects them.
    """
    if isinstance(value, str):
        return value.strip().upper()
    return value


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Buy groceries",
                "priority": "HIGH",
                "notes": "Milk, eggs, bread",
            }
        }
    )

    description: str = Field(..., description="What needs doing")
    priority: Optional[Priority] = Field(default=None, description="Priority level; MEDIUM when omitted")
    notes: Optional[str] = Field(default=None, description="Optional free-form notes", max_length=NOTES_MAX_LENGTH)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> Any:
        return _normalize_priority(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only provided, non-null fields are applied.
    Completion state is changed through the complete/uncomplete endpoints.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Buy groceries and supplies",
                "priority": "URGENT",
                "notes": "Paper towels too",
            }
        }
    )

    description: Optional[str] = Field(default=None, description="What needs doing")
    priority: Optional[Priority] = Field(default=None, description="Priority level")
    notes: Optional[str] = Field(default=None, description="Free-form notes; empty string clears them", max_length=NOTES_MAX_LENGTH)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> Any:
        return _normalize_priority(v)


# PUBLIC_INTERFACE
class PriorityChange(BaseModel):
    """Body of PATCH /tasks/{id}/priority. Checked by the manager, not here."""

    model_config = ConfigDict(json_schema_extra={"example": {"priority": "URGENT"}})

    priority: Optional[str] = Field(default=None, description="One of LOW, MEDIUM, HIGH, URGENT")


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "description": "Buy groceries",
                "completed": True,
                "priority": "HIGH",
                "notes": "Milk, eggs, bread",
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-26T09:00:00.000001Z",
                "completed_at": "2025-01-26T09:00:00.000001Z",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the task")
    description: str = Field(..., description="What needs doing")
    completed: bool = Field(..., description="Completion status flag")
    priority: Priority = Field(..., description="Priority level")
    notes: Optional[str] = Field(default=None, description="Optional free-form notes")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp, null while pending")


# PUBLIC_INTERFACE
class TaskStatsOut(BaseModel):
    """Aggregate counters over all tasks."""

    total: int = Field(..., description="Number of tasks")
    completed: int = Field(..., description="Number of completed tasks")
    pending: int = Field(..., description="Number of pending tasks")
    urgent: int = Field(..., description="Number of URGENT tasks")
    high_priority: int = Field(..., description="Number of HIGH tasks")
    completion_percentage: float = Field(..., description="completed / total * 100, or 0 when there are no tasks")


class BulkResult(BaseModel):
    count: int = Field(..., description="Number of tasks affected")


class ErrorOut(BaseModel):
    code: str = Field(..., description="TASK_NOT_FOUND or BAD_REQUEST")
    message: str = Field(..., description="Human readable explanation")
