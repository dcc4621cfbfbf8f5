from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, TypedDict, Union

DESCRIPTION_MAX_LENGTH = 255
NOTES_MAX_LENGTH = 500


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Priority level of a task."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @classmethod
    def parse(cls, value: Union["Priority", str, None]) -> Optional["Priority"]:
        """
        Return the Priority named by value (case-insensitive), or None if value
        is missing or not one of the known levels.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


# Sort rank for priorities: lower rank sorts first.
PRIORITY_RANK: Dict[Priority, int] = {
    Priority.URGENT: 1,
    Priority.HIGH: 2,
    Priority.MEDIUM: 3,
    Priority.LOW: 4,
}


class TaskFields(TypedDict):
    """
    Every persisted attribute of a task except its id.

    Fields:
    - description: 1..255 chars, trimmed
    - completed: completion flag
    - priority: Priority level
    - notes: optional free text (<= 500 chars)
    - created_at: timezone-aware creation timestamp
    - updated_at: timezone-aware last mutation timestamp
    - completed_at: set iff completed is True
    """

    description: str
    completed: bool
    priority: Priority
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]


# PUBLIC_INTERFACE
class TaskEntity(TaskFields):
    """A stored task: its fields plus the store-assigned integer id."""

    id: int


# PUBLIC_INTERFACE
def new_task(
    description: str,
    now: datetime,
    priority: Priority = Priority.MEDIUM,
    notes: Optional[str] = None,
) -> TaskFields:
    """Build the fields of a fresh, pending task created at `now`."""
    return {
        "description": description,
        "completed": False,
        "priority": priority,
        "notes": notes,
        "created_at": now,
        "updated_at": now,
        "completed_at": None,
    }
