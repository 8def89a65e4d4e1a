"""Task queue data models.

Task records are owned by the TaskQueue. Everything handed to callers is a
copy, and QueueStatus / Notification are frozen.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(Enum):
    """Lifecycle states of a queued task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskPriority(Enum):
    """Advisory priority. Affects display order only, never scheduling."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"high": 0, "normal": 1, "low": 2}[self.value]


class NotificationType(Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def new_task_id() -> str:
    """Generate an opaque task identifier that is never reused."""
    return f"task-{uuid.uuid4().hex}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(BaseModel):
    """One unit of background work tracked by the queue.

    Attributes:
        id: Opaque unique token generated at enqueue time.
        description: Human-readable label, also used to estimate duration.
        status: Current lifecycle state.
        priority: Advisory display priority.
        attempts: Processing attempts so far.
        created_at: When the task was enqueued.
        completed_at: When the task reached COMPLETED.
        error: Reason for the most recent failure.
    """

    id: str = Field(default_factory=new_task_id)
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.NORMAL
    attempts: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    error: str | None = None


class QueueStatus(BaseModel):
    """Point-in-time count of live tasks per status."""

    model_config = ConfigDict(frozen=True)

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed


class Notification(BaseModel):
    """A transient, human-readable event for the UI.

    Attributes:
        message: Plain-language description of what happened.
        type: Severity used for styling.
        timestamp: Publication time in epoch milliseconds.
        source: Name of the publishing application.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    type: NotificationType = NotificationType.INFO
    timestamp: int
    source: str

    def envelope(self) -> dict[str, object]:
        """Wire envelope published to the real-time bus."""
        return {
            "message": self.message,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "source": self.source,
        }
