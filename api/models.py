"""API request and response models — Pydantic v2 models for the REST API."""

from pydantic import BaseModel, Field

from taskqueue.models import TaskPriority


class TaskRequest(BaseModel):
    """Request body for queueing a background task.

    Attributes:
        description: Human-readable label of the work.
        priority: Advisory display priority.
    """

    description: str = Field(min_length=1)
    priority: TaskPriority = TaskPriority.NORMAL


class TaskResponse(BaseModel):
    """Acknowledgment of a queued task.

    Attributes:
        task_id: Identifier for tracking the task.
        status: Initial status (always "pending").
    """

    task_id: str
    status: str = "pending"


class ShoppingRequest(BaseModel):
    """Request body for a shopping run.

    Attributes:
        user_input: Free-text description of the desired aesthetic.
        user_id: Optional id forwarded to document rendering.
    """

    user_input: str = Field(min_length=1)
    user_id: str | None = None


class HealthResponse(BaseModel):
    """Response for the health endpoint.

    Attributes:
        status: Overall system health (healthy, degraded, unhealthy).
        gateway: Gateway reachable.
        queue: Notification bus reachable.
        model_service: Model service reachable.
    """

    status: str
    gateway: bool
    queue: bool
    model_service: bool


class ErrorResponse(BaseModel):
    """Standard error response.

    Attributes:
        error: Error type or code.
        detail: Human-readable error description.
    """

    error: str
    detail: str
