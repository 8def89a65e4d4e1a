"""In-process task queue with bounded retries and status broadcasting.

State machine: PENDING -> PROCESSING -> {COMPLETED | FAILED}. A FAILED task
with attempts below the ceiling is re-attempted after a linear backoff
(retry_backoff_sec * attempts). COMPLETED tasks are purged after a fixed
delay. Every mutation of the live set broadcasts a fresh QueueStatus.

Work failures are recorded on the task and never reach the caller of
add_task.
"""

import random
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from taskqueue.models import (
    NotificationType,
    QueueStatus,
    Task,
    TaskPriority,
    TaskStatus,
    utcnow,
)
from taskqueue.notifications import NotificationChannel
from taskqueue.observers import ObserverRegistry
from taskqueue.scheduler import Scheduler

log = structlog.get_logger()

TaskWork = Callable[[], Awaitable[Any]]

# (description marker, minimum seconds, spread seconds) for simulated work
_SIMULATED_DURATIONS: list[tuple[str, float, float]] = [
    ("amazon-search", 2.0, 3.0),
    ("openai-analysis", 1.5, 2.0),
    ("document-generation", 3.0, 4.0),
]


def estimate_processing_time(description: str) -> float:
    """Simulated duration in seconds for a task without explicit work."""
    for marker, minimum, spread in _SIMULATED_DURATIONS:
        if marker in description:
            return minimum + random.random() * spread  # noqa: S311
    return 1.0 + random.random() * 2.0  # noqa: S311


class TaskQueue:
    """Owns the live task set and the status subscribers.

    Callers only ever see copies of Task records and frozen QueueStatus
    snapshots. Processing always starts on a later scheduler turn, so
    add_task returns before any transition of the new task.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        notifications: NotificationChannel,
        max_attempts: int = 3,
        retry_backoff_sec: float = 5.0,
        purge_delay_sec: float = 30.0,
    ) -> None:
        self._scheduler = scheduler
        self.notifications = notifications
        self.max_attempts = max_attempts
        self.retry_backoff_sec = retry_backoff_sec
        self.purge_delay_sec = purge_delay_sec
        self._tasks: dict[str, Task] = {}
        self._work: dict[str, TaskWork | None] = {}
        self._observers: ObserverRegistry[QueueStatus] = ObserverRegistry("queue_status")

    def add_task(
        self,
        description: str,
        priority: TaskPriority | str = TaskPriority.NORMAL,
        work: TaskWork | None = None,
    ) -> str:
        """Enqueue a task and return its id.

        Args:
            description: Human-readable label for the work.
            priority: Advisory display priority.
            work: Zero-argument coroutine factory performing the work. Called
                once per attempt. When omitted the work is simulated.

        Returns:
            The new task's id.
        """
        task = Task(description=description, priority=TaskPriority(priority))
        self._tasks[task.id] = task
        self._work[task.id] = work

        log.info(
            "task_queue.task_added",
            task_id=task.id,
            description=description,
            priority=task.priority.value,
        )
        self._broadcast()
        self._schedule_attempt(task.id, delay=0.0)
        return task.id

    def get_status(self) -> QueueStatus:
        """Count live tasks per status. Side-effect free."""
        counts = {status: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status] += 1
        return QueueStatus(
            pending=counts[TaskStatus.PENDING],
            processing=counts[TaskStatus.PROCESSING],
            completed=counts[TaskStatus.COMPLETED],
            failed=counts[TaskStatus.FAILED],
        )

    def get_task(self, task_id: str) -> Task | None:
        """Return a copy of one task, or None if it is not live."""
        task = self._tasks.get(task_id)
        return task.model_copy() if task is not None else None

    def list_tasks(self) -> list[Task]:
        """Copies of all live tasks, highest priority first, then oldest first."""
        ordered = sorted(
            self._tasks.values(),
            key=lambda t: (t.priority.rank, t.created_at),
        )
        return [task.model_copy() for task in ordered]

    def on_status_change(self, callback: Callable[[QueueStatus], None]) -> Callable[[], None]:
        """Subscribe to status broadcasts. Returns the unsubscribe function."""
        return self._observers.subscribe(callback)

    def clear_task(self, task_id: str) -> bool:
        """Remove a task that is not currently processing.

        Pending retries for the task become no-ops.
        """
        task = self._tasks.get(task_id)
        if task is None or task.status == TaskStatus.PROCESSING:
            return False
        self._remove(task_id)
        log.info("task_queue.task_cleared", task_id=task_id)
        self._broadcast()
        return True

    def clear_failed(self) -> int:
        """Remove every FAILED task. Returns how many were removed."""
        failed = [tid for tid, t in self._tasks.items() if t.status == TaskStatus.FAILED]
        for task_id in failed:
            self._remove(task_id)
        if failed:
            log.info("task_queue.failed_cleared", count=len(failed))
            self._broadcast()
        return len(failed)

    def send_notification(
        self,
        message: str,
        type: NotificationType | str = NotificationType.INFO,
    ) -> None:
        """Publish a user-facing notification. Never raises."""
        self.notifications.notify(message, type)

    async def check_queue_health(self) -> bool:
        """Whether the external notification bus is reachable."""
        return await self.notifications.check_bus_health()

    def _schedule_attempt(self, task_id: str, delay: float) -> None:
        self._scheduler.call_later(
            delay,
            lambda: self._scheduler.spawn(self._process_task(task_id)),
        )

    async def _process_task(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        if task.status not in (TaskStatus.PENDING, TaskStatus.FAILED):
            return
        if task.attempts >= self.max_attempts:
            return

        task.status = TaskStatus.PROCESSING
        task.attempts += 1
        log.info("task_queue.processing", task_id=task_id, attempt=task.attempts)
        self._broadcast()

        try:
            work = self._work.get(task_id)
            if work is None:
                await self._scheduler.sleep(estimate_processing_time(task.description))
            else:
                await work()
        except Exception as exc:
            self._fail(task, exc)
            return

        if self._tasks.get(task_id) is not task:
            return
        task.status = TaskStatus.COMPLETED
        task.completed_at = utcnow()
        task.error = None
        log.info("task_queue.completed", task_id=task_id, attempts=task.attempts)
        self._broadcast()
        self._scheduler.call_later(self.purge_delay_sec, lambda: self._purge(task_id))
        self.notifications.notify(f"Task completed: {task.description}", NotificationType.SUCCESS)

    def _fail(self, task: Task, exc: Exception) -> None:
        if self._tasks.get(task.id) is not task:
            return
        task.status = TaskStatus.FAILED
        task.error = str(exc) or type(exc).__name__
        self._broadcast()

        if task.attempts < self.max_attempts:
            delay = self.retry_backoff_sec * task.attempts
            log.warning(
                "task_queue.retry_scheduled",
                task_id=task.id,
                attempt=task.attempts,
                max_attempts=self.max_attempts,
                delay_sec=delay,
                error_type=type(exc).__name__,
            )
            self._schedule_attempt(task.id, delay=delay)
        else:
            log.error(
                "task_queue.exhausted",
                task_id=task.id,
                attempts=task.attempts,
                error_type=type(exc).__name__,
            )
            self.notifications.notify(
                f"Task failed after {task.attempts} attempts: {task.description}",
                NotificationType.ERROR,
            )

    def _purge(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None or task.status != TaskStatus.COMPLETED:
            return
        self._remove(task_id)
        log.debug("task_queue.purged", task_id=task_id)
        self._broadcast()

    def _remove(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)
        self._work.pop(task_id, None)

    def _broadcast(self) -> None:
        self._observers.publish(self.get_status())
