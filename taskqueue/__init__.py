"""Task queue, notification channel and the scheduler they share."""

from taskqueue.models import (
    Notification,
    NotificationType,
    QueueStatus,
    Task,
    TaskPriority,
    TaskStatus,
)
from taskqueue.notifications import HttpNotificationBus, NotificationBus, NotificationChannel
from taskqueue.queue import TaskQueue
from taskqueue.scheduler import LoopScheduler, ManualScheduler, Scheduler

__all__ = [
    "HttpNotificationBus",
    "LoopScheduler",
    "ManualScheduler",
    "Notification",
    "NotificationBus",
    "NotificationChannel",
    "NotificationType",
    "QueueStatus",
    "Scheduler",
    "Task",
    "TaskPriority",
    "TaskQueue",
    "TaskStatus",
]
