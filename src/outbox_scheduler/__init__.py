"""
Recurring Job Scheduler and Outbound Email Queue

This package schedules recurring in-process jobs and delivers queued email
with at-least-once semantics.

Core Concepts:

Cadence:
    The rule deciding when a recurring job runs next: every N minutes,
    hourly at a minute, daily at a time, or weekly (Monday) at a time.

RegisteredJob:
    A named or unnamed handler registered on the Scheduler with a cadence.
    Registering a name that already exists replaces the earlier job.

Tick:
    One pass of the Scheduler over its jobs. Due jobs run one after another;
    ticks never overlap.

QueueItem:
    One outbound email. It moves pending -> sending -> sent or failed, and a
    failed item is retried until it has used up its attempts (dead letter).

Relationships:
    - The Scheduler runs the email queue's ``process_batch`` as a recurring job.
    - ``process_batch`` claims queue items atomically, so concurrent
      processors never deliver the same attempt twice.
"""

from .domain import (
    DailyCadence,
    HourlyCadence,
    IntervalCadence,
    QueueItem,
    QueueItemStatus,
    RegisteredJob,
    WeeklyCadence,
)
from .queue import BatchResult, EmailQueue
from .recurrence import next_run
from .registry import JobRegistry
from .scheduler import ScheduleBuilder, Scheduler

__all__ = [
    "IntervalCadence", "HourlyCadence", "DailyCadence", "WeeklyCadence",
    "RegisteredJob", "QueueItem", "QueueItemStatus",
    "next_run", "JobRegistry", "Scheduler", "ScheduleBuilder",
    "EmailQueue", "BatchResult",
]
