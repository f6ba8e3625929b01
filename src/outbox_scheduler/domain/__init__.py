from .cadence import (
    Cadence,
    CadenceType,
    DailyCadence,
    HourlyCadence,
    IntervalCadence,
    WeeklyCadence,
    parse_at,
)
from .job import JobHandler, RegisteredJob
from .queue_item import QueueItem, QueueItemStatus

__all__ = [
    "Cadence", "CadenceType", "IntervalCadence", "HourlyCadence", "DailyCadence", "WeeklyCadence", "parse_at",
    "JobHandler", "RegisteredJob", "QueueItem", "QueueItemStatus",
]
