from abc import ABC, abstractmethod
from enum import Enum
from typing import Annotated, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class CadenceType(str, Enum):
    INTERVAL = "interval"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


def parse_at(value: str) -> Tuple[int, int]:
    """
    Parse an ``HH:MM`` wall-clock time into an ``(hour, minute)`` pair.

    Raises:
        ValueError: If the value is not two integers separated by a colon,
            or if either part is outside 00:00-23:59.
    """
    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ValueError("Invalid time format. Use HH:MM.")
    try:
        hour, minute = (int(part) for part in parts)
    except ValueError:
        raise ValueError("Invalid time format. Use HH:MM.")
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise ValueError("Invalid time value. Use HH:MM within 00:00-23:59.")
    return hour, minute


class BaseCadence(BaseModel, ABC):
    """
    Base class for all cadence kinds. Cadences are immutable once built.
    """
    model_config = ConfigDict(frozen=True)

    type: CadenceType

    @abstractmethod
    def describe(self) -> str:
        pass


class IntervalCadence(BaseCadence):
    """
    Runs every ``minutes`` minutes, counted from the last run.
    """
    type: Literal[CadenceType.INTERVAL] = CadenceType.INTERVAL
    minutes: int = Field(..., ge=1, description="Minutes between two runs")

    def describe(self) -> str:
        return f"Every {self.minutes} minute(s)"


class HourlyCadence(BaseCadence):
    """
    Runs once an hour at the given minute.
    """
    type: Literal[CadenceType.HOURLY] = CadenceType.HOURLY
    minute: int = Field(0, ge=0, le=59, description="Minute of the hour")

    def describe(self) -> str:
        return f"Hourly at minute {self.minute:02d}"


class DailyCadence(BaseCadence):
    """
    Runs once a day at ``hour:minute``.
    """
    type: Literal[CadenceType.DAILY] = CadenceType.DAILY
    hour: int = Field(0, ge=0, le=23, description="Hour of the day")
    minute: int = Field(0, ge=0, le=59, description="Minute of the hour")

    @classmethod
    def at(cls, value: str) -> "DailyCadence":
        hour, minute = parse_at(value)
        return cls(hour=hour, minute=minute)

    def describe(self) -> str:
        return f"Daily at {self.hour:02d}:{self.minute:02d}"


class WeeklyCadence(BaseCadence):
    """
    Runs once a week, on Monday at ``hour:minute``.

    The weekday is fixed. A Monday never fires on the same day: the next run
    is always the following Monday, unlike DailyCadence which fires later the
    same day if the time is still ahead.
    """
    type: Literal[CadenceType.WEEKLY] = CadenceType.WEEKLY
    hour: int = Field(0, ge=0, le=23, description="Hour of the day")
    minute: int = Field(0, ge=0, le=59, description="Minute of the hour")

    @classmethod
    def at(cls, value: str) -> "WeeklyCadence":
        hour, minute = parse_at(value)
        return cls(hour=hour, minute=minute)

    def describe(self) -> str:
        return f"Weekly on Monday at {self.hour:02d}:{self.minute:02d}"


Cadence = Annotated[
    Union[IntervalCadence, HourlyCadence, DailyCadence, WeeklyCadence],
    Field(discriminator="type"),
]
