import asyncio
import logging
import math
from datetime import datetime
from typing import Callable, List, Optional, Set, Tuple

from outbox_scheduler.domain.cadence import (
    BaseCadence,
    CadenceType,
    DailyCadence,
    HourlyCadence,
    IntervalCadence,
    WeeklyCadence,
    parse_at,
)
from outbox_scheduler.domain.job import JobHandler, RegisteredJob
from outbox_scheduler.recurrence import next_run
from outbox_scheduler.registry import JobRegistry

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 60.0


class Scheduler:
    """
    Process-wide driver for recurring jobs.

    Build one per process at bootstrap and pass it to whatever needs to
    register jobs. Once started, a tick fires every ``tick_interval`` seconds;
    a tick runs every due job one after another. Ticks never overlap: a tick
    fired while the previous one is still running does nothing.
    """

    def __init__(
        self,
        registry: Optional[JobRegistry] = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.clock: Callable[[], datetime] = clock or datetime.now
        self.registry: JobRegistry = registry or JobRegistry(clock=self.clock)
        self.tick_interval: float = tick_interval
        self.is_running: bool = False
        self._started: bool = False
        self._ticking: bool = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()

    @property
    def is_ticking(self) -> bool:
        return self._ticking

    def register(self, handler: JobHandler, cadence: BaseCadence, name: Optional[str] = None) -> RegisteredJob:
        return self.registry.register(handler, cadence, name=name, now=self.clock())

    def call(self, handler: JobHandler, name: Optional[str] = None) -> "ScheduleBuilder":
        """
        Start a fluent registration, e.g. ``scheduler.call(report, name="report").daily().at("09:30")``.
        """
        return ScheduleBuilder(self, handler, name=name)

    async def start(self):
        """
        Start the tick timer. The first tick fires immediately.
        """
        if self._started:
            if not self.is_running:
                raise RuntimeError("Scheduler cannot be restarted once stopped")
            return
        self._started = True
        self.is_running = True
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())
        logger.info("Scheduler started with %d job(s), ticking every %ss.", len(self.registry), self.tick_interval)

    async def stop(self):
        """
        Stop the tick timer and wait for a running tick to finish.
        """
        if not self.is_running:
            return
        self.is_running = False
        if self._scheduler_task:
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass
        # Running handlers are never cancelled, only awaited.
        await asyncio.gather(*self._tick_tasks, return_exceptions=True)
        self._tick_tasks.clear()
        logger.info("Scheduler stopped.")

    async def _scheduler_loop(self):
        while self.is_running:
            tick_task = asyncio.create_task(self.tick())
            self._tick_tasks.add(tick_task)
            tick_task.add_done_callback(self._handle_tick_completion)
            await asyncio.sleep(self.tick_interval)

    def _handle_tick_completion(self, future: asyncio.Task):
        self._tick_tasks.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Scheduler tick failed", exc_info=future.exception())

    async def tick(self) -> List[RegisteredJob]:
        """
        Run every job that is due, earliest first.

        Each job's next run is recomputed from the current time after it
        finishes, whether it succeeded or not. A failing job is logged and
        does not stop the jobs after it.

        Returns:
            List[RegisteredJob]: The jobs executed by this tick, empty if the
            tick was skipped because another one is still running.
        """
        if self._ticking:
            logger.debug("Previous tick still running, skipping.")
            return []
        self._ticking = True

        try:
            due_jobs = self.registry.due(self.clock())
            for job in due_jobs:
                try:
                    await job.run()
                except Exception:
                    logger.exception("Scheduled job '%s' failed", job.display_name)
                finally:
                    job.next_run_at = next_run(job.cadence, self.clock())
            return due_jobs
        finally:
            self._ticking = False


class ScheduleBuilder:
    """
    Fluent registration helper returned by ``Scheduler.call``.

    The job is registered as soon as a cadence method is called. Calling
    ``at`` afterwards re-registers the same job with the new time.
    """

    def __init__(self, scheduler: Scheduler, handler: JobHandler, name: Optional[str] = None):
        self._scheduler = scheduler
        self._handler = handler
        self._name = name
        self._type: Optional[CadenceType] = None
        self._interval_minutes: Optional[int] = None
        self._at: Optional[Tuple[int, int]] = None
        self.job: Optional[RegisteredJob] = None

    def every_minutes(self, minutes: float) -> "ScheduleBuilder":
        self._type = CadenceType.INTERVAL
        self._interval_minutes = math.floor(minutes)
        return self._apply()

    def hourly(self) -> "ScheduleBuilder":
        self._type = CadenceType.HOURLY
        return self._apply()

    def daily(self) -> "ScheduleBuilder":
        self._type = CadenceType.DAILY
        return self._apply()

    def weekly(self) -> "ScheduleBuilder":
        self._type = CadenceType.WEEKLY
        return self._apply()

    def at(self, value: str) -> "ScheduleBuilder":
        self._at = parse_at(value)
        if self._type is not None:
            return self._apply()
        return self

    def _build_cadence(self) -> BaseCadence:
        hour, minute = self._at or (0, 0)
        if self._type == CadenceType.INTERVAL:
            return IntervalCadence(minutes=self._interval_minutes)
        if self._type == CadenceType.HOURLY:
            return HourlyCadence(minute=minute)
        if self._type == CadenceType.WEEKLY:
            return WeeklyCadence(hour=hour, minute=minute)
        return DailyCadence(hour=hour, minute=minute)

    def _apply(self) -> "ScheduleBuilder":
        cadence = self._build_cadence()
        if self.job is not None and self._name is None:
            self.job = self._scheduler.registry.reschedule(self.job, cadence, now=self._scheduler.clock())
        else:
            self.job = self._scheduler.register(self._handler, cadence, name=self._name)
        return self
