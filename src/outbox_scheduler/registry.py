import logging
from datetime import datetime
from typing import Callable, List, Optional

from outbox_scheduler.domain.cadence import BaseCadence
from outbox_scheduler.domain.job import JobHandler, RegisteredJob
from outbox_scheduler.recurrence import next_run

logger = logging.getLogger(__name__)


class JobRegistry:
    """
    Table of recurring jobs, kept in registration order.

    Named jobs are unique: registering a name that already exists replaces the
    previous job in place. Unnamed jobs are never deduplicated.
    """
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock: Callable[[], datetime] = clock or datetime.now
        self._jobs: List[RegisteredJob] = []

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None if isinstance(name, str) else False

    @property
    def jobs(self) -> List[RegisteredJob]:
        return list(self._jobs)

    def get(self, name: str) -> Optional[RegisteredJob]:
        for job in self._jobs:
            if job.name == name:
                return job
        return None

    def register(
        self,
        handler: JobHandler,
        cadence: BaseCadence,
        name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RegisteredJob:
        """
        Register a recurring job and compute its first run.

        Args:
            handler (JobHandler): No-argument callable, sync or async.
            cadence (BaseCadence): When the job should run.
            name (Optional[str]): Unique key. An existing job with this name is replaced.
            now (Optional[datetime]): Instant to compute the first run from. Defaults to the registry clock.

        Returns:
            RegisteredJob: The registered job.
        """
        now = now or self._clock()
        job = RegisteredJob(
            name=name,
            handler=handler,
            cadence=cadence,
            next_run_at=next_run(cadence, now),
            registered_at=now,
        )

        if name is not None:
            for index, existing in enumerate(self._jobs):
                if existing.name == name:
                    self._jobs[index] = job
                    logger.info("Replaced scheduled job '%s': %s", name, cadence.describe())
                    return job

        self._jobs.append(job)
        logger.info("Registered scheduled job '%s': %s, next run at %s",
                    job.display_name, cadence.describe(), job.next_run_at.isoformat())
        return job

    def reschedule(self, job: RegisteredJob, cadence: BaseCadence, now: Optional[datetime] = None) -> RegisteredJob:
        """
        Change the cadence of a registered job and recompute its next run.
        """
        if not any(existing is job for existing in self._jobs):
            raise KeyError(f"Job '{job.display_name}' ({job.id}) is not registered")
        now = now or self._clock()
        job.cadence = cadence
        job.next_run_at = next_run(cadence, now)
        logger.info("Rescheduled job '%s': %s", job.display_name, cadence.describe())
        return job

    def unregister(self, name: str) -> bool:
        job = self.get(name)
        if job is None:
            return False
        self._jobs.remove(job)
        return True

    def due(self, now: datetime) -> List[RegisteredJob]:
        """
        Jobs due at ``now``, earliest first. Ties keep registration order.
        """
        return sorted((job for job in self._jobs if job.is_due(now)), key=lambda job: job.next_run_at)
