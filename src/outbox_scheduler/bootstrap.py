"""
Process wiring: builds the queue storage, the delivery transport, the email
queue and the scheduler, and registers the email queue job.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from outbox_scheduler.config import Settings, get_settings
from outbox_scheduler.domain.job import RegisteredJob
from outbox_scheduler.queue import EmailQueue
from outbox_scheduler.scheduler import Scheduler
from outbox_scheduler.storages.sqlalchemy import SqlAlchemyQueueStorage
from outbox_scheduler.transports.smtp import SmtpTransport

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_UNSET = object()


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Configure root logging once and return the package logger.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    return logging.getLogger("outbox_scheduler")


@dataclass
class Application:
    settings: Settings
    storage: SqlAlchemyQueueStorage
    queue: EmailQueue
    scheduler: Scheduler
    queue_job: RegisteredJob = field(repr=False)

    async def start(self):
        await self.storage.create_tables()
        await self.scheduler.start()
        if self.queue.transport is None:
            logger.warning("SMTP is not configured; queued emails will not be delivered.")

    async def stop(self):
        await self.scheduler.stop()
        await self.storage.dispose()


def build_application(
    settings: Optional[Settings] = None,
    storage: Optional[SqlAlchemyQueueStorage] = None,
    transport=_UNSET,
) -> Application:
    """
    Wire the application together from settings.

    Args:
        settings: Defaults to ``get_settings()``.
        storage: Defaults to a SQLAlchemy store on ``settings.database_url``.
        transport: Defaults to an SMTP transport from settings, which is None
            when SMTP is not configured. Pass None explicitly to disable delivery.
    """
    settings = settings or get_settings()
    storage = storage or SqlAlchemyQueueStorage(settings.database_url)
    if transport is _UNSET:
        transport = SmtpTransport.from_settings(settings)

    tz = settings.tzinfo
    scheduler = Scheduler(
        tick_interval=settings.tick_interval_seconds,
        clock=lambda: datetime.now(tz),
    )
    queue = EmailQueue(
        storage,
        transport=transport,
        batch_size=settings.queue_batch_size,
        max_attempts=settings.queue_max_attempts,
    )
    queue_job = queue.bind(
        scheduler,
        every_minutes=settings.queue_interval_minutes,
        name=settings.queue_job_name,
    )
    return Application(
        settings=settings,
        storage=storage,
        queue=queue,
        scheduler=scheduler,
        queue_job=queue_job,
    )


async def run(settings: Optional[Settings] = None):
    """
    Run the scheduler until cancelled.
    """
    app = build_application(settings)
    await app.start()
    try:
        await asyncio.Event().wait()
    finally:
        await app.stop()


def main():
    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")
