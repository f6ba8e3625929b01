import logging
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from outbox_scheduler.domain.cadence import IntervalCadence
from outbox_scheduler.domain.job import RegisteredJob
from outbox_scheduler.domain.queue_item import QueueItem, QueueItemStatus
from outbox_scheduler.storages.protocol import QueueStorage
from outbox_scheduler.transports.protocol import DeliveryTransport

if TYPE_CHECKING:
    from outbox_scheduler.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_JOB_NAME = "email-queue"
DEFAULT_INTERVAL_MINUTES = 5


class BatchResult(BaseModel):
    """
    Outcome counts of one ``process_batch`` call.
    """
    selected: int = 0
    claimed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    dead_lettered: int = 0


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class EmailQueue:
    """
    Durable outbound email queue with at-least-once delivery.

    Producers call ``enqueue``. ``process_batch`` claims the oldest eligible
    items and delivers them through the transport. Several processors may run
    against the same storage at once; the storage's conditional claim makes
    sure each attempt is owned by exactly one of them.
    """

    def __init__(
        self,
        storage: QueueStorage,
        transport: Optional[DeliveryTransport] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.storage: QueueStorage = storage
        self.transport: Optional[DeliveryTransport] = transport
        self.batch_size: int = batch_size
        self.max_attempts: int = max_attempts

    async def enqueue(
        self,
        recipient: str,
        subject: str,
        html: str,
        text: str,
        user_id: Optional[str] = None,
    ) -> QueueItem:
        """
        Queue an email for delivery. Nothing is sent synchronously.

        Returns:
            QueueItem: The new pending item; its ``id`` can be used for inspection.
        """
        item = QueueItem(
            user_id=user_id,
            recipient=recipient,
            subject=subject,
            html_body=html,
            text_body=text,
        )
        await self.storage.create_item(item)
        logger.debug("Enqueued email %s to %s", item.id, recipient)
        return item

    async def get_item(self, item_id: str) -> Optional[QueueItem]:
        return await self.storage.get_item(item_id)

    async def list_dead_letters(self, limit: int = 100) -> List[QueueItem]:
        return await self.storage.list_dead_letters(self.max_attempts, limit)

    async def stats(self) -> Dict[QueueItemStatus, int]:
        return await self.storage.count_by_status()

    async def process_batch(
        self,
        batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> BatchResult:
        """
        Claim and deliver up to ``batch_size`` eligible items, oldest first.

        Delivery errors are recorded on the item and never raised. Without a
        transport this is a no-op.
        """
        batch_size = self.batch_size if batch_size is None else batch_size
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        result = BatchResult()
        if self.transport is None:
            logger.debug("No delivery transport configured, skipping email queue batch.")
            return result

        items = await self.storage.list_eligible(max_attempts, batch_size)
        result.selected = len(items)

        for item in items:
            if not await self.storage.claim_item(item.id, max_attempts=max_attempts):
                logger.debug("Email %s was claimed by another processor, skipping.", item.id)
                result.skipped += 1
                continue
            result.claimed += 1

            try:
                await self.transport.send(item.recipient, item.subject, item.html_body, item.text_body)
            except Exception as e:
                await self.storage.mark_failed(item.id, _error_message(e))
                result.failed += 1
                logger.warning("Failed to send email %s to %s: %s", item.id, item.recipient, _error_message(e))
                if await self._is_dead_letter(item.id, max_attempts):
                    result.dead_lettered += 1
                    logger.warning("Email %s exhausted %d attempts and will not be retried.", item.id, max_attempts)
                continue

            await self.storage.mark_sent(item.id, datetime.now(ZoneInfo("UTC")))
            result.sent += 1

        if result.selected:
            logger.info(
                "Email queue batch: %d selected, %d sent, %d failed, %d skipped.",
                result.selected, result.sent, result.failed, result.skipped,
            )
        return result

    async def _is_dead_letter(self, item_id: str, max_attempts: int) -> bool:
        item = await self.storage.get_item(item_id)
        return item is not None and item.is_dead_letter(max_attempts)

    def bind(
        self,
        scheduler: "Scheduler",
        every_minutes: int = DEFAULT_INTERVAL_MINUTES,
        name: str = DEFAULT_JOB_NAME,
    ) -> RegisteredJob:
        """
        Register ``process_batch`` as a named recurring job on the scheduler.
        """
        return scheduler.register(self.process_batch, IntervalCadence(minutes=every_minutes), name=name)
