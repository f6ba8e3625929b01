import asyncio
import logging

from outbox_scheduler.bootstrap import setup_logging
from outbox_scheduler.domain.cadence import IntervalCadence
from outbox_scheduler.queue import EmailQueue
from outbox_scheduler.scheduler import Scheduler
from outbox_scheduler.storages.sqlalchemy import InMemoryQueueStorage

logger = logging.getLogger("example")


class PrintTransport:
    async def send(self, recipient: str, subject: str, html_body: str, text_body: str) -> None:
        print(f"Sending '{subject}' to {recipient}:\n{text_body}\n")


async def main():
    setup_logging("INFO")

    storage = InMemoryQueueStorage()
    await storage.create_tables()

    scheduler = Scheduler(tick_interval=1)
    queue = EmailQueue(storage, transport=PrintTransport())

    # Drained once on demand below, then every minute by the scheduler.
    queue.bind(scheduler, every_minutes=1)
    scheduler.call(lambda: logger.info("Daily digest would be built here"), name="digest").daily().at("09:00")
    scheduler.register(lambda: logger.info("Still alive"), IntervalCadence(minutes=1), name="heartbeat")

    for name in ("ana", "bo"):
        item = await queue.enqueue(f"{name}@example.com", "Welcome", f"<p>Hi {name}</p>", f"Hi {name}")
        print(f"Queued {item.id} for {item.recipient}")

    await scheduler.start()
    result = await queue.process_batch()
    print(f"Batch result: {result}")
    print(f"Queue stats: {await queue.stats()}")

    await asyncio.sleep(2)
    await scheduler.stop()
    await storage.dispose()


if __name__ == "__main__":
    asyncio.run(main())
