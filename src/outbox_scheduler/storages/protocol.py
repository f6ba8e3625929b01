from datetime import datetime
from typing import Dict, List, Optional, Protocol

from outbox_scheduler.domain.queue_item import QueueItem, QueueItemStatus


class QueueStorage(Protocol):
    async def create_item(self, item: QueueItem) -> str:
        """Persist a new queue item and return its ID."""
        ...

    async def get_item(self, item_id: str) -> Optional[QueueItem]:
        """Retrieve a queue item by its ID."""
        ...

    async def list_eligible(self, max_attempts: int, limit: int) -> List[QueueItem]:
        """List up to `limit` pending or failed items with attempts below `max_attempts`, oldest first."""
        ...

    async def claim_item(self, item_id: str, max_attempts: Optional[int] = None) -> bool:
        """
        Atomically move an item from pending/failed to sending, incrementing its attempts.
        When `max_attempts` is given, items that already used it up are left alone.
        Return True only if this call performed the transition.
        """
        ...

    async def mark_sent(self, item_id: str, sent_at: datetime) -> bool:
        """Resolve a claimed item as sent. Return True if the item was in sending state."""
        ...

    async def mark_failed(self, item_id: str, error: str) -> bool:
        """Resolve a claimed item as failed. Return True if the item was in sending state."""
        ...

    async def list_items(self, status: Optional[QueueItemStatus] = None, limit: int = 100, offset: int = 0) -> List[QueueItem]:
        """List items, newest first, optionally filtered by status."""
        ...

    async def list_dead_letters(self, max_attempts: int, limit: int = 100) -> List[QueueItem]:
        """List failed items that have used up `max_attempts`, oldest first."""
        ...

    async def count_by_status(self) -> Dict[QueueItemStatus, int]:
        """Count items per status."""
        ...
