from datetime import datetime, timedelta
from typing import List, Optional

import pytest
import pytest_asyncio

from outbox_scheduler.storages.sqlalchemy import InMemoryQueueStorage, SqlAlchemyQueueStorage


class FakeClock:
    """Settable clock for deterministic scheduling tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingTransport:
    """Delivery transport that records sends and fails on demand."""

    def __init__(self, failures: Optional[List[bool]] = None, error: Optional[Exception] = None):
        self.failures: List[bool] = list(failures or [])
        self.error: Exception = error or ConnectionError("smtp down")
        self.calls: int = 0
        self.sent: List[str] = []

    async def send(self, recipient: str, subject: str, html_body: str, text_body: str) -> None:
        self.calls += 1
        if self.failures and self.failures.pop(0):
            raise self.error
        self.sent.append(recipient)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 3, 10, 0))


@pytest.fixture
def make_transport():
    return RecordingTransport


@pytest_asyncio.fixture
async def memory_storage():
    storage = InMemoryQueueStorage()
    await storage.create_tables()
    yield storage
    await storage.dispose()


@pytest_asyncio.fixture
async def file_storage(tmp_path):
    storage = SqlAlchemyQueueStorage(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
    await storage.create_tables()
    yield storage
    await storage.dispose()
