import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from outbox_scheduler.domain.queue_item import CLAIMABLE_STATUSES, QueueItem, QueueItemStatus
from outbox_scheduler.storages.protocol import QueueStorage

Base = declarative_base()

_CLAIMABLE = [status.value for status in CLAIMABLE_STATUSES]


class QueueItemModel(Base):
    __tablename__ = 'email_queue'

    id = Column(String, primary_key=True)
    user_id = Column(String, index=True)
    recipient = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    html_body = Column(Text, nullable=False)
    text_body = Column(Text, nullable=False)
    status = Column(String, nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True))


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlAlchemyQueueStorage(QueueStorage):
    """
    Queue store backed by an async SQLAlchemy engine.

    Claiming is a single conditional UPDATE filtered on the claimable
    statuses; the affected row count tells the caller whether it won.
    """
    def __init__(self, db_url: str, **engine_kwargs: Any):
        self.engine = create_async_engine(db_url, **engine_kwargs)
        self.async_session = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    async def create_item(self, item: QueueItem) -> str:
        async with self.async_session() as session:
            db_item = QueueItemModel(
                id=item.id,
                user_id=item.user_id,
                recipient=item.recipient,
                subject=item.subject,
                html_body=item.html_body,
                text_body=item.text_body,
                status=item.status.value,
                attempts=item.attempts,
                last_error=item.last_error,
                created_at=_to_utc(item.created_at),
                sent_at=_to_utc(item.sent_at),
            )
            session.add(db_item)
            await session.commit()
            return item.id

    async def get_item(self, item_id: str) -> Optional[QueueItem]:
        async with self.async_session() as session:
            result = await session.execute(select(QueueItemModel).filter_by(id=item_id))
            db_item = result.scalar_one_or_none()
            if db_item:
                return self._db_to_item(db_item)
            return None

    async def list_eligible(self, max_attempts: int, limit: int) -> List[QueueItem]:
        async with self.async_session() as session:
            result = await session.execute(
                select(QueueItemModel)
                .where(
                    QueueItemModel.status.in_(_CLAIMABLE),
                    QueueItemModel.attempts < max_attempts,
                )
                .order_by(QueueItemModel.created_at.asc())
                .limit(limit)
            )
            return [self._db_to_item(db_item) for db_item in result.scalars()]

    async def claim_item(self, item_id: str, max_attempts: Optional[int] = None) -> bool:
        conditions = [
            QueueItemModel.id == item_id,
            QueueItemModel.status.in_(_CLAIMABLE),
        ]
        if max_attempts is not None:
            conditions.append(QueueItemModel.attempts < max_attempts)

        async with self.async_session() as session:
            result = await session.execute(
                update(QueueItemModel)
                .where(*conditions)
                .values(
                    status=QueueItemStatus.SENDING.value,
                    attempts=QueueItemModel.attempts + 1,
                    last_error=None,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def mark_sent(self, item_id: str, sent_at: datetime) -> bool:
        return await self._resolve(
            item_id,
            status=QueueItemStatus.SENT.value,
            sent_at=_to_utc(sent_at),
            last_error=None,
        )

    async def mark_failed(self, item_id: str, error: str) -> bool:
        return await self._resolve(item_id, status=QueueItemStatus.FAILED.value, last_error=error)

    async def _resolve(self, item_id: str, **values: Any) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                update(QueueItemModel)
                .where(
                    QueueItemModel.id == item_id,
                    QueueItemModel.status == QueueItemStatus.SENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def list_items(self, status: Optional[QueueItemStatus] = None, limit: int = 100, offset: int = 0) -> List[QueueItem]:
        async with self.async_session() as session:
            query = select(QueueItemModel)
            if status is not None:
                query = query.filter_by(status=status.value)
            result = await session.execute(
                query.order_by(QueueItemModel.created_at.desc()).offset(offset).limit(limit)
            )
            return [self._db_to_item(db_item) for db_item in result.scalars()]

    async def list_dead_letters(self, max_attempts: int, limit: int = 100) -> List[QueueItem]:
        async with self.async_session() as session:
            result = await session.execute(
                select(QueueItemModel)
                .where(
                    QueueItemModel.status == QueueItemStatus.FAILED.value,
                    QueueItemModel.attempts >= max_attempts,
                )
                .order_by(QueueItemModel.created_at.asc())
                .limit(limit)
            )
            return [self._db_to_item(db_item) for db_item in result.scalars()]

    async def count_by_status(self) -> Dict[QueueItemStatus, int]:
        async with self.async_session() as session:
            result = await session.execute(
                select(QueueItemModel.status, func.count(QueueItemModel.id)).group_by(QueueItemModel.status)
            )
            counts = {status: 0 for status in QueueItemStatus}
            for status, count in result.all():
                counts[QueueItemStatus(status)] = count
            return counts

    def _db_to_item(self, db_item: QueueItemModel) -> QueueItem:
        return QueueItem(
            id=db_item.id,
            user_id=db_item.user_id,
            recipient=db_item.recipient,
            subject=db_item.subject,
            html_body=db_item.html_body,
            text_body=db_item.text_body,
            status=QueueItemStatus(db_item.status),
            attempts=db_item.attempts,
            last_error=db_item.last_error,
            created_at=_to_utc(db_item.created_at),
            sent_at=_to_utc(db_item.sent_at),
        )


class InMemoryQueueStorage(SqlAlchemyQueueStorage):
    """
    SQLite in-memory queue store. Contents are lost when the process exits.

    Every session shares the one in-memory connection, so sessions are
    serialized; otherwise one session's rollback could undo another's claim.
    """
    def __init__(self):
        super().__init__("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        self._session_factory = self.async_session
        self._session_lock: Optional[asyncio.Lock] = None
        self.async_session = self._locked_session

    @asynccontextmanager
    async def _locked_session(self) -> AsyncIterator[AsyncSession]:
        if self._session_lock is None:
            self._session_lock = asyncio.Lock()
        async with self._session_lock:
            async with self._session_factory() as session:
                yield session
