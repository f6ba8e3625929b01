from .protocol import QueueStorage
from .sqlalchemy import InMemoryQueueStorage, SqlAlchemyQueueStorage

__all__ = ["QueueStorage", "SqlAlchemyQueueStorage", "InMemoryQueueStorage"]
