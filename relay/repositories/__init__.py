"""
Repositories Layer
Durable message storage for the relay.
"""
from .connection import db_manager, DatabaseManager
from .base import BaseRepository
from .store import MessageStore
from .messages import MongoMessageStore
from .memory import InMemoryMessageStore

__all__ = [
    "db_manager",
    "DatabaseManager",
    "BaseRepository",
    "MessageStore",
    "MongoMessageStore",
    "InMemoryMessageStore",
]
