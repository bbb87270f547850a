from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.database.engine import async_session, engine, sync_engine
from partsource.database.bulk import MAX_ROWS_PER_INSERT, chunked
from partsource.database.locks import acquire_xact_lock
from partsource.database.session import get_db

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "async_session",
    "engine",
    "sync_engine",
    "get_db",
    "acquire_xact_lock",
    "chunked",
    "MAX_ROWS_PER_INSERT",
]
