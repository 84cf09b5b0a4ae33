from functools import lru_cache
from typing import AsyncIterator

from app.config import settings
from app.database import session_scope
from app.storage import JsonStore, SqlStore, Store


@lru_cache
def get_json_store() -> JsonStore:
    """
    Process-wide file-backed store.

    A single instance is shared by every request so that all writers to a
    document go through the same lock.
    """
    return JsonStore(
        settings.DATA_DIR,
        accounts_file=settings.ACCOUNTS_FILE,
        posts_file=settings.POSTS_FILE,
        timeout=settings.STORAGE_TIMEOUT,
    )


async def get_store() -> AsyncIterator[Store]:
    """
    FastAPI dependency yielding the configured ``Store``.

    For the relational backend each request gets its own session; the
    transaction commits when the handler returns and rolls back if it
    raises.
    """
    if settings.STORAGE_BACKEND == "json":
        yield get_json_store()
        return

    async with session_scope() as session:
        yield SqlStore(session)
