# Storage package.
#
#   base        — the Store / repository contract and max + 1 ID policy
#   json_store  — two JSON documents on disk (accounts, posts + comments)
#   sql_store   — SQLAlchemy async session over users / posts / comments
#
# Services depend on ``Store`` only; ``app.dependencies.get_store`` picks
# the backend from ``settings.STORAGE_BACKEND``.
from app.storage.base import Store, next_id
from app.storage.json_store import JsonStore
from app.storage.sql_store import SqlStore

__all__ = ["Store", "JsonStore", "SqlStore", "next_id"]
