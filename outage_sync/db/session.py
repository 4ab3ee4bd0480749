"""Convenience re-exports for session factories."""

from outage_sync.db.engine import get_sync_session, SyncSessionLocal, sync_engine

__all__ = [
    "get_sync_session",
    "SyncSessionLocal",
    "sync_engine",
]
