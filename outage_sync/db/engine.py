"""Synchronous engine for the outage database.

Used by the sync API, the orchestrator's one-shot CLI and the seed generator.
Staging (sta) and fact (fta) tables share one database so the create/close
procedures and the detail backfill can join across them in one transaction.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from outage_sync.config import settings

sync_engine = create_engine(
    settings.db_url_sync,
    echo=False,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
    execution_options={"schema_translate_map": settings.schema_translate_map},
)

SyncSessionLocal = sessionmaker(
    bind=sync_engine,
    expire_on_commit=False,
)


def get_sync_session() -> Session:
    session = SyncSessionLocal()
    try:
        yield session
    finally:
        session.close()
