"""Surrogate key allocation for append-only fact tables.

Fact keys are plain integers with no sequence behind them, so the next block
starts at MAX(key) + 1. Reading MAX and inserting must happen under a table
lock held for the rest of the caller's transaction, otherwise two concurrent
writers (possibly in different processes) compute the same block.
"""

import logging

from sqlalchemy import Table, func, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import InstrumentedAttribute, Session

from outage_sync.sync.errors import ResourceBusy

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
BUSY_PGCODES = {"55P03", "40001", "40P01"}


def _is_busy(exc: DBAPIError) -> bool:
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in BUSY_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


def _qualified_name(session: Session, table: Table) -> str:
    """Quote the physical table name, honouring the engine's schema_translate_map."""
    connection = session.connection()
    translate = connection.get_execution_options().get("schema_translate_map") or {}
    schema = translate.get(table.schema, table.schema)
    preparer = connection.dialect.identifier_preparer
    name = preparer.quote(table.name)
    if schema:
        return f"{preparer.quote_schema(schema)}.{name}"
    return name


class KeyAllocator:
    def __init__(self, lock_timeout_ms: int = 5000):
        self.lock_timeout_ms = lock_timeout_ms

    def allocate(self, session: Session, key_column: InstrumentedAttribute, n: int) -> int:
        """Reserve n contiguous keys in key_column's table and return the first.

        Must be called inside the transaction that inserts the keys. The lock
        is released by that transaction's commit or rollback; a rollback
        consumes nothing.

        Raises:
            ResourceBusy: the table lock was not granted within lock_timeout_ms
            ValueError: n is less than 1
        """
        if n < 1:
            raise ValueError(f"Cannot allocate {n} keys")

        table = key_column.property.columns[0].table
        try:
            if session.get_bind().dialect.name == "postgresql":
                self._lock_table(session, table)
            current_max = session.execute(
                select(func.coalesce(func.max(key_column), 0))
            ).scalar_one()
        except DBAPIError as exc:
            if _is_busy(exc):
                raise ResourceBusy(table.name, str(exc.orig)) from exc
            raise

        first_key = int(current_max) + 1
        logger.debug(
            "Allocated keys %d..%d in %s", first_key, first_key + n - 1, table.name
        )
        return first_key

    def _lock_table(self, session: Session, table: Table) -> None:
        # EXCLUSIVE conflicts with itself and with writers, not with plain SELECTs.
        session.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_ms)}ms'"))
        session.execute(
            text(f"LOCK TABLE {_qualified_name(session, table)} IN EXCLUSIVE MODE")
        )
