"""Create/close procedures that materialize and retire fact headers.

Production deployments call the database's own stored procedures, whose
internals are owned by the DBA team. OrmProcedures implements the same
contract in SQLAlchemy for environments without them (local dev, tests).

Contract (both implementations):
- create: every open, active staging incident without a header in the channel
  gets exactly one open header.
- close: every open header whose staging incident now has an end date gets
  that end date and a fresh synch_update_date.
Both are idempotent when the staging data has not changed.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Protocol

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from outage_sync.models.fact import FactHeader
from outage_sync.sync.channels import CHANNELS, Channel
from outage_sync.sync.keys import KeyAllocator

logger = logging.getLogger(__name__)

_PROCEDURE_NAME = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)?$")


def _check_procedure_name(name: str) -> str:
    if not _PROCEDURE_NAME.match(name):
        raise ValueError(f"Invalid procedure name '{name}'")
    return name


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OutageProcedures(Protocol):
    def create(self, session: Session, channel: Channel) -> int | None: ...

    def close(self, session: Session, channel: Channel) -> int | None: ...


class StoredProcedures:
    """Invoke the database-side create/close procedures as black boxes."""

    def __init__(self, create_procedure: str, close_procedure: str):
        self.create_procedure = _check_procedure_name(create_procedure)
        self.close_procedure = _check_procedure_name(close_procedure)

    def create(self, session: Session, channel: Channel) -> None:
        session.execute(
            text(f"CALL {self.create_procedure}(:channel_key)"),
            {"channel_key": channel.channel_key},
        )

    def close(self, session: Session, channel: Channel) -> None:
        session.execute(
            text(f"CALL {self.close_procedure}(:channel_key)"),
            {"channel_key": channel.channel_key},
        )


class OrmProcedures:
    """The create/close contract expressed with the ORM models."""

    def __init__(
        self,
        key_allocator: KeyAllocator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.key_allocator = key_allocator or KeyAllocator()
        self.clock = clock

    def create(self, session: Session, channel: Channel) -> int:
        """Insert an open header for each new open staging incident.

        Returns:
            Number of headers created
        """
        staging = channel.staging_model
        already_synced = select(FactHeader.incident_id).where(
            FactHeader.channel_key == channel.channel_key
        )
        incidents = list(
            session.execute(
                select(staging)
                .where(staging.end_date.is_(None))
                .where(staging.is_active.is_(True))
                .where(staging.incident_id.not_in(already_synced))
                .order_by(staging.incident_id)
            ).scalars()
        )
        if not incidents:
            return 0

        first_key = self.key_allocator.allocate(session, FactHeader.header_key, len(incidents))

        # A concurrent create of the same channel may have committed between
        # the anti-join and the lock; the lock is held from here on.
        synced = set(session.execute(
            already_synced.where(
                FactHeader.incident_id.in_([i.incident_id for i in incidents])
            )
        ).scalars())
        incidents = [i for i in incidents if i.incident_id not in synced]
        if not incidents:
            return 0

        now = self.clock()
        for offset, incident in enumerate(incidents):
            session.add(FactHeader(
                header_key=first_key + offset,
                incident_id=incident.incident_id,
                channel_key=channel.channel_key,
                problem_type_key=incident.problem_type_key,
                actual_create_date=incident.create_date,
                actual_end_date=None,
                synch_create_date=now,
                is_planned=incident.is_planned,
                is_global=incident.is_global,
                planned_start=incident.planned_start,
                planned_end=incident.planned_end,
                is_active=incident.is_active,
                create_user_id=channel.system_user_id,
                update_user_id=channel.system_user_id,
            ))
        session.flush()

        logger.debug("Source %s: created %d headers", channel.source, len(incidents))
        return len(incidents)

    def close(self, session: Session, channel: Channel) -> int:
        """Copy staging end dates onto headers that are still open.

        Returns:
            Number of headers closed
        """
        staging = channel.staging_model
        rows = session.execute(
            select(FactHeader, staging.end_date)
            .join(staging, staging.incident_id == FactHeader.incident_id)
            .where(FactHeader.channel_key == channel.channel_key)
            .where(staging.end_date.is_not(None))
            .where(FactHeader.actual_end_date.is_(None))
        ).all()

        now = self.clock()
        for header, end_date in rows:
            header.actual_end_date = end_date
            header.synch_update_date = now
            header.update_user_id = channel.system_user_id
        session.flush()

        logger.debug("Source %s: closed %d headers", channel.source, len(rows))
        return len(rows)


# ---------------------------------------------------------------------------
# Stored procedure definitions (PostgreSQL), installed by the migrations
# ---------------------------------------------------------------------------

_STAGING_COLUMNS = (
    "incident_id, problem_type_key, create_date, end_date, is_planned, is_global, "
    "planned_start, planned_end, is_active"
)


def _staging_union(staging_schema: str, columns: str) -> str:
    """One SELECT per channel feed, filtered to the procedure's channel."""
    return "\n                UNION ALL\n".join(
        f'                SELECT {columns} FROM "{staging_schema}".'
        f"{channel.staging_model.__tablename__} "
        f"WHERE p_channel_key = {channel.channel_key}"
        for channel in CHANNELS
    )


def _system_user_case() -> str:
    whens = " ".join(
        f"WHEN {channel.channel_key} THEN {channel.system_user_id}" for channel in CHANNELS
    )
    return f"CASE p_channel_key {whens} END"


def create_procedure_ddl(name: str, staging_schema: str, fact_schema: str) -> str:
    """CREATE PROCEDURE statement for the create step of every channel."""
    header = f'"{fact_schema}".cutting_down_header'
    return f"""
        CREATE OR REPLACE PROCEDURE {_check_procedure_name(name)}(p_channel_key INTEGER)
        LANGUAGE plpgsql
        AS $$
        DECLARE
            v_user_id INTEGER := {_system_user_case()};
            v_next_key INTEGER;
        BEGIN
            LOCK TABLE {header} IN EXCLUSIVE MODE;
            SELECT COALESCE(MAX(header_key), 0) + 1 INTO v_next_key FROM {header};

            INSERT INTO {header}
                (header_key, incident_id, channel_key, problem_type_key,
                 actual_create_date, actual_end_date, synch_create_date,
                 is_planned, is_global, planned_start, planned_end, is_active,
                 create_user_id, update_user_id)
            SELECT v_next_key - 1 + ROW_NUMBER() OVER (ORDER BY s.incident_id),
                   s.incident_id, p_channel_key, s.problem_type_key,
                   s.create_date, NULL, now(),
                   s.is_planned, s.is_global, s.planned_start, s.planned_end, s.is_active,
                   v_user_id, v_user_id
            FROM (
{_staging_union(staging_schema, _STAGING_COLUMNS)}
            ) s
            WHERE s.end_date IS NULL
              AND s.is_active
              AND NOT EXISTS (
                  SELECT 1 FROM {header} h
                  WHERE h.channel_key = p_channel_key AND h.incident_id = s.incident_id
              );
        END;
        $$;
    """


def close_procedure_ddl(name: str, staging_schema: str, fact_schema: str) -> str:
    """CREATE PROCEDURE statement for the close step of every channel."""
    return f"""
        CREATE OR REPLACE PROCEDURE {_check_procedure_name(name)}(p_channel_key INTEGER)
        LANGUAGE plpgsql
        AS $$
        DECLARE
            v_user_id INTEGER := {_system_user_case()};
        BEGIN
            UPDATE "{fact_schema}".cutting_down_header h
            SET actual_end_date = s.end_date,
                synch_update_date = now(),
                update_user_id = v_user_id
            FROM (
{_staging_union(staging_schema, "incident_id, end_date")}
            ) s
            WHERE h.channel_key = p_channel_key
              AND h.incident_id = s.incident_id
              AND s.end_date IS NOT NULL
              AND h.actual_end_date IS NULL;
        END;
        $$;
    """


def drop_procedure_ddl(name: str) -> str:
    return f"DROP PROCEDURE IF EXISTS {_check_procedure_name(name)}(INTEGER)"


def build_procedures(
    mode: str,
    create_procedure: str,
    close_procedure: str,
    key_allocator: KeyAllocator | None = None,
) -> OutageProcedures:
    if mode == "stored":
        return StoredProcedures(create_procedure, close_procedure)
    if mode == "orm":
        return OrmProcedures(key_allocator=key_allocator)
    raise ValueError(f"Unknown procedure mode '{mode}'. Available: ['stored', 'orm']")
