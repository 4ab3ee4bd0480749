"""Per-channel synchronization: create, close, then backfill details.

Each invocation walks IDLE -> CREATING -> CLOSING -> BACKFILLING -> DONE.
Any step failure ends in FAILED; a failed create or close skips the backfill
for that invocation. Work the procedures already committed stays committed.
"""

import enum
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from outage_sync.config import Settings
from outage_sync.models.fact import FactHeader
from outage_sync.sync.backfill import DetailBackfiller
from outage_sync.sync.channels import Channel, get_channel
from outage_sync.sync.errors import ResourceBusy, SyncStepFailed
from outage_sync.sync.keys import KeyAllocator
from outage_sync.sync.procedures import OutageProcedures, build_procedures

logger = logging.getLogger(__name__)

BACKFILL_ATTEMPTS = 3
BACKFILL_BACKOFF_SECONDS = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    CREATING = "creating"
    CLOSING = "closing"
    BACKFILLING = "backfilling"
    DONE = "done"
    FAILED = "failed"


class SyncResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str = ""
    source: str
    channel_key: int | None = None
    created_incidents: int = 0
    closed_incidents: int = 0
    total_processed: int = 0
    inserted_details: int = 0
    state: SyncState = SyncState.IDLE
    error: str | None = None


class ChannelSyncEngine:
    def __init__(
        self,
        session_factory: sessionmaker,
        procedures: OutageProcedures,
        backfiller: DetailBackfiller | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        backfill_attempts: int = BACKFILL_ATTEMPTS,
        backfill_backoff_seconds: float = BACKFILL_BACKOFF_SECONDS,
    ):
        self.session_factory = session_factory
        self.procedures = procedures
        self.backfiller = backfiller or DetailBackfiller(session_factory, clock=clock)
        self.clock = clock
        self.sleep = sleep
        self.backfill_attempts = backfill_attempts
        self.backfill_backoff_seconds = backfill_backoff_seconds
        self.state = SyncState.IDLE

    def run(self, source: str) -> SyncResult:
        """Synchronize one channel.

        Args:
            source: Channel source code ("A" for cabins, "B" for cables)

        Returns:
            SyncResult; success=False carries the failing step's error

        Raises:
            ValueError: unknown source
        """
        channel = get_channel(source)
        self.state = SyncState.IDLE
        created = closed = inserted = 0

        try:
            self.state = SyncState.CREATING
            created = self._run_procedure(
                "create", channel, self.procedures.create, self._count_created_today
            )

            self.state = SyncState.CLOSING
            closed = self._run_procedure(
                "close", channel, self.procedures.close, self._count_closed_today
            )

            self.state = SyncState.BACKFILLING
            inserted = self._backfill_with_retry(channel)
        except SyncStepFailed as exc:
            logger.warning("Source %s: %s failed: %s", channel.source, exc.step, exc.detail)
            self.state = SyncState.FAILED
            return SyncResult(
                success=False,
                message=f"Synchronization failed for Source {channel.source} during {exc.step}",
                source=channel.source,
                channel_key=channel.channel_key,
                created_incidents=created,
                closed_incidents=closed,
                total_processed=created + closed,
                state=SyncState.FAILED,
                error=str(exc),
            )

        self.state = SyncState.DONE
        logger.info(
            "Source %s: created=%d closed=%d details=%d",
            channel.source, created, closed, inserted,
        )
        return SyncResult(
            success=True,
            message=f"Complete synchronization finished for Source {channel.source}",
            source=channel.source,
            channel_key=channel.channel_key,
            created_incidents=created,
            closed_incidents=closed,
            total_processed=created + closed,
            inserted_details=inserted,
            state=SyncState.DONE,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _run_procedure(
        self,
        step: str,
        channel: Channel,
        procedure: Callable[[Session, Channel], object],
        counter: Callable[[Session, Channel], int],
    ) -> int:
        """Run one procedure in its own transaction and return the count delta."""
        with self.session_factory() as session:
            try:
                before = counter(session, channel)
                procedure(session, channel)
                session.commit()
                after = counter(session, channel)
            except (ResourceBusy, SQLAlchemyError) as exc:
                session.rollback()
                raise SyncStepFailed(step, channel.source, str(exc)) from exc
        return max(after - before, 0)

    def _backfill_with_retry(self, channel: Channel) -> int:
        for attempt in range(1, self.backfill_attempts + 1):
            try:
                return self.backfiller.backfill(channel)
            except ResourceBusy as exc:
                if attempt == self.backfill_attempts:
                    raise SyncStepFailed(
                        "backfill", channel.source, f"{exc} (gave up after {attempt} attempts)"
                    ) from exc
                logger.warning(
                    "Source %s: backfill attempt %d/%d busy, retrying",
                    channel.source, attempt, self.backfill_attempts,
                )
                self.sleep(attempt * self.backfill_backoff_seconds)
        return 0

    # ------------------------------------------------------------------
    # "Synchronized today" counters
    # ------------------------------------------------------------------

    def _today_start(self) -> datetime:
        return self.clock().replace(hour=0, minute=0, second=0, microsecond=0)

    def _count_created_today(self, session: Session, channel: Channel) -> int:
        return session.execute(
            select(func.count())
            .select_from(FactHeader)
            .where(FactHeader.channel_key == channel.channel_key)
            .where(FactHeader.synch_create_date >= self._today_start())
        ).scalar_one()

    def _count_closed_today(self, session: Session, channel: Channel) -> int:
        return session.execute(
            select(func.count())
            .select_from(FactHeader)
            .where(FactHeader.channel_key == channel.channel_key)
            .where(FactHeader.actual_end_date.is_not(None))
            .where(FactHeader.synch_update_date >= self._today_start())
        ).scalar_one()


def build_sync_engine(session_factory: sessionmaker, settings: Settings) -> ChannelSyncEngine:
    """Wire an engine from settings, sharing one allocator across steps."""
    allocator = KeyAllocator(lock_timeout_ms=settings.sync_lock_timeout_ms)
    procedures = build_procedures(
        settings.sync_procedure_mode,
        settings.create_procedure_name,
        settings.close_procedure_name,
        key_allocator=allocator,
    )
    return ChannelSyncEngine(
        session_factory,
        procedures,
        backfiller=DetailBackfiller(session_factory, key_allocator=allocator),
    )
