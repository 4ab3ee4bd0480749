"""Backfill missing detail rows that link fact headers to topology elements."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from outage_sync.models.fact import FactDetail, FactHeader
from outage_sync.sync.channels import Channel
from outage_sync.sync.errors import ResourceBusy, SyncStepFailed
from outage_sync.sync.keys import KeyAllocator
from outage_sync.sync.matcher import NetworkElementMatcher

logger = logging.getLogger(__name__)

LOOKUP_BATCH_SIZE = 500

# No customer-impact feed is wired in yet; every detail starts at zero.
IMPACTED_CUSTOMERS_PLACEHOLDER = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DetailCandidate:
    header_key: int
    network_element_key: int | None
    actual_create_date: datetime | None
    actual_end_date: datetime | None

    @property
    def sort_key(self) -> tuple:
        # header ascending, element ascending with unmatched (None) last
        return (
            self.header_key,
            self.network_element_key is None,
            self.network_element_key or 0,
        )


def find_unlinked_headers(session: Session, channel_key: int) -> list[FactHeader]:
    """Headers of a channel that have no detail row yet, by header key."""
    return list(
        session.execute(
            select(FactHeader)
            .where(FactHeader.channel_key == channel_key)
            .where(~exists().where(FactDetail.header_key == FactHeader.header_key))
            .order_by(FactHeader.header_key)
        ).scalars()
    )


def lookup_element_names(
    session: Session,
    channel: Channel,
    incident_ids: list[int],
) -> dict[int, str | None]:
    """Map incident ids to the free-text element name on their staging row.

    Incidents purged from staging are simply absent from the result.
    """
    staging = channel.staging_model
    names: dict[int, str | None] = {}
    for i in range(0, len(incident_ids), LOOKUP_BATCH_SIZE):
        batch = incident_ids[i : i + LOOKUP_BATCH_SIZE]
        rows = session.execute(
            select(staging.incident_id, staging.element_name)
            .where(staging.incident_id.in_(batch))
        )
        names.update({incident_id: name for incident_id, name in rows})
    return names


class DetailBackfiller:
    """Create the single detail row for every header that lacks one.

    Each call is one transaction: key allocation and inserts commit together
    or not at all, and a second call with no new headers inserts nothing.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        key_allocator: KeyAllocator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.key_allocator = key_allocator or KeyAllocator()
        self.clock = clock

    def backfill(self, channel: Channel) -> int:
        """Insert missing detail rows for a channel.

        Returns:
            Number of detail rows inserted

        Raises:
            ResourceBusy: key allocation lock contention; retry the whole call
            SyncStepFailed: any other storage error (transaction rolled back)
        """
        with self.session_factory() as session:
            try:
                inserted = self._backfill(session, channel)
                session.commit()
            except ResourceBusy:
                session.rollback()
                raise
            except SQLAlchemyError as exc:
                session.rollback()
                raise SyncStepFailed("backfill", channel.source, str(exc)) from exc

        if inserted:
            logger.info("Source %s: inserted %d detail rows", channel.source, inserted)
        return inserted

    def build_candidates(
        self,
        session: Session,
        channel: Channel,
        headers: list[FactHeader],
    ) -> list[DetailCandidate]:
        names = lookup_element_names(session, channel, [h.incident_id for h in headers])
        matcher = NetworkElementMatcher.load(session, channel.element_type_key)

        candidates = []
        for header in headers:
            element_key = matcher.match(names.get(header.incident_id) or "")
            if element_key is None:
                logger.debug(
                    "Source %s: incident %s has no matching %s element",
                    channel.source, header.incident_id, channel.name.lower(),
                )
            candidates.append(DetailCandidate(
                header_key=header.header_key,
                network_element_key=element_key,
                actual_create_date=header.actual_create_date,
                actual_end_date=header.actual_end_date,
            ))

        candidates.sort(key=lambda c: c.sort_key)
        return candidates

    def _backfill(self, session: Session, channel: Channel) -> int:
        headers = find_unlinked_headers(session, channel.channel_key)
        if not headers:
            return 0

        candidates = self.build_candidates(session, channel, headers)
        first_key = self.key_allocator.allocate(session, FactDetail.detail_key, len(candidates))

        # A concurrent backfill of the same channel may have committed between
        # the anti-join and the lock; the lock is held from here on.
        linked = set(session.execute(
            select(FactDetail.header_key)
            .where(FactDetail.header_key.in_([c.header_key for c in candidates]))
        ).scalars())
        candidates = [c for c in candidates if c.header_key not in linked]

        now = self.clock()
        rows = [
            FactDetail(
                detail_key=first_key + offset,
                header_key=candidate.header_key,
                network_element_key=candidate.network_element_key,
                actual_create_date=candidate.actual_create_date or now,
                actual_end_date=candidate.actual_end_date,
                impacted_customers=IMPACTED_CUSTOMERS_PLACEHOLDER,
            )
            for offset, candidate in enumerate(candidates)
        ]
        session.add_all(rows)
        session.flush()
        return len(rows)
