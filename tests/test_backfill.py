"""Tests for detail backfill."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from outage_sync.models.fact import FactDetail
from outage_sync.sync.backfill import DetailBackfiller, DetailCandidate, find_unlinked_headers
from outage_sync.sync.channels import CABIN_CHANNEL, CABIN_TYPE_KEY, CABLE_CHANNEL
from outage_sync.sync.errors import ResourceBusy, SyncStepFailed
from outage_sync.sync.keys import KeyAllocator

from tests.conftest import FIXED_NOW, fixed_clock


def _details(session_factory):
    with session_factory() as session:
        return list(
            session.execute(select(FactDetail).order_by(FactDetail.detail_key)).scalars()
        )


@pytest.fixture
def backfiller(session_factory):
    return DetailBackfiller(session_factory, clock=fixed_clock)


class TestBackfill:
    def test_end_to_end_scenario(
        self, session_factory, backfiller, add_elements, add_header, add_staging, add_detail,
    ):
        add_elements((5, "Cab-10", CABIN_TYPE_KEY), (6, "cab-11", CABIN_TYPE_KEY))
        # Existing detail table tops out at key 100.
        add_header(1, 500)
        add_detail(100, 1, network_element_key=5)
        add_staging(CABIN_CHANNEL, 1001, "Cab-10")
        add_staging(CABIN_CHANNEL, 1002, " cab-11 ")
        add_header(2, 1001)
        add_header(3, 1002)

        assert backfiller.backfill(CABIN_CHANNEL) == 2

        new = [d for d in _details(session_factory) if d.detail_key > 100]
        assert [(d.detail_key, d.header_key, d.network_element_key) for d in new] == [
            (101, 2, 5),
            (102, 3, 6),
        ]
        assert all(d.impacted_customers == 0 for d in new)

        assert backfiller.backfill(CABIN_CHANNEL) == 0
        assert len(_details(session_factory)) == 3

    def test_concurrent_backfill_committed_before_the_lock(
        self, session_factory, cabin_and_cable_elements, add_header, add_staging
    ):
        add_staging(CABIN_CHANNEL, 1001, "Cab-1")
        add_staging(CABIN_CHANNEL, 1002, "Cab-2")
        add_header(1, 1001)
        add_header(2, 1002)

        class _CompetingAllocator(KeyAllocator):
            competed = False

            def allocate(self, session, key_column, n):
                if not self.competed:
                    self.competed = True
                    DetailBackfiller(session_factory, clock=fixed_clock).backfill(CABIN_CHANNEL)
                return super().allocate(session, key_column, n)

        backfiller = DetailBackfiller(
            session_factory, key_allocator=_CompetingAllocator(), clock=fixed_clock
        )

        assert backfiller.backfill(CABIN_CHANNEL) == 0
        details = _details(session_factory)
        assert [(d.detail_key, d.header_key) for d in details] == [(1, 1), (2, 2)]

    def test_unmatched_element_is_stored_as_null(
        self, session_factory, backfiller, cabin_and_cable_elements, add_header, add_staging
    ):
        add_staging(CABIN_CHANNEL, 1001, "Cab-404")
        add_staging(CABIN_CHANNEL, 1002, "")
        add_header(1, 1001)
        add_header(2, 1002)

        assert backfiller.backfill(CABIN_CHANNEL) == 2
        assert [d.network_element_key for d in _details(session_factory)] == [None, None]

    def test_header_without_staging_row_is_still_linked(
        self, session_factory, backfiller, cabin_and_cable_elements, add_header
    ):
        add_header(1, 1001)

        assert backfiller.backfill(CABIN_CHANNEL) == 1
        assert _details(session_factory)[0].network_element_key is None

    def test_matches_only_the_channels_element_type(
        self, session_factory, backfiller, cabin_and_cable_elements, add_header, add_staging
    ):
        # "cab-1-c" is a cable; the cabin channel must not resolve it.
        add_staging(CABIN_CHANNEL, 1001, "cab-1-c")
        add_staging(CABLE_CHANNEL, 2001, "cab-1-c")
        add_header(1, 1001, channel_key=CABIN_CHANNEL.channel_key)
        add_header(2, 2001, channel_key=CABLE_CHANNEL.channel_key)

        assert backfiller.backfill(CABIN_CHANNEL) == 1
        assert backfiller.backfill(CABLE_CHANNEL) == 1

        by_header = {d.header_key: d.network_element_key for d in _details(session_factory)}
        assert by_header == {1: None, 2: 15}

    def test_only_the_requested_channel_is_backfilled(
        self, session_factory, backfiller, add_header
    ):
        add_header(1, 1001, channel_key=CABIN_CHANNEL.channel_key)
        add_header(2, 2001, channel_key=CABLE_CHANNEL.channel_key)

        assert backfiller.backfill(CABLE_CHANNEL) == 1
        assert [d.header_key for d in _details(session_factory)] == [2]

    def test_at_most_one_detail_per_header(
        self, session_factory, backfiller, cabin_and_cable_elements, add_header, add_staging
    ):
        for i in range(1, 6):
            add_staging(CABIN_CHANNEL, 1000 + i, f"Cab-{i % 2 + 1}")
            add_header(i, 1000 + i)

        for _ in range(3):
            backfiller.backfill(CABIN_CHANNEL)

        with session_factory() as session:
            counts = session.execute(
                select(FactDetail.header_key, func.count())
                .group_by(FactDetail.header_key)
            ).all()
        assert len(counts) == 5
        assert all(count == 1 for _, count in counts)

    def test_keys_are_contiguous_across_runs(
        self, session_factory, backfiller, add_header
    ):
        add_header(1, 1001)
        add_header(2, 1002)
        backfiller.backfill(CABIN_CHANNEL)
        add_header(3, 1003)
        add_header(4, 2001, channel_key=CABLE_CHANNEL.channel_key)
        backfiller.backfill(CABIN_CHANNEL)
        backfiller.backfill(CABLE_CHANNEL)

        keys = [d.detail_key for d in _details(session_factory)]
        assert keys == [1, 2, 3, 4]

    def test_missing_create_date_falls_back_to_now(
        self, session_factory, backfiller, add_header
    ):
        add_header(1, 1001, actual_create_date=None)

        backfiller.backfill(CABIN_CHANNEL)

        detail = _details(session_factory)[0]
        assert detail.actual_create_date.replace(tzinfo=None) == FIXED_NOW.replace(tzinfo=None)

    def test_end_date_is_copied_from_header(self, session_factory, backfiller, add_header):
        ended = FIXED_NOW.replace(hour=11)
        add_header(1, 1001, actual_end_date=ended)

        backfiller.backfill(CABIN_CHANNEL)

        detail = _details(session_factory)[0]
        assert detail.actual_end_date.replace(tzinfo=None) == ended.replace(tzinfo=None)


class _BusyAllocator(KeyAllocator):
    def allocate(self, session, key_column, n):
        raise ResourceBusy("cutting_down_detail", "lock timeout")


class _FailingAllocator(KeyAllocator):
    def allocate(self, session, key_column, n):
        raise OperationalError("SELECT max", {}, Exception("disk I/O error"))


class TestFailures:
    def test_busy_lock_propagates_and_inserts_nothing(self, session_factory, add_header):
        add_header(1, 1001)
        backfiller = DetailBackfiller(session_factory, key_allocator=_BusyAllocator())

        with pytest.raises(ResourceBusy):
            backfiller.backfill(CABIN_CHANNEL)
        assert _details(session_factory) == []

    def test_storage_error_becomes_step_failure(self, session_factory, add_header):
        add_header(1, 1001)
        backfiller = DetailBackfiller(session_factory, key_allocator=_FailingAllocator())

        with pytest.raises(SyncStepFailed) as excinfo:
            backfiller.backfill(CABIN_CHANNEL)
        assert excinfo.value.step == "backfill"
        assert excinfo.value.source == "A"
        assert _details(session_factory) == []

    def test_insert_failure_rolls_back_the_whole_batch(
        self, session_factory, add_header, add_detail
    ):
        add_header(1, 1001)
        add_header(2, 1002)
        add_header(3, 1003)
        # Key 2 is taken, so the second insert of the block collides.
        add_detail(2, 3)

        class _StaleAllocator(KeyAllocator):
            def allocate(self, session, key_column, n):
                return 1

        backfiller = DetailBackfiller(session_factory, key_allocator=_StaleAllocator())
        with pytest.raises(SyncStepFailed):
            backfiller.backfill(CABIN_CHANNEL)

        assert [d.detail_key for d in _details(session_factory)] == [2]


class TestHelpers:
    def test_find_unlinked_headers_skips_linked(self, session, add_header, add_detail):
        add_header(1, 1001)
        add_header(2, 1002)
        add_detail(1, 1)

        assert [h.header_key for h in find_unlinked_headers(session, 1)] == [2]

    def test_candidates_sort_by_header_with_unmatched_last(self):
        candidates = [
            DetailCandidate(2, None, None, None),
            DetailCandidate(1, None, None, None),
            DetailCandidate(1, 7, None, None),
            DetailCandidate(1, 3, None, None),
        ]
        ordered = sorted(candidates, key=lambda c: c.sort_key)
        assert [(c.header_key, c.network_element_key) for c in ordered] == [
            (1, 3), (1, 7), (1, None), (2, None),
        ]
