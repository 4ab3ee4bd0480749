"""Tests for network element name matching."""

from outage_sync.sync.channels import CABIN_TYPE_KEY, CABLE_TYPE_KEY
from outage_sync.sync.matcher import NetworkElementMatcher


def _matcher(*rows):
    return NetworkElementMatcher(CABIN_TYPE_KEY, rows)


class TestMatch:
    def test_exact_name_matches(self):
        matcher = _matcher((5, "Cab-1", CABIN_TYPE_KEY))
        assert matcher.match("Cab-1") == 5

    def test_surrounding_whitespace_is_ignored(self):
        matcher = _matcher((5, "  Cab-1 ", CABIN_TYPE_KEY))
        assert matcher.match("Cab-1  ") == 5

    def test_matching_is_case_sensitive(self):
        matcher = _matcher((5, "Cab-1", CABIN_TYPE_KEY))
        assert matcher.match("cab-1") is None

    def test_other_element_types_never_match(self):
        matcher = _matcher((15, "Cab-1", CABLE_TYPE_KEY))
        assert matcher.match("Cab-1") is None
        assert len(matcher) == 0

    def test_duplicate_names_resolve_to_lowest_key(self):
        matcher = _matcher(
            (9, "Cab-1", CABIN_TYPE_KEY),
            (4, "Cab-1", CABIN_TYPE_KEY),
            (7, "Cab-1", CABIN_TYPE_KEY),
        )
        assert matcher.match("Cab-1") == 4

    def test_tie_break_is_independent_of_row_order(self):
        rows = [(9, "Cab-1", CABIN_TYPE_KEY), (4, " Cab-1", CABIN_TYPE_KEY)]
        assert _matcher(*rows).match("Cab-1") == _matcher(*reversed(rows)).match("Cab-1")

    def test_empty_and_missing_names_are_unmatched(self):
        matcher = _matcher((5, "", CABIN_TYPE_KEY), (6, None, CABIN_TYPE_KEY))
        assert matcher.match("") is None
        assert matcher.match("   ") is None
        assert matcher.match(None) is None

    def test_unknown_name_is_unmatched(self):
        matcher = _matcher((5, "Cab-1", CABIN_TYPE_KEY))
        assert matcher.match("Cab-99") is None


class TestLoad:
    def test_loads_only_requested_type(self, session, add_elements):
        add_elements(
            (5, "Cab-1", CABIN_TYPE_KEY),
            (6, "Cab-2", CABIN_TYPE_KEY),
            (15, "Cab-1", CABLE_TYPE_KEY),
        )
        matcher = NetworkElementMatcher.load(session, CABIN_TYPE_KEY)

        assert len(matcher) == 2
        assert matcher.match("Cab-1") == 5
        assert matcher.match("Cab-2") == 6
