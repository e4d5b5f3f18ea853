"""Tests for timespine.reconcile.reconstructor module."""

from datetime import UTC, datetime

from timespine.core.temporal import TemporalRecord, Timeframe
from timespine.core.timestamps import INFINITE
from timespine.reconcile.reconstructor import reconstruct

IDS = {"wrapper_id": 1, "reporting_currency": "USD"}


def _d(day: int) -> datetime:
    return datetime(2018, 9, day, tzinfo=UTC)


def _rec(start: datetime, end: datetime, **attrs) -> TemporalRecord:
    return TemporalRecord(
        identifiers=IDS,
        attributes=attrs,
        effective_from=start,
        effective_till=end,
        valid_from=_d(1),
    )


class TestReconstruct:
    def test_overlay_inside_new_interval_only(self):
        old = _rec(_d(20), INFINITE, amount=50, currency="US")
        frames = [Timeframe(_d(20), _d(21)), Timeframe(_d(21), INFINITE)]
        drafts = reconstruct(frames, [old], {"amount": 10}, IDS, _d(21), INFINITE)

        assert [d.attributes for d in drafts] == [
            {"amount": 50, "currency": "US"},
            {"amount": 10, "currency": "US"},
        ]
        assert [d.timeframe for d in drafts] == frames

    def test_gap_gets_new_attributes_only(self):
        """Unknown periods do not inherit from neighbours."""
        old = _rec(_d(20), INFINITE, amount=50, currency="US")
        frames = [Timeframe(_d(19), _d(20)), Timeframe(_d(20), INFINITE)]
        drafts = reconstruct(frames, [old], {"amount": 10}, IDS, _d(19), _d(20))

        assert drafts[0].attributes == {"amount": 10}
        assert drafts[1].attributes == {"amount": 50, "currency": "US"}

    def test_identifiers_attached(self):
        drafts = reconstruct([Timeframe(_d(1), _d(2))], [], {"a": 1}, IDS, _d(1), _d(2))
        assert drafts[0].identifiers == IDS

    def test_does_not_mutate_affected(self):
        old = _rec(_d(20), INFINITE, amount=50)
        reconstruct([Timeframe(_d(20), INFINITE)], [old], {"amount": 1}, IDS, _d(20), INFINITE)
        assert old.attributes == {"amount": 50}
