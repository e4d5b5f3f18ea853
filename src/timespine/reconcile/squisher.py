"""Collapse adjacent drafts that carry the same belief.

The merge is greedy and adjacent-only: each draft is compared with the last
emitted one.  Equal runs separated by a differing draft stay separate.
"""

from __future__ import annotations

from collections.abc import Iterable

from timespine.core.temporal import DraftRecord


def squish(drafts: Iterable[DraftRecord]) -> list[DraftRecord]:
    """Single left-to-right pass over drafts ordered by effective_from."""
    squished: list[DraftRecord] = []
    for current in drafts:
        last = squished[-1] if squished else None
        if (
            last is not None
            and last.same_belief(current)
            and last.effective_till == current.effective_from
        ):
            squished[-1] = last.spanning(current.effective_till)
        else:
            squished.append(current)
    return squished


__all__ = ["squish"]
