"""Time breakdown per activity type.

Each analyzed sample stands for one capture interval of work, so the
time spent on an activity is estimated as its sample count multiplied
by the interval.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from worktracker.domain.models import ActivityShare, Sample


def compute_breakdown(samples: Iterable[Sample], interval_ms: int) -> list[ActivityShare]:
    """Share of analyzed samples per activity, ordered by first appearance."""
    counts = Counter(s.analysis.activity_type for s in samples if s.analysis is not None)
    total = sum(counts.values())
    if not total:
        return []
    return [
        ActivityShare(
            activity_type=activity,
            samples=count,
            duration_minutes=round(count * interval_ms / 60000.0, 2),
            percentage=round(100.0 * count / total, 1),
        )
        for activity, count in counts.items()
    ]
