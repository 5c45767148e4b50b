"""Timeline aggregation of a session's stored samples.

Samples are partitioned into fixed windows by truncating their capture
time (one hour by default). Each window gets a dominant activity type
and a dominant application, picked independently: the value with the
strictly highest count, ties going to the one seen first in capture
order. Aggregation is a pure function of the stored samples.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Hashable, Iterable, TypeVar

from worktracker.domain.models import ActivityType, Sample, TimelineBucket
from worktracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

LABEL_FORMAT = "%Y-%m-%d %H:%M"


def bucket_start(ts: datetime, bucket_minutes: int = 60) -> datetime:
    """Truncate a timestamp to the start of its bucket."""
    minute_of_day = ts.hour * 60 + ts.minute
    floored = minute_of_day - minute_of_day % bucket_minutes
    return ts.replace(hour=floored // 60, minute=floored % 60, second=0, microsecond=0)


def bucket_label(ts: datetime, bucket_minutes: int = 60) -> str:
    return bucket_start(ts, bucket_minutes).strftime(LABEL_FORMAT)


def dominant(values: Iterable[T], default: T) -> T:
    """Most frequent value; ties go to the value encountered first."""
    counts = Counter(values)  # preserves first-insertion order
    best, best_count = default, 0
    for value, count in counts.items():
        if count > best_count:
            best, best_count = value, count
    return best


def build_timeline(samples: Iterable[Sample], bucket_minutes: int = 60) -> list[TimelineBucket]:
    """Group samples (in capture order) into labelled buckets."""
    groups: dict[str, list[Sample]] = {}
    for sample in samples:
        groups.setdefault(bucket_label(sample.captured_at, bucket_minutes), []).append(sample)

    timeline = []
    for label, items in groups.items():
        analyses = [s.analysis for s in items if s.analysis is not None]
        timeline.append(TimelineBucket(
            label=label,
            samples=items,
            dominant_activity=dominant(
                (a.activity_type for a in analyses), ActivityType.OTHER
            ),
            dominant_app=dominant((a.app_name for a in analyses if a.app_name), ""),
        ))

    timeline.sort(key=lambda b: b.label)
    return timeline


class TimelineAggregator:
    """Reads a session's samples from storage and builds its timeline."""

    def __init__(self, storage: StorageBackend, bucket_minutes: int = 60) -> None:
        if bucket_minutes <= 0:
            raise ValueError("bucket_minutes must be positive")
        self._storage = storage
        self._bucket_minutes = bucket_minutes

    @property
    def bucket_minutes(self) -> int:
        return self._bucket_minutes

    async def aggregate(self, session_id: str) -> list[TimelineBucket]:
        samples = await self._storage.list_samples(session_id)
        timeline = build_timeline(samples, self._bucket_minutes)
        logger.debug("Session %s: %d samples in %d buckets",
                     session_id, len(samples), len(timeline))
        return timeline
