"""Post-hoc timeline reconstruction from stored samples."""

from worktracker.timeline.aggregator import TimelineAggregator, build_timeline, dominant
from worktracker.timeline.breakdown import compute_breakdown

__all__ = ["TimelineAggregator", "build_timeline", "compute_breakdown", "dominant"]
