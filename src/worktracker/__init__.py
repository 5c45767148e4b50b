"""worktracker -- Passive screen activity tracker.

This package samples the user's screen at a fixed interval, skips
classification of frames that have not changed since the previous
sample, and rebuilds a chronological activity timeline from the stored
samples of a work session.
"""

__version__ = "0.1.0"
