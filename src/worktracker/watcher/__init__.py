"""Capture pipeline: scheduler, fingerprinting, dedup gate and dispatch.

Public API:
    CaptureScheduler -- Periodic sampling loop of an active session
    DedupGate -- Last-fingerprint comparison per session
    AnalysisDispatcher -- Classifier call or "unchanged" sentinel
    fingerprint -- Content hash of encoded image bytes
"""

from worktracker.watcher.dedup import DedupGate
from worktracker.watcher.dispatcher import AnalysisDispatcher
from worktracker.watcher.fingerprint import fingerprint
from worktracker.watcher.scheduler import CaptureScheduler

__all__ = ["AnalysisDispatcher", "CaptureScheduler", "DedupGate", "fingerprint"]
