from admonitor.pipeline.types import AdError, CanonicalAd, ProcessingResult
from admonitor.pipeline.dedup import deduplicate
from admonitor.pipeline.reconciler import Reconciler
from admonitor.pipeline.snapshots import SnapshotRecorder

__all__ = [
    "AdError",
    "CanonicalAd",
    "ProcessingResult",
    "deduplicate",
    "Reconciler",
    "SnapshotRecorder",
]
