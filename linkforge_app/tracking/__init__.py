"""
Click tracking pipeline: scheduler → dispatcher → (queue → worker) → tracker.
"""

from .tracker import ClickTracker, TrackResult
from .dispatchers import ClickDispatcher, InlineClickDispatcher, QueueClickDispatcher, TrackingMode
from .scheduler import ClickScheduler
from .worker import ClickWorker

__all__ = [
    "ClickTracker",
    "TrackResult",
    "ClickDispatcher",
    "InlineClickDispatcher",
    "QueueClickDispatcher",
    "TrackingMode",
    "ClickScheduler",
    "ClickWorker",
]
