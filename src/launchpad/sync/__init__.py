"""Repository synchronization: clone on first run, converge on later runs."""

from launchpad.sync.engine import SyncEngine
from launchpad.sync.models import (
    MergeAnalysis,
    RemoteRef,
    SyncError,
    SyncOutcome,
    SyncStage,
    SyncStatus,
    SyncTarget,
)

__all__ = [
    "SyncEngine",
    "SyncTarget",
    "SyncOutcome",
    "SyncStatus",
    "SyncStage",
    "SyncError",
    "RemoteRef",
    "MergeAnalysis",
]
