"""Types shared by the sync engine and its callers."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pygit2.enums import MergeAnalysis as MergeAnalysisFlag
from pygit2.enums import MergePreference


class SyncStatus(str, Enum):
    """How a synchronization attempt ended."""

    CLONED = "cloned"
    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    FAILED = "failed"


class SyncStage(str, Enum):
    """Step of the sync procedure, used to qualify failures."""

    CLONE = "clone"
    OPEN = "open"
    FETCH = "fetch"
    RESOLVE = "resolve"
    MERGE = "merge"
    RESET = "reset"


class MergeAnalysis(str, Enum):
    """How local HEAD relates to the fetched tip."""

    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    NEEDS_MERGE = "needs_merge"
    UNRELATED = "unrelated"
    NO_FAST_FORWARD = "no_fast_forward"

    @classmethod
    def classify(cls, analysis: MergeAnalysisFlag, preference: MergePreference) -> "MergeAnalysis":
        """Collapse libgit2's analysis and preference flags into one value."""
        if analysis & MergeAnalysisFlag.UP_TO_DATE:
            return cls.UP_TO_DATE
        if analysis & MergeAnalysisFlag.FASTFORWARD:
            if preference & MergePreference.NO_FASTFORWARD:
                return cls.NO_FAST_FORWARD
            return cls.FAST_FORWARD
        if analysis & MergeAnalysisFlag.NORMAL:
            return cls.NEEDS_MERGE
        return cls.UNRELATED


class SyncError(Exception):
    """A sync step failed. Never escapes SyncEngine.synchronize."""

    def __init__(self, stage: SyncStage, detail: str):
        self.stage = stage
        self.detail = detail
        super().__init__(f"{stage.value}: {detail}")


@dataclass(frozen=True)
class SyncTarget:
    """A remote repository and the local directory kept in step with it."""

    remote: str
    path: Path


@dataclass(frozen=True)
class RemoteRef:
    """The fetched tip that the local copy converges to."""

    oid: str
    name: str
    url: str


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one synchronize call."""

    status: SyncStatus
    stage: SyncStage | None = None
    detail: str = ""
    commit: str | None = None

    @classmethod
    def cloned(cls, commit: str | None = None) -> "SyncOutcome":
        return cls(SyncStatus.CLONED, commit=commit)

    @classmethod
    def up_to_date(cls, commit: str | None = None) -> "SyncOutcome":
        return cls(SyncStatus.UP_TO_DATE, commit=commit)

    @classmethod
    def updated(cls, commit: str | None = None) -> "SyncOutcome":
        return cls(SyncStatus.UPDATED, commit=commit)

    @classmethod
    def failed(cls, stage: SyncStage, detail: str) -> "SyncOutcome":
        return cls(SyncStatus.FAILED, stage=stage, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status != SyncStatus.FAILED

    @property
    def changed(self) -> bool:
        """The working tree was written during this sync."""
        return self.status in (SyncStatus.CLONED, SyncStatus.UPDATED)

    @property
    def message(self) -> str:
        if self.status == SyncStatus.CLONED:
            return "Downloaded app"
        if self.status == SyncStatus.UP_TO_DATE:
            return "Already up to date"
        if self.status == SyncStatus.UPDATED:
            return "Update applied"
        return f"Sync failed at {self.stage.value}: {self.detail}"
