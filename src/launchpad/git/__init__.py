"""Git access for the launcher: a pygit2 adapter and progress reporting."""

from launchpad.git.client import (
    FetchHeadEntry,
    GitClient,
    GitError,
    LibrarySession,
    library_session,
    parse_fetch_head,
)
from launchpad.git.progress import (
    ConsoleProgressObserver,
    NullProgressObserver,
    ObserverCallbacks,
    ProgressObserver,
    RecordingProgressObserver,
    RefUpdate,
    TransferStats,
)

__all__ = [
    # Client
    "GitClient",
    "GitError",
    "FetchHeadEntry",
    "LibrarySession",
    "library_session",
    "parse_fetch_head",
    # Progress
    "ProgressObserver",
    "NullProgressObserver",
    "RecordingProgressObserver",
    "ConsoleProgressObserver",
    "ObserverCallbacks",
    "RefUpdate",
    "TransferStats",
]
