"""Thin adapter over pygit2 for the handful of operations the launcher needs.

Nothing in here makes decisions: every method performs one libgit2 primitive
and turns library failures into GitError.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import pygit2
from pygit2.enums import MergeAnalysis as MergeAnalysisFlag
from pygit2.enums import MergePreference, RepositoryOpenFlag, ResetMode

from launchpad.git.progress import ObserverCallbacks, ProgressObserver

logger = logging.getLogger(__name__)

FETCH_HEAD_FILE = "FETCH_HEAD"
NOT_FOR_MERGE = "not-for-merge"


class GitError(Exception):
    """Raised when a git operation fails."""

    pass


@dataclass(frozen=True)
class FetchHeadEntry:
    """One line of FETCH_HEAD."""

    oid: str
    for_merge: bool
    description: str


class LibrarySession:
    """Reference-counted, process-wide scope around libgit2 use.

    pygit2 initialises libgit2 when it is imported and shuts it down at
    interpreter exit, so this only counts holders and logs the first acquire
    and last release. It does not init or free any library state itself.
    Several engines may hold the session at once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holders = 0

    @property
    def active(self) -> bool:
        return self._holders > 0

    @property
    def holders(self) -> int:
        return self._holders

    def acquire(self) -> None:
        with self._lock:
            if self._holders == 0:
                logger.debug("libgit2 %s session opened", pygit2.LIBGIT2_VERSION)
            self._holders += 1

    def release(self) -> None:
        with self._lock:
            if self._holders == 0:
                raise RuntimeError("libgit2 session released more times than acquired")
            self._holders -= 1
            if self._holders == 0:
                logger.debug("libgit2 session closed")

    @contextmanager
    def hold(self) -> Iterator["LibrarySession"]:
        self.acquire()
        try:
            yield self
        finally:
            self.release()


library_session = LibrarySession()


@contextmanager
def _translate(action: str) -> Iterator[None]:
    try:
        yield
    except GitError:
        raise
    except (pygit2.GitError, KeyError, ValueError, OSError) as err:
        raise GitError(f"{action}: {err}") from err


def parse_fetch_head(text: str) -> list[FetchHeadEntry]:
    """Parse FETCH_HEAD contents, preserving file order.

    Each line is ``<oid>TAB[not-for-merge]TAB<description>``.
    """
    entries: list[FetchHeadEntry] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t", 2)
        oid = parts[0].strip()
        marker = parts[1] if len(parts) > 1 else ""
        description = parts[2] if len(parts) > 2 else ""
        entries.append(
            FetchHeadEntry(oid=oid, for_merge=marker != NOT_FOR_MERGE, description=description)
        )
    return entries


class GitClient:
    """Remote-repository primitives backed by libgit2."""

    def open(self, path: Path) -> pygit2.Repository:
        """Open an existing working copy rooted exactly at `path`.

        Parent directories are not searched, so a stray directory inside some
        other checkout is rejected rather than opening that checkout.
        """
        with _translate(f"Cannot open repository at {path}"):
            repo = pygit2.Repository(str(path), RepositoryOpenFlag.NO_SEARCH)
        if repo.is_bare:
            repo.free()
            raise GitError(f"Repository at {path} has no working tree")
        return repo

    def clone(
        self,
        url: str,
        path: Path,
        observer: ProgressObserver | None = None,
    ) -> pygit2.Repository:
        """Clone `url` into `path`, which must be absent or an empty directory."""
        with _translate(f"Failed to clone {url}"):
            return pygit2.clone_repository(url, str(path), callbacks=ObserverCallbacks(observer))

    def create_anonymous_remote(self, repo: pygit2.Repository, url: str) -> pygit2.Remote:
        """A remote bound to `url` that is not written to the repository config."""
        with _translate(f"Cannot create remote for {url}"):
            return repo.remotes.create_anonymous(url)

    def fetch(self, remote: pygit2.Remote, observer: ProgressObserver | None = None) -> None:
        """Fetch from `remote` with its default refspecs, updating FETCH_HEAD."""
        with _translate(f"Failed to fetch {remote.url}"):
            stats = remote.fetch(callbacks=ObserverCallbacks(observer))
        logger.debug(
            "Fetched %d/%d objects (%d bytes)",
            stats.received_objects,
            stats.total_objects,
            stats.received_bytes,
        )

    def fetch_head(self, repo: pygit2.Repository) -> list[FetchHeadEntry]:
        """Entries written by the last fetch. Empty if there was none."""
        path = Path(repo.path) / FETCH_HEAD_FILE
        if not path.exists():
            return []
        with _translate("Cannot read FETCH_HEAD"):
            return parse_fetch_head(path.read_text(encoding="utf-8"))

    def merge_analysis(
        self, repo: pygit2.Repository, oid: str
    ) -> tuple[MergeAnalysisFlag, MergePreference]:
        """Compare HEAD against `oid` without touching the working tree."""
        with _translate(f"Merge analysis against {oid} failed"):
            analysis, preference = repo.merge_analysis(pygit2.Oid(hex=oid))
        return MergeAnalysisFlag(analysis), MergePreference(preference)

    def merge(self, repo: pygit2.Repository, oid: str) -> None:
        """Merge `oid` into HEAD's working tree and index, recording merge state."""
        with _translate(f"Merge of {oid} failed"):
            repo.merge(pygit2.Oid(hex=oid))

    def hard_reset(self, repo: pygit2.Repository, oid: str) -> None:
        """Force the working tree and index to match `oid`."""
        with _translate(f"Hard reset to {oid} failed"):
            repo.reset(pygit2.Oid(hex=oid), ResetMode.HARD)

    def head(self, repo: pygit2.Repository) -> str | None:
        """The commit id HEAD points at, or None for an unborn branch."""
        if repo.head_is_unborn:
            return None
        with _translate("Cannot resolve HEAD"):
            return str(repo.head.target)

    def cleanup(self, repo: pygit2.Repository) -> None:
        """Drop merge state and release the repository handle."""
        try:
            repo.state_cleanup()
        except pygit2.GitError as err:
            logger.debug("Repository state cleanup failed: %s", err)
        finally:
            repo.free()
