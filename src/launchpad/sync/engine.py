"""Sync engine: bring a local checkout to the tip of its remote.

The decision procedure is:
1. Target directory absent -> clone it (Acquire)
2. Target directory present -> fetch, analyse, then merge + hard reset if
   anything changed (Converge)

Every failure is reported as a SyncOutcome with the stage it happened at;
nothing raised by git, the network or the filesystem crosses synchronize().

Clones go to a staging directory next to the target and are renamed into
place only once complete, so an interrupted first download never leaves a
half-written checkout behind.

The hard reset only runs after a successful merge. A local edit to a file the
remote also changes, or an untracked file in the way of a new remote file,
fails the merge and blocks convergence until it is removed.
"""

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pygit2

from launchpad.git import (
    GitClient,
    LibrarySession,
    NullProgressObserver,
    ProgressObserver,
    library_session,
)
from launchpad.sync.models import (
    MergeAnalysis,
    RemoteRef,
    SyncError,
    SyncOutcome,
    SyncStage,
    SyncTarget,
)

logger = logging.getLogger(__name__)


@contextmanager
def _stage(stage: SyncStage) -> Iterator[None]:
    """Attribute any failure inside the block to `stage`."""
    try:
        yield
    except SyncError:
        raise
    except Exception as e:
        raise SyncError(stage, str(e)) from e


class SyncEngine:
    """Clones or fast-converges a working copy onto its remote tip.

    Use as a context manager to hold the libgit2 session across several
    synchronize() calls; outside a `with` block each call holds it briefly.
    """

    def __init__(
        self,
        client: GitClient | None = None,
        observer: ProgressObserver | None = None,
        session: LibrarySession | None = None,
    ):
        self.client = client or GitClient()
        self.observer = observer or NullProgressObserver()
        self.session = session or library_session
        self._entered = 0

    def __enter__(self) -> "SyncEngine":
        self.session.acquire()
        self._entered += 1
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._entered -= 1
        self.session.release()

    def synchronize(self, target: SyncTarget) -> SyncOutcome:
        """Run one sync of `target`. Never raises for sync failures."""
        if self._entered:
            outcome = self._synchronize(target)
        else:
            with self.session.hold():
                outcome = self._synchronize(target)

        if outcome.ok:
            logger.debug("Sync of %s finished: %s (%s)", target.path, outcome.status.value, outcome.commit)
        else:
            logger.error("Sync failed at stage '%s': %s", outcome.stage.value, outcome.detail)
        return outcome

    def _synchronize(self, target: SyncTarget) -> SyncOutcome:
        path = Path(target.path)
        try:
            if not path.exists():
                return self._acquire(target.remote, path)
            if not path.is_dir():
                raise SyncError(SyncStage.OPEN, f"{path} exists but is not a directory")
            return self._converge(target.remote, path)
        except SyncError as e:
            return SyncOutcome.failed(e.stage, e.detail)

    def _acquire(self, remote: str, path: Path) -> SyncOutcome:
        """First run: clone into a staging directory, then move it into place."""
        logger.info("Downloading app")
        path = path.absolute()

        with _stage(SyncStage.CLONE):
            path.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{path.name}.clone-", dir=path.parent))

        try:
            with _stage(SyncStage.CLONE):
                repo = self.client.clone(remote, staging, self.observer)
                try:
                    commit = self.client.head(repo)
                finally:
                    repo.free()
                staging.rename(path)
        except SyncError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("Downloaded %s", commit[:10] if commit else "empty repository")
        return SyncOutcome.cloned(commit)

    def _converge(self, remote: str, path: Path) -> SyncOutcome:
        with _stage(SyncStage.OPEN):
            repo = self.client.open(path)

        try:
            logger.info("Checking for updates")
            with _stage(SyncStage.FETCH):
                anonymous = self.client.create_anonymous_remote(repo, remote)
                self.client.fetch(anonymous, self.observer)
                del anonymous

            with _stage(SyncStage.RESOLVE):
                tip = self._resolve_merge_target(repo, remote)

            with _stage(SyncStage.MERGE):
                analysis = MergeAnalysis.classify(*self.client.merge_analysis(repo, tip.oid))
            logger.debug("Merge analysis against %s: %s", tip.oid[:10], analysis.value)

            if analysis == MergeAnalysis.UP_TO_DATE:
                logger.info("Already up to date")
                return SyncOutcome.up_to_date(tip.oid)

            logger.info("Applying update")
            self._apply(repo, tip)
            return SyncOutcome.updated(tip.oid)
        finally:
            self.client.cleanup(repo)

    def _resolve_merge_target(self, repo: pygit2.Repository, remote: str) -> RemoteRef:
        """First FETCH_HEAD entry marked for merge."""
        for entry in self.client.fetch_head(repo):
            if entry.for_merge:
                return RemoteRef(oid=entry.oid, name=entry.description, url=remote)
        raise SyncError(SyncStage.RESOLVE, f"Fetch from {remote} produced no ref to merge")

    def _apply(self, repo: pygit2.Repository, tip: RemoteRef) -> None:
        """Merge for bookkeeping, then hard reset; local edits are discarded.

        An unborn HEAD (the remote was empty when it was cloned) has nothing to
        merge into, so the reset alone moves the branch onto the tip.
        """
        with _stage(SyncStage.MERGE):
            if self.client.head(repo) is None:
                logger.debug("HEAD is unborn, skipping merge")
            else:
                self.client.merge(repo, tip.oid)
        with _stage(SyncStage.RESET):
            self.client.hard_reset(repo, tip.oid)
