"""Progress reporting for fetch and clone.

libgit2 reports transfer progress through callbacks invoked on the thread
that runs the network operation. Those callbacks are bridged here onto a
plain observer interface so the sync engine and the CLI never touch pygit2
types directly. Events arrive synchronously and in order.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

import pygit2
from pygit2.enums import CredentialType
from rich.console import Console

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferStats:
    """A snapshot of object transfer progress."""

    received_objects: int
    total_objects: int
    indexed_deltas: int
    total_deltas: int
    received_bytes: int
    indexed_objects: int = 0

    @property
    def resolving_deltas(self) -> bool:
        """All objects are in, libgit2 is now indexing deltas."""
        return self.total_objects > 0 and self.received_objects == self.total_objects


@dataclass(frozen=True)
class RefUpdate:
    """A single reference moved by a fetch."""

    name: str
    old: str | None
    new: str

    @property
    def is_new(self) -> bool:
        return self.old is None


class ProgressObserver(Protocol):
    """Receives progress from a fetch or clone, in the order it happens."""

    def sideband(self, text: str) -> None: ...

    def transfer(self, stats: TransferStats) -> None: ...

    def ref_updated(self, update: RefUpdate) -> None: ...


class NullProgressObserver:
    """Discards every event."""

    def sideband(self, text: str) -> None:
        pass

    def transfer(self, stats: TransferStats) -> None:
        pass

    def ref_updated(self, update: RefUpdate) -> None:
        pass


@dataclass
class RecordingProgressObserver:
    """Keeps every event in memory, mostly useful for tests and diagnostics."""

    messages: list[str] = field(default_factory=list)
    transfers: list[TransferStats] = field(default_factory=list)
    updates: list[RefUpdate] = field(default_factory=list)

    def sideband(self, text: str) -> None:
        self.messages.append(text)

    def transfer(self, stats: TransferStats) -> None:
        self.transfers.append(stats)

    def ref_updated(self, update: RefUpdate) -> None:
        self.updates.append(update)


class ConsoleProgressObserver:
    """Renders progress on a rich console in the style of `git fetch`."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True)

    def sideband(self, text: str) -> None:
        # Remote text is already newline-terminated (or uses \r for in-place updates)
        self.console.print(f"remote: {text}", end="", markup=False, highlight=False)

    def transfer(self, stats: TransferStats) -> None:
        if stats.resolving_deltas:
            line = f"Resolving deltas {stats.indexed_deltas}/{stats.total_deltas}"
        elif stats.total_objects > 0:
            line = (
                f"Received {stats.received_objects}/{stats.total_objects} objects "
                f"({stats.indexed_objects}) in {stats.received_bytes} bytes"
            )
        else:
            return
        self.console.print(line, end="\r", markup=False, highlight=False)

    def ref_updated(self, update: RefUpdate) -> None:
        if update.is_new:
            line = f"[new]     {update.new[:20]} {update.name}"
        else:
            line = f"[updated] {update.old[:10]}..{update.new[:10]} {update.name}"
        self.console.print(line, markup=False, highlight=False)


def _oid_or_none(oid: pygit2.Oid) -> str | None:
    hex_id = str(oid)
    return hex_id if hex_id.strip("0") else None


class ObserverCallbacks(pygit2.RemoteCallbacks):
    """pygit2 remote callbacks that forward to a ProgressObserver.

    SSH credential requests are answered from the running SSH agent, which is
    how deploy keys are normally provided to a launcher.
    """

    def __init__(self, observer: ProgressObserver | None = None):
        super().__init__()
        self.observer = observer or NullProgressObserver()

    def sideband_progress(self, string: str) -> None:
        self.observer.sideband(string)

    def transfer_progress(self, stats) -> None:
        self.observer.transfer(
            TransferStats(
                received_objects=stats.received_objects,
                total_objects=stats.total_objects,
                indexed_deltas=stats.indexed_deltas,
                total_deltas=stats.total_deltas,
                received_bytes=stats.received_bytes,
                indexed_objects=stats.indexed_objects,
            )
        )

    def update_tips(self, refname: str, old: pygit2.Oid, new: pygit2.Oid) -> None:
        self.observer.ref_updated(RefUpdate(name=refname, old=_oid_or_none(old), new=str(new)))

    def credentials(self, url: str, username_from_url: str | None, allowed_types: CredentialType):
        if allowed_types & CredentialType.SSH_KEY:
            logger.debug("Using SSH agent credentials for %s", url)
            return pygit2.KeypairFromAgent(username_from_url or "git")
        raise pygit2.Passthrough
