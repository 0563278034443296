"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pygit2
import pytest

MAIN_BRANCH = "main"


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-network",
        action="store_true",
        default=False,
        help="run tests that clone from a real network remote",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "network: mark test as requiring network access (deselect with '-m \"not network\"')",
    )
    config.addinivalue_line("markers", "posix: mark test as requiring POSIX executables and signals")


def pytest_collection_modifyitems(config, items):
    """Skip network tests unless --run-network is given, POSIX tests on Windows."""
    skip_network = pytest.mark.skip(reason="need --run-network option to run")
    skip_posix = pytest.mark.skip(reason="requires POSIX shell scripts")
    for item in items:
        if "network" in item.keywords and not config.getoption("--run-network"):
            item.add_marker(skip_network)
        if "posix" in item.keywords and sys.platform == "win32":
            item.add_marker(skip_posix)


class Upstream:
    """A non-bare repository used as the remote in tests."""

    signature = pygit2.Signature("Test User", "test@example.com")

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True, exist_ok=True)
        self.repo = pygit2.init_repository(str(path), initial_head=MAIN_BRANCH)

    @property
    def url(self) -> str:
        return str(self.path)

    @property
    def head(self) -> str:
        return str(self.repo.head.target)

    @property
    def tree(self) -> str:
        return str(self.repo.head.peel(pygit2.Commit).tree.id)

    def commit(
        self,
        files: dict[str, str],
        message: str = "Update",
        executable: tuple[str, ...] = (),
    ) -> str:
        """Write `files`, stage them and commit on the current branch."""
        for name, content in files.items():
            file_path = self.path / name
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content)
            if name in executable:
                os.chmod(file_path, 0o755)
            self.repo.index.add(name)
        self.repo.index.write()
        tree = self.repo.index.write_tree()
        parents = [] if self.repo.head_is_unborn else [self.repo.head.target]
        oid = self.repo.create_commit(
            "HEAD", self.signature, self.signature, message, tree, parents
        )
        return str(oid)


def commit_local(path: Path, files: dict[str, str], message: str = "Local change") -> str:
    """Commit `files` directly in a cloned working copy."""
    repo = pygit2.Repository(str(path))
    for name, content in files.items():
        (path / name).write_text(content)
        repo.index.add(name)
    repo.index.write()
    tree = repo.index.write_tree()
    oid = repo.create_commit(
        "HEAD", Upstream.signature, Upstream.signature, message, tree, [repo.head.target]
    )
    return str(oid)


@pytest.fixture
def upstream(tmp_path: Path) -> Upstream:
    """Remote repository with one commit on main."""
    repo = Upstream(tmp_path / "upstream")
    repo.commit(
        {"README.md": "# App\n", "config.txt": "version=1\n"},
        message="Initial commit",
    )
    return repo


@pytest.fixture
def empty_upstream(tmp_path: Path) -> Upstream:
    """Remote repository with no commits yet."""
    return Upstream(tmp_path / "empty-upstream")


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Location of the managed checkout. Not created."""
    return tmp_path / "deploy" / "app"


@pytest.fixture
def local_commit():
    """Callable committing files straight into a working copy."""
    return commit_local
