"""Tests for launching the application and propagating its exit status."""

import os
import signal
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from launchpad.handoff import (
    EXIT_NOT_EXECUTABLE,
    EXIT_NOT_FOUND,
    LaunchError,
    launch,
    spawn,
)

PYTHON = Path(sys.executable)


def _script(path: Path, body: str) -> Path:
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return path


class TestLaunch:
    def test_exit_code_propagates(self):
        assert launch(PYTHON, ["-c", "import sys; sys.exit(42)"]) == 42

    def test_success(self):
        assert launch(PYTHON, ["-c", "pass"]) == 0

    def test_arguments_are_passed(self, tmp_path: Path):
        out = tmp_path / "argv.txt"
        code = "import sys, pathlib; pathlib.Path(sys.argv[1]).write_text(' '.join(sys.argv[2:]))"

        launch(PYTHON, ["-c", code, str(out), "--fullscreen", "level 2"])

        assert out.read_text() == "--fullscreen level 2"

    def test_working_directory(self, tmp_path: Path):
        code = "import os, pathlib; pathlib.Path('cwd.txt').write_text(os.getcwd())"

        launch(PYTHON, ["-c", code], cwd=tmp_path)

        assert (tmp_path / "cwd.txt").exists()

    def test_missing_executable(self, tmp_path: Path):
        assert launch(tmp_path / "does-not-exist") == EXIT_NOT_FOUND

    @pytest.mark.posix
    def test_not_executable(self, tmp_path: Path):
        path = tmp_path / "app"
        path.write_text("#!/bin/sh\nexit 0\n")
        path.chmod(0o644)

        assert launch(path) == EXIT_NOT_EXECUTABLE

    @pytest.mark.posix
    def test_script_exit_code(self, tmp_path: Path):
        app = _script(tmp_path / "app", "exit 42")

        assert launch(app) == 42

    @pytest.mark.posix
    def test_killed_by_signal(self, tmp_path: Path):
        app = _script(tmp_path / "app", "kill -TERM $$")

        assert launch(app) == 128 + signal.SIGTERM

    def test_signal_handlers_restored(self):
        before = signal.getsignal(signal.SIGINT)

        launch(PYTHON, ["-c", "pass"])

        assert signal.getsignal(signal.SIGINT) is before

    @pytest.mark.posix
    def test_child_does_not_inherit_ignored_sigint(self):
        if signal.getsignal(signal.SIGINT) is not signal.default_int_handler:
            pytest.skip("test runner started with a non-default SIGINT handler")
        code = "import signal, sys; sys.exit(0 if signal.getsignal(signal.SIGINT) is signal.default_int_handler else 1)"

        assert launch(PYTHON, ["-c", code]) == 0

    @pytest.mark.posix
    def test_interrupt_right_after_spawn_is_ignored(self):
        real_popen = subprocess.Popen
        seen: list = []

        def popen_then_interrupt(*args, **kwargs):
            seen.append(signal.getsignal(signal.SIGINT))
            process = real_popen(*args, **kwargs)
            os.kill(os.getpid(), signal.SIGINT)
            return process

        with patch("launchpad.handoff.subprocess.Popen", side_effect=popen_then_interrupt):
            code = launch(PYTHON, ["-c", "import sys; sys.exit(4)"])

        assert seen == [signal.SIG_IGN]
        assert code == 4


class TestSpawn:
    def test_returns_handle(self):
        child = spawn(PYTHON, ["-c", "import sys; sys.exit(3)"])

        assert child.pid > 0
        assert child.executable == PYTHON
        assert child.wait() == 3

    def test_missing_raises_launch_error(self, tmp_path: Path):
        with pytest.raises(LaunchError) as exc_info:
            spawn(tmp_path / "missing")

        assert exc_info.value.exit_code == EXIT_NOT_FOUND
        assert "missing" in str(exc_info.value)

    @pytest.mark.posix
    def test_reset_signals_restore_default_in_child(self):
        code = "import signal, sys; sys.exit(0 if signal.getsignal(signal.SIGINT) is signal.default_int_handler else 1)"
        previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
        try:
            inherited = spawn(PYTHON, ["-c", code]).wait()
            restored = spawn(PYTHON, ["-c", code], reset_signals=[signal.SIGINT]).wait()
        finally:
            signal.signal(signal.SIGINT, previous)

        assert inherited == 1
        assert restored == 0
