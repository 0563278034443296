"""Self-updating launcher.

The run flow is:
1. Synchronize the application directory with its remote
2. Launch the application, whether or not the sync succeeded
3. Exit with the application's exit status

Synchronization is best-effort: a failed sync is logged and the existing
local copy is launched. The application is only skipped when there is no
local copy at all. Sync always finishes before the application starts, so
files are never rewritten under a running application.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from launchpad.config import LauncherConfig
from launchpad.handoff import launch
from launchpad.sync import SyncEngine, SyncOutcome

logger = logging.getLogger(__name__)

# sysexits.h values
EXIT_NO_APPLICATION: Final = 69  # EX_UNAVAILABLE
EXIT_CONFIG_ERROR: Final = 78  # EX_CONFIG


@dataclass
class LaunchResult:
    """Result of a full update-then-launch run."""

    exit_code: int
    outcome: SyncOutcome | None = None
    launched: bool = False


def update(config: LauncherConfig, engine: SyncEngine | None = None) -> SyncOutcome:
    """Synchronize the configured application directory."""
    engine = engine or SyncEngine()
    with engine:
        return engine.synchronize(config.sync_target())


def run(
    config: LauncherConfig,
    *,
    skip_sync: bool = False,
    extra_args: Sequence[str] = (),
    engine: SyncEngine | None = None,
) -> LaunchResult:
    """Update the application, then run it to completion.

    Args:
        config: Resolved launcher configuration.
        skip_sync: Launch the local copy without contacting the remote.
        extra_args: Appended to the configured application arguments.
        engine: Sync engine to use; a default one is created if omitted.

    Returns:
        LaunchResult whose exit_code is the application's exit status, or
        EXIT_NO_APPLICATION if there was nothing to launch.
    """
    outcome = None
    if skip_sync:
        logger.info("Skipping update check")
    else:
        outcome = update(config, engine)
        if not outcome.ok:
            logger.warning("Failed to update app, launching anyway")

    if not config.target_path.is_dir():
        logger.error("No local copy of the application at %s", config.target_path)
        return LaunchResult(exit_code=EXIT_NO_APPLICATION, outcome=outcome)

    exit_code = launch(config.executable_path, [*config.args, *extra_args])
    return LaunchResult(exit_code=exit_code, outcome=outcome, launched=True)
