"""Launcher configuration.

The config file is YAML with one section per platform::

    linux:
      remote: git@github.com:example/app.git
      target: ./app
      executable: ./app/Client
    windows:
      remote: git@github.com:example/app.git
      target: ./app
      executable: ./app/Client.exe

A `default` section is used when there is no section for the running
platform. Relative paths are resolved against the config file's directory.
"""

import logging
import os
import platform
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from launchpad.sync import SyncTarget

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE: Final = "launchpad.yaml"
CONFIG_ENV_VAR: Final = "LAUNCHPAD_CONFIG"
DEFAULT_SECTION: Final = "default"
REQUIRED_FIELDS: Final = ("remote", "target", "executable")


class ConfigError(Exception):
    """The configuration is missing, malformed, or incomplete."""

    def __init__(self, message: str, fields: list[str] | None = None):
        self.fields = fields or []
        super().__init__(message)


class LauncherConfig(BaseModel):
    """Resolved settings for the current platform."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    remote: str = Field(min_length=1)
    target: str = Field(min_length=1)
    executable: str = Field(min_length=1)
    args: list[str] = Field(default_factory=list)

    platform: str = ""
    base_dir: Path = Field(default_factory=Path.cwd)

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    @property
    def target_path(self) -> Path:
        return self._resolve(self.target)

    @property
    def executable_path(self) -> Path:
        return self._resolve(self.executable)

    def sync_target(self) -> SyncTarget:
        return SyncTarget(remote=self.remote, path=self.target_path)


def current_platform() -> str:
    """Platform key for the running system: linux, darwin, windows, ..."""
    return platform.system().lower()


def default_config_path() -> Path:
    """$LAUNCHPAD_CONFIG, or launchpad.yaml in the working directory."""
    return Path(os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE)


def _missing_fields(error: ValidationError) -> list[str]:
    fields = []
    for item in error.errors():
        name = ".".join(str(part) for part in item["loc"])
        if name not in fields:
            fields.append(name)
    return fields


def parse_config(
    data: Any,
    platform_key: str | None = None,
    base_dir: Path | None = None,
) -> LauncherConfig:
    """Validate an already-loaded config document.

    Raises:
        ConfigError: If the platform section or any required field is missing
    """
    key = platform_key or current_platform()
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping of platform sections")

    section = data.get(key)
    if section is None:
        section = data.get(DEFAULT_SECTION)
    if section is None:
        raise ConfigError(f"No '{key}' or '{DEFAULT_SECTION}' section in config")
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{key}' must be a mapping")

    try:
        return LauncherConfig.model_validate(
            {**section, "platform": key, "base_dir": (base_dir or Path.cwd()).absolute()}
        )
    except ValidationError as e:
        fields = _missing_fields(e)
        raise ConfigError(
            f"Invalid or missing config field(s) for '{key}': {', '.join(fields)}",
            fields=fields,
        ) from e


def load_config(path: Path | None = None, platform_key: str | None = None) -> LauncherConfig:
    """Read and validate the config file for the current platform.

    Raises:
        ConfigError: If the file cannot be read or does not validate
    """
    path = Path(path) if path else default_config_path()
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    config = parse_config(data, platform_key=platform_key, base_dir=path.parent)
    logger.debug("Loaded '%s' config from %s", config.platform, path)
    return config
