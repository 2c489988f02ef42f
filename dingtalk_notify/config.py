"""
Configuration representation for dingtalk-notify configuration data.
"""

import dataclasses
import logging
import os
import threading
import tomllib
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any

import dacite

from dingtalk_notify.occasion import ALL_OCCASIONS, Occasion

log = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Notification settings are missing or invalid"""


@dataclass
class MainConfig:
    """
    Daemon-wide settings
    """

    host: str = "::"
    port: int = 5000
    secret: str | None = None
    debug: bool = False
    root_url: str = ""
    concurrency: int = 4
    timeout: float = 60.0
    fetch_env: bool = False
    api_user: str | None = None
    api_token: str | None = None


@dataclass(frozen=True)
class RobotConfig:
    """
    A DingTalk robot webhook endpoint, keyed by its stable id
    """

    id: str
    name: str
    webhook: str
    secret: str | None = None


@dataclass(frozen=True)
class UserConfig:
    """
    A known host user, and the mobile number used to @mention them
    """

    name: str
    mobile: str | None = None


@dataclass(frozen=True)
class NotifierConfig:
    """
    Per-job settings for notifying a single robot
    """

    robot_id: str
    robot_name: str = ""
    checked: bool = False
    label: str = ""
    content: str = ""
    at_all: bool = False
    at_mobiles: frozenset[str] = frozenset()
    notice_occasions: frozenset[Occasion] = ALL_OCCASIONS

    def overlay(self, stored: "NotifierConfig") -> "NotifierConfig":
        """
        Copy the user-set fields of a stored config onto this one
        """
        return dataclasses.replace(
            self,
            checked=stored.checked,
            label=stored.label,
            content=stored.content,
            at_all=stored.at_all,
            at_mobiles=stored.at_mobiles,
            notice_occasions=stored.notice_occasions,
        )


@dataclass
class JobConfig:
    """
    Notification settings stored for a job
    """

    param_notify: str | None = None
    notifier: list[NotifierConfig] = field(default_factory=list)


@dataclass
class Config:
    """
    The whole configuration file
    """

    main: MainConfig = field(default_factory=MainConfig)
    robot: list[RobotConfig] = field(default_factory=list)
    user: dict[str, UserConfig] = field(default_factory=dict)
    job: dict[str, JobConfig] = field(default_factory=dict)

    def find_job(self, full_name: str) -> JobConfig:
        """
        Return the settings of the first job pattern that matches a job name
        """
        match = next((pat for pat in self.job if fnmatchcase(full_name, pat)), None)
        if match is None:
            log.debug("No notification settings match job '%s'", full_name)
            return JobConfig()

        log.debug("Job '%s' uses notification settings '%s'", full_name, match)
        return self.job[match]


DACITE_CONFIG = dacite.Config(
    strict=True,
    cast=[Occasion],
    type_hooks={
        float: float,
        frozenset[str]: frozenset,
        frozenset[Occasion]: frozenset,
    },
)


def parse_config(data: dict[str, Any]) -> Config:
    """
    Build a Config from decoded TOML data
    """
    data = dict(data)
    # Robots are keyed by id in the file, but the registry is an ordered list
    robots = data.get("robot", {})
    if not isinstance(robots, dict):
        raise ConfigurationError("'robot' must be a table of robot definitions")
    data["robot"] = [{"id": rid, **robot} for rid, robot in robots.items()]

    try:
        return dacite.from_dict(Config, data, config=DACITE_CONFIG)
    except (dacite.DaciteError, ValueError, TypeError) as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def load_config(path: str) -> Config:
    """
    Read and parse a TOML configuration file
    """
    try:
        with open(path, "rb") as fp:
            data = tomllib.load(fp)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Failed to read {path}: {exc}") from exc

    return parse_config(data)


class StaticConfig:
    """
    A fixed configuration snapshot
    """

    def __init__(self, config: Config) -> None:
        self.config = config

    def current(self) -> Config:
        return self.config


class ConfigFile:
    """
    A configuration file that is re-read whenever it changes on disk, so that
    robot and job changes apply to the next build without a restart
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._mtime: float | None = None
        self._config: Config | None = None

    def current(self) -> Config:
        """
        Return the latest valid configuration snapshot
        """
        with self._lock:
            try:
                mtime = os.stat(self.path).st_mtime
            except OSError as exc:
                if self._config is None:
                    raise ConfigurationError(f"Failed to read {self.path}: {exc}") from exc
                log.warning("Config file %s went missing, using last loaded copy", self.path)
                return self._config

            if self._config is not None and mtime == self._mtime:
                return self._config

            try:
                config = load_config(self.path)
            except ConfigurationError:
                if self._config is None:
                    raise
                log.exception("Failed to reload %s, keeping previous configuration", self.path)
                # Don't retry until the file changes again
                self._mtime = mtime
                return self._config

            if self._config is not None:
                log.info("Reloaded configuration from %s", self.path)
            self._config = config
            self._mtime = mtime
            return config


ConfigSource = StaticConfig | ConfigFile
