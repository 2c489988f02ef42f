"""
Notifier base types
"""

import logging
import re
from abc import ABC, abstractmethod

from dingtalk_notify.config import ConfigurationError, NotifierConfig, RobotConfig
from dingtalk_notify.environment import Environment
from dingtalk_notify.message import MessagePayload
from dingtalk_notify.occasion import Occasion

log = logging.getLogger(__name__)


def label_pattern(env: Environment, parameter_name: str | None) -> re.Pattern[str] | None:
    """
    Compile the label expression held in a run parameter.

    Returns None when no parameter is configured, meaning every robot is
    selected. A configured parameter without a value, or holding an invalid
    expression, is a ConfigurationError rather than a reason to skip.
    """
    if parameter_name is None or not parameter_name.strip():
        return None

    name = parameter_name.strip()
    regexp = env.get(name)
    if regexp is None:
        raise ConfigurationError(f"Label expression parameter '{name}' has no value")

    try:
        return re.compile(regexp)
    except re.error as exc:
        raise ConfigurationError(
            f"Label expression parameter '{name}' is not a valid regex: {regexp!r}: {exc}"
        ) from exc


def label_selected(notifier: NotifierConfig, env: Environment, pattern: re.Pattern[str] | None) -> bool:
    """
    Determine whether a robot's label fully matches the label expression
    """
    if pattern is None:
        return True

    label = env.expand(notifier.label.strip()) if notifier.label.strip() else ""
    if pattern.fullmatch(label) is None:
        log.debug(
            "Skipping robot '%s': label '%s' does not match expression '%s'",
            notifier.robot_name,
            label,
            pattern.pattern,
        )
        return False

    log.debug(
        "Notifying robot '%s': label '%s' matches expression '%s'",
        notifier.robot_name,
        label,
        pattern.pattern,
    )
    return True


def should_skip(
    occasion: Occasion,
    notifier: NotifierConfig,
    env: Environment,
    pattern: re.Pattern[str] | None,
) -> bool:
    """
    Determine whether a robot should not be notified for an occasion.
    The label expression is compiled once per dispatch with label_pattern
    """
    if occasion not in notifier.notice_occasions:
        log.debug("Robot '%s' isn't used for occasion %s", notifier.robot_name, occasion.name)
        return True

    return not label_selected(notifier, env, pattern)


class Transport(ABC):
    """
    Delivers messages to robots
    """

    async def start(self) -> None:
        """Start the transport"""

    async def stop(self) -> None:
        """Stop the transport"""

    @abstractmethod
    async def send(self, robot: RobotConfig, payload: MessagePayload) -> str | None:
        """Send a message to a robot, returning an error message on failure"""


class NotifyException(Exception):
    """An exception object representing a failure in sending a notification"""
