"""
Notifications
"""

import logging
from collections.abc import Iterable, Sequence

from dingtalk_notify.config import NotifierConfig, RobotConfig
from dingtalk_notify.notify.types import (
    NotifyException,
    Transport,
    label_pattern,
    label_selected,
    should_skip,
)

from .dingtalk import DingTalkTransport

log = logging.getLogger(__name__)


def merge_notifiers(
    robots: Sequence[RobotConfig], stored: Iterable[NotifierConfig]
) -> list[NotifierConfig]:
    """
    Produce the effective notifier settings of a job.

    Every robot in the registry gets an entry, in registry order, with the
    job's stored settings for that robot copied on top of the defaults.
    Stored settings for robots no longer in the registry are dropped.
    """
    saved: dict[str, NotifierConfig] = {}
    for notifier in stored:
        saved[notifier.robot_id] = notifier

    merged: list[NotifierConfig] = []
    for robot in robots:
        notifier = NotifierConfig(robot_id=robot.id, robot_name=robot.name)
        if robot.id in saved:
            notifier = notifier.overlay(saved.pop(robot.id))
        merged.append(notifier)

    for robot_id in saved:
        log.debug("Dropping settings for unknown robot '%s'", robot_id)

    return merged


def checked_notifiers(
    robots: Sequence[RobotConfig], stored: Iterable[NotifierConfig]
) -> list[NotifierConfig]:
    """
    The effective notifier settings the job has switched on
    """
    return [n for n in merge_notifiers(robots, stored) if n.checked]


__all__ = (
    "DingTalkTransport",
    "NotifyException",
    "Transport",
    "checked_notifiers",
    "label_pattern",
    "label_selected",
    "merge_notifiers",
    "should_skip",
)
