"""
CI host data types, represented as dataclasses

These mirror the run/job/cause objects a Jenkins-style host exposes, in the
shape the host-side webhook posts them to /hook.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import dacite


class Result(Enum):
    """
    Terminal result of a run. A run that is still building has no result.
    """

    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"


@dataclass
class Cause:
    """
    Cause describes why a run was scheduled.

    Only one of user_id, remote_addr or upstream_project is normally set.
    """

    short_description: str
    user_id: str | None = None
    remote_addr: str | None = None
    upstream_project: str | None = None


@dataclass
class Job:
    """
    Job is the parent project of a run.
    """

    full_name: str
    full_display_name: str
    url: str


@dataclass
class Run:
    """
    Run represents a single execution of a job.
    """

    number: int
    display_name: str
    url: str
    job: Job
    result: Result | None = None
    building: bool = False
    # milliseconds
    duration: int = 0
    timestamp: int = 0
    causes: list[Cause] | None = None
    env: dict[str, str] | None = None


class RunEvent(Enum):
    """
    Lifecycle points at which the host calls the hook.
    """

    STARTED = "started"
    COMPLETED = "completed"


@dataclass
class WebhookRequest:
    """
    WebhookRequest defines a webhook request.
    """

    event: RunEvent
    run: Run

    @classmethod
    def from_dict(cls, data: Any) -> "WebhookRequest":
        """
        Convert a dict data structure into a fully-formed WebhookRequest object
        """
        return dacite.from_dict(
            cls,
            data,
            config=dacite.Config(strict=True, cast=[RunEvent, Result]),
        )


def format_duration(millis: int) -> str:
    """
    Produce a human readable time span, e.g. '3 min 12 sec' or '1 hr 5 min'
    """
    seconds, ms = divmod(max(int(millis), 0), 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days > 0:
        return f"{days} day {hours} hr"
    if hours > 0:
        return f"{hours} hr {minutes} min"
    if minutes > 0:
        return f"{minutes} min {seconds} sec"
    if seconds >= 10:
        return f"{seconds} sec"
    if seconds >= 1:
        return f"{seconds}.{ms // 100} sec"
    return f"{ms} ms"


def run_duration(run: Run) -> str:
    """
    Duration of the run so far, as the host displays it
    """
    span = format_duration(run.duration)
    if run.building:
        return f"{span} and counting"
    return span
