"""
Lifecycle occasions a notification can be sent for, and how each is displayed
"""

from dataclasses import dataclass
from enum import Enum

from dingtalk_notify.jenkins import Result


class Occasion(Enum):
    """
    A discrete lifecycle moment of a build
    """

    START = "START"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"
    UNSTABLE = "UNSTABLE"
    NOT_BUILT = "NOT_BUILT"


@dataclass(frozen=True)
class Status:
    """
    Display label and colour for an occasion, and the run result it fires on
    """

    label: str
    color: str
    result: Result | None


# START is never derived from a result, the host signals it explicitly
STATUSES: dict[Occasion, Status] = {
    Occasion.START: Status("Started", "#0000ff", None),
    Occasion.SUCCESS: Status("Success", "#008000", Result.SUCCESS),
    Occasion.FAILURE: Status("Failure", "#ff0000", Result.FAILURE),
    Occasion.ABORTED: Status("Aborted", "#808080", Result.ABORTED),
    Occasion.UNSTABLE: Status("Unstable", "#ffcc00", Result.UNSTABLE),
    Occasion.NOT_BUILT: Status("Not built", "#808080", Result.NOT_BUILT),
}

ALL_OCCASIONS = frozenset(Occasion)


def resolve_occasion(result: Result | None) -> Occasion | None:
    """
    Map a terminal run result to the occasion it triggers. Runs without a
    result (still building) have no occasion.
    """
    if result is None:
        return None

    return next((occ for occ, status in STATUSES.items() if status.result is result), None)
