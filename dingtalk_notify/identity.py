"""
Work out who triggered a run
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from dingtalk_notify.config import UserConfig
from dingtalk_notify.jenkins import Run

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Executor:
    """
    The person (or thing) a run is attributed to
    """

    name: str
    mobile: str | None = None


class IdentityResolver:
    """
    Resolve run executors against the configured user directory
    """

    def __init__(self, users: Callable[[], Mapping[str, UserConfig]]) -> None:
        self.users = users

    def resolve(self, run: Run) -> Executor:
        """
        Find the executor of a run. Falls back from a known user, to the
        remote address, to the upstream project and finally to the joined
        descriptions of every cause
        """
        causes = run.causes or []
        directory = self.users()

        user_id = next((c.user_id for c in causes if c.user_id is not None), None)
        user = directory.get(user_id) if user_id is not None else None
        if user is not None:
            if not user.mobile:
                log.debug("User '%s' has no mobile number configured", user_id)
            return Executor(user.name, user.mobile or None)

        remote = next((c.remote_addr for c in causes if c.remote_addr), None)
        if remote is not None:
            return Executor(f"remote {remote}")

        upstream = next((c.upstream_project for c in causes if c.upstream_project), None)
        if upstream is not None:
            return Executor(f"project {upstream}")

        log.debug("No executor found for %s #%d, guessing from causes", run.job.full_name, run.number)
        return Executor("".join(c.short_description for c in causes))
