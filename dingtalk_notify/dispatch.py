"""
Dispatch notifications for a run to every selected robot
"""

import asyncio
import logging
from collections.abc import Callable

from dingtalk_notify.config import Config, NotifierConfig
from dingtalk_notify.environment import EnvironmentProvider, absolute_url
from dingtalk_notify.identity import IdentityResolver
from dingtalk_notify.jenkins import Run, run_duration
from dingtalk_notify.message import BuildContext, assemble, default_buttons
from dingtalk_notify.notify import Transport, checked_notifiers, label_pattern, should_skip
from dingtalk_notify.occasion import Occasion, resolve_occasion

log = logging.getLogger(__name__)


class Dispatcher:
    """
    Fan a run's notification out to the robots a job has selected.

    Each dispatch reads a fresh configuration snapshot, so robot and job
    changes apply to the next build, as do the concurrency limit and send
    timeout in the main section. Failing robots never stop the others,
    their errors are collected and returned. Only invalid notification
    settings (ConfigurationError) abort a dispatch.
    """

    def __init__(
        self,
        config: Callable[[], Config],
        transport: Transport,
        environments: EnvironmentProvider,
        identities: IdentityResolver,
    ) -> None:
        self.config = config
        self.transport = transport
        self.environments = environments
        self.identities = identities

    async def on_started(self, run: Run) -> list[str]:
        """
        Notify that a run has started
        """
        return await self.dispatch(run, Occasion.START)

    async def perform(self, run: Run) -> list[str]:
        """
        Notify that a run has completed
        """
        occasion = resolve_occasion(run.result)
        if occasion is None:
            log.debug(
                "%s #%d has no terminal result (%s), not notifying",
                run.job.full_name,
                run.number,
                run.result,
            )
            return []

        return await self.dispatch(run, occasion)

    async def dispatch(self, run: Run, occasion: Occasion) -> list[str]:
        """
        Send the notification for one occasion, returning any transport errors
        """
        config = self.config()
        job = config.find_job(run.job.full_name)
        executor = self.identities.resolve(run)
        env = await self.environments.get_environment(run, config.main)

        job_url = absolute_url(config.main.root_url, run.url)
        context = BuildContext(
            project_name=run.job.full_display_name,
            project_url=absolute_url(config.main.root_url, run.job.url),
            job_name=run.display_name,
            job_url=job_url,
            duration=run_duration(run),
            executor_name=executor.name,
            executor_mobile=executor.mobile,
            occasion=occasion,
            buttons=default_buttons(job_url),
        )

        notifiers = checked_notifiers(config.robot, job.notifier)
        # Settle every gate before sending anything, a bad label expression
        # must fail the whole dispatch
        subscribed = [n for n in notifiers if occasion in n.notice_occasions]
        pattern = label_pattern(env, job.param_notify) if subscribed else None
        selected = [n for n in subscribed if not should_skip(occasion, n, env, pattern)]
        if not selected:
            log.debug("No robots selected for %s %s", context.project_name, occasion.name)
            return []

        log.info(
            "Sending DingTalk notification(s) for %s %s (%s) to %d robot(s)",
            context.project_name,
            context.job_name,
            occasion.name,
            len(selected),
        )

        # Robots are looked up in the snapshot the notifiers were merged against
        robots = {r.id: r for r in config.robot}
        timeout = config.main.timeout
        limit = asyncio.Semaphore(max(config.main.concurrency, 1))

        async def send(notifier: NotifierConfig) -> str | None:
            payload = assemble(context, notifier, env)
            log.debug("Message for robot '%s': %s", notifier.robot_name, payload)
            async with limit:
                try:
                    return await asyncio.wait_for(
                        self.transport.send(robots[notifier.robot_id], payload), timeout
                    )
                except TimeoutError:
                    return f"[{notifier.robot_name}] timed out after {timeout}s"
                except Exception as exc:  # pylint: disable=broad-except
                    log.error(
                        "Unexpected error notifying robot '%s'", notifier.robot_name, exc_info=exc
                    )
                    return f"[{notifier.robot_name}] {exc}"

        results = await asyncio.gather(*(send(n) for n in selected))
        errors = [err for err in results if err is not None]

        for err in errors:
            log.error("Failed to send DingTalk notification: %s", err)

        return errors
