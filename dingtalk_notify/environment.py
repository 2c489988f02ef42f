"""
Run environment variables and host-style macro expansion
"""

import logging
import re

import aiohttp
from yarl import URL

from dingtalk_notify.config import MainConfig
from dingtalk_notify.jenkins import Run

log = logging.getLogger(__name__)

# $NAME or ${NAME}, as the CI host expands them
MACRO = re.compile(r"\$(?:\{([A-Za-z0-9_.]+)\}|([A-Za-z0-9_]+))")


class Environment(dict[str, str]):
    """
    Environment variables of a run
    """

    def expand(self, template: str | None) -> str:
        """
        Substitute $NAME and ${NAME} references. Unknown variables are left as-is
        """
        if not template:
            return ""

        def replace(match: re.Match[str]) -> str:
            name = match.group(1) or match.group(2)
            return self.get(name, match.group(0))

        return MACRO.sub(replace, template)


def absolute_url(root_url: str, url: str) -> str:
    """
    Resolve a host-relative URL such as 'job/foo/12/' against the host root
    """
    target = URL(url)
    if target.is_absolute() or not root_url:
        return url
    root = root_url if root_url.endswith("/") else root_url + "/"
    return str(URL(root).join(target))


def run_variables(run: Run, root_url: str) -> Environment:
    """
    Variables the host always defines for a run
    """
    return Environment(
        BUILD_NUMBER=str(run.number),
        BUILD_DISPLAY_NAME=run.display_name,
        BUILD_URL=absolute_url(root_url, run.url),
        JOB_NAME=run.job.full_name,
        JOB_URL=absolute_url(root_url, run.job.url),
    )


class EnvironmentProvider:
    """
    Look up the environment of a run, from the webhook payload or the host API.

    Host settings are read from the main config passed to each lookup, so
    edits to the root URL or API credentials apply to the next build.
    """

    def __init__(self) -> None:
        self.session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession(raise_for_status=True)

    async def stop(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def get_environment(self, run: Run, main: MainConfig) -> Environment:
        """
        Return the run environment. Failing to retrieve it is not fatal: the
        failure is logged and an empty environment is used instead
        """
        if run.env is not None:
            env = run_variables(run, main.root_url)
            env.update(run.env)
            return env

        if not main.fetch_env:
            return run_variables(run, main.root_url)

        try:
            variables = await self._fetch(run, main)
        except (aiohttp.ClientError, TimeoutError, KeyError, TypeError, ValueError) as exc:
            log.warning(
                "Failed to retrieve environment of %s #%d, continuing without it",
                run.job.full_name,
                run.number,
                exc_info=exc,
            )
            return Environment()

        env = run_variables(run, main.root_url)
        env.update(variables)
        return env

    async def _fetch(self, run: Run, main: MainConfig) -> dict[str, str]:
        await self.start()
        assert self.session is not None

        auth = None
        if main.api_user is not None and main.api_token is not None:
            auth = aiohttp.BasicAuth(main.api_user, main.api_token)

        url = absolute_url(main.root_url, run.url).rstrip("/") + "/injectedEnvVars/api/json"
        log.debug("Fetching environment from %s", url)
        timeout = aiohttp.ClientTimeout(main.timeout)
        async with self.session.get(url, auth=auth, timeout=timeout) as resp:
            data = await resp.json()

        env_map = data["envMap"]
        return {str(k): str(v) for k, v in env_map.items()}
