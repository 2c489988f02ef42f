from typing import Any

import pytest

from dingtalk_notify.config import RobotConfig
from dingtalk_notify.jenkins import Cause, Job, Result, Run


def make_run(
    result: Result | None = Result.SUCCESS,
    building: bool = False,
    causes: list[Cause] | None = None,
    env: dict[str, str] | None = None,
    **kwargs: Any,
) -> Run:
    return Run(
        number=42,
        display_name="#42",
        url="job/demo/42/",
        job=Job(full_name="demo", full_display_name="demo", url="job/demo/"),
        result=result,
        building=building,
        duration=192_000,
        causes=causes if causes is not None else [Cause("Started by user Alice", user_id="alice")],
        env=env,
        **kwargs,
    )


def run_payload(event: str = "completed", **run: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "number": 42,
        "display_name": "#42",
        "url": "job/demo/42/",
        "result": "SUCCESS",
        "duration": 192000,
        "causes": [{"short_description": "Started by user Alice", "user_id": "alice"}],
        "env": {"DEPLOY_ENV": "production-east"},
        "job": {"full_name": "demo", "full_display_name": "demo", "url": "job/demo/"},
    }
    data.update(run)
    return {"event": event, "run": data}


@pytest.fixture
def robots() -> list[RobotConfig]:
    return [
        RobotConfig("ops", "Ops", "https://oapi.dingtalk.com/robot/send?access_token=ops"),
        RobotConfig("dev", "Dev", "https://oapi.dingtalk.com/robot/send?access_token=dev"),
        RobotConfig("qa", "QA", "https://oapi.dingtalk.com/robot/send?access_token=qa", "SECqa"),
    ]
