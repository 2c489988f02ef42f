import dacite
import pytest

from dingtalk_notify.jenkins import Result, RunEvent, WebhookRequest, format_duration, run_duration
from dingtalk_notify.occasion import Occasion, resolve_occasion

from conftest import make_run, run_payload


@pytest.mark.parametrize(
    "millis, expected",
    (
        (192_000, "3 min 12 sec"),
        (3_900_000, "1 hr 5 min"),
        (90_000_000, "1 day 1 hr"),
        (42_000, "42 sec"),
        (4_250, "4.2 sec"),
        (350, "350 ms"),
        (-5, "0 ms"),
    ),
)
def test_format_duration(millis: int, expected: str) -> None:
    assert format_duration(millis) == expected


def test_running_duration() -> None:
    assert run_duration(make_run(result=None, building=True)) == "3 min 12 sec and counting"


@pytest.mark.parametrize(
    "result, expected",
    (
        (Result.SUCCESS, Occasion.SUCCESS),
        (Result.FAILURE, Occasion.FAILURE),
        (Result.ABORTED, Occasion.ABORTED),
        (Result.UNSTABLE, Occasion.UNSTABLE),
        (Result.NOT_BUILT, Occasion.NOT_BUILT),
        (None, None),
    ),
)
def test_resolve_occasion(result: Result | None, expected: Occasion | None) -> None:
    assert resolve_occasion(result) is expected


def test_parse_webhook_request() -> None:
    event = WebhookRequest.from_dict(run_payload("started", result=None, building=True))

    assert event.event is RunEvent.STARTED
    assert event.run.result is None
    assert event.run.building is True
    assert event.run.causes is not None and event.run.causes[0].user_id == "alice"
    assert event.run.env == {"DEPLOY_ENV": "production-east"}


def test_parse_webhook_request_is_strict() -> None:
    with pytest.raises(dacite.DaciteError):
        WebhookRequest.from_dict(run_payload(bogus=True))
