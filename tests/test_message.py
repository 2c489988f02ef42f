import pytest

from dingtalk_notify.config import NotifierConfig
from dingtalk_notify.environment import Environment
from dingtalk_notify.message import BuildContext, Button, assemble, default_buttons
from dingtalk_notify.occasion import STATUSES, Occasion


def make_context(occasion: Occasion | None = Occasion.SUCCESS, mobile: str | None = None) -> BuildContext:
    return BuildContext(
        project_name="demo",
        project_url="https://ci.example.com/job/demo/",
        job_name="demo #42",
        job_url="https://ci.example.com/job/demo/42/",
        duration="3 min 12 sec",
        executor_name="Alice",
        executor_mobile=mobile,
        occasion=occasion,
        buttons=default_buttons("https://ci.example.com/job/demo/42/"),
    )


def test_body_markdown() -> None:
    payload = assemble(make_context(), NotifierConfig("ops"), Environment())

    assert "demo demo #42" in payload.text
    assert "(https://ci.example.com/job/demo/42/)" in payload.text
    assert STATUSES[Occasion.SUCCESS].label in payload.text
    assert STATUSES[Occasion.SUCCESS].color in payload.text
    assert "3 min 12 sec" in payload.text
    assert "executor: Alice" in payload.text
    assert payload.title == "demo Success"


def test_content_is_expanded_and_unescaped() -> None:
    notifier = NotifierConfig("ops", content="branch: $BRANCH\\ncommit: ${COMMIT}\\n$UNKNOWN")
    env = Environment(BRANCH="main", COMMIT="abc123")

    payload = assemble(make_context(), notifier, env)

    assert payload.text.endswith("branch: main\ncommit: abc123\n$UNKNOWN")
    assert "\\n" not in payload.text


def test_unknown_status_title() -> None:
    payload = assemble(make_context(occasion=None), NotifierConfig("ops"), Environment())

    assert payload.title == "demo unknown"


@pytest.mark.parametrize(
    "configured, mobile, expected",
    (
        (frozenset(), "13800000000", {"13800000000"}),
        (frozenset({"13900000000"}), "13800000000", {"13800000000", "13900000000"}),
        (frozenset({"13900000000"}), None, {"13900000000"}),
        (frozenset({"13900000000"}), "", {"13900000000"}),
    ),
)
def test_executor_mobile_is_mentioned(
    configured: frozenset[str], mobile: str | None, expected: set[str]
) -> None:
    notifier = NotifierConfig("ops", at_all=True, at_mobiles=configured)

    payload = assemble(make_context(mobile=mobile), notifier, Environment())

    assert payload.at_mobiles == expected
    assert payload.at_all is True
    # The stored settings are left alone
    assert notifier.at_mobiles == configured


def test_every_occasion_has_a_status() -> None:
    assert set(STATUSES) == set(Occasion)
    for occasion in Occasion:
        payload = assemble(make_context(occasion), NotifierConfig("ops"), Environment())
        assert STATUSES[occasion].label in payload.text


def test_default_buttons() -> None:
    assert default_buttons("https://ci.example.com/job/demo/42") == [
        Button("Changes", "https://ci.example.com/job/demo/42/changes"),
        Button("Console", "https://ci.example.com/job/demo/42/console"),
    ]
