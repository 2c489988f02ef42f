import base64
import hashlib
import hmac
from typing import Any

import aiohttp.web
import pytest

from dingtalk_notify.config import RobotConfig
from dingtalk_notify.message import Button, MessagePayload
from dingtalk_notify.notify.dingtalk import DingTalkTransport, encode_payload, sign_webhook

RECEIVED = aiohttp.web.AppKey("received", list)

PAYLOAD = MessagePayload(
    title="demo Success",
    text="# [demo #42](https://ci.example.com/job/demo/42/)",
    at_all=False,
    at_mobiles=frozenset({"13900000000", "13800000000"}),
    buttons=[Button("Console", "https://ci.example.com/job/demo/42/console")],
)


def test_sign_webhook() -> None:
    url = sign_webhook("https://oapi.dingtalk.com/robot/send?access_token=abc", "SECret", 1700000000000)

    expected = base64.b64encode(
        hmac.new(b"SECret", b"1700000000000\nSECret", hashlib.sha256).digest()
    ).decode()
    assert url.query["access_token"] == "abc"
    assert url.query["timestamp"] == "1700000000000"
    assert url.query["sign"] == expected


def test_encode_payload() -> None:
    body = encode_payload(PAYLOAD)

    assert body["msgtype"] == "actionCard"
    assert body["actionCard"]["title"] == "demo Success"
    assert body["actionCard"]["text"].endswith("\n\n@13800000000 @13900000000")
    assert body["actionCard"]["btns"] == [
        {"title": "Console", "actionURL": "https://ci.example.com/job/demo/42/console"}
    ]
    assert body["at"] == {"atMobiles": ["13800000000", "13900000000"], "isAtAll": False}


async def robot_handler(request: aiohttp.web.Request) -> aiohttp.web.Response:
    request.app[RECEIVED].append((dict(request.query), await request.json()))
    token = request.query.get("access_token")
    if token == "broken":
        return aiohttp.web.Response(status=502, text="bad gateway")
    if token == "keyword":
        return aiohttp.web.json_response({"errcode": 310000, "errmsg": "keywords not in content"})
    if token == "html":
        return aiohttp.web.Response(text="<html>gateway</html>", content_type="text/html")
    if token == "list":
        return aiohttp.web.json_response([1])
    return aiohttp.web.json_response({"errcode": 0, "errmsg": "ok"})


@pytest.mark.parametrize(
    "token, secret, expected",
    (
        ("ok", None, None),
        ("ok", "SECret", None),
        ("keyword", None, "[Robot] 310000: keywords not in content"),
        ("broken", None, "[Robot] 502"),
        # Proxies answering 200 with something other than a DingTalk reply
        ("html", None, "[Robot] Unreadable reply"),
        ("list", None, "[Robot] Unexpected reply: [1]"),
    ),
)
@pytest.mark.asyncio
async def test_transport_send(
    token: str, secret: str | None, expected: str | None, aiohttp_server: Any
) -> None:
    app = aiohttp.web.Application()
    app[RECEIVED] = []
    app.router.add_route("POST", "/robot/send", robot_handler)
    server = await aiohttp_server(app)

    webhook = str(server.make_url("/robot/send").with_query(access_token=token))
    transport = DingTalkTransport(timeout=5)
    try:
        error = await transport.send(RobotConfig("r1", "Robot", webhook, secret), PAYLOAD)
    finally:
        await transport.stop()

    if expected is None:
        assert error is None
    else:
        assert error is not None and error.startswith(expected)

    query, body = app[RECEIVED][0]
    assert body["msgtype"] == "actionCard"
    assert ("sign" in query) is (secret is not None)

