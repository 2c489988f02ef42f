"""
DingTalk robot transport for sending action card messages to group chats
"""

import base64
import hashlib
import hmac
import logging
import time
from typing import Any

import aiohttp
from yarl import URL

from dingtalk_notify.config import RobotConfig
from dingtalk_notify.message import MessagePayload
from dingtalk_notify.notify.types import NotifyException, Transport

log = logging.getLogger(__name__)


def sign_webhook(webhook: str, secret: str, timestamp: int | None = None) -> URL:
    """
    Add the 'timestamp' and 'sign' parameters DingTalk requires of robots
    with signing enabled
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)

    tosign = f"{timestamp}\n{secret}".encode()
    digest = hmac.new(secret.encode(), tosign, hashlib.sha256).digest()
    sign = base64.b64encode(digest).decode()
    return URL(webhook).update_query(timestamp=str(timestamp), sign=sign)


def encode_payload(payload: MessagePayload) -> dict[str, Any]:
    """
    Encode a message as a DingTalk 'actionCard' request body
    """
    mobiles = sorted(payload.at_mobiles)
    text = payload.text
    # Robots only @mention numbers that also appear in the message text
    if mobiles:
        text += "\n\n" + " ".join(f"@{m}" for m in mobiles)

    return {
        "msgtype": "actionCard",
        "actionCard": {
            "title": payload.title,
            "text": text,
            "btnOrientation": "1",
            "btns": [{"title": b.title, "actionURL": b.action_url} for b in payload.buttons],
        },
        "at": {
            "atMobiles": mobiles,
            "isAtAll": payload.at_all,
        },
    }


class DingTalkTransport(Transport):
    """
    Send messages through DingTalk custom robot webhooks
    """

    session: aiohttp.ClientSession | None

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self.session = None

    async def start(self) -> None:
        """
        Open the http session
        """
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(self.timeout),
                raise_for_status=True,
            )

    async def stop(self) -> None:
        """
        Close the http session
        """
        if self.session is not None:
            log.info("Stopping DingTalk http clientsession")
            await self.session.close()
            self.session = None

    async def request(self, robot: RobotConfig, body: dict[str, Any]) -> None:
        """
        POST a message to a robot webhook
        """
        if self.session is None:
            await self.start()
        assert self.session is not None

        url = sign_webhook(robot.webhook, robot.secret) if robot.secret else URL(robot.webhook)
        async with self.session.post(url, json=body) as resp:
            try:
                data = await resp.json(content_type=None)
            except ValueError as exc:
                raise NotifyException(f"Unreadable reply: {exc}") from exc

        if not isinstance(data, dict):
            raise NotifyException(f"Unexpected reply: {data!r}")
        if data.get("errcode") != 0:
            raise NotifyException(f"{data.get('errcode')}: {data.get('errmsg')}")

    async def send(self, robot: RobotConfig, payload: MessagePayload) -> str | None:
        """
        Send a message to a robot. Returns an error message on failure
        """
        try:
            await self.request(robot, encode_payload(payload))
        except (aiohttp.ClientError, NotifyException) as exc:
            log.debug("Failed to send message to robot '%s'", robot.name, exc_info=exc)
            return f"[{robot.name}] {exc}"

        log.debug("Sent message to robot '%s'", robot.name)
        return None
