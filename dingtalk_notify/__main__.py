#!/usr/bin/python3

"""
dingtalk-notify - A webhook and notification sidecar daemon for CI hosts
Receives build lifecycle webhooks from the host and fires off DingTalk robot
notifications when runs start and complete, with per-job robot selection
"""

import asyncio
import importlib.metadata
import ipaddress
import logging
import signal
import socket
import sys
from collections.abc import AsyncIterator

import dacite
from aiohttp import web

from dingtalk_notify.config import ConfigFile, ConfigSource, ConfigurationError
from dingtalk_notify.dispatch import Dispatcher
from dingtalk_notify.environment import EnvironmentProvider
from dingtalk_notify.identity import IdentityResolver
from dingtalk_notify.jenkins import RunEvent, WebhookRequest
from dingtalk_notify.notify import DingTalkTransport
from dingtalk_notify.occasion import Occasion, resolve_occasion
from dingtalk_notify.security import verify_signature

log = logging.getLogger(__name__)

VERSION = importlib.metadata.version(__package__ or __name__)

DISPATCHER = web.AppKey("dispatcher", Dispatcher)
ENVIRONMENTS = web.AppKey("environments", EnvironmentProvider)
TRANSPORT = web.AppKey("transport", DingTalkTransport)


async def hook(request: web.Request) -> web.StreamResponse:
    """
    Handle incoming run lifecycle webhooks from the CI host
    """
    try:
        data = await request.json()
        log.debug("Received a webhook request from %s: %s", request.remote, data)
        event = WebhookRequest.from_dict(data)
    except (ValueError, TypeError, dacite.DaciteError) as exc:
        log.warning("Rejecting malformed webhook from %s: %s", request.remote, exc)
        return web.Response(status=400, text=str(exc))

    run = event.run
    log.debug(
        "%s - Successfully parsed a webhook for %s #%d (%s)",
        request.remote,
        run.job.full_name,
        run.number,
        event.event.value,
    )

    occasion: Occasion | None
    if event.event is RunEvent.STARTED:
        occasion = Occasion.START
    else:
        occasion = resolve_occasion(run.result)

    if occasion is None:
        # Default to blackholing it. Om nom nom.
        log.debug("Not a terminal run result, accepting & taking no action")
        return web.Response(body=b"accepted")

    dispatcher = request.app[DISPATCHER]
    try:
        if event.event is RunEvent.STARTED:
            errors = await dispatcher.on_started(run)
        else:
            errors = await dispatcher.perform(run)
    except ConfigurationError as exc:
        log.error("Invalid notification settings for %s #%d: %s", run.job.full_name, run.number, exc)
        return web.Response(status=422, text=str(exc))

    log.debug("Returning %s to %s", occasion.name, request.remote)
    return web.json_response({"occasion": occasion.name, "errors": errors})


async def clients(app: web.Application) -> AsyncIterator[None]:
    """
    Open and close the outgoing http sessions with the application
    """
    await app[TRANSPORT].start()
    await app[ENVIRONMENTS].start()
    yield
    await app[ENVIRONMENTS].stop()
    await app[TRANSPORT].stop()


def create_app(store: ConfigSource) -> web.Application:
    """
    Build the webhook application for a configuration file.
    Only the listen address and debug flag need a restart to change
    """
    transport = DingTalkTransport()
    environments = EnvironmentProvider()
    dispatcher = Dispatcher(
        store.current, transport, environments, IdentityResolver(lambda: store.current().user)
    )

    def secret() -> bytes | None:
        value = store.current().main.secret
        return value.encode() if value else None

    app = web.Application(middlewares=[verify_signature(secret)])
    app[DISPATCHER] = dispatcher
    app[ENVIRONMENTS] = environments
    app[TRANSPORT] = transport
    app.cleanup_ctx.append(clients)
    app.add_routes([web.post("/hook", hook)])
    return app


async def startup(store: ConfigSource) -> web.AppRunner:
    """
    dingtalk-notify entrypoint
    """
    config = store.current()
    log.info("Started DingTalk Notify v%s with %d robot(s)", VERSION, len(config.robot))
    log.debug("Debug logging is enabled - prepare for logspam")

    host = ipaddress.ip_address(config.main.host)
    port = config.main.port
    hostport = ("[%s]:%d" if host.version == 6 else "%s:%d") % (host, port)

    runner = web.AppRunner(create_app(store))
    await runner.setup()

    family = socket.AF_INET6 if host.version == 6 else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.bind((str(host), port))
    site = web.SockSite(runner, sock)
    await site.start()
    log.info("Listening on %s", hostport)
    return runner


def main() -> None:
    # Configure stdout logging
    logging.basicConfig(
        level=logging.INFO,
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        format="[%(asctime)s] %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    cfg_path: str = sys.argv[1] if len(sys.argv) > 1 else "notify.toml"
    store = ConfigFile(cfg_path)

    try:
        config = store.current()
    except ConfigurationError as exc:
        log.error("%s", exc)
        sys.exit(1)

    if config.main.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if not config.robot:
        log.warning("No robots configured in %s, nothing will be sent", cfg_path)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    runner: web.AppRunner | None = None
    try:
        loop.add_signal_handler(signal.SIGTERM, loop.stop)
        loop.add_signal_handler(signal.SIGINT, loop.stop)
        runner = loop.run_until_complete(startup(store))
        loop.run_forever()
    except KeyboardInterrupt:
        log.info("Caught ^C, stopping")
    except Exception as e:  # pylint: disable=broad-except
        log.exception("Caught exception, stopping: %s", e)
        sys.exit(1)
    finally:
        if runner is not None:
            loop.run_until_complete(runner.cleanup())
        loop.close()


if __name__ == "__main__":
    main()
