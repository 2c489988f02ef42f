"""
A module for verifying the HMAC signature of incoming webhook requests

The host signs the raw request body with a shared secret and sends it as
'X-Notify-Signature: sha256=<hex digest>'.
"""

import hashlib
import hmac
import logging
from collections.abc import Callable

import aiohttp.web
from aiohttp.typedefs import Handler, Middleware
from aiohttp.web import HTTPUnauthorized, Request, StreamResponse

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Notify-Signature"


def sign_body(secret: bytes, body: bytes) -> str:
    """
    Compute the signature header value for a request body
    """
    return "sha256=" + hmac.new(secret, body, hashlib.sha256).hexdigest()


def verify_body(secret: bytes, body: bytes, signature: str | None) -> bool:
    """
    Check a signature header value against a request body
    """
    if not signature or not signature.startswith("sha256="):
        return False
    return hmac.compare_digest(sign_body(secret, body), signature)


def verify_signature(secret: Callable[[], bytes | None]) -> Middleware:
    """
    Produce a aiohttp middleware to verify webhook body signatures.
    The secret is looked up per request, no secret disables verification
    """

    @aiohttp.web.middleware
    async def func(request: Request, handler: Handler) -> StreamResponse:
        key = secret()
        if not key:
            return await handler(request)

        body = await request.read()
        if not verify_body(key, body, request.headers.get(SIGNATURE_HEADER)):
            log.warning("Failed to verify request signature from %s", request.remote)
            return HTTPUnauthorized(reason="Invalid signature")

        return await handler(request)

    return func
