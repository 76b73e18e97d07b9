"""HTTP middleware for connection-level limits.

RequestTimeoutMiddleware answers 408 when a request has produced no
response within the connection deadline, and BodySizeLimitMiddleware
rejects bodies larger than the ceiling, whether declared or streamed.
"""

import asyncio
import logging

from fastapi import status
from fastapi.datastructures import Headers
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..config import MAX_BODY_SIZE, REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class RequestTimeoutMiddleware:
    """Cancel requests that run past the connection deadline.

    Implemented as plain ASGI so the handler runs in the same task as the
    deadline and is cancelled when it fires.
    """

    def __init__(self, app: ASGIApp, timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        deadline = asyncio.timeout(self.timeout)
        try:
            async with deadline:
                await self.app(scope, receive, send_wrapper)
        except TimeoutError:
            if not deadline.expired():
                raise
            logger.warning(f"Request timeout after {self.timeout:g}s: {scope['method']} {scope['path']}")
            # A response that already started cannot be replaced
            if response_started:
                return
            response = JSONResponse(
                status_code=status.HTTP_408_REQUEST_TIMEOUT,
                content={
                    'success': False,
                    'error': "Request Timeout",
                    'message': f"Processing took too long (>{self.timeout:g}s)"
                }
            )
            await response(scope, receive, send)


class PayloadTooLargeError(Exception):
    """Raised from receive once the streamed body passes the ceiling."""


class BodySizeLimitMiddleware:
    """Reject request bodies larger than max_body_size.

    A declared Content-Length is checked up front. Bodies without one
    (chunked uploads) are counted as they are received, and the request is
    answered with 413 as soon as the running total passes the ceiling.
    """

    def __init__(self, app: ASGIApp, max_body_size: int = MAX_BODY_SIZE) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                body_size = int(content_length)
            except ValueError:
                body_size = 0
            if body_size > self.max_body_size:
                await self.reject(scope, receive, send)
                return

        received = 0
        rejected = False
        response_started = False

        async def receive_wrapper() -> Message:
            nonlocal received, rejected
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    rejected = True
                    raise PayloadTooLargeError(f"Request body exceeds {self.max_body_size} bytes")
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            # Whatever the app answers to the aborted read is replaced by 413
            if rejected and not response_started:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except PayloadTooLargeError:
            pass

        if rejected and not response_started:
            await self.reject(scope, receive, send)

    async def reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger.warning(f"Request body too large: {scope['method']} {scope['path']}")
        response = JSONResponse(
            status_code=413,
            content={
                'success': False,
                'error': "Payload Too Large",
                'message': f"Request body exceeds {self.max_body_size // (1024 * 1024)}MB"
            }
        )
        await response(scope, receive, send)
