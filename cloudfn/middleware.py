"""
Origin checking for HTTP and callable functions.
"""

import logging
from typing import Any, Callable, Dict, List, Sequence, Union

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

OriginPolicy = Union[bool, str, Sequence[str]]


def allowed_origins(origin: OriginPolicy) -> List[str]:
    """
    Expand an origin policy into an allow-list.

    True allows every origin, False none, a string or list of strings
    exactly those origins.
    """
    if origin is True:
        return ["*"]
    if origin is False or origin is None:
        return []
    if isinstance(origin, str):
        return [origin]
    return list(origin)


class OriginCheckMiddleware:
    """
    ASGI middleware that rejects requests from disallowed origins.

    Requests carrying an Origin header outside the policy get a 403 and
    never reach the wrapped app. Everything else, preflights included, is
    handled by CORSMiddleware. With origin=False CORS is disabled and
    requests go straight to the app.
    """

    def __init__(
        self,
        app: Callable,
        origin: OriginPolicy,
        methods: Union[str, Sequence[str]] = "*",
    ) -> None:
        self.app = app
        self.enabled = origin is not False
        self.origins = allowed_origins(origin)
        self.cors = CORSMiddleware(
            app,
            allow_origins=self.origins,
            allow_methods=[methods] if isinstance(methods, str) else list(methods),
            allow_headers=["*"],
        )

    def is_allowed(self, origin: str) -> bool:
        return "*" in self.origins or origin in self.origins

    async def __call__(self, scope: Dict[str, Any], receive: Callable, send: Callable) -> None:
        if not self.enabled or scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Request(scope).headers.get("origin")
        if origin is not None and not self.is_allowed(origin):
            logger.warning(f"Rejected request from disallowed origin {origin!r}")
            response = PlainTextResponse("Origin not allowed", status_code=403)
            await response(scope, receive, send)
            return

        await self.cors(scope, receive, send)
