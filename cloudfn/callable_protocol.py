"""
Callable protocol for RPC-style functions.

Clients POST {"data": ...} as JSON. The handler's return value is sent
back as {"result": ...}; an HttpsError raised by the handler is sent back
as {"error": {"status", "message", "details"}} with the matching HTTP
status.
"""

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union

from fastapi import Request
from fastapi.responses import JSONResponse

from .errors import FunctionsErrorCode, HttpsError
from .middleware import OriginCheckMiddleware, OriginPolicy

logger = logging.getLogger(__name__)


@dataclass
class CallableContext:
    """Metadata about a callable invocation"""
    raw_request: Request
    auth: Optional[Dict[str, Any]] = None
    instance_id_token: Optional[str] = None


def _error_response(error: HttpsError) -> JSONResponse:
    return JSONResponse(content={"error": error.to_dict()}, status_code=error.http_status)


def _is_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "application/json"


async def _parse_data(request: Request) -> Any:
    if not _is_json(request):
        raise HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "Bad Request")
    try:
        body = json.loads(await request.body())
    except ValueError:
        raise HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "Bad Request")
    if not isinstance(body, dict) or "data" not in body:
        raise HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "Bad Request")
    return body["data"]


def on_call_handler(
    origin: OriginPolicy,
    methods: Union[str, Sequence[str]],
    handler: Callable[[Any, CallableContext], Any],
) -> Callable:
    """
    Build an ASGI app serving handler over the callable protocol.

    Args:
        origin: Origin policy applied before the request is parsed
        methods: HTTP method(s) the endpoint accepts
        handler: Called with (data, context); may return an awaitable
    """
    allowed = [methods] if isinstance(methods, str) else list(methods)

    async def app(scope: Dict[str, Any], receive: Callable, send: Callable) -> None:
        request = Request(scope, receive)
        try:
            if request.method not in allowed:
                raise HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "Bad Request")
            data = await _parse_data(request)
            context = CallableContext(
                raw_request=request,
                instance_id_token=request.headers.get("firebase-instance-id-token"),
            )
            result = handler(data, context)
            if inspect.isawaitable(result):
                result = await result
            response = JSONResponse(content={"result": result})
        except HttpsError as e:
            response = _error_response(e)
        except Exception as e:
            logger.exception(f"Unhandled error in callable function: {e}")
            response = _error_response(HttpsError(FunctionsErrorCode.INTERNAL, "INTERNAL"))
        await response(scope, receive, send)

    return OriginCheckMiddleware(app, origin=origin, methods=allowed)
