"""
HTTP and callable functions.

Usage:
    from fastapi.responses import JSONResponse
    from cloudfn.https import on_call, on_request

    @on_request({"cors": "https://example.com", "memory": "512MiB"})
    async def hello(request):
        return JSONResponse({"message": "Hello!"})

    @on_call
    def add(data, context):
        return data["a"] + data["b"]

Both return ASGI applications, so they can be served by uvicorn or
mounted into a FastAPI app.
"""

import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from fastapi import Request

from .callable_protocol import CallableContext, on_call_handler
from .encoding import is_present
from .errors import ConfigurationError
from .middleware import OriginCheckMiddleware
from .options import (
    HTTPS_OPTION_KEYS,
    get_global_options,
    merge_endpoints,
    merge_trigger_annotations,
    normalize_declaration,
    validate_options,
)
from .types import (
    API_VERSION,
    CALLABLE_LABEL,
    PLATFORM,
    CallableFunction,
    HttpsFunction,
    ManifestEndpoint,
    TriggerAnnotation,
)

logger = logging.getLogger(__name__)

HttpsHandler = Callable[[Request], Any]
CallableHandler = Callable[[Any, CallableContext], Any]
HttpsOptionsOrHandler = Union[Mapping[str, Any], Callable, None]


def _split_cors(options: Dict[str, Any]) -> Dict[str, Any]:
    """Remove "cors" from options and validate the rest"""
    rest = dict(options)
    cors = rest.pop("cors", None)
    if cors is not None and not isinstance(cors, (bool, str)):
        if not isinstance(cors, (list, tuple)) or not all(isinstance(o, str) for o in cors):
            raise ConfigurationError(f"cors must be a boolean, an origin or a list of origins, got {cors!r}")
    return validate_options(rest, HTTPS_OPTION_KEYS)


def _https_trigger(opts: Dict[str, Any], extra_labels: Optional[Dict[str, str]] = None) -> TriggerAnnotation:
    merged = merge_trigger_annotations(get_global_options(), opts)
    return {
        "apiVersion": API_VERSION,
        "platform": PLATFORM,
        **merged,
        "labels": {**merged["labels"], **(extra_labels or {})},
        "httpsTrigger": {"allowInsecure": False},
    }


def _https_endpoint(opts: Dict[str, Any], extra_labels: Optional[Dict[str, str]] = None) -> ManifestEndpoint:
    merged = merge_endpoints(get_global_options(), opts)
    return {
        "platform": PLATFORM,
        **merged,
        "labels": {**merged["labels"], **(extra_labels or {})},
        "httpsTrigger": {"allowInsecure": False},
    }


def _request_app(handler: HttpsHandler) -> Callable:
    """Adapt a request handler to an ASGI app"""

    async def app(scope: Dict[str, Any], receive: Callable, send: Callable) -> None:
        request = Request(scope, receive)
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        await response(scope, receive, send)

    return app


def on_request(
    options_or_handler: HttpsOptionsOrHandler = None,
    handler: Optional[HttpsHandler] = None,
) -> Any:
    """
    Handle HTTP requests.

    The handler receives a fastapi.Request and returns a Response (or an
    awaitable resolving to one).

    Args:
        options_or_handler: Options, or the handler when no options are given.
            "cors" may be True, False, an origin or a list of origins.
        handler: The request handler. If omitted, a decorator is returned.

    Returns:
        HttpsFunction, or a decorator producing one
    """
    options, handler = normalize_declaration(options_or_handler, handler)
    opts = _split_cors(options)

    if handler is None:
        def decorator(func: HttpsHandler) -> HttpsFunction:
            return _build_request_function(options, opts, func)
        return decorator

    return _build_request_function(options, opts, handler)


def _build_request_function(
    options: Dict[str, Any],
    opts: Dict[str, Any],
    handler: HttpsHandler,
) -> HttpsFunction:
    app = _request_app(handler)
    if is_present(options, "cors"):
        app = OriginCheckMiddleware(app, origin=options["cors"])

    logger.debug(f"Declared HTTP function {getattr(handler, '__name__', handler)!r}")
    return HttpsFunction(
        app,
        run=handler,
        trigger=lambda: _https_trigger(opts),
        endpoint=_https_endpoint(opts),
    )


def on_call(
    options_or_handler: HttpsOptionsOrHandler = None,
    handler: Optional[CallableHandler] = None,
) -> Any:
    """
    Declare a function callable over the callable RPC protocol.

    The handler receives the request's data and a CallableContext and
    returns a JSON-serializable value (or an awaitable resolving to one).
    Raise HttpsError to return a typed error to the client.

    Args:
        options_or_handler: Options, or the handler when no options are given.
            "cors" narrows the allowed origins (default: all).
        handler: The callable handler. If omitted, a decorator is returned.

    Returns:
        CallableFunction, or a decorator producing one
    """
    options, handler = normalize_declaration(options_or_handler, handler)
    opts = _split_cors(options)

    if handler is None:
        def decorator(func: CallableHandler) -> CallableFunction:
            return _build_callable_function(options, opts, func)
        return decorator

    return _build_callable_function(options, opts, handler)


def _build_callable_function(
    options: Dict[str, Any],
    opts: Dict[str, Any],
    handler: CallableHandler,
) -> CallableFunction:
    origin = options["cors"] if is_present(options, "cors") else True
    app = on_call_handler(origin=origin, methods="POST", handler=handler)
    callable_labels = {CALLABLE_LABEL: "true"}

    logger.debug(f"Declared callable function {getattr(handler, '__name__', handler)!r}")
    return CallableFunction(
        app,
        run=handler,
        trigger=lambda: _https_trigger(opts, callable_labels),
        endpoint=_https_endpoint(opts, callable_labels),
    )
