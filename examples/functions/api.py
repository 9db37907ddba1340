"""
HTTP and callable API Functions

hello_world and process_data are plain HTTP functions; add_numbers is a
callable function invoked through the callable protocol.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse

from cloudfn import CallableContext, FunctionsErrorCode, HttpsError, on_call, on_request

__all__ = ["hello_world", "process_data", "add_numbers"]


@on_request({"cors": True, "memory": "256MiB", "max_instances": 10})
async def hello_world(request: Request) -> JSONResponse:
    """
    Simple hello world function.

    Access at: /hello_world?name=World
    """
    name = request.query_params.get("name", "World")
    return JSONResponse({
        "message": f"Hello, {name}!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "function": "hello_world",
    })


@on_request({
    "memory": "512MiB",  # More memory for data processing
    "timeout_seconds": 60,
    "ingress_settings": "ALLOW_INTERNAL_ONLY",
    "labels": {"tier": "backend"},
})
async def process_data(request: Request) -> JSONResponse:
    """Uppercase every string in the posted "items" list."""
    body = await request.json()
    items = body.get("items", [])
    processed = [item.upper() if isinstance(item, str) else item for item in items]

    return JSONResponse({"processed": processed, "count": len(processed)})


@on_call({"cors": ["https://app.example.com"], "min_instances": 1})
def add_numbers(data: Dict[str, Any], context: CallableContext) -> Dict[str, Any]:
    """Add two numbers sent by a client SDK."""
    a, b = data.get("a"), data.get("b")
    if not isinstance(a, (int, float)) or not isinstance(b, (int, float)):
        raise HttpsError(FunctionsErrorCode.INVALID_ARGUMENT, "a and b must be numbers")
    return {"sum": a + b}
