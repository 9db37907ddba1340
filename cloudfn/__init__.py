"""
cloudfn - declare Pub/Sub, HTTP and callable functions in Python

Usage:
    from cloudfn import on_call, on_message_published, on_request, set_global_options

    set_global_options({"region": "us-central1", "memory": "256MiB"})

    @on_message_published("orders")
    def handle_order(event):
        order = event.data["message"].json

    @on_call({"cors": "https://example.com"})
    def add(data, context):
        return data["a"] + data["b"]

Each declaration returns a CloudFunction carrying its deployment
metadata: `fn.endpoint` for the manifest and `fn.trigger` for legacy
tooling. `fn.run` is the undecorated handler.
"""

from .callable_protocol import CallableContext
from .config import get_project_id, load_global_options
from .errors import (
    CloudFnError,
    ConfigurationError,
    DecodeError,
    FunctionsErrorCode,
    HttpsError,
    MetadataComputationError,
)
from .https import on_call, on_request
from .manifest import ManifestStack, build_manifest_stack, discover_functions
from .options import get_global_options, reset_global_options, set_global_options
from .pubsub import Message, on_message_published
from .types import CallableFunction, CloudEvent, CloudFunction, HttpsFunction

__version__ = "0.1.0"
__all__ = [
    "on_message_published",
    "on_request",
    "on_call",
    "set_global_options",
    "get_global_options",
    "reset_global_options",
    "load_global_options",
    "get_project_id",
    "Message",
    "CloudEvent",
    "CloudFunction",
    "HttpsFunction",
    "CallableFunction",
    "CallableContext",
    "ManifestStack",
    "build_manifest_stack",
    "discover_functions",
    "CloudFnError",
    "ConfigurationError",
    "DecodeError",
    "MetadataComputationError",
    "HttpsError",
    "FunctionsErrorCode",
]
