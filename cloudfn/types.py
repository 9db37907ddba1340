"""
Type definitions for the cloudfn SDK
"""

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

PLATFORM = "gcfv2"
# Still read by older deployment tooling that predates "platform"
API_VERSION = 2

CALLABLE_LABEL = "deployment-callable"

_CONTEXT_ATTRIBUTES = frozenset({
    "id", "source", "type", "time", "data", "specversion",
    "subject", "datacontenttype", "dataschema",
})

TriggerAnnotation = Dict[str, Any]
ManifestEndpoint = Dict[str, Any]


@dataclass
class CloudEvent:
    """A CloudEvents 1.0 event as delivered to event-triggered functions"""
    id: str
    source: str
    type: str
    time: str
    data: Any = None
    specversion: str = "1.0"
    subject: Optional[str] = None
    datacontenttype: Optional[str] = None
    dataschema: Optional[str] = None
    # Extension attributes such as traceparent
    extensions: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CloudEvent":
        """Build an event from its structured-mode JSON representation"""
        return cls(
            id=data["id"],
            source=data["source"],
            type=data["type"],
            time=data.get("time", ""),
            data=data.get("data"),
            specversion=data.get("specversion", "1.0"),
            subject=data.get("subject"),
            datacontenttype=data.get("datacontenttype"),
            dataschema=data.get("dataschema"),
            extensions={k: v for k, v in data.items() if k not in _CONTEXT_ATTRIBUTES},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Structured-mode JSON representation. Unset optional attributes are omitted."""
        event: Dict[str, Any] = {
            "specversion": self.specversion,
            "id": self.id,
            "source": self.source,
            "type": self.type,
        }
        if self.time:
            event["time"] = self.time
        for name in ("subject", "datacontenttype", "dataschema"):
            if getattr(self, name) is not None:
                event[name] = getattr(self, name)
        event.update(self.extensions)
        if self.data is not None:
            event["data"] = self.data
        return event


class CloudFunction:
    """
    A declared function.

    Calling it runs the handler behind the trigger-specific wrapper. The
    undecorated handler is available as `run`, deployment metadata as
    `trigger` (recomputed on every read) and `endpoint` (fixed when the
    function was declared).
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        run: Callable[..., Any],
        trigger: Callable[[], TriggerAnnotation],
        endpoint: ManifestEndpoint,
    ) -> None:
        functools.update_wrapper(self, run)
        self._func = func
        self._trigger = trigger
        self._endpoint = endpoint
        self.run = run

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._func(*args, **kwargs)

    @property
    def trigger(self) -> TriggerAnnotation:
        """Legacy trigger annotation, built from current process state"""
        return self._trigger()

    @property
    def endpoint(self) -> ManifestEndpoint:
        """Manifest endpoint computed at declaration time"""
        return self._endpoint

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {getattr(self, '__name__', 'function')}>"


class HttpsFunction(CloudFunction):
    """An HTTP-triggered function. Instances are ASGI applications."""

    async def __call__(self, scope: Dict[str, Any], receive: Callable, send: Callable) -> None:
        await self._func(scope, receive, send)


class CallableFunction(HttpsFunction):
    """An RPC-style callable function served over the callable protocol"""
