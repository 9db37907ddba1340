"""
Pub/Sub triggered functions.

Usage:
    from cloudfn.pubsub import on_message_published

    @on_message_published("orders")
    def handle_order(event):
        order = event.data["message"].json
        logger.info(f"Got order {order['id']}")

    # Or with options
    @on_message_published({"topic": "orders", "retry": True, "memory": "512MiB"})
    async def handle_order_with_retry(event):
        ...
"""

import base64
import binascii
import dataclasses
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar, Union

from .config import get_project_id
from .encoding import copy_if_present
from .errors import ConfigurationError, DecodeError
from .options import (
    EVENT_HANDLER_OPTION_KEYS,
    get_global_options,
    merge_endpoints,
    merge_trigger_annotations,
    normalize_declaration,
    validate_options,
)
from .types import PLATFORM, CloudEvent, CloudFunction, ManifestEndpoint, TriggerAnnotation

logger = logging.getLogger(__name__)

T = TypeVar("T")

MESSAGE_PUBLISHED_EVENT = "google.cloud.pubsub.topic.v1.messagePublished"


def _now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclasses.dataclass(frozen=True)
class _Decoded(Generic[T]):
    """Holds a successfully decoded payload"""
    value: T


class Message(Generic[T]):
    """
    A Pub/Sub message.

    The payload arrives base64-encoded in `data`. Reading `json` decodes it
    on first access and caches the result. Failed decodes are not cached,
    every read retries.
    """

    def __init__(self, data: Mapping[str, Any]) -> None:
        self.message_id: str = data.get("messageId", "")
        self.data: str = data.get("data", "")
        self.attributes: Dict[str, str] = dict(data.get("attributes") or {})
        self.ordering_key: str = data.get("orderingKey") or ""
        self.publish_time: str = data.get("publishTime") or _now_iso()
        self._decoded: Optional[_Decoded[T]] = _Decoded(data["json"]) if "json" in data else None

    @classmethod
    def from_json(
        cls,
        value: Any,
        message_id: str = "",
        attributes: Optional[Dict[str, str]] = None,
        ordering_key: str = "",
        publish_time: Optional[str] = None,
    ) -> "Message":
        """Build a message whose payload is the JSON encoding of value"""
        payload = base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")
        return cls({
            "messageId": message_id,
            "data": payload,
            "attributes": attributes or {},
            "orderingKey": ordering_key,
            "publishTime": publish_time,
        })

    @property
    def json(self) -> T:
        """The payload parsed as JSON"""
        if self._decoded is None:
            try:
                raw = base64.b64decode(self.data, validate=True)
                value = json.loads(raw.decode("utf-8"))
            except (binascii.Error, ValueError, TypeError) as e:
                logger.warning(f"Failed to decode payload of message {self.message_id!r}: {e}")
                raise DecodeError(f"Unable to parse Pub/Sub message data as JSON: {e}") from e
            self._decoded = _Decoded(value)
        return self._decoded.value

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation of the message. `json` is never included."""
        message: Dict[str, Any] = {
            "messageId": self.message_id,
            "data": self.data,
            "publishTime": self.publish_time,
        }
        if self.attributes:
            message["attributes"] = self.attributes
        if self.ordering_key:
            message["orderingKey"] = self.ordering_key
        return message

    def __repr__(self) -> str:
        return f"Message(message_id={self.message_id!r}, publish_time={self.publish_time!r})"


def _wrap_message_event(raw: Union[CloudEvent, Mapping[str, Any]]) -> CloudEvent:
    """Return a copy of raw whose data["message"] is a Message"""
    if isinstance(raw, Mapping):
        raw = CloudEvent.from_dict(raw)
    data = dict(raw.data or {})
    message = data.get("message")
    if not isinstance(message, Message):
        data["message"] = Message(message or {})
    return dataclasses.replace(raw, data=data)


def on_message_published(
    topic_or_options: Union[str, Mapping[str, Any]],
    handler: Optional[Callable[[CloudEvent], Any]] = None,
) -> Any:
    """
    Handle messages published to a Pub/Sub topic.

    Args:
        topic_or_options: Topic name, or options that include "topic".
            Event options may also set "retry".
        handler: Called with the CloudEvent for each message. Its
            data["message"] is a Message. If omitted, a decorator is returned.

    Returns:
        CloudFunction, or a decorator producing one

    Raises:
        ConfigurationError: If no topic is given or options are invalid
    """
    if isinstance(topic_or_options, str):
        topic_or_options = {"topic": topic_or_options}
    opts, handler = normalize_declaration(topic_or_options, handler)
    topic = opts.pop("topic", None)

    if not topic or not isinstance(topic, str):
        raise ConfigurationError("A Pub/Sub topic is required")
    opts = validate_options(opts, EVENT_HANDLER_OPTION_KEYS)

    if handler is None:
        def decorator(func: Callable[[CloudEvent], Any]) -> CloudFunction:
            return _build_message_function(topic, opts, func)
        return decorator

    return _build_message_function(topic, opts, handler)


def _build_message_function(
    topic: str,
    opts: Dict[str, Any],
    handler: Callable[[CloudEvent], Any],
) -> CloudFunction:
    def func(raw: Union[CloudEvent, Mapping[str, Any]]) -> Any:
        return handler(_wrap_message_event(raw))

    def trigger() -> TriggerAnnotation:
        return {
            "platform": PLATFORM,
            **merge_trigger_annotations(get_global_options(), opts),
            "eventTrigger": {
                "eventType": MESSAGE_PUBLISHED_EVENT,
                "resource": f"projects/{get_project_id()}/topics/{topic}",
            },
        }

    endpoint: ManifestEndpoint = {
        "platform": PLATFORM,
        **merge_endpoints(get_global_options(), opts),
        "eventTrigger": {
            "eventType": MESSAGE_PUBLISHED_EVENT,
            "eventFilters": {"topic": topic},
            "retry": False,
        },
    }
    copy_if_present(endpoint["eventTrigger"], opts, "retry")

    logger.debug(f"Declared Pub/Sub function {getattr(handler, '__name__', handler)!r} on topic {topic!r}")
    return CloudFunction(func, run=handler, trigger=trigger, endpoint=endpoint)
