"""Tests for Pub/Sub messages and message-published functions."""

import asyncio
import json

import pytest

from cloudfn.errors import ConfigurationError, DecodeError, MetadataComputationError
from cloudfn.options import set_global_options
from cloudfn.pubsub import MESSAGE_PUBLISHED_EVENT, Message, on_message_published
from cloudfn.types import CloudEvent, CloudFunction


def make_event(message, **data):
    return CloudEvent(
        id="event-1",
        source="//pubsub.googleapis.com/projects/proj-1/topics/my-topic",
        type=MESSAGE_PUBLISHED_EVENT,
        time="2024-01-01T00:00:00.000Z",
        data={"message": message, **data},
    )


class TestMessage:
    @pytest.mark.parametrize("value", [
        {"id": 1, "items": ["a", "b"]},
        [1, 2.5, None, True],
        "text with ünïcode",
        0,
        None,
    ])
    def test_decodes_json_payload(self, encode_payload, value):
        message = Message({"messageId": "1", "data": encode_payload(value)})
        assert message.json == value

    def test_decoded_value_is_cached(self, encode_payload, monkeypatch):
        calls = []
        real_loads = json.loads

        def counting_loads(*args, **kwargs):
            calls.append(args)
            return real_loads(*args, **kwargs)

        monkeypatch.setattr("cloudfn.pubsub.json.loads", counting_loads)
        message = Message({"messageId": "1", "data": encode_payload({"a": [1]})})

        first = message.json
        second = message.json
        assert first is second
        assert len(calls) == 1

    def test_none_payload_is_cached(self, encode_payload, monkeypatch):
        message = Message({"messageId": "1", "data": encode_payload(None)})
        assert message.json is None
        monkeypatch.setattr("cloudfn.pubsub.json.loads", lambda *a, **k: pytest.fail("decoded twice"))
        assert message.json is None

    def test_predecoded_value_skips_decoding(self):
        message = Message({"messageId": "1", "data": "not base64!", "json": {"ready": True}})
        assert message.json == {"ready": True}

    def test_predecoded_falsy_value_is_used(self):
        message = Message({"messageId": "1", "data": "not base64!", "json": None})
        assert message.json is None

    @pytest.mark.parametrize("data", [
        "not base64!",
        "bm90IGpzb24=",  # "not json"
        "//79",  # invalid UTF-8
    ])
    def test_malformed_payload_fails_every_time(self, data):
        message = Message({"messageId": "1", "data": data})
        with pytest.raises(DecodeError, match="Unable to parse Pub/Sub message data as JSON"):
            message.json
        with pytest.raises(DecodeError):
            message.json

    def test_decode_error_carries_parser_message(self):
        message = Message({"messageId": "1", "data": "bm90IGpzb24="})
        with pytest.raises(DecodeError) as exc_info:
            message.json
        assert str(exc_info.value.__cause__) in str(exc_info.value)

    def test_failure_is_not_cached(self, encode_payload):
        message = Message({"messageId": "1", "data": "bm90IGpzb24="})
        with pytest.raises(DecodeError):
            message.json

        message.data = encode_payload({"fixed": True})
        assert message.json == {"fixed": True}

    def test_defaults(self):
        message = Message({"messageId": "1", "data": ""})
        assert message.attributes == {}
        assert message.ordering_key == ""
        assert message.publish_time.endswith("Z")

    def test_to_dict_omits_empty_optional_fields(self):
        message = Message({"messageId": "1", "data": "e30=", "publishTime": "2024-01-01T00:00:00Z"})
        assert message.to_dict() == {
            "messageId": "1",
            "data": "e30=",
            "publishTime": "2024-01-01T00:00:00Z",
        }

    def test_to_dict_includes_attributes_and_ordering_key(self):
        message = Message({
            "messageId": "1",
            "data": "e30=",
            "publishTime": "2024-01-01T00:00:00Z",
            "attributes": {"type": "order"},
            "orderingKey": "customer-7",
            "json": {},
        })
        assert message.to_dict() == {
            "messageId": "1",
            "data": "e30=",
            "publishTime": "2024-01-01T00:00:00Z",
            "attributes": {"type": "order"},
            "orderingKey": "customer-7",
        }

    def test_from_json(self):
        message = Message.from_json({"id": 7}, message_id="m-1", attributes={"k": "v"})
        assert message.message_id == "m-1"
        assert message.attributes == {"k": "v"}
        assert Message(message.to_dict()).json == {"id": 7}


class TestOnMessagePublished:
    def test_handler_receives_decoded_message(self, encode_payload):
        received = []
        func = on_message_published("my-topic", lambda event: received.append(event))

        raw = make_event({"messageId": "1", "data": encode_payload({"n": 1})}, subscription="sub-1")
        func(raw)

        event = received[0]
        assert isinstance(event.data["message"], Message)
        assert event.data["message"].json == {"n": 1}
        assert event.data["subscription"] == "sub-1"
        assert event.id == raw.id
        assert event.source == raw.source
        assert event.time == raw.time

    def test_returns_handler_result_unchanged(self, encode_payload):
        async def handler(event):
            return event.data["message"].json["n"]

        func = on_message_published("my-topic", handler)
        result = func(make_event({"messageId": "1", "data": encode_payload({"n": 3})}))

        assert asyncio.iscoroutine(result)
        assert asyncio.run(result) == 3

    def test_run_is_original_handler(self):
        def handler(event):
            return "ran"

        func = on_message_published("my-topic", handler)
        assert isinstance(func, CloudFunction)
        assert func.run is handler
        assert func.__name__ == "handler"

    def test_decorator_form(self):
        @on_message_published({"topic": "my-topic", "memory": "512MiB"})
        def handler(event):
            pass

        assert isinstance(handler, CloudFunction)
        assert handler.endpoint["eventTrigger"]["eventFilters"] == {"topic": "my-topic"}
        assert handler.endpoint["availableMemoryMb"] == 512

    def test_topic_in_options_is_not_an_option(self):
        func = on_message_published({"topic": "my-topic"}, lambda event: None)
        assert "topic" not in func.endpoint

    @pytest.mark.parametrize("args", [
        ({},),
        ({"memory": "256MiB"}, lambda event: None),
        ("", lambda event: None),
    ])
    def test_missing_topic(self, args):
        with pytest.raises(ConfigurationError, match="topic"):
            on_message_published(*args)

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            on_message_published({"topic": "t", "cors": True}, lambda event: None)

    @pytest.mark.parametrize("topic_or_options", ["my-topic", {"topic": "my-topic"}])
    def test_handler_must_be_callable(self, topic_or_options):
        with pytest.raises(ConfigurationError, match="callable"):
            on_message_published(topic_or_options, "not a handler")

    def test_accepts_structured_event_dict(self, encode_payload):
        received = []
        func = on_message_published("my-topic", lambda event: received.append(event))

        func({
            "specversion": "1.0",
            "id": "event-2",
            "source": "//pubsub.googleapis.com/projects/proj-1/topics/my-topic",
            "type": MESSAGE_PUBLISHED_EVENT,
            "time": "2024-01-01T00:00:00.000Z",
            "data": {"message": {"messageId": "2", "data": encode_payload([1, 2])}},
        })

        assert received[0].id == "event-2"
        assert received[0].data["message"].json == [1, 2]

    def test_event_dict_attributes_survive(self, encode_payload):
        received = []
        func = on_message_published("my-topic", lambda event: received.append(event))
        raw = {
            "specversion": "1.0",
            "id": "event-3",
            "source": "//pubsub.googleapis.com/projects/proj-1/topics/my-topic",
            "type": MESSAGE_PUBLISHED_EVENT,
            "time": "2024-01-01T00:00:00.000Z",
            "subject": "orders",
            "datacontenttype": "application/json",
            "dataschema": "https://example.com/schema.json",
            "traceparent": "00-abc",
            "data": {
                "message": {"messageId": "3", "data": encode_payload({})},
                "subscription": "projects/proj-1/subscriptions/sub",
            },
        }

        func(raw)
        event = received[0].to_dict()

        assert event.pop("data")["subscription"] == "projects/proj-1/subscriptions/sub"
        assert event == {k: v for k, v in raw.items() if k != "data"}
        assert received[0].extensions == {"traceparent": "00-abc"}
        assert isinstance(raw["data"]["message"], dict)


class TestMessagePublishedMetadata:
    def test_resource_path(self, project):
        func = on_message_published("my-topic", lambda event: None)
        assert func.trigger["eventTrigger"] == {
            "eventType": MESSAGE_PUBLISHED_EVENT,
            "resource": "projects/proj-1/topics/my-topic",
        }

    def test_trigger_reflects_current_project(self, monkeypatch):
        monkeypatch.setenv("GCLOUD_PROJECT", "first")
        func = on_message_published("my-topic", lambda event: None)
        monkeypatch.setenv("GCLOUD_PROJECT", "second")
        assert func.trigger["eventTrigger"]["resource"] == "projects/second/topics/my-topic"

    def test_trigger_without_project(self, no_project):
        func = on_message_published("my-topic", lambda event: None)
        with pytest.raises(MetadataComputationError):
            func.trigger

    def test_endpoint_does_not_need_project(self, no_project):
        func = on_message_published("my-topic", lambda event: None)
        assert func.endpoint == {
            "platform": "gcfv2",
            "labels": {},
            "eventTrigger": {
                "eventType": MESSAGE_PUBLISHED_EVENT,
                "eventFilters": {"topic": "my-topic"},
                "retry": False,
            },
        }

    def test_retry_defaults_to_false(self):
        func = on_message_published({"topic": "t"}, lambda event: None)
        assert func.endpoint["eventTrigger"]["retry"] is False

    def test_retry_override(self, project):
        func = on_message_published({"topic": "t", "retry": True}, lambda event: None)
        assert func.endpoint["eventTrigger"]["retry"] is True
        assert func.trigger["failurePolicy"] == {"retry": True}

    def test_explicit_retry_false(self):
        func = on_message_published({"topic": "t", "retry": False}, lambda event: None)
        assert func.endpoint["eventTrigger"]["retry"] is False

    def test_global_options_are_merged(self, project):
        set_global_options({"region": "us-central1", "labels": {"a": "1"}})
        func = on_message_published(
            {"topic": "t", "region": "eu-west1", "labels": {"b": "2"}},
            lambda event: None,
        )

        assert func.endpoint["region"] == ["eu-west1"]
        assert func.endpoint["labels"] == {"a": "1", "b": "2"}
        assert func.trigger["regions"] == ["eu-west1"]
        assert func.trigger["labels"] == {"a": "1", "b": "2"}
        assert func.trigger["platform"] == "gcfv2"

    def test_endpoint_is_fixed_at_declaration(self):
        set_global_options({"memory": "256MiB"})
        func = on_message_published("t", lambda event: None)
        set_global_options({"memory": "2GiB"})
        assert func.endpoint["availableMemoryMb"] == 256
