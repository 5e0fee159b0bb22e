"""Tests for ReadingPublisher with a mocked paho client."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock, patch

import paho.mqtt.client as mqtt_client
import pytest

from p1reader.events import DecodeWarning, FrameErrorEvent, TelegramRaw, TelegramReady
from p1reader.mqtt import ReadingPublisher
from p1reader.reading import Measurement, Reading


@pytest.fixture
def paho_client():
    with patch("p1reader.mqtt.mqtt.mqtt_client.Client") as client_cls:
        client = client_cls.return_value
        client.publish.return_value = MagicMock(rc=mqtt_client.MQTT_ERR_SUCCESS)
        yield client


@pytest.fixture
def publisher(paho_client) -> ReadingPublisher:
    return ReadingPublisher(
        mqtt_broker="localhost",
        mqtt_stopper=threading.Event(),
        mqtt_client_id="test",
        topic_prefix="p1/",
    )


def _published(paho_client) -> dict[str, str]:
    return {c.kwargs["topic"]: c.kwargs["payload"] for c in paho_client.publish.call_args_list}


class TestPublishEvent:
    def test_reading_is_published_as_json(self, publisher, paho_client) -> None:
        reading = Reading()
        reading.electricity.received.actual = Measurement(0.244, "kW")

        publisher.publish_event(TelegramReady(reading=reading, raw="/X\r\n!0000\r\n"))

        payload = json.loads(_published(paho_client)["p1/reading"])
        assert payload["electricity"]["received"]["actual"] == {"reading": 0.244, "unit": "kW"}
        assert publisher.published == 1

    def test_raw_telegram(self, publisher, paho_client) -> None:
        publisher.publish_event(TelegramRaw(raw="/X\r\n!0000\r\n"))

        assert _published(paho_client) == {"p1/raw": "/X\r\n!0000\r\n"}

    def test_frame_error(self, publisher, paho_client) -> None:
        publisher.publish_event(
            FrameErrorEvent(reason="checksum_mismatch", message="CRC mismatch", raw=b"/X")
        )

        payload = json.loads(_published(paho_client)["p1/error"])
        assert payload == {"reason": "checksum_mismatch", "message": "CRC mismatch"}

    def test_decode_warning_is_not_published(self, publisher, paho_client) -> None:
        publisher.publish_event(DecodeWarning(line="1-0:1.7.0(", reason="unbalanced parentheses"))

        paho_client.publish.assert_not_called()


class TestStatus:
    def test_set_status_is_retained(self, publisher, paho_client) -> None:
        publisher.set_status("online")

        paho_client.publish.assert_called_once_with(
            topic="p1/status", payload="online", qos=1, retain=True
        )

    def test_will_on_status_topic(self, publisher, paho_client) -> None:
        publisher.will_set("offline")

        paho_client.will_set.assert_called_once_with("p1/status", "offline", 1, retain=True)

    def test_publish_failure_is_counted_not_raised(self, publisher, paho_client) -> None:
        paho_client.publish.return_value = MagicMock(rc=mqtt_client.MQTT_ERR_NO_CONN)

        publisher.do_publish("p1/raw", "x")

        assert publisher.published == 1

    def test_publish_value_error_is_logged(self, publisher, paho_client) -> None:
        paho_client.publish.side_effect = ValueError("Invalid topic")

        publisher.do_publish("p1/#", "x")

        assert publisher.published == 0
