"""Tests for environment based configuration helpers."""

from __future__ import annotations

import pytest

from p1reader import config


class TestEnvHelpers:
    def test_bool(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("P1_TEST_BOOL", "Yes")
        assert config._get_bool_env("P1_TEST_BOOL", False) is True

        monkeypatch.setenv("P1_TEST_BOOL", "off")
        assert config._get_bool_env("P1_TEST_BOOL", True) is False

    def test_bool_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("P1_TEST_BOOL", raising=False)
        assert config._get_bool_env("P1_TEST_BOOL", True) is True

    def test_int(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("P1_TEST_INT", "4096")
        assert config._get_int_env("P1_TEST_INT", 1) == 4096

    def test_int_invalid_falls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("P1_TEST_INT", "lots")
        assert config._get_int_env("P1_TEST_INT", 16384) == 16384


class TestMqttUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("mqtt://broker:1884", ("broker", 1884, "tcp", False, None)),
            ("mqtts://broker", ("broker", 8883, "tcp", True, None)),
            ("ws://broker/mqtt", ("broker", 80, "websockets", False, "/mqtt")),
            ("wss://broker:9443/mqtt", ("broker", 9443, "websockets", True, "/mqtt")),
        ],
    )
    def test_schemes(self, url: str, expected: tuple) -> None:
        assert config._parse_mqtt_url(url) == expected

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(ValueError, match="Unsupported MQTT URL scheme"):
            config._parse_mqtt_url("http://broker")


def test_default_buffer_size_is_positive() -> None:
    assert config.MAX_BUFFER_SIZE > 0
