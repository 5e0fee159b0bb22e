"""Unit tests for TelegramAccumulator framing."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from p1reader.accumulator import Telegram, TelegramAccumulator
from p1reader.exceptions import BufferOverflow, TruncatedFrame


def _telegrams(items):
    return [item for item in items if isinstance(item, Telegram)]


class TestFraming:
    """A complete frame is extracted in one piece."""

    def test_single_telegram(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator()
        items = list(acc.feed(scenario_telegram))

        assert len(items) == 1
        assert items[0].raw == scenario_telegram
        assert len(acc) == 0
        assert not acc.in_frame

    def test_footer_index_points_at_bang(self, scenario_telegram: bytes) -> None:
        telegram = list(TelegramAccumulator().feed(scenario_telegram))[0]

        assert telegram.raw[telegram.footer_index : telegram.footer_index + 1] == b"!"
        assert telegram.crc_data.endswith(b"!")
        assert len(telegram.checksum) == 4

    def test_header_and_body(self, scenario_telegram: bytes) -> None:
        telegram = list(TelegramAccumulator().feed(scenario_telegram))[0]

        assert telegram.header == "/ISk5\\2MT382-1000"
        assert b"1-0:1.8.1(000123.456*kWh)" in telegram.body
        assert b"!" not in telegram.body

    def test_noise_before_start_is_discarded(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator()
        items = list(acc.feed(b"0(00.244*kW)\r\n!1234\r\n" + scenario_telegram))

        assert _telegrams(items)[0].raw == scenario_telegram

    def test_two_telegrams_in_one_chunk(self, scenario_telegram: bytes) -> None:
        items = list(TelegramAccumulator().feed(scenario_telegram * 2))

        assert len(_telegrams(items)) == 2

    def test_waits_for_checksum_line_terminator(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator()

        assert list(acc.feed(scenario_telegram[:-2])) == []
        assert acc.in_frame
        items = list(acc.feed(scenario_telegram[-2:]))
        assert _telegrams(items)[0].raw == scenario_telegram

    def test_byte_by_byte(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator()
        found = []
        for i in range(len(scenario_telegram)):
            found.extend(acc.feed(scenario_telegram[i : i + 1]))

        assert [t.raw for t in found] == [scenario_telegram]


class TestResync:
    """A header before the footer restarts the frame."""

    def test_second_header_discards_partial_frame(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator()
        partial = scenario_telegram[:40]
        items = list(acc.feed(partial + b"\r\n" + scenario_telegram))

        assert isinstance(items[0], TruncatedFrame)
        assert items[0].raw.startswith(b"/ISk5")
        assert isinstance(items[1], Telegram)
        assert items[1].raw == scenario_telegram

    def test_resync_across_feeds(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator()
        list(acc.feed(scenario_telegram[:30] + b"\r\n"))
        items = list(acc.feed(scenario_telegram))

        assert [type(item) for item in items] == [TruncatedFrame, Telegram]


class TestBufferBound:
    """The retained buffer never exceeds max_buffer_size."""

    def test_stream_without_start_marker_is_not_retained(self) -> None:
        acc = TelegramAccumulator(max_buffer_size=512)
        for _ in range(200):
            assert list(acc.feed(b"x" * 1000 + b"\r\n")) == []
            assert len(acc) <= 512

    def test_frame_without_footer_overflows(self) -> None:
        acc = TelegramAccumulator(max_buffer_size=256)
        items = list(acc.feed(b"/XMX5LGBBFG1012463695\r\n\r\n"))
        overflow = []
        for _ in range(20):
            overflow.extend(acc.feed(b"1-0:1.8.1(000123.456*kWh)\r\n"))
            assert len(acc) <= 256

        assert items == []
        assert overflow
        assert all(isinstance(item, BufferOverflow) for item in overflow)
        assert overflow[0].raw.startswith(b"/XMX5")

    def test_overflow_is_yielded_without_warning_log(self) -> None:
        # the engine logs every frame error once
        acc = TelegramAccumulator(max_buffer_size=64)
        with patch("p1reader.accumulator.logger") as log:
            items = list(acc.feed(b"/" + b"a" * 100))

        assert [type(item) for item in items] == [BufferOverflow]
        log.warning.assert_not_called()

    def test_recovers_after_overflow(self, scenario_telegram: bytes) -> None:
        acc = TelegramAccumulator(max_buffer_size=128)
        list(acc.feed(b"/" + b"a" * 200))
        items = list(acc.feed(b"\r\n" + scenario_telegram))

        assert _telegrams(items)[0].raw == scenario_telegram

    def test_invalid_max_buffer_size(self) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            TelegramAccumulator(max_buffer_size=0)
