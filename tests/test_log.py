"""Tests for the statistics counters."""

from __future__ import annotations

from unittest.mock import MagicMock

from p1reader.log import StatisticsLogger
from p1reader.log.structured_log import STATISTICS


class TestStatisticsLogger:
    def test_counters_start_at_zero(self) -> None:
        stats = StatisticsLogger(MagicMock(), interval=0)

        assert stats.snapshot() == dict.fromkeys(STATISTICS, 0)

    def test_increment_known_and_unknown(self) -> None:
        stats = StatisticsLogger(MagicMock(), interval=0)

        stats.increment("telegrams_parsed")
        stats.increment("bytes_received", 880)
        stats.increment("no_such_counter")

        snapshot = stats.snapshot()
        assert snapshot["telegrams_parsed"] == 1
        assert snapshot["bytes_received"] == 880
        assert "no_such_counter" not in snapshot

    def test_disabled_interval_logs_once_on_stop(self) -> None:
        logger = MagicMock()
        stats = StatisticsLogger(logger, interval=0)
        stats.start()
        stats.increment("frame_errors")
        stats.stop()

        logger.info.assert_any_call("statistics_logging_disabled")
        name, kwargs = logger.info.call_args.args[0], logger.info.call_args.kwargs
        assert name == "statistics"
        assert kwargs["frame_errors"] == 1
        assert "uptime_seconds" in kwargs
