"""
structlog setup for the P1 reader, plus a periodic statistics line.

Settings come from p1reader.config (P1_LOGLEVEL, P1_LOG_FORMAT, P1_STATS_LOG_INTERVAL).

        This program is free software: you can redistribute it and/or modify
        it under the terms of the GNU General Public License as published by
        the Free Software Foundation, either version 3 of the License, or
        (at your option) any later version.

        This program is distributed in the hope that it will be useful,
        but WITHOUT ANY WARRANTY; without even the implied warranty of
        MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
        GNU General Public License for more details.

        You should have received a copy of the GNU General Public License
        along with this program.  If not, see <http://www.gnu.org/licenses/>.
"""

import logging
import sys
import threading
import time

import structlog
from structlog.typing import Processor

from p1reader import config as cfg

# Counters known to the statistics line; increments of other names are dropped
STATISTICS = (
    "bytes_received",
    "telegrams_received",
    "telegrams_parsed",
    "frame_errors",
    "decode_warnings",
    "buffer_overflows",
    "mqtt_messages_sent",
    "mqtt_errors",
    "serial_errors",
)

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _log_level() -> int:
    name = cfg.loglevel.upper()
    return getattr(logging, name) if name in _LEVELS else logging.INFO


def _renderer() -> Processor:
    if cfg.LOG_FORMAT.upper() == "JSON":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> structlog.stdlib.BoundLogger:
    """
    Route structlog and stdlib logging (paho, pyserial) through one stdout handler.

    Returns:
        structlog.stdlib.BoundLogger: root logger of the reader
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors
        + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer()],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(_log_level())

    # paho logs every PUBLISH at debug
    logging.getLogger("paho.mqtt").setLevel(logging.WARNING)

    return structlog.get_logger()


class StatisticsLogger:
    """
    Thread safe counters, written as one "statistics" log line every interval
    and once more on stop().
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, interval: int = 300):
        """
        Args:
            logger: where the statistics line goes
            interval: seconds between lines; 0 or less disables the thread
        """
        self._logger = logger
        self._interval = interval
        self._stats: dict[str, int] = dict.fromkeys(STATISTICS, 0)
        self._lock = threading.Lock()
        self._started_at = time.monotonic()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._interval <= 0:
            self._logger.info("statistics_logging_disabled")
            return

        self._stopped.clear()
        self._thread = threading.Thread(target=self._run, name="p1-stats", daemon=True)
        self._thread.start()
        self._logger.info("statistics_logging_started", interval_seconds=self._interval)

    def stop(self) -> None:
        self._stopped.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._log_stats()

    def increment(self, stat_name: str, count: int = 1) -> None:
        with self._lock:
            if stat_name in self._stats:
                self._stats[stat_name] += count

    def snapshot(self) -> dict[str, int]:
        """Copy of the current counters."""
        with self._lock:
            return self._stats.copy()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            self._log_stats()

    def _log_stats(self) -> None:
        uptime = int(time.monotonic() - self._started_at)
        self._logger.info("statistics", uptime_seconds=uptime, **self.snapshot())


_logger: structlog.stdlib.BoundLogger | None = None
_stats_logger: StatisticsLogger | None = None


def _root_logger() -> structlog.stdlib.BoundLogger:
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Configured logger, bound to name when given."""
    logger = _root_logger()
    return logger.bind(logger=name) if name else logger


def get_stats_logger() -> StatisticsLogger:
    """The process wide StatisticsLogger (not started)."""
    global _stats_logger
    if _stats_logger is None:
        _stats_logger = StatisticsLogger(_root_logger(), cfg.STATS_LOG_INTERVAL)
    return _stats_logger
