"""
Logging module for p1reader.

Provides structured logging with JSON output for unattended readers
and human-readable console output for development.

Usage:
    from p1reader.log import logger, stats_logger

    # Regular logging
    logger.info("event_name", key="value")

    # Statistics tracking
    stats_logger.increment("frame_errors")
"""

from .structured_log import StatisticsLogger, get_logger, get_stats_logger

# Initialize the main logger
logger = get_logger("p1reader")

# Statistics logger (lazy initialization)
stats_logger = get_stats_logger()

__all__ = ["logger", "stats_logger", "get_logger", "get_stats_logger", "StatisticsLogger"]
