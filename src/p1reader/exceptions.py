"""P1 telegram exception classes."""

from __future__ import annotations


class P1Error(Exception):
    """Base exception for all P1 telegram errors."""


class FrameError(P1Error):
    """A telegram is rejected in full; the engine moves on to the next one.

    Args:
        reason: Short machine readable reason, e.g. "checksum_mismatch"
        raw: The offending bytes, for diagnostics
    """

    reason = "frame_error"

    def __init__(self, message: str, raw: bytes = b"") -> None:
        super().__init__(message)
        self.raw = raw


class ChecksumMismatch(FrameError):
    reason = "checksum_mismatch"

    def __init__(self, expected: int, computed: int, raw: bytes = b"") -> None:
        super().__init__(
            f"CRC mismatch: telegram says {expected:04X}, computed {computed:04X}", raw
        )
        self.expected = expected
        self.computed = computed


class MalformedFrame(FrameError):
    """Footer without a 4 hex digit CRC."""

    reason = "malformed_frame"


class TruncatedFrame(FrameError):
    """A new header arrived before the footer of the frame in progress."""

    reason = "truncated_frame"


class BufferOverflow(FrameError):
    """No complete frame within the accumulator's capacity; buffer was cleared."""

    reason = "buffer_overflow"


class LineDecodeError(P1Error):
    """One data line or field could not be interpreted.

    Args:
        line: The raw data line
    """

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line
