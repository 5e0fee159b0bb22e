"""
Frame DSMR telegrams out of an arbitrarily chunked P1 byte stream.

A telegram starts with a "/" header line and ends with the line that starts
with "!" (followed by the CRC and a line terminator):

  /ISk5\\2MT382-1000
  <empty line>
  1-0:1.8.1(000123.456*kWh)
  ...
  !5BC3

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

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from p1reader.exceptions import BufferOverflow, FrameError, TruncatedFrame
from p1reader.log import logger

START_MARKER = b"/"
END_MARKER = b"!"

# Largest telegrams (Belgian meters with M-Bus devices) are ~3kB
DEFAULT_MAX_BUFFER_SIZE = 16384


@dataclass(frozen=True)
class Telegram:
    """One complete frame, from the "/" up to and including the footer line terminator."""

    raw: bytes
    footer_index: int

    @property
    def crc_data(self) -> bytes:
        """Bytes covered by the CRC: from "/" up to and including "!"."""
        return self.raw[: self.footer_index + 1]

    @property
    def checksum(self) -> str:
        """Text after the "!", without the line terminator. Empty on DSMR 2.2/3.0 meters."""
        return self.raw[self.footer_index + 1 :].decode("ascii", errors="replace").strip()

    @property
    def header(self) -> str:
        end = self.raw.find(b"\n")
        return self.raw[:end].decode("ascii", errors="replace").strip()

    @property
    def body(self) -> bytes:
        """Data lines between the header line and the footer line."""
        start = self.raw.find(b"\n") + 1
        return self.raw[start : self.footer_index]

    def text(self) -> str:
        """Full telegram as text; bytes outside ASCII become U+FFFD."""
        return self.raw.decode("ascii", errors="replace")


class TelegramAccumulator:
    """
    Buffers P1 bytes and extracts one complete telegram at a time.

    Only the bytes since the last frame start are retained. Noise before the
    first "/" is discarded, a second header before a footer restarts the
    frame, and a frame that grows beyond max_buffer_size is dropped.

    Not thread safe: one accumulator per serial stream.
    """

    def __init__(self, max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE) -> None:
        if max_buffer_size <= 0:
            raise ValueError("max_buffer_size must be positive")
        self.max_buffer_size = max_buffer_size
        self._buffer = bytearray()
        self._in_frame = False

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def in_frame(self) -> bool:
        return self._in_frame

    def reset(self) -> None:
        self._buffer.clear()
        self._in_frame = False

    def feed(self, data: bytes) -> Iterator[Telegram | FrameError]:
        """
        Add bytes and yield every telegram that is now complete.

        Frame level problems (resync, overflow) are yielded as FrameError
        instances rather than raised, so one bad frame does not end the
        iteration.

        Args:
          :param bytes data: next chunk from the byte source; any alignment

        Returns:
          Iterator over Telegram and FrameError, in stream order
        """
        self._buffer.extend(data)

        while True:
            if not self._in_frame:
                start = self._buffer.find(START_MARKER)
                if start < 0:
                    if self._buffer:
                        logger.debug("discarding_noise", size=len(self._buffer))
                    self._buffer.clear()
                    break
                if start > 0:
                    logger.debug("discarding_noise", size=start)
                    del self._buffer[:start]
                self._in_frame = True

            end = self._buffer.find(b"\n" + END_MARKER)
            restart = self._buffer.find(b"\n" + START_MARKER)

            if restart >= 0 and (end < 0 or restart < end):
                partial = bytes(self._buffer[: restart + 1])
                del self._buffer[: restart + 1]
                logger.info("telegram_resync", discarded=len(partial))
                yield TruncatedFrame("header seen before footer; frame discarded", partial)
                continue

            if end < 0:
                break

            footer_index = end + 1
            eol = self._buffer.find(b"\n", footer_index)
            if eol < 0:
                # footer CRC not complete yet
                break

            raw = bytes(self._buffer[: eol + 1])
            del self._buffer[: eol + 1]
            self._in_frame = False
            logger.debug("telegram_framed", size=len(raw))
            yield Telegram(raw=raw, footer_index=footer_index)

        if len(self._buffer) > self.max_buffer_size:
            dropped = bytes(self._buffer)
            self.reset()
            yield BufferOverflow(
                f"no complete telegram within {self.max_buffer_size} bytes; buffer cleared",
                dropped,
            )
