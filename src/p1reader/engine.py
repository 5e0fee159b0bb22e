"""
Telegram engine: bytes in, events out.

  feed(bytes) -> accumulator -> checksum -> tokenizer -> OBIS decoder -> assembler

The engine is a plain function of the bytes it is fed. It has no threads or
timers and never raises for bad input; every problem is returned as an event.
It is not safe to feed one engine from several threads at once.

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

from enum import Enum

from p1reader import checksum, obis
from p1reader.accumulator import DEFAULT_MAX_BUFFER_SIZE, Telegram, TelegramAccumulator
from p1reader.events import DecodeWarning, Event, FrameErrorEvent, TelegramRaw, TelegramReady
from p1reader.exceptions import BufferOverflow, FrameError, LineDecodeError, TruncatedFrame
from p1reader.log import logger, stats_logger
from p1reader.reading import Reading, ReadingAssembler
from p1reader.tokenizer import tokenize


class EngineState(Enum):
    IDLE = "idle"
    AWAITING_TELEGRAM = "awaiting_telegram"
    VALIDATING = "validating"
    DECODING = "decoding"
    EMITTING = "emitting"


class TelegramEngine:
    """
    Turns a P1 byte stream into TelegramRaw/TelegramReady, FrameErrorEvent
    and DecodeWarning events.

    Args:
      :param int max_buffer_size: bytes retained while waiting for a footer
             before the partial frame is dropped as BufferOverflow
      :param bool require_checksum: reject telegrams without CRC; set to False
             for DSMR 2.2/3.0 meters, which send a bare "!"
    """

    def __init__(
        self, max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE, require_checksum: bool = True
    ) -> None:
        self.__accumulator = TelegramAccumulator(max_buffer_size)
        self.__require_checksum = require_checksum
        self.__state = EngineState.IDLE
        # resync waiting for the outcome of the frame that interrupted it
        self.__truncated: TruncatedFrame | None = None

    @property
    def state(self) -> EngineState:
        return self.__state

    @property
    def buffered(self) -> int:
        """Number of bytes retained for the frame in progress."""
        return len(self.__accumulator)

    def feed(self, data: bytes) -> list[Event]:
        """
        Process the next chunk of bytes.

        Args:
          :param bytes data: any number of bytes from the P1 port

        Returns:
          Events in stream order; for every valid telegram a TelegramRaw
          followed by any DecodeWarnings and one TelegramReady
        """
        stats_logger.increment("bytes_received", len(data))
        events: list[Event] = []

        if self.__state is EngineState.IDLE:
            self.__state = EngineState.AWAITING_TELEGRAM

        for item in self.__accumulator.feed(data):
            if isinstance(item, TruncatedFrame):
                events.extend(self.__flush_truncated())
                self.__truncated = item
                continue
            if isinstance(item, FrameError):
                events.extend(self.__flush_truncated())
                events.append(self.__frame_error(item))
                continue
            events.extend(self.__process(item))

        return events

    def __flush_truncated(self) -> list[Event]:
        if self.__truncated is None:
            return []
        truncated, self.__truncated = self.__truncated, None
        return [self.__frame_error(truncated)]

    def __process(self, telegram: Telegram) -> list[Event]:
        """
        A resync followed by a frame that fails validation is one corrupted
        telegram (e.g. a data line starting with "/"), so it is reported as a
        single frame error covering both parts.
        """
        stats_logger.increment("telegrams_received")

        self.__state = EngineState.VALIDATING
        try:
            checksum.validate(telegram, self.__require_checksum)
        except FrameError as e:
            self.__state = EngineState.AWAITING_TELEGRAM
            prefix = b""
            if self.__truncated is not None:
                prefix, self.__truncated = self.__truncated.raw, None
            return [self.__frame_error(e, prefix)]

        self.__state = EngineState.DECODING
        text = telegram.text()
        events: list[Event] = self.__flush_truncated()
        events.append(TelegramRaw(raw=text))
        reading = self.__decode(telegram, events)

        self.__state = EngineState.EMITTING
        events.append(TelegramReady(reading=reading, raw=text))
        stats_logger.increment("telegrams_parsed")
        logger.debug(
            "telegram_decoded", meter_type=reading.meter_type, timestamp=str(reading.timestamp)
        )

        self.__state = EngineState.AWAITING_TELEGRAM
        return events

    def __decode(self, telegram: Telegram, events: list[Event]) -> Reading:
        assembler = ReadingAssembler()
        assembler.apply(obis.decode_header(telegram.header))

        lines = []
        for line in telegram.body.split(b"\n"):
            try:
                lines.append(line.decode("ascii"))
            except UnicodeDecodeError:
                text = line.decode("ascii", errors="replace").strip()
                logger.info("malformed_line", line=text, reason="not ASCII")
                events.append(self.__warning(LineDecodeError("line is not ASCII", text)))
                lines.append("")

        for item in tokenize("\n".join(lines)):
            if isinstance(item, LineDecodeError):
                events.append(self.__warning(item))
                continue
            decoded = obis.decode(item)
            for warning in decoded.warnings:
                events.append(self.__warning(warning))
            for assignment in decoded.assignments:
                assembler.apply(assignment)

        return assembler.build()

    def __warning(self, error: LineDecodeError) -> DecodeWarning:
        stats_logger.increment("decode_warnings")
        return DecodeWarning(line=error.line, reason=str(error))

    def __frame_error(self, error: FrameError, prefix: bytes = b"") -> FrameErrorEvent:
        stats_logger.increment("frame_errors")
        if isinstance(error, BufferOverflow):
            stats_logger.increment("buffer_overflows")
        raw = prefix + error.raw
        logger.warning(
            "frame_error", reason=error.reason, error=str(error), size=len(raw), resync=bool(prefix)
        )
        return FrameErrorEvent(reason=error.reason, message=str(error), raw=raw)
