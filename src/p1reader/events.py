"""Events produced by TelegramEngine.feed(), one per outcome."""

from __future__ import annotations

from dataclasses import dataclass

from p1reader.reading import Reading


@dataclass(frozen=True)
class TelegramReady:
    """A validated and decoded telegram."""

    reading: Reading
    raw: str


@dataclass(frozen=True)
class TelegramRaw:
    """Exact text of the telegram behind the TelegramReady that follows it."""

    raw: str


@dataclass(frozen=True)
class FrameErrorEvent:
    """Telegram dropped in full (checksum mismatch, truncated frame, overflow)."""

    reason: str
    message: str
    raw: bytes


@dataclass(frozen=True)
class DecodeWarning:
    """One line could not be interpreted; the reading is still emitted."""

    line: str
    reason: str


Event = TelegramReady | TelegramRaw | FrameErrorEvent | DecodeWarning
