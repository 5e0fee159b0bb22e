"""
p1reader - DSMR P1 telegram engine for Dutch and Belgian smart meters.

Turns the raw byte stream of a smart meter P1 port into validated,
decoded readings. The engine is push driven: feed it bytes, get events.

    from p1reader import TelegramEngine, TelegramReady

    engine = TelegramEngine()
    for event in engine.feed(chunk):
        if isinstance(event, TelegramReady):
            print(event.reading.electricity.received.tariff1)
"""

from .engine import EngineState, TelegramEngine
from .events import DecodeWarning, Event, FrameErrorEvent, TelegramRaw, TelegramReady
from .exceptions import (
    BufferOverflow,
    ChecksumMismatch,
    FrameError,
    LineDecodeError,
    MalformedFrame,
    P1Error,
)
from .reading import Measurement, Reading

__version__ = "1.0.0"
__license__ = "GPLv3"

__all__ = [
    "__version__",
    "__license__",
    "BufferOverflow",
    "ChecksumMismatch",
    "DecodeWarning",
    "EngineState",
    "Event",
    "FrameError",
    "FrameErrorEvent",
    "LineDecodeError",
    "MalformedFrame",
    "Measurement",
    "P1Error",
    "Reading",
    "TelegramEngine",
    "TelegramRaw",
    "TelegramReady",
]
