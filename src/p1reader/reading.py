"""
Reading data model and the assembler that builds it from decoded fields.

A Reading always has the full shape: every sub record is present, and every
measured quantity is a Measurement that is either present (value and unit)
or absent (both None).

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

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from p1reader import units
from p1reader.log import logger


@dataclass(frozen=True)
class Measurement:
    """A (value, unit) pair; both None when the meter did not report it."""

    value: float | None = None
    unit: str | None = None

    def __post_init__(self) -> None:
        if (self.value is None) != (self.unit is None):
            raise ValueError(f"value and unit must both be set or both be None: {self!r}")

    @property
    def is_present(self) -> bool:
        return self.value is not None

    def to(self, unit: str) -> Measurement:
        """Convert to a compatible unit, e.g. Measurement(0.244, "kW").to("W")."""
        if not self.is_present:
            return self
        return Measurement(units.convert(self.value, self.unit, unit), unit)

    def as_dict(self, key: str = "reading") -> dict[str, Any]:
        return {key: self.value, "unit": self.unit}


ABSENT = Measurement()


def _iso(timestamp: datetime | None) -> str | None:
    return timestamp.isoformat() if timestamp is not None else None


@dataclass
class Phases:
    l1: Measurement = ABSENT
    l2: Measurement = ABSENT
    l3: Measurement = ABSENT

    def as_dict(self) -> dict[str, Any]:
        return {"L1": self.l1.as_dict(), "L2": self.l2.as_dict(), "L3": self.l3.as_dict()}


@dataclass
class PhaseCounters:
    l1: int | None = None
    l2: int | None = None
    l3: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"L1": self.l1, "L2": self.l2, "L3": self.l3}


@dataclass
class Tariffs:
    tariff1: Measurement = ABSENT
    tariff2: Measurement = ABSENT
    actual: Measurement = ABSENT

    def as_dict(self) -> dict[str, Any]:
        return {
            "tariff1": self.tariff1.as_dict(),
            "tariff2": self.tariff2.as_dict(),
            "actual": self.actual.as_dict(),
        }


@dataclass(frozen=True)
class PowerFailureEvent:
    """One entry of the long power failure log; start is end minus duration."""

    start: datetime | None
    end: datetime | None
    duration: Measurement

    def as_dict(self) -> dict[str, Any]:
        return {
            "startOfFailure": _iso(self.start),
            "endOfFailure": _iso(self.end),
            "duration": self.duration.value,
            "unit": self.duration.unit,
        }


@dataclass
class PowerFailureLog:
    count: int | None = None
    log: list[PowerFailureEvent] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {"count": self.count, "log": [event.as_dict() for event in self.log]}


@dataclass
class InstantaneousPower:
    positive: Phases = field(default_factory=Phases)
    negative: Phases = field(default_factory=Phases)


@dataclass
class Instantaneous:
    current: Phases = field(default_factory=Phases)
    voltage: Phases = field(default_factory=Phases)
    power: InstantaneousPower = field(default_factory=InstantaneousPower)

    def as_dict(self) -> dict[str, Any]:
        return {
            "current": self.current.as_dict(),
            "voltage": self.voltage.as_dict(),
            "power": {
                "positive": self.power.positive.as_dict(),
                "negative": self.power.negative.as_dict(),
            },
        }


@dataclass
class Electricity:
    received: Tariffs = field(default_factory=Tariffs)
    delivered: Tariffs = field(default_factory=Tariffs)
    tariff_indicator: int | None = None
    threshold: Measurement = ABSENT
    fuse_threshold: Measurement = ABSENT
    switch_position: str | None = None
    number_of_power_failures: int | None = None
    number_of_long_power_failures: int | None = None
    long_power_failure_log: PowerFailureLog = field(default_factory=PowerFailureLog)
    voltage_sags: PhaseCounters = field(default_factory=PhaseCounters)
    voltage_swells: PhaseCounters = field(default_factory=PhaseCounters)
    instantaneous: Instantaneous = field(default_factory=Instantaneous)

    def as_dict(self) -> dict[str, Any]:
        return {
            "received": self.received.as_dict(),
            "delivered": self.delivered.as_dict(),
            "tariffIndicator": self.tariff_indicator,
            "threshold": self.threshold.as_dict("value"),
            "fuseThreshold": self.fuse_threshold.as_dict("value"),
            "switchPosition": self.switch_position,
            "numberOfPowerFailures": self.number_of_power_failures,
            "numberOfLongPowerFailures": self.number_of_long_power_failures,
            "longPowerFailureLog": self.long_power_failure_log.as_dict(),
            "voltageSags": self.voltage_sags.as_dict(),
            "voltageSwell": self.voltage_swells.as_dict(),
            "instantaneous": self.instantaneous.as_dict(),
        }


@dataclass
class Gas:
    device_type: str | None = None
    equipment_id: str | None = None
    timestamp: datetime | None = None
    reading: Measurement = ABSENT
    valve_position: str | None = None

    @property
    def unit(self) -> str | None:
        return self.reading.unit

    def as_dict(self) -> dict[str, Any]:
        return {
            "deviceType": self.device_type,
            "equipmentId": self.equipment_id,
            "timestamp": _iso(self.timestamp),
            "reading": self.reading.value,
            "unit": self.reading.unit,
            "valvePosition": self.valve_position,
        }


@dataclass
class TextMessage:
    codes: str | None = None
    message: str | None = None


@dataclass
class Reading:
    """One decoded telegram."""

    meter_type: str | None = None
    version: str | None = None
    timestamp: datetime | None = None
    equipment_id: str | None = None
    text_message: TextMessage = field(default_factory=TextMessage)
    electricity: Electricity = field(default_factory=Electricity)
    gas: Gas = field(default_factory=Gas)

    def as_dict(self) -> dict[str, Any]:
        """Render with camelCase keys, datetimes as ISO-8601 strings."""
        return {
            "meterType": self.meter_type,
            "version": self.version,
            "timestamp": _iso(self.timestamp),
            "equipmentId": self.equipment_id,
            "textMessage": {"codes": self.text_message.codes, "message": self.text_message.message},
            "electricity": self.electricity.as_dict(),
            "gas": self.gas.as_dict(),
        }


# Path of attribute names from Reading down to the target field,
# e.g. ("electricity", "received", "tariff1")
FieldPath = tuple[str, ...]


@dataclass(frozen=True)
class FieldAssignment:
    path: FieldPath
    value: Any
    obis: str = ""


class ReadingAssembler:
    """
    Folds field assignments into one Reading.

    Assignments are applied in telegram order; when an OBIS id occurs twice
    the later one wins. build() applies the structural defaults.
    """

    def __init__(self) -> None:
        self._reading = Reading()

    def apply(self, assignment: FieldAssignment) -> None:
        *parents, name = assignment.path
        target: Any = self._reading
        for parent in parents:
            target = getattr(target, parent)
        if not hasattr(target, name):
            raise AttributeError(f"unknown reading field {'.'.join(assignment.path)}")
        setattr(target, name, assignment.value)

    def build(self) -> Reading:
        """
        Return the assembled reading.

        The failure log count is clamped to the number of decoded entries.
        """
        reading = copy.deepcopy(self._reading)
        failure_log = reading.electricity.long_power_failure_log
        if failure_log.count is not None and failure_log.count > len(failure_log.log):
            logger.info(
                "failure_log_count_clamped",
                reported=failure_log.count,
                decoded=len(failure_log.log),
            )
            failure_log.count = len(failure_log.log)
        return reading
