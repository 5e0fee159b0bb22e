"""
OBIS reference decoding.

A fixed table maps every supported OBIS reference to a decode rule. A rule
knows the target field(s) in the Reading, how many fields the line carries and
how to parse each one. Unknown references are skipped silently so that meters
emitting extra lines keep working.

Field formats on the P1 port:
  numeric    000123.456*kWh   (value*unit; empty means absent)
  timestamp  101209113020W    (YYMMDDhhmmss + S summer / W winter time)
  integer    00004
  text       4B384547303034303436333935353037

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

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum

from p1reader.exceptions import LineDecodeError
from p1reader.log import logger
from p1reader.reading import (
    ABSENT,
    FieldAssignment,
    FieldPath,
    Measurement,
    PowerFailureEvent,
)
from p1reader.tokenizer import DataLine
from p1reader.units import Dimension, UnitError, check_unit

# DSMR timestamps are local Dutch time, flagged S (CEST) or W (CET)
SUMMER_TIME = timezone(timedelta(hours=2))
WINTER_TIME = timezone(timedelta(hours=1))

_TIMESTAMP = re.compile(r"^(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})([SW]?)$")


class FieldKind(Enum):
    TEXT = "text"
    INTEGER = "integer"
    NUMERIC = "numeric"
    TIMESTAMP = "timestamp"


# ------------------------------------------------------------------------------------
# Field parsers
# ------------------------------------------------------------------------------------
def parse_numeric(raw: str, dimension: Dimension) -> Measurement:
    """
    Parse "value*unit". An empty field is an absent measurement.

    Raises:
      LineDecodeError: not a number, missing or wrong unit
    """
    if raw == "":
        return ABSENT
    value, sep, unit = raw.partition("*")
    if not sep:
        raise LineDecodeError(f"numeric field {raw!r} has no unit")
    try:
        number = Decimal(value)
        check_unit(unit, dimension)
    except InvalidOperation as e:
        raise LineDecodeError(f"invalid number {value!r}") from e
    except UnitError as e:
        raise LineDecodeError(str(e)) from e
    if not number.is_finite():
        raise LineDecodeError(f"invalid number {value!r}")
    return Measurement(float(number), unit)


def parse_timestamp(raw: str) -> datetime | None:
    """
    Parse YYMMDDhhmmssX. Without the DST flag (DSMR 2.2) winter time is assumed.

    Raises:
      LineDecodeError: malformed or impossible date
    """
    if raw == "":
        return None
    match = _TIMESTAMP.match(raw)
    if not match:
        raise LineDecodeError(f"invalid timestamp {raw!r}")
    year, month, day, hour, minute, second, dst = match.groups()
    try:
        return datetime(
            2000 + int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            tzinfo=SUMMER_TIME if dst == "S" else WINTER_TIME,
        )
    except ValueError as e:
        raise LineDecodeError(f"invalid timestamp {raw!r}: {e}") from e


def parse_integer(raw: str) -> int | None:
    if raw == "":
        return None
    if not raw.isdigit():
        raise LineDecodeError(f"invalid integer {raw!r}")
    return int(raw)


def parse_text(raw: str) -> str | None:
    return raw if raw != "" else None


def _parse(kind: FieldKind, raw: str, dimension: Dimension | None):
    if kind is FieldKind.NUMERIC:
        return parse_numeric(raw, dimension)
    if kind is FieldKind.TIMESTAMP:
        return parse_timestamp(raw)
    if kind is FieldKind.INTEGER:
        return parse_integer(raw)
    return parse_text(raw)


def _absent(kind: FieldKind):
    return ABSENT if kind is FieldKind.NUMERIC else None


# ------------------------------------------------------------------------------------
# Decode rules
# ------------------------------------------------------------------------------------
@dataclass
class Decoded:
    """Outcome of decoding one line: assignments in field order plus warnings."""

    assignments: list[FieldAssignment] = field(default_factory=list)
    warnings: list[LineDecodeError] = field(default_factory=list)

    def warn(self, line: DataLine, message: str) -> None:
        logger.info("decode_warning", obis=line.obis, line=line.raw, reason=message)
        self.warnings.append(LineDecodeError(message, line.raw))


@dataclass(frozen=True)
class Target:
    """One field of a line going to one Reading attribute."""

    index: int
    path: FieldPath
    kind: FieldKind
    dimension: Dimension | None = None


@dataclass(frozen=True)
class FieldRule:
    """
    Fixed arity line; every target reads one field by position.

    A field that does not parse becomes absent and produces a warning;
    the other targets of the line are still assigned.
    """

    targets: tuple[Target, ...]
    arity: int

    def decode(self, line: DataLine, result: Decoded) -> None:
        if len(line.fields) != self.arity:
            result.warn(line, f"expected {self.arity} field(s), got {len(line.fields)}")
        for target in self.targets:
            if target.index >= len(line.fields):
                value = _absent(target.kind)
            else:
                try:
                    value = _parse(target.kind, line.fields[target.index], target.dimension)
                except LineDecodeError as e:
                    result.warn(line, str(e))
                    value = _absent(target.kind)
            result.assignments.append(FieldAssignment(target.path, value, line.obis))


@dataclass(frozen=True)
class FailureLogRule:
    """
    Power failure event log:

      1-0:99.97.0(2)(0-0:96.7.19)(101208152415W)(0000000240*s)(101208151004W)(0000000301*s)

    count, the OBIS id of the entries, then one (end of failure, duration)
    pair per event.
    """

    count_path: FieldPath
    log_path: FieldPath

    def decode(self, line: DataLine, result: Decoded) -> None:
        fields = line.fields
        count = None
        if fields:
            try:
                count = parse_integer(fields[0])
            except LineDecodeError as e:
                result.warn(line, str(e))

        pairs = fields[2:]
        if len(pairs) % 2:
            result.warn(line, "failure log has an incomplete event")
        wanted = len(pairs) // 2 if count is None else min(count, len(pairs) // 2)

        events = []
        for i in range(wanted):
            raw_end, raw_duration = pairs[2 * i], pairs[2 * i + 1]
            try:
                end = parse_timestamp(raw_end)
            except LineDecodeError as e:
                result.warn(line, str(e))
                end = None
            try:
                duration = parse_numeric(raw_duration, Dimension.DURATION)
            except LineDecodeError as e:
                result.warn(line, str(e))
                duration = ABSENT
            start = None
            if end is not None and duration.is_present:
                try:
                    start = end - timedelta(seconds=duration.value)
                except OverflowError:
                    result.warn(line, f"duration {raw_duration!r} out of range")
            events.append(PowerFailureEvent(start=start, end=end, duration=duration))

        result.assignments.append(FieldAssignment(self.count_path, count, line.obis))
        result.assignments.append(FieldAssignment(self.log_path, events, line.obis))


@dataclass(frozen=True)
class LegacyGasRule:
    """
    DSMR 2.2/3.0 gas reading, with the value moved onto the continuation line:

      0-1:24.3.0(090212160000)(00)(60)(1)(0-1:24.2.1)(m3)(00001.001)

    Fields: capture time, period, ..., OBIS of the value, unit, value.
    """

    timestamp_path: FieldPath
    reading_path: FieldPath

    def decode(self, line: DataLine, result: Decoded) -> None:
        fields = line.fields
        timestamp = None
        reading = ABSENT
        if len(fields) != 7:
            result.warn(line, f"expected 7 field(s), got {len(fields)}")
        if fields:
            try:
                timestamp = parse_timestamp(fields[0])
            except LineDecodeError as e:
                result.warn(line, str(e))
        if len(fields) >= 7 and fields[6] != "":
            try:
                reading = parse_numeric(f"{fields[6]}*{fields[5]}", Dimension.VOLUME)
            except LineDecodeError as e:
                result.warn(line, str(e))
        result.assignments.append(FieldAssignment(self.timestamp_path, timestamp, line.obis))
        result.assignments.append(FieldAssignment(self.reading_path, reading, line.obis))


DecodeRule = FieldRule | FailureLogRule | LegacyGasRule


def _single(path: FieldPath, kind: FieldKind, dimension: Dimension | None = None) -> FieldRule:
    return FieldRule(targets=(Target(0, path, kind, dimension),), arity=1)


def _phases(
    ids: tuple[str, str, str], path: FieldPath, kind: FieldKind, dimension: Dimension | None = None
) -> dict[str, FieldRule]:
    return {
        obis: _single(path + (phase,), kind, dimension)
        for obis, phase in zip(ids, ("l1", "l2", "l3"))
    }


_E = ("electricity",)
_INSTANT = _E + ("instantaneous",)

OBIS_RULES: dict[str, DecodeRule] = {
    # Identity
    "1-3:0.2.8": _single(("version",), FieldKind.TEXT),
    "0-0:1.0.0": _single(("timestamp",), FieldKind.TIMESTAMP),
    "0-0:96.1.1": _single(("equipment_id",), FieldKind.TEXT),
    "0-0:96.13.1": _single(("text_message", "codes"), FieldKind.TEXT),
    "0-0:96.13.0": _single(("text_message", "message"), FieldKind.TEXT),
    # Energy totals
    "1-0:1.8.1": _single(_E + ("received", "tariff1"), FieldKind.NUMERIC, Dimension.ENERGY),
    "1-0:1.8.2": _single(_E + ("received", "tariff2"), FieldKind.NUMERIC, Dimension.ENERGY),
    "1-0:2.8.1": _single(_E + ("delivered", "tariff1"), FieldKind.NUMERIC, Dimension.ENERGY),
    "1-0:2.8.2": _single(_E + ("delivered", "tariff2"), FieldKind.NUMERIC, Dimension.ENERGY),
    "0-0:96.14.0": _single(_E + ("tariff_indicator",), FieldKind.INTEGER),
    # Actual power
    "1-0:1.7.0": _single(_E + ("received", "actual"), FieldKind.NUMERIC, Dimension.POWER),
    "1-0:2.7.0": _single(_E + ("delivered", "actual"), FieldKind.NUMERIC, Dimension.POWER),
    "0-0:17.0.0": _single(_E + ("threshold",), FieldKind.NUMERIC, Dimension.POWER),
    "1-0:31.4.0": _single(_E + ("fuse_threshold",), FieldKind.NUMERIC, Dimension.CURRENT),
    "0-0:96.3.10": _single(_E + ("switch_position",), FieldKind.TEXT),
    # Power quality
    "0-0:96.7.21": _single(_E + ("number_of_power_failures",), FieldKind.INTEGER),
    "0-0:96.7.9": _single(_E + ("number_of_long_power_failures",), FieldKind.INTEGER),
    "1-0:99.97.0": FailureLogRule(
        count_path=_E + ("long_power_failure_log", "count"),
        log_path=_E + ("long_power_failure_log", "log"),
    ),
    **_phases(("1-0:32.32.0", "1-0:52.32.0", "1-0:72.32.0"), _E + ("voltage_sags",), FieldKind.INTEGER),
    **_phases(("1-0:32.36.0", "1-0:52.36.0", "1-0:72.36.0"), _E + ("voltage_swells",), FieldKind.INTEGER),
    # Instantaneous, per phase
    **_phases(
        ("1-0:31.7.0", "1-0:51.7.0", "1-0:71.7.0"),
        _INSTANT + ("current",),
        FieldKind.NUMERIC,
        Dimension.CURRENT,
    ),
    **_phases(
        ("1-0:32.7.0", "1-0:52.7.0", "1-0:72.7.0"),
        _INSTANT + ("voltage",),
        FieldKind.NUMERIC,
        Dimension.VOLTAGE,
    ),
    **_phases(
        ("1-0:21.7.0", "1-0:41.7.0", "1-0:61.7.0"),
        _INSTANT + ("power", "positive"),
        FieldKind.NUMERIC,
        Dimension.POWER,
    ),
    **_phases(
        ("1-0:22.7.0", "1-0:42.7.0", "1-0:62.7.0"),
        _INSTANT + ("power", "negative"),
        FieldKind.NUMERIC,
        Dimension.POWER,
    ),
    # Gas (M-Bus channel 1)
    "0-1:24.1.0": _single(("gas", "device_type"), FieldKind.TEXT),
    "0-1:96.1.0": _single(("gas", "equipment_id"), FieldKind.TEXT),
    "0-1:24.2.1": FieldRule(
        targets=(
            Target(0, ("gas", "timestamp"), FieldKind.TIMESTAMP),
            Target(1, ("gas", "reading"), FieldKind.NUMERIC, Dimension.VOLUME),
        ),
        arity=2,
    ),
    "0-1:24.3.0": LegacyGasRule(
        timestamp_path=("gas", "timestamp"),
        reading_path=("gas", "reading"),
    ),
    "0-1:24.4.0": _single(("gas", "valve_position"), FieldKind.TEXT),
}


def decode(line: DataLine) -> Decoded:
    """
    Decode one data line.

    Unknown OBIS references give an empty result without warnings.
    Never raises for field level problems; those become warnings.
    """
    result = Decoded()
    rule = OBIS_RULES.get(line.obis)
    if rule is None:
        logger.debug("obis_unknown_skipped", obis=line.obis)
        return result
    rule.decode(line, result)
    return result


def decode_header(header: str) -> FieldAssignment:
    """Meter type from the "/XXX5<type>" header line."""
    meter_type = header[1:].strip() if header.startswith("/") else header.strip()
    return FieldAssignment(("meter_type",), meter_type or None, "header")
