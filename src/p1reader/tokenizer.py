"""
Split a telegram body into OBIS data lines.

  1-0:1.8.1(000123.456*kWh)             -> ("1-0:1.8.1", ["000123.456*kWh"])
  0-1:24.2.1(101209110000W)(12785.123*m3) -> ("0-1:24.2.1", ["101209110000W", "12785.123*m3"])
  1-0:99.97.0()                         -> ("1-0:99.97.0", [""])

DSMR 2.2/3.0 meters put the gas value on its own line:

  0-1:24.3.0(090212160000)(00)(60)(1)(0-1:24.2.1)(m3)
  (00001.001)

A line that starts with "(" continues the line before it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from p1reader.exceptions import LineDecodeError
from p1reader.log import logger


@dataclass(frozen=True)
class DataLine:
    obis: str
    fields: tuple[str, ...]
    raw: str


def split_fields(line: str) -> DataLine:
    """
    Tokenize one line; raises LineDecodeError on unbalanced parentheses
    or text between the field groups.
    """
    open_at = line.find("(")
    if open_at < 0:
        if ")" in line:
            raise LineDecodeError("unbalanced parentheses", line)
        return DataLine(obis=line.strip(), fields=(), raw=line)

    obis = line[:open_at].strip()
    if not obis:
        raise LineDecodeError("missing OBIS reference", line)

    fields = []
    pos = open_at
    while pos < len(line):
        if line[pos] != "(":
            raise LineDecodeError(f"unexpected {line[pos]!r} at column {pos}", line)
        close_at = line.find(")", pos + 1)
        if close_at < 0:
            raise LineDecodeError("unbalanced parentheses", line)
        field = line[pos + 1 : close_at]
        if "(" in field:
            raise LineDecodeError("unbalanced parentheses", line)
        fields.append(field)
        pos = close_at + 1

    return DataLine(obis=obis, fields=tuple(fields), raw=line)


def _logical_lines(body: str) -> Iterator[str]:
    pending = None
    for line in body.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("(") and pending is not None:
            pending += line
            continue
        if pending is not None:
            yield pending
        pending = line
    if pending is not None:
        yield pending


def tokenize(body: str) -> Iterator[DataLine | LineDecodeError]:
    """
    Yield the data lines of a telegram body in telegram order.

    Header and footer lines are skipped. Malformed lines are yielded as
    LineDecodeError instances and do not stop the iteration.
    """
    for line in _logical_lines(body):
        if line.startswith("/") or line.startswith("!"):
            continue
        try:
            yield split_fields(line)
        except LineDecodeError as e:
            logger.info("malformed_line", line=line, reason=str(e))
            yield e
