"""
Unit vocabulary and conversion for DSMR quantities

Every numeric OBIS field carries a unit fixed by its physical dimension
(energy totals in kWh, instantaneous power in kW, gas in m3, ...). This module
holds the accepted unit spellings per dimension and uses the pint library to
check and convert them.

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

from enum import Enum

import pint
from pint.errors import DefinitionSyntaxError, DimensionalityError, UndefinedUnitError

from p1reader.log import get_logger

logger = get_logger("p1reader.units")

# Initialize pint unit registry
ureg = pint.UnitRegistry()


class Dimension(str, Enum):
    ENERGY = "energy"
    POWER = "power"
    CURRENT = "current"
    VOLTAGE = "voltage"
    VOLUME = "volume"
    DURATION = "duration"


# Unit spellings seen on P1 ports, per dimension
VOCABULARY = {
    Dimension.ENERGY: ("kWh", "Wh"),
    Dimension.POWER: ("kW", "W"),
    Dimension.CURRENT: ("A",),
    Dimension.VOLTAGE: ("V",),
    Dimension.VOLUME: ("m3", "m³"),
    Dimension.DURATION: ("s",),
}

# pint expression used as reference for each dimension
_REFERENCE = {
    Dimension.ENERGY: "Wh",
    Dimension.POWER: "W",
    Dimension.CURRENT: "A",
    Dimension.VOLTAGE: "V",
    Dimension.VOLUME: "meter**3",
    Dimension.DURATION: "second",
}


class UnitError(ValueError):
    """Unit text is not accepted for the quantity."""


def to_pint(unit_str: str) -> pint.Unit:
    """
    Parse a meter unit string into a pint unit.

    pint does not understand the DSMR spelling "m3" of cubic meter.
    """
    if unit_str in ("m3", "m³"):
        return ureg.parse_units("meter**3")
    try:
        return ureg.parse_units(unit_str)
    except (UndefinedUnitError, DefinitionSyntaxError, AttributeError, TypeError):
        raise UnitError(f"unknown unit {unit_str!r}") from None


def dimension_of(unit_str: str) -> Dimension | None:
    """Return the Dimension of a unit string or None if it has none of ours."""
    try:
        dimensionality = to_pint(unit_str).dimensionality
    except UnitError:
        logger.debug("unit_not_parsed", unit=unit_str)
        return None
    for dimension, reference in _REFERENCE.items():
        if to_pint(reference).dimensionality == dimensionality:
            return dimension
    return None


def check_unit(unit_str: str, dimension: Dimension) -> str:
    """
    Validate a unit against the vocabulary of a dimension.

    Args:
        unit_str: unit as written by the meter, e.g. "kWh"
        dimension: the dimension the OBIS field measures

    Returns:
        The unit string, unchanged

    Raises:
        UnitError: unit is not in the vocabulary
    """
    if unit_str not in VOCABULARY[dimension]:
        actual = dimension_of(unit_str)
        measures = actual.value if actual is not None else "unknown quantity"
        raise UnitError(
            f"unit {unit_str!r} ({measures}) not valid for {dimension.value}; "
            f"expected one of {', '.join(VOCABULARY[dimension])}"
        )
    return unit_str


def convert(value: float, from_unit: str, to_unit: str) -> float:
    """
    Convert a value between compatible units, e.g. kW to W.

    Raises:
        UnitError: units are unknown or of different dimension
    """
    try:
        return ureg.Quantity(value, to_pint(from_unit)).to(to_pint(to_unit)).magnitude
    except DimensionalityError as e:
        raise UnitError(f"cannot convert {from_unit} to {to_unit}") from e
