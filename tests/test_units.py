"""Unit tests for unit vocabulary and pint conversions."""

from __future__ import annotations

import pytest

from p1reader.units import VOCABULARY, Dimension, UnitError, check_unit, convert, dimension_of


class TestCheckUnit:
    @pytest.mark.parametrize(
        ("unit", "dimension"),
        [
            ("kWh", Dimension.ENERGY),
            ("kW", Dimension.POWER),
            ("A", Dimension.CURRENT),
            ("V", Dimension.VOLTAGE),
            ("m3", Dimension.VOLUME),
            ("s", Dimension.DURATION),
        ],
    )
    def test_accepted(self, unit: str, dimension: Dimension) -> None:
        assert check_unit(unit, dimension) == unit

    def test_rejected(self) -> None:
        with pytest.raises(UnitError, match="expected one of kWh, Wh"):
            check_unit("kW", Dimension.ENERGY)

    def test_rejection_names_the_measured_quantity(self) -> None:
        with pytest.raises(UnitError, match=r"\(power\) not valid for energy"):
            check_unit("kW", Dimension.ENERGY)
        with pytest.raises(UnitError, match="unknown quantity"):
            check_unit("blorp", Dimension.ENERGY)


class TestDimension:
    @pytest.mark.parametrize(("dimension", "spellings"), list(VOCABULARY.items()))
    def test_vocabulary_matches_dimension(self, dimension: Dimension, spellings: tuple[str, ...]) -> None:
        for unit in spellings:
            assert dimension_of(unit) is dimension

    def test_unknown_unit(self) -> None:
        assert dimension_of("blorp") is None


class TestConvert:
    def test_kw_to_w(self) -> None:
        assert convert(0.244, "kW", "W") == pytest.approx(244.0)

    def test_kwh_to_wh(self) -> None:
        assert convert(1.5, "kWh", "Wh") == pytest.approx(1500.0)

    def test_incompatible(self) -> None:
        with pytest.raises(UnitError, match="cannot convert"):
            convert(1.0, "kW", "V")
