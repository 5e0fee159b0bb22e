"""Shared telegram fixtures for p1reader tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import crcmod.predefined
import pytest

_crc16 = crcmod.predefined.mkPredefinedCrcFun("crc-16")

DSMR5_HEADER = "/ISk5\\2MT382-1000"

# Example telegram from the DSMR 5.0.2 P1 companion standard
DSMR5_LINES = (
    "1-3:0.2.8(50)",
    "0-0:1.0.0(101209113020W)",
    "0-0:96.1.1(4B384547303034303436333935353037)",
    "1-0:1.8.1(123456.789*kWh)",
    "1-0:1.8.2(123456.789*kWh)",
    "1-0:2.8.1(123456.789*kWh)",
    "1-0:2.8.2(123456.789*kWh)",
    "0-0:96.14.0(0002)",
    "1-0:1.7.0(01.193*kW)",
    "1-0:2.7.0(00.000*kW)",
    "0-0:96.7.21(00004)",
    "0-0:96.7.9(00002)",
    "1-0:99.97.0(2)(0-0:96.7.19)(101208152415W)(0000000240*s)(101208151004W)(0000000301*s)",
    "1-0:32.32.0(00002)",
    "1-0:52.32.0(00001)",
    "1-0:72.32.0(00000)",
    "1-0:32.36.0(00000)",
    "1-0:52.36.0(00003)",
    "1-0:72.36.0(00000)",
    "0-0:96.13.0(303132333435363738393A3B3C3D3E3F)",
    "1-0:32.7.0(220.1*V)",
    "1-0:52.7.0(220.2*V)",
    "1-0:72.7.0(220.3*V)",
    "1-0:31.7.0(001*A)",
    "1-0:51.7.0(002*A)",
    "1-0:71.7.0(003*A)",
    "1-0:21.7.0(01.111*kW)",
    "1-0:41.7.0(02.222*kW)",
    "1-0:61.7.0(03.333*kW)",
    "1-0:22.7.0(04.444*kW)",
    "1-0:42.7.0(05.555*kW)",
    "1-0:62.7.0(06.666*kW)",
    "0-1:24.1.0(003)",
    "0-1:96.1.0(3232323241424344313233343536373839)",
    "0-1:24.2.1(101209112500W)(12785.123*m3)",
)

# DSMR 2.2 telegram: no CRC, gas value on a continuation line
DSMR22_TELEGRAM = (
    b"/ISk5\\2ME382-1003\r\n"
    b"\r\n"
    b"0-0:96.1.1(4B414C37303035313036333136373931)\r\n"
    b"1-0:1.8.1(00185.000*kWh)\r\n"
    b"1-0:1.8.2(00084.000*kWh)\r\n"
    b"0-0:96.14.0(0001)\r\n"
    b"1-0:1.7.0(0000.98*kW)\r\n"
    b"0-1:24.1.0(3)\r\n"
    b"0-1:96.1.0(3238303131303031333132303235323132)\r\n"
    b"0-1:24.3.0(121030140000)(00)(60)(1)(0-1:24.2.1)(m3)\r\n"
    b"(00041.615)\r\n"
    b"0-1:24.4.0(1)\r\n"
    b"!\r\n"
)


def build_telegram(
    lines: Sequence[str], header: str = DSMR5_HEADER, eol: str = "\r\n"
) -> bytes:
    """Assemble a telegram with a correct CRC footer."""
    content = header + eol + eol + "".join(line + eol for line in lines) + "!"
    data = content.encode("ascii")
    return data + f"{_crc16(data):04X}".encode("ascii") + eol.encode("ascii")


@pytest.fixture
def make_telegram() -> Callable[..., bytes]:
    return build_telegram


@pytest.fixture
def dsmr5_telegram() -> bytes:
    return build_telegram(DSMR5_LINES)


@pytest.fixture
def scenario_telegram() -> bytes:
    return build_telegram(["1-0:1.8.1(000123.456*kWh)", "1-0:1.7.0(00.244*kW)"])
