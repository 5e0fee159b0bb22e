"""
DSMR telegram CRC.

DSMR 4.0 and up close every telegram with "!" and a CRC16 over all bytes from
the "/" up to and including the "!": polynomial 0x8005 (0xA001 reflected),
initial value 0, no final XOR. crcmod calls this variant "crc-16".
"""

from __future__ import annotations

import re

import crcmod.predefined

from p1reader.accumulator import Telegram
from p1reader.exceptions import ChecksumMismatch, MalformedFrame
from p1reader.log import logger

_crc16 = crcmod.predefined.mkPredefinedCrcFun("crc-16")

_CHECKSUM = re.compile(r"^[0-9A-Fa-f]{4}$")


def crc16(data: bytes) -> int:
    return _crc16(data)


def validate(telegram: Telegram, require_checksum: bool = True) -> None:
    """
    Verify the telegram CRC.

    Args:
      :param Telegram telegram: framed telegram
      :param bool require_checksum: when False, a footer without CRC (DSMR 2.2/3.0)
             is accepted as is

    Raises:
      ChecksumMismatch: CRC does not match the telegram content
      MalformedFrame: footer does not hold 4 hex digits
    """
    checksum = telegram.checksum

    if not checksum and not require_checksum:
        logger.debug("checksum_absent_accepted")
        return

    if not _CHECKSUM.match(checksum):
        raise MalformedFrame(f"invalid checksum footer {checksum!r}", telegram.raw)

    expected = int(checksum, 16)
    computed = crc16(telegram.crc_data)
    if expected != computed:
        raise ChecksumMismatch(expected, computed, telegram.raw)

    logger.debug("checksum_ok", checksum=checksum)
