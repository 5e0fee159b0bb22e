"""
Read raw bytes from the P1 USB serial port.

The reader does not look for telegram boundaries; it hands every chunk it
reads to a callback (normally TelegramEngine.feed via the main loop).

To test in bash the P1 usb connector:
raw -echo < /dev/ttyUSB0; cat -vt /dev/ttyUSB0

OR
sudo chmod o+rw /dev/ttyUSB0
python3 -m serial.tools.miniterm /dev/ttyUSB0 115200 --xonxoff



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

import threading
import time

import serial

from p1reader import config as cfg
from p1reader.log import logger, stats_logger

# Bytes per read from a capture file
READ_CHUNK = 1024


def open_serial(port=None, baudrate=None, bytesize=None, parity=None, timeout=None):
    """
    Open the P1 port.

    Args:
      :param str port: device, e.g. /dev/ttyUSB0 (default: SERIAL_PORT)
      :param int baudrate: 115200 for DSMR 4+, 9600 for DSMR 2.2/3.0
      :param int bytesize: 8 (DSMR 4+) or 7 (DSMR 2.2/3.0)
      :param str parity: "N" or "E"
      :param int timeout: read timeout in seconds

    Returns:
      serial.Serial: opened port
    """
    tty = serial.Serial()
    tty.port = port or cfg.ser_port
    tty.baudrate = baudrate or cfg.ser_baudrate
    tty.bytesize = serial.SEVENBITS if (bytesize or cfg.ser_bytesize) == 7 else serial.EIGHTBITS
    tty.parity = serial.PARITY_EVEN if (parity or cfg.ser_parity) == "E" else serial.PARITY_NONE
    tty.stopbits = serial.STOPBITS_ONE
    tty.xonxoff = 0
    tty.rtscts = 0
    tty.timeout = cfg.ser_timeout if timeout is None else timeout
    logger.info(
        "serial_port_configured",
        port=tty.port,
        baudrate=tty.baudrate,
        bytesize=tty.bytesize,
        parity=tty.parity,
    )
    tty.open()
    logger.debug("serial_port_opened", port=tty.port)
    return tty


class TaskReadSerial(threading.Thread):
    def __init__(self, on_data, stopper, tty=None):
        """

        Args:
          :param callable on_data: called with every chunk of bytes read
          :param threading.Event() stopper: stops thread; set by this thread when
                 the byte source closes
          :param tty: object with read()/close(); default opens the serial port,
                 or the capture file when not in production
        """

        logger.debug("serial_init_started")
        super().__init__(name="p1-serial")
        self.__on_data = on_data
        self.__stopper = stopper
        self.__chunks = 0

        if tty is not None:
            self.__tty = tty
            return

        try:
            if cfg.PRODUCTION:
                self.__tty = open_serial()
            else:
                self.__tty = open(cfg.SIMULATORFILE, "rb")

        except Exception as e:
            logger.error(
                "serial_port_open_failed",
                error_type=type(e).__name__,
                error=str(e),
                port=cfg.ser_port,
            )
            stats_logger.increment("serial_errors")
            self.__stopper.set()
            raise ValueError("Cannot open P1 serial port", cfg.ser_port) from e

    def __read(self):
        if isinstance(self.__tty, serial.SerialBase):
            # read(n) blocks until n bytes or the timeout; ask only for what is there
            return self.__tty.read(self.__tty.in_waiting or 1)
        return self.__tty.read(READ_CHUNK)

    def __read_serial(self):
        """
          Reads chunks until stopped or the source is exhausted.
          A read timeout (empty chunk) on a serial port is not the end of the
          stream; an empty read from a capture file is.

        Returns:
          None
        """
        logger.debug("read_serial_started")

        while not self.__stopper.is_set():
            data = self.__read()

            if not data:
                if not isinstance(self.__tty, serial.SerialBase):
                    logger.debug("byte_source_eof")
                    break
                logger.debug("serial_read_timeout")
                continue

            self.__chunks += 1
            self.__on_data(data)

            # In simulation mode, mimic the pace of a serial line
            if not cfg.PRODUCTION:
                time.sleep(0.01)

        logger.debug("read_serial_stopped", chunks=self.__chunks)

    def run(self):
        logger.debug("serial_thread_started")
        try:
            self.__read_serial()

        except Exception as e:
            logger.error("serial_thread_exception", error_type=type(e).__name__, error=str(e))
            stats_logger.increment("serial_errors")

        finally:
            self.__tty.close()
            self.__stopper.set()

        logger.debug("serial_thread_stopped")
