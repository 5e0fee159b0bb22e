#!/usr/bin/env python3

"""
DESCRIPTION
  Read a DSMR (Dutch Smart Meter Requirements) smart energy meter via P1 USB cable
  and publish every decoded telegram to MQTT

Threads:
  - P1 USB serial port reader: pushes raw byte chunks on a queue
  - main: single consumer of the queue; feeds the telegram engine
  - MQTT client


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

import queue
import signal
import socket
import sys
import threading
import time

from p1reader import __version__
from p1reader import config as cfg
from p1reader import mqtt
from p1reader import p1_serial as p1
from p1reader.engine import TelegramEngine
from p1reader.events import DecodeWarning, FrameErrorEvent, TelegramReady
from p1reader.log import logger, stats_logger

t_threads_stopper = threading.Event()
t_mqtt_stopper = threading.Event()


def _single_instance():
    """Ensure that only one instance is started (linux only)."""
    if sys.platform != "linux":
        return None
    lockfile = "\0p1reader_lockfile"
    try:
        # Create an abstract socket, by prefixing it with null.
        s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        s.bind(lockfile)
    except OSError as err:
        logger.error("instance_already_running", lockfile=lockfile, error=str(err))
        sys.exit(1)
    return s


def exit_gracefully(signal, stackframe):
    """Exit gracefully on signal.

    Args:
        signal: the associated signalnumber
        stackframe: current stack frame
    """
    logger.debug("signal_received", signal=signal)
    t_threads_stopper.set()
    logger.info("graceful_shutdown_initiated")


def pump(engine, chunks, stopper, on_event):
    """
    Feed queued byte chunks to the engine until the byte source stops
    and the queue is drained.

    Args:
      :param TelegramEngine engine:
      :param queue.Queue chunks: bytes from the serial thread
      :param threading.Event() stopper: set when the byte source closed
      :param callable on_event: called with every engine event
    """
    while not (stopper.is_set() and chunks.empty()):
        try:
            data = chunks.get(timeout=0.5)
        except queue.Empty:
            continue
        for event in engine.feed(data):
            on_event(event)


def main():
    """Main entry point for the application."""
    lock = _single_instance()
    logger.info("application_started", version=__version__)
    signal.signal(signal.SIGINT, exit_gracefully)
    signal.signal(signal.SIGTERM, exit_gracefully)

    stats_logger.start()
    logger.info(
        "configuration_loaded",
        serial_port=cfg.ser_port,
        max_buffer_size=cfg.MAX_BUFFER_SIZE,
        require_checksum=cfg.REQUIRE_CHECKSUM,
        stats_interval=cfg.STATS_LOG_INTERVAL,
    )

    publisher = mqtt.ReadingPublisher(
        mqtt_broker=cfg.MQTT_BROKER,
        mqtt_stopper=t_mqtt_stopper,
        mqtt_port=cfg.MQTT_PORT,
        mqtt_client_id=cfg.MQTT_CLIENT_ID,
        mqtt_qos=cfg.MQTT_QOS,
        mqtt_protocol=mqtt.MQTTv5,
        topic_prefix=cfg.MQTT_TOPIC_PREFIX,
        username=cfg.MQTT_USERNAME,
        password=cfg.MQTT_PASSWORD,
        transport=cfg.MQTT_TRANSPORT,
        use_tls=cfg.MQTT_USE_TLS,
        ws_path=cfg.MQTT_WS_PATH,
    )
    publisher.will_set("offline")

    engine = TelegramEngine(
        max_buffer_size=cfg.MAX_BUFFER_SIZE, require_checksum=cfg.REQUIRE_CHECKSUM
    )
    chunks = queue.Queue()
    try:
        t_serial = p1.TaskReadSerial(chunks.put, t_threads_stopper)
    except ValueError:
        stats_logger.stop()
        return 1

    def on_event(event):
        if isinstance(event, TelegramReady):
            logger.debug("reading", timestamp=str(event.reading.timestamp))
        elif isinstance(event, FrameErrorEvent):
            logger.info("telegram_dropped", reason=event.reason)
        elif isinstance(event, DecodeWarning):
            logger.debug("line_skipped", line=event.line, reason=event.reason)
        publisher.publish_event(event)

    publisher.start()
    publisher.set_status("online")
    publisher.do_publish(publisher.topic("sw-version"), f"p1reader={__version__}", retain=True)
    t_serial.start()

    # blocks till the serial thread stops receiving bytes or a signal arrives
    pump(engine, chunks, t_threads_stopper, on_event)
    t_serial.join(timeout=cfg.ser_timeout + 1)
    logger.debug("serial_thread_exited")

    publisher.set_status("offline")
    # Use a simple delay of 1sec before closing mqtt
    time.sleep(1)
    t_mqtt_stopper.set()
    publisher.join(timeout=5)

    stats_logger.stop()
    if lock is not None:
        lock.close()
    logger.info("application_exiting")
    return 0


# ------------------------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------------------------
if __name__ == "__main__":
    sys.exit(main())
