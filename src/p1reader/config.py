"""
  Configuration for p1reader

  This module reads configuration from environment variables with sensible defaults.
  For Docker deployments, set environment variables instead of editing this file.

  Configure:
  - Telegram engine
  - USB P1 serial port
  - MQTT client
  - Debug level

"""

import os
from urllib.parse import urlparse


def _get_bool_env(name, default):
    """Get boolean value from environment variable."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def _get_int_env(name, default):
    """Get integer value from environment variable."""
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_mqtt_url(url):
    """
    Parse an MQTT URL and return connection parameters.

    Supported URL schemes:
    - mqtt://host:port - TCP connection (default port 1883)
    - mqtts://host:port - TCP with TLS connection (default port 8883)
    - ws://host:port/path - WebSocket connection (default port 80)
    - wss://host:port/path - WebSocket Secure connection (default port 443)

    Returns:
        tuple: (host, port, transport, use_tls, path)
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()

    scheme_config = {
        'mqtt': {'transport': 'tcp', 'default_port': 1883, 'use_tls': False},
        'mqtts': {'transport': 'tcp', 'default_port': 8883, 'use_tls': True},
        'ws': {'transport': 'websockets', 'default_port': 80, 'use_tls': False},
        'wss': {'transport': 'websockets', 'default_port': 443, 'use_tls': True},
    }

    if scheme not in scheme_config:
        raise ValueError(f"Unsupported MQTT URL scheme: {scheme}. "
                         f"Supported schemes: mqtt://, mqtts://, ws://, wss://")

    config = scheme_config[scheme]
    host = parsed.hostname or 'localhost'
    port = parsed.port or config['default_port']
    path = parsed.path if parsed.path else None

    return host, port, config['transport'], config['use_tls'], path


# [ LOGLEVELS ]
# DEBUG, INFO, WARNING, ERROR, CRITICAL
loglevel = os.environ.get("P1_LOGLEVEL", "INFO")

# [ LOG FORMAT ]
# JSON for structured JSON logs, TEXT for human-readable console logs
LOG_FORMAT = os.environ.get("P1_LOG_FORMAT", "JSON")

# [ STATISTICS LOGGING INTERVAL ]
# Interval in seconds for logging statistics (default: 300 = 5 minutes)
# Set to 0 to disable statistics logging
STATS_LOG_INTERVAL = _get_int_env("P1_STATS_LOG_INTERVAL", 300)

# [ TELEGRAM ENGINE ]
# Bytes retained while waiting for the end of a telegram. A partial telegram
# growing beyond this is dropped (buffer overflow) and the reader resynchronizes
MAX_BUFFER_SIZE = _get_int_env("P1_MAX_BUFFER_SIZE", 16384)

# DSMR 2.2 and 3.0 meters do not send a CRC; set to False for those
REQUIRE_CHECKSUM = _get_bool_env("P1_REQUIRE_CHECKSUM", True)

# [ PRODUCTION ]
# True if run in production
# False when replaying a capture file
PRODUCTION = _get_bool_env("P1_PRODUCTION", True)

# File below is used when PRODUCTION is set to False
# Capture file can be created in bash/Linux:
# tail -f /dev/ttyUSB0 > dsmr.raw (wait 10-15sec and hit ctrl-C)
SIMULATORFILE = os.environ.get("P1_SIMULATORFILE", "test/dsmr.raw")

# [ P1 USB serial ]
# DSMR 4.x/5.x: 115200 8N1
# DSMR 2.2/3.0: 9600 7E1
ser_port = os.environ.get("SERIAL_PORT", "/dev/ttyUSB0")
ser_baudrate = _get_int_env("SERIAL_BAUDRATE", 115200)
ser_bytesize = _get_int_env("SERIAL_BYTESIZE", 8)
ser_parity = os.environ.get("SERIAL_PARITY", "N").upper()
ser_timeout = _get_int_env("SERIAL_TIMEOUT", 20)

# [ MQTT Parameters ]
# MQTT_URL: Use URL-style configuration for MQTT connections
# If MQTT_URL is not set, MQTT_BROKER and MQTT_PORT are used
MQTT_URL = os.environ.get("MQTT_URL", "")

_MQTT_BROKER_DEFAULT = os.environ.get("MQTT_BROKER", "localhost")
_MQTT_PORT_DEFAULT = _get_int_env("MQTT_PORT", 1883)

if MQTT_URL:
    MQTT_BROKER, MQTT_PORT, MQTT_TRANSPORT, MQTT_USE_TLS, MQTT_WS_PATH = _parse_mqtt_url(MQTT_URL)
else:
    MQTT_BROKER = _MQTT_BROKER_DEFAULT
    MQTT_PORT = _MQTT_PORT_DEFAULT
    MQTT_TRANSPORT = "tcp"
    MQTT_USE_TLS = False
    MQTT_WS_PATH = None

MQTT_CLIENT_ID = os.environ.get("MQTT_CLIENT_ID", "p1reader")
MQTT_QOS = _get_int_env("MQTT_QOS", 1)
MQTT_USERNAME = os.environ.get("MQTT_USERNAME", "")
MQTT_PASSWORD = os.environ.get("MQTT_PASSWORD", "")

# MQTT topic prefix
MQTT_TOPIC_PREFIX = os.environ.get("MQTT_TOPIC_PREFIX", "p1")

if not PRODUCTION and MQTT_TOPIC_PREFIX == "p1":
    MQTT_TOPIC_PREFIX = "test_p1"
