"""
Publish P1 engine events to an MQTT broker using paho-mqtt

Topics (prefix configurable, default "p1"):
  <prefix>/reading   decoded reading as JSON (camelCase keys)
  <prefix>/raw       raw telegram text
  <prefix>/error     frame errors as JSON {"reason", "message"}
  <prefix>/status    "online" / "offline" (retained, last will)

https://github.com/eclipse/paho.mqtt.python/blob/master/src/paho/mqtt/client.py
http://www.steves-internet-guide.com/mqttv5/

LIMITATIONS
* Publishing only; no subscriptions
* Clean_session and clean-start partially implemented (not relevant for publishing clients)


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

import json
import random
import ssl
import string
import threading
import time

import paho.mqtt as paho_mqtt
import paho.mqtt.client as mqtt_client
from packaging.version import Version

from p1reader.events import FrameErrorEvent, TelegramRaw, TelegramReady
from p1reader.log import logger, stats_logger


class ReadingPublisher(threading.Thread):
    def __init__(
        self,
        mqtt_broker,
        mqtt_stopper,
        mqtt_port=1883,
        mqtt_client_id=None,
        mqtt_qos=1,
        mqtt_protocol=mqtt_client.MQTTv5,
        topic_prefix="p1",
        username="",
        password="",
        transport="tcp",
        use_tls=False,
        ws_path=None,
    ):
        """
        Args:
          :param str mqtt_broker: ip or dns
          :param threading.Event() mqtt_stopper: indicate to stop the mqtt thread; typically as last thread
          in main loop to flush out all mqtt messages
          :param int mqtt_port:
          :param str mqtt_client_id:
          :param int mqtt_qos: MQTT QoS 0,1,2 for publish
          :param int mqtt_protocol: MQTT protocol version
          :param str topic_prefix: first level of all published topics
          :param str username:
          :param str password:
          :param str transport: "tcp" or "websockets"
          :param bool use_tls: Enable TLS/SSL for the connection
          :param str ws_path: WebSocket path (only used when transport="websockets")

        Returns:
          None
        """

        logger.info("mqtt_client_init", paho_version=paho_mqtt.__version__)
        super().__init__(name="p1-mqtt")

        self.__mqtt_broker = mqtt_broker
        self.__mqtt_stopper = mqtt_stopper
        self.__mqtt_port = mqtt_port
        self.__qos = mqtt_qos
        self.__prefix = topic_prefix.rstrip("/")

        # Generate random client id if not specified
        if mqtt_client_id is None:
            mqtt_client_id = "p1_" + "".join(
                random.choice(string.ascii_lowercase) for _i in range(10)
            )

        # Demote to v311 if installed paho-mqtt does not support MQTT v5
        if mqtt_protocol == mqtt_client.MQTTv5 and Version(paho_mqtt.__version__) < Version("1.5.1"):
            logger.warning(
                "mqtt_version_downgrade",
                paho_version=paho_mqtt.__version__,
                from_version="MQTTv5",
                to_version="MQTTv311",
            )
            mqtt_protocol = mqtt_client.MQTTv311
        self.__mqtt_protocol = mqtt_protocol

        self.__mqtt = mqtt_client.Client(
            callback_api_version=mqtt_client.CallbackAPIVersion.VERSION2,
            client_id=mqtt_client_id,
            protocol=mqtt_protocol,
            transport=transport,
        )
        logger.info(
            "mqtt_client_configured", client_id=mqtt_client_id, transport=transport, tls=use_tls
        )

        if use_tls:
            self.__mqtt.tls_set(cert_reqs=ssl.CERT_REQUIRED)
            logger.info("mqtt_tls_enabled")

        if transport == "websockets" and ws_path:
            self.__mqtt.ws_set_options(path=ws_path)
            logger.info("mqtt_websocket_configured", path=ws_path)

        self.__mqtt.username_pw_set(username, password)
        self.__mqtt.on_connect = self.__on_connect
        self.__mqtt.on_disconnect = self.__on_disconnect

        self.__keepalive = 600
        self.__connected_flag = False
        self.__mqtt_counter = 0
        self.__status = None

    @property
    def connected(self):
        return self.__connected_flag

    @property
    def published(self):
        return self.__mqtt_counter

    def topic(self, name):
        return f"{self.__prefix}/{name}"

    def __on_connect(self, _client, _userdata, _connect_flags, reason_code, _properties=None):
        """
        Callback: when the client receives a CONNACK response from the broker.
        Re-publishes the status, which is lost when the broker restarts.
        """
        if reason_code.is_failure:
            logger.error("mqtt_connection_failed", reason_code=str(reason_code))
            stats_logger.increment("mqtt_errors")
            self.__connected_flag = False
            return

        logger.debug("mqtt_connected", reason_code=str(reason_code))
        self.__connected_flag = True
        if self.__status is not None:
            self.do_publish(self.topic("status"), self.__status, retain=True)

    def __on_disconnect(self, _client, _userdata, _disconnect_flags, reason_code, _properties=None):
        if reason_code.is_failure:
            logger.warning("mqtt_unexpected_disconnect", reason_code=str(reason_code))
            stats_logger.increment("mqtt_errors")
        else:
            logger.info("mqtt_expected_disconnect", reason_code=str(reason_code))
        self.__connected_flag = False

    def set_status(self, payload):
        """
        Publish "<prefix>/status"; the status is stored and resent on a reconnect.

        :param str payload: "online" or "offline"
        """
        logger.debug("set_status", payload=payload)
        self.__status = payload
        self.do_publish(self.topic("status"), payload, retain=True)

    def will_set(self, payload="offline"):
        """
        Set last will/testament on the status topic
        Call before start()
        """
        if self.is_alive():
            logger.warning(
                "will_set_after_run", message="Last Will/testament is set after run() is called"
            )
        self.__mqtt.will_set(self.topic("status"), payload, self.__qos, retain=True)

    def do_publish(self, topic, message, retain=False):
        """
        Publish topic & message to MQTT broker

        Args:
          :param str topic: MQTT topic
          :param str message: MQTT message
          :param bool retain: retained flag MQTT message

        Returns:
          None
        """
        logger.debug("do_publish", topic=topic)

        try:
            mqttmessageinfo = self.__mqtt.publish(
                topic=topic, payload=message, qos=self.__qos, retain=retain
            )
            self.__mqtt_counter += 1
            stats_logger.increment("mqtt_messages_sent")

            if mqttmessageinfo.rc != mqtt_client.MQTT_ERR_SUCCESS:
                logger.warning(
                    "mqtt_publish_failed",
                    rc=mqttmessageinfo.rc,
                    error=mqtt_client.error_string(mqttmessageinfo.rc),
                )
                stats_logger.increment("mqtt_errors")
        except ValueError as e:
            logger.warning("mqtt_publish_error", error=str(e))
            stats_logger.increment("mqtt_errors")

    def publish_event(self, event):
        """
        Publish one engine event. Decode warnings are only logged.

        :param event: TelegramReady, TelegramRaw, FrameErrorEvent or DecodeWarning
        """
        if isinstance(event, TelegramReady):
            self.do_publish(self.topic("reading"), json.dumps(event.reading.as_dict()))
        elif isinstance(event, TelegramRaw):
            self.do_publish(self.topic("raw"), event.raw)
        elif isinstance(event, FrameErrorEvent):
            self.do_publish(
                self.topic("error"), json.dumps({"reason": event.reason, "message": event.message})
            )

    def run(self):
        logger.info("mqtt_thread_starting", broker=self.__mqtt_broker)

        try:
            self.__mqtt.max_queued_messages_set(0)
            self.__mqtt.reconnect_delay_set(min_delay=1, max_delay=360)

            if self.__mqtt_protocol == mqtt_client.MQTTv5:
                self.__mqtt.connect_async(
                    host=self.__mqtt_broker,
                    port=self.__mqtt_port,
                    keepalive=self.__keepalive,
                    clean_start=mqtt_client.MQTT_CLEAN_START_FIRST_ONLY,
                )
            else:
                self.__mqtt.connect_async(
                    host=self.__mqtt_broker, port=self.__mqtt_port, keepalive=self.__keepalive
                )

        except Exception as e:
            logger.exception("mqtt_connect_exception", error=str(e))
            stats_logger.increment("mqtt_errors")
            self.__mqtt_stopper.set()
            return

        logger.info("mqtt_loop_started")
        self.__mqtt.loop_start()

        # paho reconnects by itself; just wait for the stop signal
        while not self.__mqtt_stopper.is_set():
            time.sleep(0.1)

        logger.debug("mqtt_client_closing")
        self.__mqtt.loop_stop()
        self.__mqtt.disconnect()

        logger.info("mqtt_client_stopped", messages_published=self.__mqtt_counter)
