from paho.mqtt.client import MQTTv5, MQTTv311

from .mqtt import ReadingPublisher as ReadingPublisher

__all__ = ["ReadingPublisher", "MQTTv311", "MQTTv5"]
