"""MQTT bus package"""

from .client import MQTTClient
from .handlers import IngestionHandlers

__all__ = ['MQTTClient', 'IngestionHandlers']
