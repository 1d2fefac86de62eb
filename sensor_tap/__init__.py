"""Sensor Tap temperature and generic sensor exporter."""

from sensor_tap.config import AppConfig, SensorsConfig, load_config
from sensor_tap.collector import SensorCollector, SensorSnapshot
from sensor_tap.filters import FilterSpec, is_valid_sensor, parse_filter_spec
from sensor_tap.mqtt_client import MqttPublisher
from sensor_tap.schema import validate_payload

__all__ = [
    "AppConfig",
    "FilterSpec",
    "MqttPublisher",
    "SensorCollector",
    "SensorSnapshot",
    "SensorsConfig",
    "is_valid_sensor",
    "load_config",
    "parse_filter_spec",
    "validate_payload",
]
