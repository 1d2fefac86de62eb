from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping
import configparser
import os

from sensor_tap.sources import DEFAULT_GENERIC_SENSOR_TIMEOUT_S, DEFAULT_GENERIC_SENSORS_DIR

SENSORS_ENV = "SENSORS"
PRIMARY_SENSOR_ENV = "PRIMARY_SENSOR"
SYS_SENSORS_ENV = "SYS_SENSORS"
GENERIC_SENSORS_DIR_ENV = "GENERIC_SENSORS_DIR"


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int
    base_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int


@dataclass(frozen=True)
class PublishConfig:
    interval_s: int


@dataclass(frozen=True)
class SensorsConfig:
    # None: never configured (no filtering). "": explicitly empty (skip temperatures).
    sensors: str | None = None
    primary_sensor: str = ""
    sys_sensors: str | None = None
    generic_sensors_dir: str = DEFAULT_GENERIC_SENSORS_DIR
    generic_sensor_timeout_s: float | None = DEFAULT_GENERIC_SENSOR_TIMEOUT_S


@dataclass(frozen=True)
class AppConfig:
    mqtt: MqttConfig
    publish: PublishConfig
    sensors: SensorsConfig


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_timeout(value: float | None) -> float | None:
    if value is None or value <= 0:
        return None
    return value


def apply_env_overrides(
    sensors: SensorsConfig, environ: Mapping[str, str] | None = None
) -> SensorsConfig:
    """Let the process environment override the ``[sensors]`` section.

    ``SENSORS`` is taken verbatim, so setting it to an empty string still
    disables temperature collection.
    """
    if environ is None:
        environ = os.environ
    overrides: dict[str, object] = {}
    if SENSORS_ENV in environ:
        overrides["sensors"] = environ[SENSORS_ENV]
    if PRIMARY_SENSOR_ENV in environ:
        overrides["primary_sensor"] = environ[PRIMARY_SENSOR_ENV].strip()
    if SYS_SENSORS_ENV in environ:
        overrides["sys_sensors"] = _get_optional(environ[SYS_SENSORS_ENV])
    generic_dir = _get_optional(environ.get(GENERIC_SENSORS_DIR_ENV))
    if generic_dir:
        overrides["generic_sensors_dir"] = generic_dir
    return replace(sensors, **overrides) if overrides else sensors


def load_sensors_config(parser: configparser.ConfigParser) -> SensorsConfig:
    return SensorsConfig(
        sensors=parser.get("sensors", "sensors", fallback=None),
        primary_sensor=parser.get("sensors", "primary_sensor", fallback="").strip(),
        sys_sensors=_get_optional(parser.get("sensors", "sys_sensors", fallback=None)),
        generic_sensors_dir=parser.get(
            "sensors", "generic_sensors_dir", fallback=DEFAULT_GENERIC_SENSORS_DIR
        ),
        generic_sensor_timeout_s=_get_timeout(
            parser.getfloat(
                "sensors",
                "generic_sensor_timeout_s",
                fallback=DEFAULT_GENERIC_SENSOR_TIMEOUT_S,
            )
        ),
    )


def load_config(
    path: str | Path, environ: Mapping[str, str] | None = None
) -> AppConfig:
    # Interpolation off: sensor patterns and units may contain "%".
    parser = configparser.ConfigParser(interpolation=None)
    read_files = parser.read(path)
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    mqtt = MqttConfig(
        host=parser.get("mqtt", "host", fallback="localhost"),
        port=parser.getint("mqtt", "port", fallback=1883),
        base_topic=parser.get("mqtt", "base_topic", fallback="telemetry/sensors"),
        client_id=parser.get("mqtt", "client_id", fallback="sensor-tap"),
        username=_get_optional(parser.get("mqtt", "username", fallback=None)),
        password=_get_optional(parser.get("mqtt", "password", fallback=None)),
        qos=parser.getint("mqtt", "qos", fallback=0),
        retain=parser.getboolean("mqtt", "retain", fallback=False),
        tls_enabled=parser.getboolean("mqtt", "tls", fallback=False),
        ca_cert=_get_optional(parser.get("mqtt", "ca_cert", fallback=None)),
        keepalive=parser.getint("mqtt", "keepalive", fallback=60),
    )

    publish = PublishConfig(
        interval_s=parser.getint("publish", "interval_s", fallback=15),
    )

    sensors = apply_env_overrides(load_sensors_config(parser), environ)

    return AppConfig(mqtt=mqtt, publish=publish, sensors=sensors)
