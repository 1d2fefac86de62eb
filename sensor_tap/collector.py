from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
import logging
import platform
import socket
from typing import Any

from sensor_tap.config import SensorsConfig
from sensor_tap.filters import FilterSpec, is_valid_sensor, parse_filter_spec
from sensor_tap.logging_utils import TRACE_LEVEL
from sensor_tap.sources import (
    DEFAULT_GENERIC_SENSOR_TIMEOUT_S,
    DEFAULT_GENERIC_SENSORS_DIR,
    GenericSensorError,
    TemperatureSource,
    default_temperature_source,
    fetch_with_retry,
    read_generic_sensor,
)

SCHEMA_NAME = "sensor-snapshot"
SCHEMA_VERSION = 1

MAX_PLAUSIBLE_TEMP_C = 200.0
SCALE_BAND_C = (15.0, 95.0)


def two_decimals(value: float) -> float:
    return round(value, 2)


def scale_temperature(temp: float) -> float:
    """Scale a fractional reading (e.g. 0.45 or 0.045) to degrees Celsius.

    Tries x100 then x1000 and keeps the first that lands in a plausible
    ambient band; otherwise falls back to x100.
    """
    if temp > 1:
        return temp
    low, high = SCALE_BAND_C
    scaled_100 = temp * 100
    scaled_1000 = temp * 1000
    if low <= scaled_100 <= high:
        return scaled_100
    if low <= scaled_1000 <= high:
        return scaled_1000
    return scaled_100


def _is_valid_text(key: str | bytes) -> bool:
    try:
        if isinstance(key, bytes):
            key.decode("utf-8")
        else:
            key.encode("utf-8")
    except UnicodeError:
        return False
    return True


@dataclass
class GenericSensorReading:
    value: float
    unit: str
    minimum: float
    maximum: float

    def to_payload(self) -> dict[str, Any]:
        return {"v": self.value, "u": self.unit, "min": self.minimum, "max": self.maximum}


@dataclass
class SensorSnapshot:
    """Per-cycle result handed to the transmission layer.

    ``temperatures`` stays ``None`` until the source reports at least one
    reading, so "no data" is distinguishable from "nothing accepted".
    """

    temperatures: dict[str, float] | None = None
    generic_sensors: dict[str, GenericSensorReading] | None = None
    dashboard_temp: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"dashboard_temp": self.dashboard_temp}
        if self.temperatures is not None:
            payload["t"] = dict(self.temperatures)
        if self.generic_sensors is not None:
            payload["gs"] = {
                name: reading.to_payload()
                for name, reading in self.generic_sensors.items()
            }
        return payload


class TemperatureCollector:
    def __init__(
        self,
        spec: FilterSpec,
        sys_sensors: str | None = None,
        source: TemperatureSource | None = None,
    ) -> None:
        self.spec = spec
        self.sys_sensors = sys_sensors
        self.source = source or default_temperature_source(sys_sensors)
        self.logger = logging.getLogger(self.__class__.__name__)
        if sys_sensors:
            self.logger.info("Reading temperature sensors from %s", sys_sensors)

    def collect(self, snapshot: SensorSnapshot) -> None:
        if self.spec.skip_collection:
            self.logger.debug("Skipping temperature collection.")
            return

        snapshot.dashboard_temp = 0.0

        result = fetch_with_retry(self.source)
        if not result.ok:
            self.logger.warning("Error updating temperatures: %s", result.error)
            if snapshot.temperatures:
                snapshot.temperatures = {}
            return
        self.logger.log(TRACE_LEVEL, "Temperature readings: %s", result.readings)

        if not result.readings:
            self.logger.debug("No temperature sensors reported.")
            return

        # Duplicate keys get the source index as suffix; this is only stable
        # across cycles if the source enumerates in a consistent order.
        temperatures: dict[str, float] = {}
        snapshot.temperatures = temperatures
        check_encoding = platform.system() == "Darwin"
        for index, (key, value) in enumerate(result.readings):
            if check_encoding and not _is_valid_text(key):
                continue
            if isinstance(key, bytes):
                key = key.decode("utf-8", errors="replace")
            if value != 0 and value < 1:
                value = scale_temperature(value)
            if not 0 < value < MAX_PLAUSIBLE_TEMP_C:
                continue
            name = key if key not in temperatures else f"{key}_{index}"
            if not is_valid_sensor(name, self.spec):
                continue
            if not self.spec.primary_sensor:
                snapshot.dashboard_temp = max(snapshot.dashboard_temp, value)
            elif self.spec.primary_sensor == name:
                snapshot.dashboard_temp = value
            temperatures[name] = two_decimals(value)


class GenericSensorCollector:
    def __init__(
        self,
        spec: FilterSpec,
        directory: str | Path = DEFAULT_GENERIC_SENSORS_DIR,
        timeout_s: float | None = DEFAULT_GENERIC_SENSOR_TIMEOUT_S,
    ) -> None:
        self.spec = spec
        self.directory = Path(directory)
        self.timeout_s = timeout_s
        self.logger = logging.getLogger(self.__class__.__name__)

    def collect(self, snapshot: SensorSnapshot) -> None:
        # Readings never carry over from a previous cycle.
        snapshot.generic_sensors = None
        for name, definition in self.spec.generic_sensors.items():
            try:
                value = read_generic_sensor(self.directory, name, self.timeout_s)
            except GenericSensorError as exc:
                self.logger.warning(
                    "Failed to collect generic sensor %s: %s", name, exc
                )
                continue

            if not definition.minimum <= value <= definition.maximum:
                self.logger.warning(
                    "Generic sensor %s value %s out of range [%s, %s]",
                    name,
                    value,
                    definition.minimum,
                    definition.maximum,
                )
                continue

            if snapshot.generic_sensors is None:
                snapshot.generic_sensors = {}
            snapshot.generic_sensors[name] = GenericSensorReading(
                value=two_decimals(value),
                unit=definition.unit,
                minimum=definition.minimum,
                maximum=definition.maximum,
            )


class SensorCollector:
    """Runs one collection cycle: temperatures first, then generic sensors."""

    def __init__(
        self,
        config: SensorsConfig,
        source: TemperatureSource | None = None,
    ) -> None:
        self.config = config
        self.spec = parse_filter_spec(config.sensors, config.primary_sensor)
        self.temperatures = TemperatureCollector(
            self.spec, sys_sensors=config.sys_sensors, source=source
        )
        self.generic = GenericSensorCollector(
            self.spec,
            directory=config.generic_sensors_dir,
            timeout_s=config.generic_sensor_timeout_s,
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    def collect(self, snapshot: SensorSnapshot | None = None) -> SensorSnapshot:
        if snapshot is None:
            snapshot = SensorSnapshot()
        self.logger.debug("Collecting sensor snapshot.")
        self.temperatures.collect(snapshot)
        self.generic.collect(snapshot)
        self.logger.debug("Completed sensor snapshot collection.")
        return snapshot

    def payload(self, snapshot: SensorSnapshot) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "schema": {"name": SCHEMA_NAME, "version": SCHEMA_VERSION},
            "ts": datetime.now(timezone.utc).isoformat(),
            "host": socket.gethostname(),
        }
        payload.update(snapshot.to_payload())
        return payload
