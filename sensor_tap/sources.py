from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import subprocess
from typing import Callable

import psutil

from sensor_tap.logging_utils import TRACE_LEVEL

logger = logging.getLogger(__name__)

DEFAULT_GENERIC_SENSORS_DIR = "/generic-sensors"
DEFAULT_GENERIC_SENSOR_TIMEOUT_S = 5.0

RawReading = tuple[str, float]
TemperatureSource = Callable[[], list[RawReading]]


class SensorSourceError(RuntimeError):
    """The temperature source raised while enumerating sensors."""


class GenericSensorError(Exception):
    """Base class for per-sensor failures of file-backed generic sensors."""


class GenericSensorNotFoundError(GenericSensorError):
    pass


class GenericSensorReadError(GenericSensorError):
    pass


class GenericSensorValueError(GenericSensorError):
    pass


@dataclass
class FetchResult:
    readings: list[RawReading] = field(default_factory=list)
    error: SensorSourceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _sensor_key(chip: str, label: str | None) -> str:
    name = f"{chip}_{label}" if label else chip
    return name.replace(" ", "_").lower()


def read_psutil_temperatures() -> list[RawReading]:
    if not hasattr(psutil, "sensors_temperatures"):
        logger.debug("psutil has no temperature support on this platform.")
        return []
    temps = psutil.sensors_temperatures(fahrenheit=False)
    readings: list[RawReading] = []
    for chip, entries in (temps or {}).items():
        for entry in entries:
            if entry.current is None:
                continue
            readings.append((_sensor_key(chip, entry.label), float(entry.current)))
    return readings


def read_hwmon_temperatures(sys_root: str | Path) -> list[RawReading]:
    """Walk ``<sys_root>/class/hwmon`` the way psutil does for ``/sys``.

    Inputs are in millidegrees Celsius; unreadable inputs are skipped.
    """
    hwmon_root = Path(sys_root) / "class" / "hwmon"
    readings: list[RawReading] = []
    if not hwmon_root.is_dir():
        logger.debug("No hwmon directory under %s", sys_root)
        return readings
    for hwmon_dir in sorted(hwmon_root.iterdir()):
        chip = _read_text(hwmon_dir / "name") or hwmon_dir.name
        for input_path in sorted(hwmon_dir.glob("temp*_input")):
            raw = _read_text(input_path)
            if raw is None:
                continue
            try:
                current = float(raw) / 1000.0
            except ValueError:
                logger.debug("Skipping unparsable hwmon input %s", input_path)
                continue
            label_path = input_path.with_name(input_path.name.replace("_input", "_label"))
            readings.append((_sensor_key(chip, _read_text(label_path)), current))
    return readings


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text().strip() or None
    except (OSError, UnicodeDecodeError):
        return None


def default_temperature_source(sys_root: str | None = None) -> TemperatureSource:
    if sys_root:
        return lambda: read_hwmon_temperatures(sys_root)
    return read_psutil_temperatures


def fetch_with_retry(source: TemperatureSource, retries: int = 1) -> FetchResult:
    """Call ``source``; on a fault call it again up to ``retries`` more times."""
    error: SensorSourceError | None = None
    for attempt in range(retries + 1):
        try:
            readings = list(source() or [])
        except Exception as exc:
            error = SensorSourceError(f"{type(exc).__name__}: {exc}")
            logger.debug("Temperature source failed on attempt %s: %s", attempt + 1, error)
            continue
        return FetchResult(readings=readings)
    return FetchResult(error=error)


def _run_executable(path: Path, timeout_s: float | None) -> str:
    try:
        result = subprocess.run(
            [str(path)],
            check=False,
            text=True,
            capture_output=True,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as exc:
        raise GenericSensorReadError(f"{path} timed out after {timeout_s}s") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise GenericSensorReadError(f"failed to execute {path}: {exc}") from exc
    if result.returncode != 0:
        if result.stderr:
            logger.log(TRACE_LEVEL, "stderr: %s", result.stderr.strip())
        raise GenericSensorReadError(f"{path} exited with status {result.returncode}")
    logger.log(TRACE_LEVEL, "stdout: %s", result.stdout.strip())
    return result.stdout.strip()


def _read_first_line(path: Path) -> str:
    try:
        content = path.read_text()
    except (OSError, UnicodeDecodeError) as exc:
        raise GenericSensorReadError(f"failed to read sensor file {path}: {exc}") from exc
    lines = content.strip().splitlines()
    return lines[0].strip() if lines else ""


def read_generic_sensor(
    directory: str | Path,
    name: str,
    timeout_s: float | None = DEFAULT_GENERIC_SENSOR_TIMEOUT_S,
) -> float:
    """Read the current value of the generic sensor ``name``.

    The entry ``<directory>/<name>`` may be a plain file, a symlink to a live
    value (a hwmon input, for example) or an executable whose stdout is the
    value. Raises a GenericSensorError subclass on any failure.
    """
    path = Path(directory) / name
    if Path(name).name != name or not path.exists():
        raise GenericSensorNotFoundError(
            f"sensor file not found at {path} - create a file or symlink with the sensor value"
        )

    if path.is_file() and os.access(path, os.X_OK):
        raw = _run_executable(path, timeout_s)
    else:
        raw = _read_first_line(path)

    try:
        return float(raw)
    except ValueError as exc:
        raise GenericSensorValueError(
            f"failed to parse sensor value '{raw}' from {path}"
        ) from exc
