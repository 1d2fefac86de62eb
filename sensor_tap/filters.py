from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
import logging
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


class Polarity(Enum):
    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"


class GenericSensorConfigError(ValueError):
    """Raised for a malformed ``(name,unit,maximum,minimum)`` token."""


@dataclass(frozen=True)
class GenericSensorDef:
    name: str
    unit: str
    maximum: float
    minimum: float


@dataclass(frozen=True)
class FilterSpec:
    """Immutable sensor filter built once from the ``SENSORS`` value.

    Generic sensor names live in their own namespace and are always accepted,
    whatever the temperature polarity says.
    """

    temperature_patterns: frozenset[str] = frozenset()
    wildcard_patterns: tuple[str, ...] = ()
    polarity: Polarity = Polarity.WHITELIST
    generic_sensors: Mapping[str, GenericSensorDef] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )
    primary_sensor: str = ""
    skip_collection: bool = False

    @property
    def has_wildcards(self) -> bool:
        return bool(self.wildcard_patterns)

    @property
    def is_blacklist(self) -> bool:
        return self.polarity is Polarity.BLACKLIST

    @property
    def generic_sensor_names(self) -> list[str]:
        return sorted(self.generic_sensors)


def _split_tokens(value: str) -> list[str]:
    """Split on commas that are not inside a parenthesised group.

    An unclosed ``(`` does not swallow the remainder; the dangling token,
    from its own start, is split on plain commas instead.
    """
    tokens: list[str] = []
    current: list[str] = []
    in_group = False
    for char in value:
        if char == "(" and not in_group:
            in_group = True
        elif char == ")" and in_group:
            in_group = False
        elif char == "," and not in_group:
            tokens.append("".join(current))
            current = []
            continue
        current.append(char)
    if in_group:
        tokens.extend("".join(current).split(","))
    else:
        tokens.append("".join(current))
    return tokens


def parse_generic_sensor(token: str) -> GenericSensorDef:
    parts = token[1:-1].split(",")
    if len(parts) != 4:
        raise GenericSensorConfigError(
            f"expected 4 parts (name,unit,maximum,minimum), got {len(parts)}"
        )
    name, unit, maximum_str, minimum_str = (part.strip() for part in parts)
    if not name:
        raise GenericSensorConfigError("sensor name cannot be empty")
    if not unit:
        raise GenericSensorConfigError("sensor unit cannot be empty")
    try:
        maximum = float(maximum_str)
    except ValueError as exc:
        raise GenericSensorConfigError(f"invalid maximum value '{maximum_str}'") from exc
    try:
        minimum = float(minimum_str)
    except ValueError as exc:
        raise GenericSensorConfigError(f"invalid minimum value '{minimum_str}'") from exc
    if not minimum < maximum:
        raise GenericSensorConfigError(
            f"minimum value ({minimum}) must be less than maximum value ({maximum})"
        )
    return GenericSensorDef(name=name, unit=unit, maximum=maximum, minimum=minimum)


def parse_filter_spec(sensors: str | None, primary_sensor: str = "") -> FilterSpec:
    """Build a FilterSpec from the raw ``SENSORS`` value.

    ``None`` means the value was never set (no filtering). An empty string
    means it was set explicitly to nothing, which disables temperature
    collection. Malformed tokens are logged and skipped; this never raises.
    """
    primary_sensor = (primary_sensor or "").strip()
    if sensors is None:
        return FilterSpec(primary_sensor=primary_sensor)
    if sensors == "":
        return FilterSpec(primary_sensor=primary_sensor, skip_collection=True)

    polarity = Polarity.WHITELIST
    if sensors.startswith("-"):
        polarity = Polarity.BLACKLIST
        sensors = sensors[1:]

    patterns: dict[str, None] = {}
    generic_sensors: dict[str, GenericSensorDef] = {}
    for token in _split_tokens(sensors):
        token = token.strip()
        if not token:
            continue
        if token.startswith("(") and token.endswith(")"):
            try:
                definition = parse_generic_sensor(token)
            except GenericSensorConfigError as exc:
                logger.warning("Invalid generic sensor format %s: %s", token, exc)
                continue
            generic_sensors[definition.name] = definition
            logger.info(
                "Configured generic sensor %s (unit=%s, min=%s, max=%s)",
                definition.name,
                definition.unit,
                definition.minimum,
                definition.maximum,
            )
        else:
            patterns[token] = None

    return FilterSpec(
        temperature_patterns=frozenset(patterns),
        wildcard_patterns=tuple(p for p in patterns if "*" in p),
        polarity=polarity,
        generic_sensors=MappingProxyType(generic_sensors),
        primary_sensor=primary_sensor,
    )


def is_valid_sensor(name: str, spec: FilterSpec) -> bool:
    if name in spec.generic_sensors:
        return True
    if not spec.temperature_patterns:
        return True
    if name in spec.temperature_patterns:
        return not spec.is_blacklist
    if not spec.has_wildcards:
        return spec.is_blacklist
    for pattern in spec.wildcard_patterns:
        if fnmatchcase(name, pattern):
            return not spec.is_blacklist
    return spec.is_blacklist
