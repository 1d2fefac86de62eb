"""Tests for the built-in temperature sources."""
from __future__ import annotations

from collections import namedtuple
from unittest.mock import patch

import pytest

from sensor_tap.collector import SensorSnapshot, TemperatureCollector
from sensor_tap.filters import parse_filter_spec
from sensor_tap.sources import (
    default_temperature_source,
    read_hwmon_temperatures,
    read_psutil_temperatures,
)

shwtemp = namedtuple("shwtemp", ["label", "current", "high", "critical"])


@pytest.fixture
def sys_root(tmp_path):
    """A fake /sys tree with two hwmon chips."""
    hwmon = tmp_path / "class" / "hwmon"
    coretemp = hwmon / "hwmon0"
    coretemp.mkdir(parents=True)
    (coretemp / "name").write_text("coretemp\n")
    (coretemp / "temp1_input").write_text("45000\n")
    (coretemp / "temp1_label").write_text("Package id 0\n")
    (coretemp / "temp2_input").write_text("43500\n")
    (coretemp / "temp2_label").write_text("Core 0\n")

    acpi = hwmon / "hwmon1"
    acpi.mkdir()
    (acpi / "name").write_text("acpitz\n")
    (acpi / "temp1_input").write_text("27800\n")
    (acpi / "temp2_input").write_text("garbage\n")
    return tmp_path


@pytest.mark.linux
class TestHwmonSource:
    def test_walks_hwmon_tree(self, sys_root):
        readings = read_hwmon_temperatures(sys_root)
        assert readings == [
            ("coretemp_package_id_0", 45.0),
            ("coretemp_core_0", 43.5),
            ("acpitz", 27.8),
        ]

    def test_missing_tree(self, tmp_path):
        assert read_hwmon_temperatures(tmp_path) == []

    def test_collector_uses_sys_root(self, sys_root):
        collector = TemperatureCollector(parse_filter_spec("coretemp*"), sys_sensors=str(sys_root))
        snapshot = SensorSnapshot()
        collector.collect(snapshot)
        assert snapshot.temperatures == {
            "coretemp_package_id_0": 45.0,
            "coretemp_core_0": 43.5,
        }
        assert snapshot.dashboard_temp == 45.0

    def test_collectors_keep_independent_roots(self, sys_root, tmp_path_factory):
        other_root = tmp_path_factory.mktemp("other-sys")
        first = TemperatureCollector(parse_filter_spec(None), sys_sensors=str(sys_root))
        second = TemperatureCollector(parse_filter_spec(None), sys_sensors=str(other_root))
        first_snapshot, second_snapshot = SensorSnapshot(), SensorSnapshot()
        first.collect(first_snapshot)
        second.collect(second_snapshot)
        assert len(first_snapshot.temperatures) == 3
        assert second_snapshot.temperatures is None


class TestPsutilSource:
    def test_flattens_chips(self):
        temps = {
            "coretemp": [
                shwtemp("Package id 0", 48.0, 100.0, 100.0),
                shwtemp("Core 0", 46.0, 100.0, 100.0),
            ],
            "acpitz": [shwtemp("", 27.8, None, None)],
        }
        with patch("psutil.sensors_temperatures", create=True, return_value=temps):
            readings = read_psutil_temperatures()
        assert readings == [
            ("coretemp_package_id_0", 48.0),
            ("coretemp_core_0", 46.0),
            ("acpitz", 27.8),
        ]

    def test_no_sensors(self):
        with patch("psutil.sensors_temperatures", create=True, return_value={}):
            assert read_psutil_temperatures() == []

    def test_default_source_selection(self, sys_root):
        assert default_temperature_source(None) is read_psutil_temperatures
        source = default_temperature_source(str(sys_root))
        assert source()[0] == ("coretemp_package_id_0", 45.0)
