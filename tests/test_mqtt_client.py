"""Tests for the MQTT publisher."""
from __future__ import annotations

from unittest.mock import Mock, patch

import paho.mqtt.client as mqtt
import pytest

from sensor_tap.config import MqttConfig
from sensor_tap.mqtt_client import MqttPublisher


@pytest.fixture
def mqtt_config():
    return MqttConfig(
        host="broker.local",
        port=1883,
        base_topic="telemetry/sensors",
        client_id="sensor-tap",
        username="agent",
        password="secret",
        qos=1,
        retain=False,
        tls_enabled=False,
        ca_cert=None,
        keepalive=30,
    )


@pytest.fixture
def mock_client():
    with patch("paho.mqtt.client.Client") as client_cls:
        client = client_cls.return_value
        client.publish.return_value = Mock(rc=mqtt.MQTT_ERR_SUCCESS)
        yield client


def test_setup_sets_credentials_and_will(mqtt_config, mock_client):
    MqttPublisher(mqtt_config)
    mock_client.username_pw_set.assert_called_once_with("agent", "secret")
    mock_client.will_set.assert_called_once_with(
        "telemetry/sensors/status", payload="offline", qos=1, retain=True
    )
    mock_client.tls_set.assert_not_called()


def test_connect_starts_loop(mqtt_config, mock_client):
    publisher = MqttPublisher(mqtt_config)
    publisher.connect()
    mock_client.connect.assert_called_once_with("broker.local", 1883, keepalive=30)
    mock_client.loop_start.assert_called_once()


def test_on_connect_publishes_online(mqtt_config, mock_client):
    publisher = MqttPublisher(mqtt_config)
    publisher._on_connect(mock_client, None, {}, 0, None)
    assert publisher.connected is True
    mock_client.publish.assert_called_with(
        "telemetry/sensors/status", payload="online", qos=1, retain=True
    )


def test_publish_payload(mqtt_config, mock_client):
    publisher = MqttPublisher(mqtt_config)
    publisher._on_connect(mock_client, None, {}, 0, None)
    assert publisher.publish('{"t": {}}') is True
    mock_client.publish.assert_called_with(
        "telemetry/sensors", payload='{"t": {}}', qos=1, retain=False
    )


def test_publish_failure(mqtt_config, mock_client):
    publisher = MqttPublisher(mqtt_config)
    mock_client.publish.return_value = Mock(rc=mqtt.MQTT_ERR_NO_CONN)
    assert publisher.publish("{}") is False


def test_disconnect_publishes_offline(mqtt_config, mock_client):
    publisher = MqttPublisher(mqtt_config)
    publisher._on_connect(mock_client, None, {}, 0, None)
    publisher.disconnect()
    mock_client.publish.assert_called_with(
        "telemetry/sensors/status", payload="offline", qos=1, retain=True
    )
    mock_client.loop_stop.assert_called_once()
    mock_client.disconnect.assert_called_once()
