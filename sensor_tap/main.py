from __future__ import annotations

import argparse
import json
import logging
import time

from sensor_tap.collector import SensorCollector
from sensor_tap.config import load_config
from sensor_tap.logging_utils import configure_logging, resolve_log_level
from sensor_tap.mqtt_client import MqttPublisher
from sensor_tap.schema import validate_payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sensor Tap temperature and generic sensor exporter")
    parser.add_argument(
        "--config",
        default="config/example.cfg",
        help="Path to CFG configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log payloads without publishing to MQTT",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect and publish a single snapshot, then exit",
    )
    parser.add_argument(
        "--dump-json",
        help="Write the JSON payload to a file (overwrites on each loop)",
    )
    return parser


def run_cycle(
    collector: SensorCollector,
    publisher: MqttPublisher | None,
    dump_json: str | None,
    pretty_print: bool,
) -> None:
    logger = logging.getLogger("sensor_tap")
    payload = collector.payload(collector.collect())
    schema_errors = validate_payload(payload)
    if schema_errors:
        logger.warning("Schema validation failed with %s errors.", len(schema_errors))
        logger.debug("Schema errors: %s", schema_errors)
    else:
        logger.debug("Schema validation passed.")
    payload_json = json.dumps(payload, indent=2) if pretty_print else json.dumps(payload)
    if dump_json:
        with open(dump_json, "w", encoding="utf-8") as handle:
            handle.write(payload_json)
    if publisher is None:
        logger.debug("Payload: %s", payload_json)
    else:
        publisher.publish(payload_json)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("sensor_tap")
    config = load_config(args.config)
    pretty_print = level <= logging.DEBUG

    collector = SensorCollector(config.sensors)
    publisher = None if args.dry_run else MqttPublisher(config.mqtt)
    if publisher is not None:
        publisher.connect()
    else:
        logger.info("Dry run enabled; skipping MQTT publish.")

    if args.once:
        run_cycle(collector, publisher, args.dump_json, pretty_print)
        logger.info("Single-run mode enabled; exiting after initial payload.")
        if publisher is not None:
            publisher.disconnect()
        return

    interval = max(1, config.publish.interval_s)
    logger.info("Sensor Tap started. Publishing every %s seconds.", interval)

    try:
        while True:
            run_cycle(collector, publisher, args.dump_json, pretty_print)
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("Sensor Tap stopped.")
    finally:
        if publisher is not None:
            publisher.disconnect()


if __name__ == "__main__":
    main()
