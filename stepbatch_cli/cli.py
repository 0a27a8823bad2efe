"""
Stepbatch CLI - Main entry point.

Provides command-line interface for sending MQTT commands to the step counter
service, plus helpers that publish sensor events as a device would.
"""

import argparse
import logging
import yaml
import sys
from pathlib import Path
from typing import Dict, Any, List

from stepbatch_core import BATCH_PRESETS
from stepbatch_mqtt import SensorEventPublisher, create_logger
from stepbatch_mqtt.schemas import SensorEventMessage, SensorType, now_ns
from stepbatch_service.config import MQTTConfig

from .mqtt_client import MQTTCommandClient


def load_yaml_config(config_path: str) -> Dict[str, Any]:
    """
    Load YAML command file.

    Args:
        config_path: Path to YAML file

    Returns:
        Dictionary with command configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML is invalid or has no 'command' key
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(config, dict) or "command" not in config:
        raise ValueError(f"{config_path} must be a mapping with a 'command' key")

    return config


def build_register_command(command: str, batching: str) -> Dict[str, Any]:
    """Build a register_counter / register_detector command."""
    if batching not in BATCH_PRESETS:
        raise ValueError(
            f"Unknown batching preset '{batching}' "
            f"(expected one of {sorted(BATCH_PRESETS)})"
        )
    return {"command": command, "batching": batching}


def build_sensor_event(
    sensor_type: SensorType,
    values: List[float],
    device_id: str,
) -> SensorEventMessage:
    """Build a sensor event stamped with the current time."""
    return SensorEventMessage(
        sensor_type=sensor_type,
        values=values,
        timestamp_ns=now_ns(),
        device_id=device_id,
    )


def send_command(
    command: Dict[str, Any],
    service_id: str = "walker_01",
    broker: str = "localhost",
    port: int = 1883
) -> None:
    """
    Send command to the step counter service via MQTT.

    Args:
        command: Command dictionary
        service_id: Target service ID
        broker: MQTT broker host
        port: MQTT broker port
    """
    topic = MQTTConfig.command_topic.format(service_id=service_id)

    client = MQTTCommandClient(broker=broker, port=port)
    client.send_command(topic, command, qos=1)


def send_sensor_event(
    event: SensorEventMessage,
    broker: str = "localhost",
    port: int = 1883
) -> None:
    """
    Publish a sensor event to the device's event topic.

    Raises:
        ConnectionError: If unable to connect to MQTT broker
        RuntimeError: If the broker did not accept the event
    """
    topic = MQTTConfig.sensor_event_topic.format(device_id=event.device_id)

    publisher = SensorEventPublisher(
        broker_host=broker,
        broker_port=port,
        topic=topic,
        logger=create_logger(component="cli", level=logging.WARNING),
        client_id=f"stepbatch_cli_{event.device_id}",
    )
    if not publisher.connect(timeout=5.0):
        raise ConnectionError(
            f"Unable to connect to MQTT broker at {broker}:{port}. "
            "Is mosquitto running?"
        )

    try:
        if not publisher.publish_event(event):
            raise RuntimeError(f"Failed to publish event to {topic}")
    finally:
        publisher.disconnect()

    print(f"✅ Event sent: {event.sensor_type.value} {event.values}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Stepbatch CLI - Send MQTT commands to the step counter service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Count with the step counter, batching up to 5 seconds
  stepbatch-cli register-counter --batching 5s

  # Count with the step detector, continuous delivery
  stepbatch-cli register-detector

  # Raw command from YAML
  stepbatch-cli send config/commands/register_counter_10s.yaml

  # Simple commands (no arguments)
  stepbatch-cli unregister
  stepbatch-cli status
  stepbatch-cli help

  # Act as the sensor device
  stepbatch-cli emit-counter 1042
  stepbatch-cli emit-detector --steps 3
"""
    )

    # Global arguments
    parser.add_argument(
        "--service-id",
        default="walker_01",
        help="Target service ID (default: walker_01)"
    )
    parser.add_argument(
        "--device-id",
        default="default",
        help="Sensor device ID for emit-* commands (default: default)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    presets = sorted(BATCH_PRESETS, key=BATCH_PRESETS.get)

    register_counter = subparsers.add_parser(
        'register-counter', help='Count steps with the step counter sensor'
    )
    register_counter.add_argument(
        '--batching', choices=presets, default='0s',
        help='Max batch delay preset (default: 0s)'
    )

    register_detector = subparsers.add_parser(
        'register-detector', help='Count steps with the step detector sensor'
    )
    register_detector.add_argument(
        '--batching', choices=presets, default='0s',
        help='Max batch delay preset (default: 0s)'
    )

    send = subparsers.add_parser('send', help='Send raw command from YAML file')
    send.add_argument('config', help='Path to command YAML')

    emit_counter = subparsers.add_parser(
        'emit-counter', help='Publish a step counter event (cumulative value)'
    )
    emit_counter.add_argument('value', type=int, help='Cumulative steps since boot')

    emit_detector = subparsers.add_parser(
        'emit-detector', help='Publish a step detector event'
    )
    emit_detector.add_argument(
        '--steps', type=int, default=1, help='Number of steps in the event (default: 1)'
    )

    # Simple commands (no arguments)
    subparsers.add_parser('unregister', help='Unregister the sensor and reset the count')
    subparsers.add_parser('status', help='Query current session')
    subparsers.add_parser('help', help='List service commands')

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    try:
        if args.command == 'register-counter':
            command = build_register_command('register_counter', args.batching)
            send_command(command, args.service_id, args.broker, args.port)

        elif args.command == 'register-detector':
            command = build_register_command('register_detector', args.batching)
            send_command(command, args.service_id, args.broker, args.port)

        elif args.command == 'send':
            config = load_yaml_config(args.config)
            send_command(config, args.service_id, args.broker, args.port)

        elif args.command == 'emit-counter':
            event = build_sensor_event(
                SensorType.STEP_COUNTER, [float(args.value)], args.device_id
            )
            send_sensor_event(event, args.broker, args.port)

        elif args.command == 'emit-detector':
            if args.steps < 1:
                raise ValueError("--steps must be >= 1")
            event = build_sensor_event(
                SensorType.STEP_DETECTOR, [1.0] * args.steps, args.device_id
            )
            send_sensor_event(event, args.broker, args.port)

        elif args.command in ['unregister', 'status', 'help']:
            command = {'command': args.command}
            send_command(command, args.service_id, args.broker, args.port)

    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
