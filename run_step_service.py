#!/usr/bin/env python3
"""
Step Counter Service - Entry Point
==================================

Runs one stepbatch step counter: it registers a step counter or step
detector listener on a sensor device (optionally batched for 5 or 10
seconds), counts steps, publishes the counting card after every change and
takes its orders from the MQTT control plane. The session is saved on
shutdown and picked up again on the next start.

Usage:
    python run_step_service.py --config config/step_service.yaml

Wiring:
    MQTTControlPlane   commands in, retained status out
    StepCountPublisher counting card (retained)
    MQTTSensorBackend  registration requests out, sensor events in
    StateStore         session file between runs
    StepCounterService ties the four together

SIGINT and SIGTERM both stop the service cleanly (the session is saved).
Console and file logs are INFO; the MQTT clients log JSON lines.
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from stepbatch_service import (
    MQTTSensorBackend,
    ServiceConfig,
    StateStore,
    StepCounterService,
)
from stepbatch_control import MQTTControlPlane
from stepbatch_mqtt import RegistrationPublisher, StepCountPublisher, create_logger

DEFAULT_LOG_FILE = Path('logs/step_service.log')


def setup_logging(log_file: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """Console logging, plus a log file when one is given."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)-7s [%(name)s] %(message)s',
        handlers=handlers,
    )
    return logging.getLogger('stepbatch.app')


class StepServiceApp:
    """
    Process wrapper around StepCounterService.

    setup() builds every MQTT client from the config, run() blocks until a
    signal arrives, shutdown() may be reached twice (signal, then the
    exception path) and only acts once.
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.logger = setup_logging(log_file)

        self.config: Optional[ServiceConfig] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.service: Optional[StepCounterService] = None

        self._stopping = False

    def _broker_kwargs(self) -> Dict[str, Any]:
        mqtt = self.config.mqtt_config
        return {
            'broker_host': mqtt.broker,
            'broker_port': mqtt.port,
            'username': mqtt.username,
            'password': mqtt.password,
        }

    def setup(self):
        self.config = ServiceConfig.from_yaml(self.config_path)
        mqtt = self.config.mqtt_config
        service_id = self.config.service_id
        self.logger.info(f"🚀 Step counter '{service_id}' (config: {self.config_path})")

        publisher_logger = create_logger(component="mqtt_publisher")
        sensor_logger = create_logger(component="sensor_subscriber").bind(
            device_id=self.config.sensor_config.device_id
        )

        self.control_plane = MQTTControlPlane(
            command_topic=self.config.topic(mqtt.command_topic),
            status_topic=self.config.topic(mqtt.status_topic),
            client_id=f"step_service_{service_id}",
            **self._broker_kwargs(),
        )

        step_publisher = StepCountPublisher(
            topic=self.config.topic(mqtt.step_count_topic),
            logger=publisher_logger,
            client_id=f"publisher_steps_{service_id}",
            qos=mqtt.qos,
            **self._broker_kwargs(),
        )

        sensor_backend = MQTTSensorBackend(
            registration_publisher=RegistrationPublisher(
                topic=self.config.topic(mqtt.registration_topic),
                logger=publisher_logger,
                client_id=f"publisher_registration_{service_id}",
                **self._broker_kwargs(),
            ),
            sensor_event_topic=self.config.topic(mqtt.sensor_event_topic),
            logger=sensor_logger,
            client_id=f"subscriber_sensor_{service_id}",
            qos=mqtt.qos,
            supports_batching=self.config.sensor_config.supports_batching,
            **self._broker_kwargs(),
        )

        for name in ('command_topic', 'status_topic', 'step_count_topic',
                     'registration_topic', 'sensor_event_topic'):
            self.logger.info(f"  {name}: {self.config.topic(getattr(mqtt, name))}")

        self.service = StepCounterService(
            config=self.config,
            control_plane=self.control_plane,
            step_publisher=step_publisher,
            sensor_backend=sensor_backend,
            state_store=StateStore(self.config.state_file),
        )
        self.service.setup()
        self.logger.info("✅ Components ready")

    def run(self):
        """Start the service and block until it stops."""
        if self.service is None:
            raise RuntimeError("setup() must run before run()")

        signal.signal(signal.SIGTERM, self._on_signal)
        signal.signal(signal.SIGINT, self._on_signal)

        try:
            self.service.start()
            self.logger.info("▶️  Counting service running, Ctrl+C to stop")
            self.service.wait()
        except KeyboardInterrupt:
            self.shutdown()
        except Exception as e:
            self.logger.error(f"❌ Service failed: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        """Stop the service (saving its session) or at least the control plane."""
        if self._stopping:
            return
        self._stopping = True
        self.logger.info("🛑 Stopping step counter")

        try:
            if self.service is not None and self.service.is_running():
                self.service.stop()
            elif self.control_plane is not None:
                self.control_plane.disconnect()
        except Exception as e:
            self.logger.error(f"❌ Unclean shutdown: {e}", exc_info=True)
            return

        self.logger.info("👋 Stopped")

    def _on_signal(self, signum, frame):
        self.logger.info(f"⚠️  {signal.Signals(signum).name} received")
        self.shutdown()
        sys.exit(0)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Stepbatch step counter service (batched step sensors over MQTT)"
    )
    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Service configuration YAML'
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        default=DEFAULT_LOG_FILE,
        help=f'Log file (default: {DEFAULT_LOG_FILE})'
    )
    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Log to the console only'
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if not args.config.exists():
        print(f"❌ Config not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = StepServiceApp(
        config_path=args.config,
        log_file=None if args.no_log_file else args.log_file
    )

    try:
        app.setup()
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Cannot set up service: {e}", file=sys.stderr)
        sys.exit(1)

    app.run()


if __name__ == '__main__':
    main()
