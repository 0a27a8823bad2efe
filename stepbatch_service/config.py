"""
Configuration schema for the step counter service.

Defines MQTT settings, the sensor device description and where the session
state is saved between runs.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml

from stepbatch_core.constants import EVENT_QUEUE_LENGTH


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0  # Data plane QoS (fire-and-forget)

    sensor_event_topic: str = "stepbatch/data/sensor_events/{device_id}"
    registration_topic: str = "stepbatch/data/registration/{device_id}"
    step_count_topic: str = "stepbatch/data/steps/{service_id}"
    command_topic: str = "stepbatch/control/{service_id}/commands"
    status_topic: str = "stepbatch/control/{service_id}/status"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )


@dataclass(frozen=True)
class SensorConfig:
    """
    Step sensor device description.

    supports_batching mirrors the hardware capability: when False, any
    registration with a non-zero max batch delay falls back to continuous
    delivery.
    """

    device_id: str = "default"
    supports_batching: bool = True

    def __post_init__(self):
        if not self.device_id:
            raise ValueError("device_id cannot be empty")


@dataclass(frozen=True)
class ServiceConfig:
    """
    Main configuration for the step counter service.

    Loaded from YAML and validated at startup. Immutable after construction.
    """

    service_id: str
    state_file: Path = Path("./state/session.yaml")
    window_size: int = EVENT_QUEUE_LENGTH

    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)
    sensor_config: SensorConfig = field(default_factory=SensorConfig)

    def __post_init__(self):
        """Validate service configuration."""
        if not self.service_id:
            raise ValueError("service_id cannot be empty")

        if not 1 <= self.window_size <= 100:
            raise ValueError(
                f"window_size must be in [1, 100], got {self.window_size}"
            )

        if self.state_file.exists() and self.state_file.is_dir():
            raise ValueError(
                f"state_file must be a file, got directory: {self.state_file}"
            )

    def topic(self, template: str) -> str:
        """Fill {service_id} / {device_id} placeholders of a topic template."""
        return template.format(
            service_id=self.service_id,
            device_id=self.sensor_config.device_id,
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "ServiceConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            service_id: "walker_01"
            state_file: "./state/walker_01.yaml"
            window_size: 10

            mqtt_config:
              broker: "localhost"
              port: 1883
              qos: 0

            sensor_config:
              device_id: "phone_01"
              supports_batching: true
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if "service_id" not in data:
            raise ValueError(f"Missing required field 'service_id' in {yaml_path}")

        mqtt_config = MQTTConfig(**(data.get("mqtt_config") or {}))
        sensor_config = SensorConfig(**(data.get("sensor_config") or {}))

        return cls(
            service_id=str(data["service_id"]),
            state_file=Path(data.get("state_file", "./state/session.yaml")),
            window_size=int(data.get("window_size", EVENT_QUEUE_LENGTH)),
            mqtt_config=mqtt_config,
            sensor_config=sensor_config,
        )
