"""
Sensor Event Message Schema
===========================

Bounded Context: Sensor Event Data Structures

One message per delivered hardware event. With batching enabled the device
holds events back and then delivers them one message each, so the age of an
event (now - timestamp_ns) grows up to the max batch delay.

Values layout:
    step_counter:  values[0] = total steps since the sensor started.
                   values[1:] = orientation of each step since the last
                   notification (ignored by accounting).
    step_detector: one element per detected step.

Message Flow:
    Device → MQTT → SensorEventSubscriber → StepCounterService
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from .common import SCHEMA_VERSION, SensorType


@dataclass(frozen=True)
class SensorEventMessage:
    """
    Step sensor event.

    Attributes:
        sensor_type: Stream that produced the event
        values: Event values (see module docstring)
        timestamp_ns: Epoch nanoseconds when the (last) step happened
        device_id: Producing device identifier
        schema_version: Message schema version

    Invariants:
        - values is not empty
        - timestamp_ns >= 0

    Example:
        >>> msg = SensorEventMessage(
        ...     sensor_type=SensorType.STEP_COUNTER,
        ...     values=[103.0],
        ...     timestamp_ns=1729780245123456789,
        ...     device_id="phone_01"
        ... )
    """
    sensor_type: SensorType
    values: List[float]
    timestamp_ns: int
    device_id: str = "default"
    schema_version: str = SCHEMA_VERSION

    def __post_init__(self):
        """Validate invariants."""
        if not self.values:
            raise ValueError("Sensor event must carry at least one value")
        if self.timestamp_ns < 0:
            raise ValueError(
                f"timestamp_ns must be >= 0, got {self.timestamp_ns}"
            )

    @property
    def step_increment(self) -> int:
        """Steps reported by a detector event."""
        return len(self.values)

    @property
    def cumulative_value(self) -> int:
        """Total reported by a counter event."""
        return int(self.values[0])

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'sensor_type': self.sensor_type.value,
            'values': list(self.values),
            'timestamp_ns': self.timestamp_ns,
            'device_id': self.device_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SensorEventMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                sensor_type=SensorType(data['sensor_type']),
                values=[float(v) for v in data['values']],
                timestamp_ns=int(data['timestamp_ns']),
                device_id=str(data.get('device_id', 'default')),
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required SensorEventMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid SensorEventMessage data: {e}")
