"""
Sensor Registration Message Schema
==================================

Tells the device which step stream to deliver and with which max batch delay.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .common import SCHEMA_VERSION, SensorType, Timestamp


class RegistrationAction(str, Enum):
    REGISTER = "register"
    UNREGISTER = "unregister"


@dataclass(frozen=True)
class SensorRegistrationMessage:
    """
    Listener (un)registration request.

    Attributes:
        action: register or unregister
        timestamp: Message creation time
        sensor_type: Requested stream (required for register)
        max_batch_delay_us: 0 = continuous delivery
        schema_version: Message schema version

    Invariants:
        - register requires sensor_type
        - max_batch_delay_us >= 0
    """
    action: RegistrationAction
    timestamp: Timestamp
    sensor_type: Optional[SensorType] = None
    max_batch_delay_us: int = 0
    schema_version: str = SCHEMA_VERSION

    def __post_init__(self):
        """Validate invariants."""
        if self.action == RegistrationAction.REGISTER and self.sensor_type is None:
            raise ValueError("register requests must name a sensor_type")
        if self.max_batch_delay_us < 0:
            raise ValueError(
                f"max_batch_delay_us must be >= 0, got {self.max_batch_delay_us}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result = {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'action': self.action.value,
            'max_batch_delay_us': self.max_batch_delay_us,
        }
        if self.sensor_type is not None:
            result['sensor_type'] = self.sensor_type.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SensorRegistrationMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            sensor_type = None
            if 'sensor_type' in data:
                sensor_type = SensorType(data['sensor_type'])

            return cls(
                action=RegistrationAction(data['action']),
                timestamp=Timestamp(value=data['timestamp']),
                sensor_type=sensor_type,
                max_batch_delay_us=int(data.get('max_batch_delay_us', 0)),
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required SensorRegistrationMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid SensorRegistrationMessage data: {e}")
