"""
Stepbatch MQTT Schemas
=====================

Bounded Context: Data Structures

Immutable, typed data structures for MQTT messages.

Design:
- Frozen dataclasses (immutability)
- to_dict() for JSON serialization
- from_dict() for deserialization (ValueError on bad input)
- Schema versioning for evolution

Public API
----------
Common Types:
    Timestamp, SensorType, now_ns

Messages:
    SensorEventMessage: Device → service
    StepCountMessage: Service → display
    SensorRegistrationMessage: Service → device

Example:
    >>> from stepbatch_mqtt.schemas import SensorEventMessage, SensorType, now_ns
    >>> msg = SensorEventMessage(
    ...     sensor_type=SensorType.STEP_DETECTOR,
    ...     values=[1.0],
    ...     timestamp_ns=now_ns()
    ... )
"""

from .common import SCHEMA_VERSION, SensorType, Timestamp, now_ns
from .sensor_event import SensorEventMessage
from .step_count import StepCountMessage
from .registration import RegistrationAction, SensorRegistrationMessage

__all__ = [
    'SCHEMA_VERSION',
    'SensorType',
    'Timestamp',
    'now_ns',
    'SensorEventMessage',
    'StepCountMessage',
    'RegistrationAction',
    'SensorRegistrationMessage',
]
