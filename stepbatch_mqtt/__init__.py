"""
Stepbatch MQTT Communication Package
====================================

Bounded Context: Communication Protocol for Step Sensor Accounting

MQTT messaging between a step-sensing device, the step counter service and
any display that shows the counting card.

Architecture:
- schemas/: Immutable data structures with type safety
- publishers/: Message producers (StepCountPublisher, RegistrationPublisher, ...)
- subscriber.py: Sensor event consumer
- logging/: Structured JSON logging for observability

Topics (service_id = "walker_01", device_id = "phone_01"):
    stepbatch/data/sensor_events/phone_01   device → service
    stepbatch/data/registration/phone_01    service → device
    stepbatch/data/steps/walker_01          service → display

Example (Service):
    >>> from stepbatch_mqtt import StepCountPublisher, create_logger
    >>> from stepbatch_mqtt.schemas import StepCountMessage, Timestamp
    >>>
    >>> logger = create_logger("step_service")
    >>> publisher = StepCountPublisher(
    ...     broker_host="localhost",
    ...     topic="stepbatch/data/steps/walker_01",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_step_count(StepCountMessage(
    ...     service_id="walker_01",
    ...     timestamp=Timestamp.now(),
    ...     mode="detector",
    ...     step_count=3,
    ...     max_batch_delay_us=5000000,
    ...     window_size=10,
    ...     delays_ms=[80, 90],
    ... ))
"""

__version__ = "1.0.0"

# Schemas
from .schemas import (
    SensorType,
    Timestamp,
    SensorEventMessage,
    StepCountMessage,
    RegistrationAction,
    SensorRegistrationMessage,
)

# Publishers
from .publishers import (
    BasePublisher,
    StepCountPublisher,
    RegistrationPublisher,
    SensorEventPublisher,
)

# Subscriber
from .subscriber import SensorEventSubscriber

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    # Schemas
    'SensorType',
    'Timestamp',
    'SensorEventMessage',
    'StepCountMessage',
    'RegistrationAction',
    'SensorRegistrationMessage',
    # Publishers
    'BasePublisher',
    'StepCountPublisher',
    'RegistrationPublisher',
    'SensorEventPublisher',
    # Subscriber
    'SensorEventSubscriber',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
