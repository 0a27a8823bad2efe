"""
MQTT Publishers
==============

Bounded Context: Message Production

Design:
- BasePublisher: Abstract base with connection management
- StepCountPublisher: Publishes step count display updates
- RegistrationPublisher: Publishes sensor (un)registration requests
- SensorEventPublisher: Publishes sensor events (device simulation)
- Separation of concerns: Publishers format, broker publishes
"""

from .base import BasePublisher
from .step_count import StepCountPublisher
from .registration import RegistrationPublisher, SensorEventPublisher

__all__ = [
    'BasePublisher',
    'StepCountPublisher',
    'RegistrationPublisher',
    'SensorEventPublisher',
]
