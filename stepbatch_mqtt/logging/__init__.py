"""
Structured Logging for Stepbatch MQTT
=====================================

Bounded Context: Observability

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from stepbatch_mqtt.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="step_service")
    >>> logger.info(
    ...     event=LogEvent.STEPS_UPDATED,
    ...     message="Step count updated",
    ...     metadata={'step_count': 3}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
