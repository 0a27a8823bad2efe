"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

One JSON object per log line, built by JSONFormatter from the fields that
StructuredLogger attaches to each record.

Example:
    >>> logger = create_logger("sensor_subscriber").bind(device_id="phone_01")
    >>> logger.info(
    ...     event=LogEvent.SENSOR_EVENT_RECEIVED,
    ...     message="Received sensor event",
    ...     metadata={'sensor_type': 'step_counter'}
    ... )

Output:
    {"timestamp": "2025-10-24T15:30:45.123456+00:00", "level": "INFO",
     "component": "sensor_subscriber", "event": "sensor.event.received",
     "category": "sensor",
     "message": "Received sensor event",
     "metadata": {"device_id": "phone_01", "sensor_type": "step_counter"}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from .events import LogEvent


class JSONFormatter(logging.Formatter):
    """Render records produced by StructuredLogger as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'component': getattr(record, 'component', record.name),
            'event': getattr(record, 'event', None),
            'category': getattr(record, 'category', None),
            'message': record.getMessage(),
        }

        metadata = getattr(record, 'metadata', None)
        if metadata:
            entry['metadata'] = metadata

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry['exception'] = {'type': type(exc).__name__, 'message': str(exc)}
            if record.levelno >= logging.ERROR:
                entry['traceback'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    JSON structured logger wrapping Python's logging module.

    Attributes:
        component: Component name (e.g., "mqtt_publisher", "sensor_subscriber")
        context: Metadata merged into every entry (see bind())
        logger: Underlying Python logger instance
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.component = component
        self.context = dict(context or {})
        self.logger = logging.getLogger(logger_name or f"stepbatch_mqtt.{component}")
        self.logger.setLevel(level)

        # JSON lines go to their own handler, not to the root console format
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger for the same component with extra fixed metadata."""
        return StructuredLogger(
            component=self.component,
            level=self.logger.level,
            logger_name=self.logger.name,
            context={**self.context, **context},
        )

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        merged = {**self.context, **(metadata or {})}
        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={
                'component': self.component,
                'event': event.value,
                'category': event.category,
                'metadata': merged,
            },
        )

    def debug(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log WARNING level message.

        Example:
            >>> logger.warning(
            ...     event=LogEvent.SENSOR_BATCHING_UNSUPPORTED,
            ...     message="Device cannot batch sensor events",
            ...     metadata={'max_batch_delay_us': 10000000}
            ... )
        """
        self._log(logging.WARNING, event, message, metadata, exc_info)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """Log ERROR level message; exc_info adds type, message and traceback."""
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def create_logger(
    component: str,
    level: int = logging.INFO
) -> StructuredLogger:
    """
    Factory function to create configured StructuredLogger.

    Example:
        >>> logger = create_logger("mqtt_publisher", level=logging.DEBUG)
    """
    return StructuredLogger(component=component, level=level)
