"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Types shared by sensor event, step count and registration messages.

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Serialization: to_dict() for JSON export
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

SCHEMA_VERSION = "1.0"


class SensorType(str, Enum):
    """Step sensor stream type."""
    STEP_COUNTER = "step_counter"      # cumulative total since sensor start
    STEP_DETECTOR = "step_detector"    # one value per detected step


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Attributes:
        value: ISO 8601 formatted timestamp string

    Example:
        >>> ts = Timestamp.now()
        >>> ts.value
        '2025-10-24T15:30:45.123456+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object."""
        return cls(value=dt.isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value


def now_ns() -> int:
    """Wall clock in epoch nanoseconds (the sensor event timestamp clock)."""
    return time.time_ns()
