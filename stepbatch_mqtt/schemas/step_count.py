"""
Step Count Message Schema
=========================

Bounded Context: Display Update Data Structures

Published after every processed sensor event and after (un)registration.
Carries both the raw numbers and the rendered card text, so a display only
needs to show title + description.

Message Flow:
    StepCounterService → StepCountPublisher → MQTT → Display
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .common import SCHEMA_VERSION, Timestamp

VALID_MODES = {"none", "counter", "detector"}


@dataclass(frozen=True)
class StepCountMessage:
    """
    Step count display update.

    Attributes:
        service_id: Publishing service
        timestamp: Message creation time
        mode: "none", "counter" or "detector"
        step_count: Steps in the current session
        max_batch_delay_us: Requested max batch delay
        window_size: Capacity of the delay history
        delays_ms: Recent event delays, oldest first
        title: Rendered card title
        description: Rendered card description
        schema_version: Message schema version
    """
    service_id: str
    timestamp: Timestamp
    mode: str
    step_count: int
    max_batch_delay_us: int
    window_size: int
    delays_ms: List[int] = field(default_factory=list)
    title: str = ""
    description: str = ""
    schema_version: str = SCHEMA_VERSION

    def __post_init__(self):
        """Validate invariants."""
        if self.mode not in VALID_MODES:
            raise ValueError(
                f"mode must be one of {sorted(VALID_MODES)}, got {self.mode!r}"
            )
        if self.step_count < 0:
            raise ValueError(f"step_count must be >= 0, got {self.step_count}")
        if len(self.delays_ms) > self.window_size:
            raise ValueError(
                f"delays_ms holds {len(self.delays_ms)} entries, "
                f"window_size is {self.window_size}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'service_id': self.service_id,
            'mode': self.mode,
            'step_count': self.step_count,
            'max_batch_delay_us': self.max_batch_delay_us,
            'window_size': self.window_size,
            'delays_ms': list(self.delays_ms),
            'title': self.title,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StepCountMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                service_id=str(data['service_id']),
                timestamp=Timestamp(value=data['timestamp']),
                mode=str(data['mode']),
                step_count=int(data['step_count']),
                max_batch_delay_us=int(data['max_batch_delay_us']),
                window_size=int(data['window_size']),
                delays_ms=[int(d) for d in data.get('delays_ms', [])],
                title=str(data.get('title', '')),
                description=str(data.get('description', '')),
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required StepCountMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid StepCountMessage data: {e}")
