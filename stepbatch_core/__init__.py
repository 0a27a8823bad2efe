"""
Stepbatch Core
==============

Bounded Context: Step accounting for batched step sensors.

Design Philosophy:
- The accountant knows nothing about MQTT, files or displays
- Mutable session state lives in one object, guarded by one lock
- Immutable outputs (StepStats, PersistedSession, CountingCard)
- Sensor contract violations are raised, never clamped

Architecture:

    stepbatch_core/
    ├── constants.py   # Window size, batch latency presets
    ├── errors.py      # Error taxonomy
    ├── delays.py      # DelayWindow (fixed-size ring buffer)
    ├── accountant.py  # StepAccountant, SessionMode, StepStats
    └── display.py     # render_counting_card (pure)

Usage:

    from stepbatch_core import StepAccountant, SessionMode, render_counting_card

    accountant = StepAccountant()
    accountant.activate(SessionMode.COUNTER, max_batch_delay_us=0)

    accountant.on_counter_event(100, event_latency_ms=50)   # baseline
    accountant.on_counter_event(103, event_latency_ms=60)   # 3 steps

    card = render_counting_card(accountant.get_stats())
    print(card.title)        # "3 steps"
"""

from stepbatch_core.constants import (
    EVENT_QUEUE_LENGTH,
    BATCH_LATENCY_0,
    BATCH_LATENCY_5S,
    BATCH_LATENCY_10S,
    BATCH_PRESETS,
    batch_delay_from_preset,
)
from stepbatch_core.errors import (
    StepAccountingError,
    UnsupportedBatchMode,
    SensorContractViolation,
    InvalidModeTransition,
)
from stepbatch_core.delays import DelayWindow
from stepbatch_core.accountant import (
    SessionMode,
    StepStats,
    PersistedSession,
    StepAccountant,
)
from stepbatch_core.display import CountingCard, render_counting_card

__all__ = [
    # Constants
    "EVENT_QUEUE_LENGTH",
    "BATCH_LATENCY_0",
    "BATCH_LATENCY_5S",
    "BATCH_LATENCY_10S",
    "BATCH_PRESETS",
    "batch_delay_from_preset",
    # Errors
    "StepAccountingError",
    "UnsupportedBatchMode",
    "SensorContractViolation",
    "InvalidModeTransition",
    # Accounting
    "DelayWindow",
    "SessionMode",
    "StepStats",
    "PersistedSession",
    "StepAccountant",
    # Display
    "CountingCard",
    "render_counting_card",
]

__version__ = "1.0.0"
