"""
Step Accountant Module
======================

Converts raw step sensor events into a running step count and a bounded
history of event delays.

Design:
- Mutable session state (private, guarded by a single lock)
- Immutable snapshots (StepStats for display, PersistedSession for storage)
- Two mutually exclusive streams: detector (one event per step) and
  counter (cumulative total since the sensor started)
- Contract violations raise, state is left untouched
"""

import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Tuple

from stepbatch_core.constants import EVENT_QUEUE_LENGTH
from stepbatch_core.delays import DelayWindow
from stepbatch_core.errors import InvalidModeTransition, SensorContractViolation


class SessionMode(IntEnum):
    """Active sensor stream. Integer values are the persisted representation."""
    NONE = 0
    COUNTER = 1
    DETECTOR = 2


@dataclass(frozen=True)
class StepStats:
    """
    Immutable snapshot of the accounting session.

    Attributes:
        mode: Active stream
        max_batch_delay_us: Requested max batch delay (microseconds)
        step_count: Steps shown for the current session
        prior_step_count: Steps carried over from before a restore (counter only)
        baseline_captured: Whether the counter baseline has been seen
        delays_ms: Recent event delays, oldest first
        window_size: Capacity of the delay window
    """

    mode: SessionMode
    max_batch_delay_us: int
    step_count: int
    prior_step_count: int
    baseline_captured: bool
    delays_ms: Tuple[int, ...] = ()
    window_size: int = EVENT_QUEUE_LENGTH

    @property
    def is_active(self) -> bool:
        return self.mode != SessionMode.NONE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "mode": self.mode.name.lower(),
            "max_batch_delay_us": self.max_batch_delay_us,
            "step_count": self.step_count,
            "prior_step_count": self.prior_step_count,
            "baseline_captured": self.baseline_captured,
            "delays_ms": list(self.delays_ms),
            "window_size": self.window_size,
        }

    def __str__(self) -> str:
        return f"{self.mode.name}: {self.step_count} steps"


@dataclass(frozen=True)
class PersistedSession:
    """
    The three scalars saved across a suspend/resume cycle.

    Serialized with the keys ``state``, ``latency`` and ``steps``.
    """

    mode: SessionMode
    max_batch_delay_us: int
    step_count: int

    def __post_init__(self):
        """Validate invariants."""
        if self.max_batch_delay_us < 0:
            raise ValueError(
                f"max_batch_delay_us must be >= 0, got {self.max_batch_delay_us}"
            )
        if self.step_count < 0:
            raise ValueError(f"step_count must be >= 0, got {self.step_count}")

    def to_dict(self) -> Dict[str, int]:
        return {
            "state": int(self.mode),
            "latency": self.max_batch_delay_us,
            "steps": self.step_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedSession":
        """Deserialize from dict.

        Raises:
            ValueError: If required keys missing or invalid values
        """
        try:
            return cls(
                mode=SessionMode(int(data["state"])),
                max_batch_delay_us=int(data["latency"]),
                step_count=int(data["steps"]),
            )
        except KeyError as e:
            raise ValueError(f"Missing required session field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid session data: {e}")


class StepAccountant:
    """
    Stateful step accountant for one running session.

    Thread Safety:
        Every public operation holds one lock for its whole duration, so an
        event callback can never interleave with activate()/restore().

    Usage:
        accountant = StepAccountant()
        accountant.activate(SessionMode.DETECTOR, max_batch_delay_us=5_000_000)
        accountant.on_detector_event(1, event_latency_ms=80)
        accountant.on_detector_event(2, event_latency_ms=90)
        accountant.get_stats().step_count  # 3
    """

    def __init__(self, window_size: int = EVENT_QUEUE_LENGTH):
        self._lock = threading.Lock()

        self._mode = SessionMode.NONE
        self._max_batch_delay_us = 0
        self._step_count = 0

        # Counter stream state
        self._counter_baseline = 0
        self._baseline_captured = False
        self._prior_step_count = 0

        self._delays = DelayWindow(capacity=window_size)

    # ----- lifecycle -----

    def activate(self, mode: SessionMode, max_batch_delay_us: int) -> None:
        """
        Start counting on the given stream.

        Counter mode keeps prior_step_count so a restored count continues.

        Raises:
            InvalidModeTransition: If mode is NONE
            ValueError: If max_batch_delay_us is negative
        """
        with self._lock:
            self._activate(mode, max_batch_delay_us)

    def _activate(self, mode: SessionMode, max_batch_delay_us: int) -> None:
        mode = SessionMode(mode)
        if mode == SessionMode.NONE:
            raise InvalidModeTransition(
                "Cannot activate NONE; use deactivate() to stop counting"
            )
        if max_batch_delay_us < 0:
            raise ValueError(
                f"max_batch_delay_us must be >= 0, got {max_batch_delay_us}"
            )

        self._mode = mode
        self._max_batch_delay_us = max_batch_delay_us
        self._step_count = 0

        if mode == SessionMode.COUNTER:
            self._counter_baseline = 0
            self._baseline_captured = False

        self._delays.clear()

    def deactivate(self) -> None:
        """Stop counting and forget everything (explicit unregister)."""
        with self._lock:
            self._mode = SessionMode.NONE
            self._max_batch_delay_us = 0
            self._step_count = 0
            self._counter_baseline = 0
            self._baseline_captured = False
            self._prior_step_count = 0
            self._delays.clear()

    # ----- events -----

    def on_detector_event(self, step_increment: int, event_latency_ms: int) -> int:
        """
        Handle one detector event.

        Args:
            step_increment: Steps reported by this event (>= 1)
            event_latency_ms: Delay between the step and its delivery

        Returns:
            Updated step count

        Raises:
            InvalidModeTransition: If not in DETECTOR mode
            SensorContractViolation: On a non-positive increment or negative latency
        """
        with self._lock:
            self._require_mode(SessionMode.DETECTOR, "detector")

            if step_increment < 1:
                raise SensorContractViolation(
                    f"Detector event must report at least one step, got {step_increment}"
                )
            self._check_latency(event_latency_ms)

            self._step_count += step_increment
            self._delays.append(event_latency_ms)
            return self._step_count

    def on_counter_event(self, cumulative_value: int, event_latency_ms: int) -> int:
        """
        Handle one counter event.

        The first event after activation only reports the total the sensor had
        already accumulated; it becomes the baseline and its delay is not kept.

        Args:
            cumulative_value: Sensor total since it started
            event_latency_ms: Delay between the last step and its delivery

        Returns:
            Updated step count

        Raises:
            InvalidModeTransition: If not in COUNTER mode
            SensorContractViolation: If the total went below the baseline, or
                on a negative latency
        """
        with self._lock:
            self._require_mode(SessionMode.COUNTER, "counter")
            self._check_latency(event_latency_ms)

            if not self._baseline_captured:
                self._counter_baseline = cumulative_value
                self._baseline_captured = True
                self._step_count = self._prior_step_count
                return self._step_count

            delta = cumulative_value - self._counter_baseline
            if delta < 0:
                raise SensorContractViolation(
                    f"Cumulative counter value {cumulative_value} is below "
                    f"baseline {self._counter_baseline}"
                )

            self._step_count = delta + self._prior_step_count
            self._delays.append(event_latency_ms)
            return self._step_count

    def _require_mode(self, expected: SessionMode, stream: str) -> None:
        if self._mode != expected:
            raise InvalidModeTransition(
                f"Received {stream} event while in {self._mode.name} mode"
            )

    @staticmethod
    def _check_latency(event_latency_ms: int) -> None:
        if event_latency_ms < 0:
            raise SensorContractViolation(
                f"Event latency must be >= 0 ms, got {event_latency_ms}"
            )

    # ----- persistence -----

    def snapshot_for_persistence(self) -> PersistedSession:
        with self._lock:
            return PersistedSession(
                mode=self._mode,
                max_batch_delay_us=self._max_batch_delay_us,
                step_count=self._step_count,
            )

    def restore(
        self,
        mode: SessionMode,
        max_batch_delay_us: int,
        step_count: int,
    ) -> None:
        """
        Rebuild the session after a suspend/resume cycle.

        COUNTER: the saved count becomes prior_step_count, so deltas from the
        new baseline are added on top of it.
        DETECTOR: counting restarts from zero (there is no baseline to carry).
        NONE: the session stays idle.
        """
        mode = SessionMode(mode)
        with self._lock:
            self._counter_baseline = 0
            self._baseline_captured = False
            self._prior_step_count = 0
            self._delays.clear()

            if mode == SessionMode.NONE:
                self._mode = SessionMode.NONE
                self._max_batch_delay_us = 0
                self._step_count = 0
            elif mode == SessionMode.COUNTER:
                self._prior_step_count = step_count
                self._activate(SessionMode.COUNTER, max_batch_delay_us)
                self._step_count = self._prior_step_count
            else:
                self._activate(SessionMode.DETECTOR, max_batch_delay_us)

    # ----- queries -----

    def format_delay_seconds(self) -> str:
        """Recent delays as seconds with two decimals, oldest first."""
        with self._lock:
            return format_delays(self._delays)

    def get_stats(self) -> StepStats:
        with self._lock:
            return StepStats(
                mode=self._mode,
                max_batch_delay_us=self._max_batch_delay_us,
                step_count=self._step_count,
                prior_step_count=self._prior_step_count,
                baseline_captured=self._baseline_captured,
                delays_ms=tuple(self._delays),
                window_size=self._delays.capacity,
            )

    @property
    def mode(self) -> SessionMode:
        return self._mode

    def __repr__(self) -> str:
        return (
            f"StepAccountant(mode={self._mode.name}, steps={self._step_count}, "
            f"delays={len(self._delays)})"
        )


def format_delays(delays_ms) -> str:
    """Render millisecond delays as comma separated seconds ("0.08, 0.09")."""
    return ", ".join(f"{delay / 1000:.2f}" for delay in delays_ms)
