"""
Counting Card Rendering
=======================

Stateless rendering of a session snapshot into the two strings shown to the
user (title + description).
"""

from dataclasses import dataclass
from typing import Dict

from stepbatch_core.accountant import SessionMode, StepStats, format_delays

SENSOR_LABELS: Dict[SessionMode, str] = {
    SessionMode.NONE: "-",
    SessionMode.COUNTER: "Step Counter",
    SessionMode.DETECTOR: "Step Detector",
}


@dataclass(frozen=True)
class CountingCard:
    """Display text for the step counting card."""

    title: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "description": self.description}


def render_counting_card(stats: StepStats) -> CountingCard:
    """
    Build the counting card text from a session snapshot.

    Args:
        stats: Snapshot from StepAccountant.get_stats()

    Returns:
        CountingCard with title and multi-line description
    """
    delays = format_delays(stats.delays_ms) or "-"

    title = f"{stats.step_count} steps"
    description = (
        f"Sensor: {SENSOR_LABELS[stats.mode]}\n"
        f"Max batch delay: {stats.max_batch_delay_us} µs\n"
        f"Age of the last {stats.window_size} events (s): {delays}"
    )
    return CountingCard(title=title, description=description)
