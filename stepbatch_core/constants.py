"""
Step accounting constants.

Batch latencies are expressed in microseconds, as sensor registration APIs
expect them. Delays recorded per event are in milliseconds.
"""

from typing import Dict

# Number of event delays kept for display
EVENT_QUEUE_LENGTH = 10

# Max batch latency presets (microseconds)
BATCH_LATENCY_0 = 0  # no batching
BATCH_LATENCY_5S = 5_000_000
BATCH_LATENCY_10S = 10_000_000

BATCH_PRESETS: Dict[str, int] = {
    "0s": BATCH_LATENCY_0,
    "5s": BATCH_LATENCY_5S,
    "10s": BATCH_LATENCY_10S,
}


def batch_delay_from_preset(preset: str) -> int:
    """
    Resolve a batching preset name to a max batch delay.

    Args:
        preset: One of "0s", "5s", "10s"

    Returns:
        Max batch delay in microseconds

    Raises:
        ValueError: If preset is unknown
    """
    try:
        return BATCH_PRESETS[preset]
    except KeyError:
        raise ValueError(
            f"Unknown batching preset: {preset!r}. "
            f"Must be one of {sorted(BATCH_PRESETS)}"
        )
