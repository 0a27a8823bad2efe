"""
Step Accounting Errors
======================

Error taxonomy for the step accounting context.

None of these are retried internally. The service layer catches them at the
event/command boundary and decides whether to warn, fall back or ignore.
"""


class StepAccountingError(Exception):
    """Base class for step accounting errors."""
    pass


class UnsupportedBatchMode(StepAccountingError):
    """
    Raised by a sensor backend that cannot honour a non-zero max batch delay.

    The caller falls back to continuous delivery (delay 0). Accounting is not
    affected: it only sees latency measurements.
    """

    def __init__(self, sensor_type: str, max_batch_delay_us: int):
        self.sensor_type = sensor_type
        self.max_batch_delay_us = max_batch_delay_us
        super().__init__(
            f"Sensor '{sensor_type}' cannot batch events "
            f"(requested max delay {max_batch_delay_us} us)"
        )


class SensorContractViolation(StepAccountingError):
    """Raised when an incoming sensor event breaks the sensor contract."""
    pass


class InvalidModeTransition(StepAccountingError):
    """Raised when an operation does not match the active session mode."""
    pass
