"""
Step Counter Service - orchestrates sensor registration, step accounting and
display updates.

Architecture:
- MQTTControlPlane receives user choices (register counter/detector with a
  batching preset, unregister, status)
- SensorBackend delivers events of the registered stream
- StepAccountant turns events into a step count and a delay history
- StepCountPublisher sends the rendered counting card after every change
- StateStore keeps the session across a stop/start (suspend/resume)

Threading Model:
- Control Plane Thread (paho-mqtt internal, command handlers)
- Sensor Subscriber Thread (paho-mqtt internal, on_sensor_event)
The accountant serializes both behind its own lock.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from stepbatch_core import (
    InvalidModeTransition,
    SensorContractViolation,
    SessionMode,
    StepAccountant,
    StepStats,
    UnsupportedBatchMode,
    batch_delay_from_preset,
    render_counting_card,
)
from stepbatch_mqtt.schemas import (
    SensorEventMessage,
    SensorType,
    StepCountMessage,
    Timestamp,
    now_ns,
)
from stepbatch_service.config import ServiceConfig
from stepbatch_service.sensors import SensorBackend
from stepbatch_service.state_store import StateStore

logger = logging.getLogger(__name__)

SENSOR_FOR_MODE: Dict[SessionMode, SensorType] = {
    SessionMode.COUNTER: SensorType.STEP_COUNTER,
    SessionMode.DETECTOR: SensorType.STEP_DETECTOR,
}


def latency_ms(received_ns: int, event_timestamp_ns: int) -> int:
    """Age of an event in whole milliseconds, truncated toward zero."""
    return int((received_ns - event_timestamp_ns) / 1_000_000)


class StepCounterService:
    """
    Main step counting service.

    Usage:
        config = ServiceConfig.from_yaml("config/step_service.yaml")
        service = StepCounterService(
            config=config,
            control_plane=control_plane,
            step_publisher=step_publisher,
            sensor_backend=sensor_backend,
            state_store=StateStore(config.state_file),
        )
        service.setup()
        service.start()
        ...
        service.stop()
    """

    def __init__(
        self,
        config: ServiceConfig,
        control_plane,  # MQTTControlPlane
        step_publisher,  # StepCountPublisher
        sensor_backend: SensorBackend,
        state_store: StateStore,
        clock: Callable[[], int] = now_ns,
    ):
        """
        Initialize step counter service.

        Args:
            config: Service configuration
            control_plane: MQTT control plane for commands and status
            step_publisher: Publisher for step count display updates
            sensor_backend: Source of step sensor events
            state_store: Where the session is saved on stop
            clock: Epoch-nanosecond clock used to age incoming events
        """
        self.config = config
        self.control_plane = control_plane
        self.step_publisher = step_publisher
        self.sensor_backend = sensor_backend
        self.state_store = state_store
        self.clock = clock

        self.accountant = StepAccountant(window_size=config.window_size)

        # Serializes registration changes coming from commands and lifecycle
        self._registration_lock = threading.Lock()
        # Snapshot and publish together, so the retained card is never older
        # than the session it follows
        self._publish_lock = threading.Lock()

        self._running = False
        self._stopped = threading.Event()

        logger.info(
            f"StepCounterService initialized for service_id={config.service_id}"
        )

    def setup(self):
        """Register command handlers with the control plane."""
        registry = self.control_plane.command_registry

        registry.register(
            "register_counter",
            self._handle_register_counter,
            "Count steps with the step counter sensor"
        )
        registry.register(
            "register_detector",
            self._handle_register_detector,
            "Count steps with the step detector sensor"
        )
        registry.register(
            "unregister",
            self._handle_unregister,
            "Unregister the sensor listener and reset the count"
        )
        registry.register(
            "status",
            self._handle_status,
            "Publish the current session"
        )
        registry.register(
            "help",
            self._handle_help,
            "Publish the available commands"
        )

        logger.info("Control handlers registered")

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def start(self):
        """
        Start the service (non-blocking).

        Lifecycle:
        1. Connect control plane
        2. Connect step publisher and sensor backend
        3. Resume the saved session, if any
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting step counter service")

        if not self.control_plane.connect(timeout=5.0):
            raise RuntimeError("Failed to connect to MQTT broker (control plane)")

        if not self.step_publisher.connect():
            logger.warning("Step publisher not connected, display updates will be dropped")

        if not self.sensor_backend.start():
            logger.warning("Sensor backend not connected, no events will arrive")

        self._running = True
        self._stopped.clear()
        self.resume()

        self.control_plane.publish_status("running", self.accountant.get_stats().to_dict())
        logger.info("✅ Step counter service started")

    def stop(self):
        """
        Stop the service, saving the session first.

        Lifecycle:
        1. Save session (suspend)
        2. Unregister listener, stop sensor backend
        3. Disconnect step publisher and control plane
        """
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping step counter service")

        try:
            self.suspend()
        except OSError as e:
            logger.error(f"Error saving session: {e}")

        self.sensor_backend.unregister_listener()
        self.sensor_backend.stop()
        self.step_publisher.disconnect()

        self.control_plane.publish_status("stopped")
        self.control_plane.disconnect()

        self._running = False
        self._stopped.set()
        logger.info("✅ Step counter service stopped")

    def is_running(self) -> bool:
        return self._running

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the service is stopped. Returns False on timeout."""
        return self._stopped.wait(timeout=timeout)

    def suspend(self) -> None:
        """Persist the session so the next start can resume it."""
        self.state_store.save(self.accountant.snapshot_for_persistence())

    def resume(self) -> None:
        """Restore the saved session and re-register its sensor listener."""
        try:
            saved = self.state_store.load()
        except ValueError as e:
            logger.warning(f"⚠️ Ignoring unreadable session file: {e}")
            saved = None

        if saved is None or saved.mode == SessionMode.NONE:
            logger.info("No active session to resume")
            self.publish_update()
            return

        logger.info(
            f"♻️ Resuming {saved.mode.name} session "
            f"(steps={saved.step_count}, max_batch_delay_us={saved.max_batch_delay_us})"
        )

        with self._registration_lock:
            self.accountant.restore(saved.mode, saved.max_batch_delay_us, saved.step_count)
            self._register_sensor(saved.mode, saved.max_batch_delay_us)

        self.publish_update()

    # ─────────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────────

    def register(self, mode: SessionMode, max_batch_delay_us: int) -> None:
        """
        Start counting with a fresh session on the given stream.

        An active registration is dropped first, so the new session starts
        from zero with no carried-over steps.
        """
        with self._registration_lock:
            if self.accountant.mode != SessionMode.NONE:
                self.sensor_backend.unregister_listener()
                self.accountant.deactivate()

            self.accountant.activate(mode, max_batch_delay_us)
            self._register_sensor(mode, max_batch_delay_us)

        self.publish_update()

    def unregister(self) -> None:
        """Unregister the listener and reset the session to NONE."""
        with self._registration_lock:
            self.sensor_backend.unregister_listener()
            self.accountant.deactivate()

        self.control_plane.publish_status("unregistered")
        self.publish_update()

    def _register_sensor(self, mode: SessionMode, max_batch_delay_us: int) -> None:
        """
        Register the sensor listener, falling back to continuous delivery
        when the sensor cannot batch.
        """
        sensor_type = SENSOR_FOR_MODE[mode]

        try:
            self.sensor_backend.register_listener(
                sensor_type, self.on_sensor_event, max_batch_delay_us
            )
        except UnsupportedBatchMode as e:
            logger.warning(
                f"⚠️ Could not register sensor listener in batch mode, "
                f"falling back to continuous mode ({e})"
            )
            self.control_plane.publish_status(
                "batching_unsupported",
                {
                    "sensor_type": sensor_type.value,
                    "requested_max_batch_delay_us": max_batch_delay_us,
                },
            )
            self.sensor_backend.register_listener(sensor_type, self.on_sensor_event, 0)
        else:
            if max_batch_delay_us > 0:
                self.control_plane.publish_status(
                    "batching_enabled",
                    {
                        "sensor_type": sensor_type.value,
                        "max_batch_delay_us": max_batch_delay_us,
                    },
                )

        logger.info(
            f"Event listener for {sensor_type.value} registered "
            f"with a max delay of {max_batch_delay_us}"
        )
        self.control_plane.publish_status(
            "registered",
            {
                "sensor_type": sensor_type.value,
                "max_batch_delay_us": max_batch_delay_us,
            },
        )

    # ─────────────────────────────────────────────────────────────────────
    # Sensor events (Sensor Subscriber Thread)
    # ─────────────────────────────────────────────────────────────────────

    def on_sensor_event(self, event_msg: SensorEventMessage) -> Optional[int]:
        """
        Account for one sensor event and publish the updated card.

        Returns:
            Updated step count, or None if the event was rejected
        """
        delay = latency_ms(self.clock(), event_msg.timestamp_ns)

        try:
            if event_msg.sensor_type == SensorType.STEP_COUNTER:
                steps = self.accountant.on_counter_event(event_msg.cumulative_value, delay)
            else:
                steps = self.accountant.on_detector_event(event_msg.step_increment, delay)

        except (SensorContractViolation, InvalidModeTransition) as e:
            logger.warning(f"⚠️ Rejected {event_msg.sensor_type.value} event: {e}")
            self.control_plane.publish_status(
                "sensor_warning",
                {
                    "error": type(e).__name__,
                    "message": str(e),
                    "sensor_type": event_msg.sensor_type.value,
                },
            )
            return None

        logger.debug(f"Age of most recent data = {delay}ms")
        logger.info(
            f"New step detected by {event_msg.sensor_type.value}. Total step count: {steps}"
        )

        self.publish_update()
        return steps

    def build_step_message(self, stats: StepStats) -> StepCountMessage:
        card = render_counting_card(stats)
        return StepCountMessage(
            service_id=self.config.service_id,
            timestamp=Timestamp.now(),
            mode=stats.mode.name.lower(),
            step_count=stats.step_count,
            max_batch_delay_us=stats.max_batch_delay_us,
            window_size=stats.window_size,
            delays_ms=list(stats.delays_ms),
            title=card.title,
            description=card.description,
        )

    def publish_update(self) -> bool:
        """Publish the counting card for the current session."""
        with self._publish_lock:
            return self.step_publisher.publish_step_count(
                self.build_step_message(self.accountant.get_stats())
            )

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    def _resolve_batch_delay(self, command: Dict) -> int:
        """
        Max batch delay requested by a register command.

        Accepts either "max_batch_delay_us" (int) or "batching" ("0s", "5s",
        "10s"); defaults to continuous delivery.
        """
        if "max_batch_delay_us" in command:
            delay = int(command["max_batch_delay_us"])
            if delay < 0:
                raise ValueError(f"max_batch_delay_us must be >= 0, got {delay}")
            return delay

        if "batching" in command:
            return batch_delay_from_preset(str(command["batching"]))

        return 0

    def _handle_register(self, mode: SessionMode, command: Dict):
        try:
            delay = self._resolve_batch_delay(command)
        except (TypeError, ValueError) as e:
            logger.warning(f"⚠️ Invalid register command: {e}")
            self.control_plane.publish_status("invalid_command", {"error": str(e)})
            return

        self.register(mode, delay)

    def _handle_register_counter(self, command: Dict):
        """Handle register_counter command (Control Plane Thread)."""
        self._handle_register(SessionMode.COUNTER, command)

    def _handle_register_detector(self, command: Dict):
        """Handle register_detector command (Control Plane Thread)."""
        self._handle_register(SessionMode.DETECTOR, command)

    def _handle_unregister(self, command: Dict):
        """Handle unregister command (Control Plane Thread)."""
        self.unregister()

    def _handle_status(self, command: Dict):
        stats = self.accountant.get_stats()
        details = stats.to_dict()
        details.update(render_counting_card(stats).to_dict())
        self.control_plane.publish_status("session", details)

    def _handle_help(self, command: Dict):
        self.control_plane.publish_status(
            "help", self.control_plane.command_registry.get_help()
        )
