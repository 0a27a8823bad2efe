"""
Step sensor backends.

A backend delivers events of one registered step stream to one listener,
optionally batched by the device up to a max delay. The MQTT backend talks to
a remote device: registration requests go out on one topic, events come back
on another.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from stepbatch_core import UnsupportedBatchMode
from stepbatch_mqtt import (
    LogEvent,
    RegistrationPublisher,
    SensorEventSubscriber,
    StructuredLogger,
)
from stepbatch_mqtt.schemas import (
    RegistrationAction,
    SensorEventMessage,
    SensorRegistrationMessage,
    SensorType,
    Timestamp,
)

logger = logging.getLogger(__name__)

SensorListener = Callable[[SensorEventMessage], None]


class SensorBackend(ABC):
    """
    Source of step sensor events.

    At most one listener is registered at a time; registering again replaces
    the previous registration.
    """

    def __init__(self, supports_batching: bool = True):
        self.supports_batching = supports_batching
        self._listener: Optional[SensorListener] = None
        self._sensor_type: Optional[SensorType] = None
        self._lock = threading.Lock()

    def register_listener(
        self,
        sensor_type: SensorType,
        listener: SensorListener,
        max_batch_delay_us: int,
    ) -> None:
        """
        Register a listener for one stream.

        A max_batch_delay_us of 0 registers in continuous mode.

        Raises:
            UnsupportedBatchMode: If batching is requested but unavailable.
                Nothing is registered in that case.
        """
        if max_batch_delay_us > 0 and not self.supports_batching:
            raise UnsupportedBatchMode(sensor_type.value, max_batch_delay_us)

        with self._lock:
            self._listener = listener
            self._sensor_type = sensor_type

        self._request_registration(sensor_type, max_batch_delay_us)
        logger.info(
            f"📡 Listener registered for {sensor_type.value} "
            f"(max batch delay {max_batch_delay_us} us)"
        )

    def unregister_listener(self) -> None:
        """Unregister the listener if one is registered."""
        with self._lock:
            was_registered = self._listener is not None
            self._listener = None
            self._sensor_type = None

        if was_registered:
            self._request_unregistration()
            logger.info("📴 Sensor listener unregistered")

    @property
    def registered_sensor(self) -> Optional[SensorType]:
        return self._sensor_type

    def deliver(self, event_msg: SensorEventMessage) -> None:
        """Hand an event to the listener if it belongs to the registered stream."""
        with self._lock:
            listener = self._listener
            sensor_type = self._sensor_type

        if listener is None or event_msg.sensor_type != sensor_type:
            logger.debug(
                f"Dropping {event_msg.sensor_type.value} event "
                f"(registered: {sensor_type.value if sensor_type else None})"
            )
            return

        listener(event_msg)

    @abstractmethod
    def _request_registration(self, sensor_type: SensorType, max_batch_delay_us: int) -> None:
        """Ask the sensor to start delivering the stream."""

    @abstractmethod
    def _request_unregistration(self) -> None:
        """Ask the sensor to stop delivering."""

    @abstractmethod
    def start(self) -> bool:
        """Open the connection to the sensor. Returns True on success."""

    @abstractmethod
    def stop(self) -> None:
        """Close the connection to the sensor."""


class MQTTSensorBackend(SensorBackend):
    """
    Sensor backend for a device reachable over MQTT.

    Example:
        backend = MQTTSensorBackend(
            registration_publisher=RegistrationPublisher(...),
            broker_host="localhost",
            sensor_event_topic="stepbatch/data/sensor_events/phone_01",
            logger=create_logger("sensor_subscriber"),
            supports_batching=True,
        )
        backend.start()
        backend.register_listener(SensorType.STEP_COUNTER, on_event, 5_000_000)
    """

    def __init__(
        self,
        registration_publisher: RegistrationPublisher,
        broker_host: str,
        sensor_event_topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "stepbatch_sensor_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        supports_batching: bool = True,
    ):
        super().__init__(supports_batching=supports_batching)
        self.logger = logger
        self.registration_publisher = registration_publisher
        self.subscriber = SensorEventSubscriber(
            broker_host=broker_host,
            topic=sensor_event_topic,
            on_event=self.deliver,
            logger=logger,
            broker_port=broker_port,
            client_id=client_id,
            username=username,
            password=password,
            qos=qos,
        )

    def register_listener(
        self,
        sensor_type: SensorType,
        listener: SensorListener,
        max_batch_delay_us: int,
    ) -> None:
        try:
            super().register_listener(sensor_type, listener, max_batch_delay_us)
        except UnsupportedBatchMode:
            self.logger.warning(
                event=LogEvent.SENSOR_BATCHING_UNSUPPORTED,
                message="Device cannot batch sensor events",
                metadata={
                    'sensor_type': sensor_type.value,
                    'max_batch_delay_us': max_batch_delay_us
                }
            )
            raise

    def start(self) -> bool:
        if not self.registration_publisher.connect():
            return False
        if not self.subscriber.connect():
            return False
        self.subscriber.start()
        return True

    def stop(self) -> None:
        self.subscriber.stop()
        self.registration_publisher.disconnect()

    def _request_registration(self, sensor_type: SensorType, max_batch_delay_us: int) -> None:
        self.registration_publisher.publish_registration(
            SensorRegistrationMessage(
                action=RegistrationAction.REGISTER,
                timestamp=Timestamp.now(),
                sensor_type=sensor_type,
                max_batch_delay_us=max_batch_delay_us,
            )
        )

    def _request_unregistration(self) -> None:
        self.registration_publisher.publish_registration(
            SensorRegistrationMessage(
                action=RegistrationAction.UNREGISTER,
                timestamp=Timestamp.now(),
            )
        )
