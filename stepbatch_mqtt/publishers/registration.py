"""
Registration and Sensor Event Publishers
=======================================

RegistrationPublisher: service → device, asks for a step stream.
SensorEventPublisher: device side (or simulator) → service, one message per event.
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import SensorEventMessage, SensorRegistrationMessage
from ..logging import StructuredLogger, LogEvent


class RegistrationPublisher(BasePublisher):
    """
    Publisher for sensor (un)registration requests.

    Uses QoS 1 by default: a lost registration leaves the device silent.
    """

    retain_messages = True

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "stepbatch_registration_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )

    def format_message(self, registration: SensorRegistrationMessage) -> Dict[str, Any]:
        return registration.to_dict()

    def publish_registration(self, registration: SensorRegistrationMessage) -> bool:
        """
        Publish a registration request (retained, the device picks it up on reconnect).

        Returns:
            True if published successfully, False otherwise
        """
        success = self.publish(self.format_message(registration))
        if success:
            self.logger.info(
                event=(
                    LogEvent.SENSOR_REGISTERED
                    if registration.sensor_type is not None
                    else LogEvent.SENSOR_UNREGISTERED
                ),
                message=f"Sent {registration.action.value} request",
                metadata=registration.to_dict()
            )
        return success


class SensorEventPublisher(BasePublisher):
    """Publisher for step sensor events (device simulation and tooling)."""

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "stepbatch_sensor_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )

    def format_message(self, event_msg: SensorEventMessage) -> Dict[str, Any]:
        return event_msg.to_dict()

    def publish_event(self, event_msg: SensorEventMessage) -> bool:
        """Publish one sensor event."""
        return self.publish(self.format_message(event_msg))
