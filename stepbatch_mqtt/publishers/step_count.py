"""
Step Count Publisher
===================

Bounded Context: Display Update Production

Message Flow:
    StepCounterService → StepCountMessage → StepCountPublisher → MQTT Broker

Example:
    >>> publisher = StepCountPublisher(
    ...     broker_host="localhost",
    ...     topic="stepbatch/data/steps/walker_01",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_step_count(msg)
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import StepCountMessage
from ..logging import StructuredLogger, LogEvent


class StepCountPublisher(BasePublisher):
    """
    Publisher for step count display updates.

    Step count messages are retained so a display that connects late still
    shows the latest card.
    """

    retain_messages = True

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "stepbatch_step_publisher",
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

    def format_message(self, step_msg: StepCountMessage) -> Dict[str, Any]:
        """
        Format StepCountMessage to JSON-compatible dict.

        Raises:
            ValueError: If step_msg cannot be serialized
        """
        try:
            formatted = step_msg.to_dict()

            self.logger.debug(
                event=LogEvent.STEPS_SERIALIZED,
                message="Serialized step count message",
                metadata={
                    'mode': step_msg.mode,
                    'step_count': step_msg.step_count,
                }
            )

            return formatted

        except Exception as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize step count message",
                exc_info=e
            )
            raise ValueError(f"Failed to format step count message: {e}")

    def publish_step_count(self, step_msg: StepCountMessage) -> bool:
        """
        Publish a step count message.

        Returns:
            True if published successfully, False otherwise
        """
        try:
            message_data = self.format_message(step_msg)
            success = self.publish(message_data)

            if success:
                self.logger.info(
                    event=LogEvent.STEPS_UPDATED,
                    message=step_msg.title or f"{step_msg.step_count} steps",
                    metadata={
                        'mode': step_msg.mode,
                        'step_count': step_msg.step_count,
                        'delays_ms': step_msg.delays_ms,
                    }
                )

            return success

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing step count message",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False
