"""
Base MQTT Publisher
==================

Bounded Context: MQTT Infrastructure

Shared connection handling for every stepbatch publisher.

Design:
- One paho client per publisher, network loop in its own thread
- Retain policy is a class attribute: display cards and registration
  requests are retained (late subscribers see the latest one), sensor
  events are not
- Publishing never raises: failures are logged and counted, the caller
  gets False

Architecture:
    BasePublisher (abstract)
        ↓
    StepCountPublisher, RegistrationPublisher, SensorEventPublisher
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import paho.mqtt.client as mqtt

from ..logging import StructuredLogger, LogEvent


class BasePublisher(ABC):
    """
    Abstract base class for MQTT publishers.

    Subclasses implement format_message() and may override retain_messages.

    Thread Safety:
        publish() may be called from any thread; counters are lock-protected
        and the connection state is a threading.Event set by paho callbacks.
    """

    retain_messages: bool = False

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        """
        Initialize MQTT publisher.

        Args:
            broker_host: MQTT broker hostname
            broker_port: MQTT broker port
            topic: Topic to publish to
            client_id: Unique client identifier
            logger: Structured logger for observability
            username: MQTT authentication username (optional)
            password: MQTT authentication password (optional)
            qos: 0 for display cards and sensor events, 1 for registrations
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._closing = False

        self._stats_lock = threading.Lock()
        self._message_count = 0
        self._failed_count = 0

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # ----- paho callbacks (network thread) -----

    def _on_connect(self, client, userdata, flags, rc) -> None:
        if rc != 0:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection (rc={rc})",
                metadata={'broker': self.broker, 'client_id': self.client_id}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Publisher connected",
            metadata={
                'broker': self.broker,
                'client_id': self.client_id,
                'topic': self.topic,
                'retain': self.retain_messages
            }
        )

    def _on_disconnect(self, client, userdata, rc) -> None:
        self._connected.clear()
        if self._closing:
            return
        # paho reconnects on its own while the loop runs
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher lost broker connection",
            metadata={'broker': self.broker, 'reason_code': rc}
        )

    # ----- lifecycle -----

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect and start the network loop, waiting up to timeout seconds.

        Returns:
            True once the broker accepted the connection
        """
        self._closing = False
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Broker unreachable",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        self.client.loop_start()
        if not self._connected.wait(timeout=timeout):
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"No CONNACK within {timeout}s",
                metadata={'broker': self.broker}
            )
            return False
        return True

    def disconnect(self) -> None:
        """Send DISCONNECT after queued messages, then stop the loop."""
        self._closing = True
        self.client.disconnect()
        self.client.loop_stop()
        self._connected.clear()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher disconnected",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    # ----- publishing -----

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Build the JSON-compatible payload for one message."""

    def publish(
        self,
        message_data: Dict[str, Any],
        retain: Optional[bool] = None
    ) -> bool:
        """
        Publish an already formatted payload.

        Args:
            message_data: JSON-compatible dictionary
            retain: Override the publisher's retain_messages policy

        Returns:
            True if the message was handed to the client
        """
        if not self._connected.is_set():
            self._count_failure()
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Not connected, message dropped",
                metadata={'topic': self.topic}
            )
            return False

        try:
            payload = json.dumps(message_data)
        except (TypeError, ValueError) as e:
            self._count_failure()
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Payload is not JSON serializable",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False

        result = self.client.publish(
            topic=self.topic,
            payload=payload,
            qos=self.qos,
            retain=self.retain_messages if retain is None else retain
        )

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self._count_failure()
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message=f"Publish rejected by client (rc={result.rc})",
                metadata={'topic': self.topic}
            )
            return False

        with self._stats_lock:
            self._message_count += 1
            count = self._message_count

        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published",
            metadata={'topic': self.topic, 'message_count': count, 'bytes': len(payload)}
        )
        return True

    def _count_failure(self) -> None:
        with self._stats_lock:
            self._failed_count += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'message_count': self._message_count,
                'failed_count': self._failed_count,
                'connected': self._connected.is_set(),
                'topic': self.topic,
                'broker': self.broker
            }
