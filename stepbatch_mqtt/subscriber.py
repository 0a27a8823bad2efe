"""
MQTT Sensor Event Subscriber
===========================

Bounded Context: Sensor event intake

The device side of a step sensor publishes its batched readings as JSON on
a per-device topic. SensorEventSubscriber turns each payload back into a
SensorEventMessage and hands it to one callback.

Rules:
- The callback runs in the paho-mqtt network thread
- Undecodable or invalid payloads are counted as rejected and logged,
  nothing is raised into paho
- Payloads arriving outside start()/stop() are ignored, so a listener that
  was unregistered sees no late batch

Example:
    >>> subscriber = SensorEventSubscriber(
    ...     broker_host="localhost",
    ...     topic="stepbatch/data/sensor_events/phone_01",
    ...     on_event=service.on_sensor_event,
    ...     logger=create_logger("sensor_subscriber")
    ... )
    >>> if subscriber.connect():
    ...     subscriber.start()
"""

import json
import threading
from typing import Any, Callable, Dict, Optional
import paho.mqtt.client as mqtt

from .schemas import SensorEventMessage
from .logging import StructuredLogger, LogEvent

SensorEventCallback = Callable[[SensorEventMessage], Any]


class SensorEventSubscriber:
    """
    Subscribes to one sensor event topic and dispatches typed messages.

    Counters (received / rejected) are guarded by a lock because the
    network thread updates them while get_stats() may run elsewhere.
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        on_event: SensorEventCallback,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "stepbatch_sensor_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos
        self.on_event = on_event

        self.client = mqtt.Client(client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._dispatching = False
        self._closing = False

        self._stats_lock = threading.Lock()
        self._events_received = 0
        self._events_rejected = 0

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # ----- paho callbacks (network thread) -----

    def _on_connect(self, client, userdata, flags, rc) -> None:
        if rc != 0:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused sensor subscriber (rc={rc})",
                metadata={'broker': self.broker}
            )
            return

        # Subscribing here re-subscribes after every automatic reconnect
        client.subscribe(self.topic, qos=self.qos)
        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Sensor subscriber connected",
            metadata={'broker': self.broker, 'topic': self.topic, 'qos': self.qos}
        )

    def _on_disconnect(self, client, userdata, rc) -> None:
        self._connected.clear()
        if self._closing:
            return
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Sensor subscriber lost broker connection",
            metadata={'broker': self.broker, 'reason_code': rc}
        )

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        if not self._dispatching:
            return

        try:
            data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._reject(LogEvent.DESERIALIZATION_ERROR, "Sensor payload is not JSON", e, {'topic': msg.topic})
            return

        self._handle_sensor_event_message(data)

    # ----- dispatch -----

    def _handle_sensor_event_message(self, data: Dict[str, Any]) -> None:
        """Validate one decoded payload and pass it to the callback."""
        try:
            event_msg = SensorEventMessage.from_dict(data)
        except ValueError as e:
            self._reject(LogEvent.SCHEMA_VALIDATION_ERROR, "Invalid sensor event", e, {'data': data})
            return

        with self._stats_lock:
            self._events_received += 1

        self.logger.debug(
            event=LogEvent.SENSOR_EVENT_RECEIVED,
            message="Sensor event",
            metadata={
                'sensor_type': event_msg.sensor_type.value,
                'value_count': len(event_msg.values),
                'device_id': event_msg.device_id
            }
        )

        try:
            self.on_event(event_msg)
        except Exception as e:
            # A failing consumer must not kill the paho network thread
            self.logger.error(
                event=LogEvent.SENSOR_CONTRACT_ERROR,
                message="Sensor event callback failed",
                exc_info=e,
                metadata={'sensor_type': event_msg.sensor_type.value}
            )

    def _reject(
        self,
        event: LogEvent,
        message: str,
        error: Exception,
        metadata: Dict[str, Any]
    ) -> None:
        with self._stats_lock:
            self._events_rejected += 1
        self.logger.error(event=event, message=message, exc_info=error, metadata=metadata)

    # ----- lifecycle -----

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect, start the network loop and wait for the subscription.

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

    def start(self) -> None:
        """Begin dispatching received events to the callback."""
        self._dispatching = True
        self.logger.info(
            event=LogEvent.SENSOR_REGISTERED,
            message="Dispatching sensor events",
            metadata={'topic': self.topic}
        )

    def stop(self) -> None:
        """Stop dispatching, then disconnect and stop the network loop."""
        self._dispatching = False
        self._closing = True
        self.client.disconnect()
        self.client.loop_stop()
        self._connected.clear()
        self.logger.info(
            event=LogEvent.SENSOR_UNREGISTERED,
            message="Sensor subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._dispatching

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'events_received': self._events_received,
                'events_rejected': self._events_rejected,
                'connected': self._connected.is_set(),
                'running': self._dispatching,
                'topic': self.topic,
                'broker': self.broker
            }
