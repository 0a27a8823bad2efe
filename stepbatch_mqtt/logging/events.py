"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Event names are dotted, the first segment being the category
(mqtt, sensor, steps, error). Each log line carries both, so a step count
history is one filter away:

    jq 'select(.event == "steps.updated") | .metadata.step_count'
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Every structured log line names one of these.
    """

    # mqtt
    MQTT_CONNECTED = "mqtt.connected"
    """CONNACK accepted by the broker."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """Client left the broker, on purpose or not."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Payload handed to the paho client."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Payload dropped: not connected or rejected by the client."""

    # sensor
    SENSOR_REGISTERED = "sensor.registered"
    """Listener registered for a step sensor stream."""

    SENSOR_UNREGISTERED = "sensor.unregistered"
    """Listener unregistered."""

    SENSOR_BATCHING_UNSUPPORTED = "sensor.batching_unsupported"
    """Batching requested but not available, fell back to continuous mode."""

    SENSOR_EVENT_RECEIVED = "sensor.event.received"
    """Sensor event message received by subscriber."""

    # steps
    STEPS_UPDATED = "steps.updated"
    """Step count recomputed after a sensor event."""

    STEPS_SERIALIZED = "steps.serialized"
    """Step count message serialized to JSON."""

    # error
    SERIALIZATION_ERROR = "error.serialization"
    """Outgoing payload could not be encoded as JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Incoming payload was not UTF-8 JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Decoded payload did not match the sensor event schema."""

    SENSOR_CONTRACT_ERROR = "error.sensor_contract"
    """Sensor event violated the sensor contract."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Broker unreachable, refused us, or never answered."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Unexpected failure while publishing."""

    @property
    def category(self) -> str:
        """First segment of the event name: mqtt, sensor, steps or error."""
        return self.value.split(".", 1)[0]
