"""
MQTT client wrapper for the stepbatch CLI.

Handles MQTT connection, publishing, and disconnection for one-shot sends.
"""

import json
import paho.mqtt.client as mqtt
from typing import Dict, Any, Optional


class MQTTCommandClient:
    """
    One-shot MQTT publisher.

    Commands go to the control plane topic with QoS 1; simulated sensor
    events go to the data plane topic with the caller's QoS.
    """

    def __init__(
        self,
        broker: str = "localhost",
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None
    ):
        """
        Initialize MQTT command client.

        Args:
            broker: MQTT broker host
            port: MQTT broker port
            username: Optional MQTT username
            password: Optional MQTT password
        """
        self.broker = broker
        self.port = port

        self.client = mqtt.Client()

        if username and password:
            self.client.username_pw_set(username, password)

    def publish(self, topic: str, payload: Dict[str, Any], qos: int = 1) -> None:
        """
        Publish one JSON payload and disconnect.

        Raises:
            ConnectionError: If unable to connect to MQTT broker
            ValueError: If the payload is not JSON serializable
        """
        try:
            body = json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid payload: {e}")

        try:
            self.client.connect(self.broker, self.port, keepalive=60)
        except (ConnectionRefusedError, OSError):
            raise ConnectionError(
                f"Unable to connect to MQTT broker at {self.broker}:{self.port}. "
                "Is mosquitto running?"
            )

        self.client.loop_start()
        try:
            result = self.client.publish(topic, body, qos=qos)
            result.wait_for_publish()
        finally:
            self.client.disconnect()
            self.client.loop_stop()

    def send_command(
        self,
        topic: str,
        command: Dict[str, Any],
        qos: int = 1
    ) -> None:
        """
        Send command to MQTT topic.

        Args:
            topic: MQTT topic (e.g., "stepbatch/control/walker_01/commands")
            command: Command dictionary (will be JSON serialized)
            qos: Quality of Service (default: 1 for control commands)
        """
        self.publish(topic, command, qos=qos)
        print(f"✅ Command sent: {command.get('command', 'unknown')}")
