"""
MQTTControlPlane - command intake and status reporting for a step service

Bounded Context: Service control over MQTT

JSON commands arrive on the command topic (QoS 1) and are dispatched through
the CommandRegistry. Every outcome, including rejected commands, is reported
as a retained status message (QoS 1), so a client that subscribes late still
sees the last one. If the service dies without a clean DISCONNECT the broker
publishes the retained "offline" last will.

Command handlers run in the paho network thread.
"""

import json
import logging
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandRegistry, CommandNotAvailableError

logger = logging.getLogger(__name__)


class MQTTControlPlane:
    """
    Receives service commands and publishes retained status updates.

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="stepbatch/control/walker_01/commands",
            status_topic="stepbatch/control/walker_01/status",
            client_id="step_service_walker_01"
        )
        control_plane.command_registry.register('unregister', handler, "Stop counting")

        if control_plane.connect(timeout=5.0):
            control_plane.publish_status("running")

        control_plane.disconnect()
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = mqtt.Client(client_id=client_id, protocol=mqtt.MQTTv311)
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        # Broker publishes this if the connection drops without DISCONNECT
        self.client.will_set(
            self.status_topic,
            json.dumps(self._status_message("offline")),
            qos=1,
            retain=True,
        )

        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker, blocking until connected or timeout.

        Returns:
            True once subscribed to the command topic
        """
        logger.info(f"🔌 Control plane connecting to {self.broker_host}:{self.broker_port}")
        try:
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
        except (OSError, ValueError) as e:
            logger.error(f"❌ Broker unreachable: {e}")
            return False

        self.client.loop_start()
        self._running = True

        if not self._connected.wait(timeout=timeout):
            logger.error(f"❌ No CONNACK within {timeout}s")
            return False

        logger.info(f"✅ Listening for commands on {self.command_topic}")
        return True

    def disconnect(self) -> None:
        """Disconnect from MQTT broker. Safe to call multiple times."""
        if not self._running:
            return

        logger.info("🔌 Control plane disconnecting")
        self.publish_status("disconnected")
        self.client.disconnect()
        self.client.loop_stop()
        self._running = False
        self._connected.clear()
        logger.info("🔌 Control plane disconnected")

    def _status_message(self, status: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        message = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if details:
            message["details"] = details
        return message

    def publish_status(self, status: str, details: Optional[Dict[str, Any]] = None) -> bool:
        """
        Publish status update to status topic (QoS 1, retained).

        Args:
            status: Status string (e.g., "registered", "sensor_warning")
            details: Optional extra fields, nested under "details"

        Returns:
            True if the client accepted the message
        """
        result = self.client.publish(
            self.status_topic,
            json.dumps(self._status_message(status, details), default=str),
            qos=1,
            retain=True,
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"⚠️ Status '{status}' not published (rc={result.rc})")
            return False

        logger.debug(f"📤 status={status}")
        return True

    # ----- paho callbacks (network thread) -----

    def _on_connect(self, client, userdata, flags, rc):
        if rc != 0:
            logger.error(f"❌ Broker refused control plane (rc={rc})")
            self._connected.clear()
            return

        client.subscribe(self.command_topic, qos=1)

        self.publish_status("connected")
        self._connected.set()

    def _on_disconnect(self, client, userdata, rc):
        self._connected.clear()
        if rc != 0:
            logger.warning(f"⚠️ Unexpected disconnection (rc={rc}), paho will reconnect")

    def _on_message(self, client, userdata, msg):
        try:
            command_data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"❌ Undecodable command on {msg.topic}: {e}")
            self.publish_status("invalid_command", {"error": "payload is not JSON"})
            return

        try:
            self.dispatch(command_data)
        except Exception as e:
            logger.error(f"❌ Command handler failed: {e}", exc_info=True)
            self.publish_status("command_failed", {"error": str(e)})

    def dispatch(self, command_data: Dict[str, Any]) -> bool:
        """
        Execute a decoded command payload via the registry.

        Returns:
            True if a handler ran, False for malformed, empty or unknown commands
        """
        if not isinstance(command_data, dict):
            logger.warning(f"⚠️ Command payload must be a JSON object, got {type(command_data).__name__}")
            self.publish_status("invalid_command", {"error": "payload must be an object"})
            return False

        command = str(command_data.get('command', '')).strip().lower()
        if not command:
            logger.warning("⚠️ Command payload has no 'command' field")
            return False

        logger.info(f"🎯 Command: {command}")
        try:
            self.command_registry.execute(command, command_data)
        except CommandNotAvailableError as e:
            logger.warning(f"⚠️ {e}")
            self.publish_status("unknown_command", {"command": command})
            return False

        return True
