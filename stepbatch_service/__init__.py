"""
stepbatch_service - Step counting service

Wires the step accountant to an MQTT sensor device, a display topic and a
control plane.

Architecture:
- StepCounterService: Main orchestrator
- SensorBackend / MQTTSensorBackend: Sensor registration and event intake
- StateStore: Session persistence across stop/start
- ServiceConfig: Configuration management
"""

from stepbatch_service.config import ServiceConfig, MQTTConfig, SensorConfig
from stepbatch_service.sensors import SensorBackend, MQTTSensorBackend
from stepbatch_service.state_store import StateStore
from stepbatch_service.service import StepCounterService

__all__ = [
    "ServiceConfig",
    "MQTTConfig",
    "SensorConfig",
    "SensorBackend",
    "MQTTSensorBackend",
    "StateStore",
    "StepCounterService",
]
