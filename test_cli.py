"""
Test Stepbatch CLI Helpers
==========================

Usage:
    pytest test_cli.py
"""

import pytest

from stepbatch_cli.cli import build_register_command, build_sensor_event, load_yaml_config
from stepbatch_mqtt.schemas import SensorType


def test_build_register_command():
    assert build_register_command("register_counter", "5s") == {
        "command": "register_counter",
        "batching": "5s",
    }

    with pytest.raises(ValueError):
        build_register_command("register_detector", "3s")


def test_build_sensor_event():
    event = build_sensor_event(SensorType.STEP_DETECTOR, [1.0, 1.0], "phone_01")

    assert event.device_id == "phone_01"
    assert event.step_increment == 2
    assert event.timestamp_ns > 0


def test_load_yaml_command(tmp_path):
    command_file = tmp_path / "register.yaml"
    command_file.write_text("command: register_counter\nbatching: '10s'\n")

    assert load_yaml_config(str(command_file)) == {
        "command": "register_counter",
        "batching": "10s",
    }


def test_load_yaml_command_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(str(tmp_path / "missing.yaml"))

    no_command = tmp_path / "no_command.yaml"
    no_command.write_text("batching: '5s'\n")
    with pytest.raises(ValueError):
        load_yaml_config(str(no_command))

    broken = tmp_path / "broken.yaml"
    broken.write_text("command: [unclosed\n")
    with pytest.raises(ValueError):
        load_yaml_config(str(broken))
